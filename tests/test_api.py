"""
Integration tests for the Bank Ledger API
Tests end-to-end workflows using FastAPI TestClient
"""

import pytest
from decimal import Decimal
from fastapi.testclient import TestClient

from bank_ledger.api import create_app
from bank_ledger.engine import Ledger, LedgerConfig


@pytest.fixture
def client():
    """Create a test client backed by a fresh in-memory ledger"""
    ledger = Ledger(LedgerConfig(interest_rate=Decimal("10"),
                                 existential_deposit=Decimal("5")))
    return TestClient(create_app(ledger))


def headers(account_id, role):
    return {"X-User-Id": str(account_id), "X-Role": role}


def register(client, username, role="customer"):
    r = client.post("/accounts", json={"username": username, "role": role})
    assert r.status_code == 201
    return r.json()["account_id"]


@pytest.fixture
def staff(client):
    """Register a manager and an auditor, returning their headers"""
    manager_id = register(client, "manager", "manager")
    auditor_id = register(client, "auditor", "auditor")
    return headers(manager_id, "manager"), headers(auditor_id, "auditor")


class TestHealthEndpoints:
    """Test basic health endpoint"""

    def test_health(self, client):
        """Test health endpoint"""
        r = client.get("/health")
        assert r.status_code == 200
        assert r.json()["status"] == "healthy"


class TestAccountFlow:
    """End-to-end customer account tests"""

    def test_register_and_check_balance(self, client):
        """Test a new account starts unfunded"""
        account_id = register(client, "roy")
        r = client.get(f"/accounts/{account_id}/balance",
                       headers=headers(account_id, "customer"))
        assert r.status_code == 200
        assert r.json() == {"account_id": account_id, "balance": None, "reaped": True}

    def test_duplicate_username(self, client):
        """Test duplicate registration conflicts"""
        register(client, "roy")
        r = client.post("/accounts", json={"username": "roy", "role": "customer"})
        assert r.status_code == 409
        assert r.json()["detail"]["error"] == "account_exists"

    def test_unknown_role(self, client):
        """Test unknown roles are rejected"""
        r = client.post("/accounts", json={"username": "roy", "role": "banker"})
        assert r.status_code == 400

    def test_deposit_and_withdraw(self, client):
        """Test deposit followed by a reaping withdrawal"""
        account_id = register(client, "alice")
        auth = headers(account_id, "customer")

        r = client.post(f"/accounts/{account_id}/deposit", json={"amount": "10"},
                        headers=auth)
        assert r.status_code == 200
        assert r.json()["balance"] == "10.00"

        r = client.post(f"/accounts/{account_id}/withdraw", json={"amount": "7"},
                        headers=auth)
        assert r.status_code == 200
        assert r.json()["reaped"] is True
        assert r.json()["balance"] is None

    def test_invalid_amount(self, client):
        """Test malformed amounts map to 400"""
        account_id = register(client, "roy")
        r = client.post(f"/accounts/{account_id}/deposit", json={"amount": "ten"},
                        headers=headers(account_id, "customer"))
        assert r.status_code == 400
        assert r.json()["detail"]["error"] == "invalid_amount"

    def test_insufficient_funds(self, client):
        """Test overdrafts map to 409"""
        account_id = register(client, "roy")
        auth = headers(account_id, "customer")
        client.post(f"/accounts/{account_id}/deposit", json={"amount": "10"}, headers=auth)

        r = client.post(f"/accounts/{account_id}/withdraw", json={"amount": "11"},
                        headers=auth)
        assert r.status_code == 409
        assert r.json()["detail"]["error"] == "insufficient_funds"

    def test_other_customers_account(self, client):
        """Test acting on another customer's account is forbidden"""
        roy = register(client, "roy")
        amy = register(client, "amy")
        r = client.post(f"/accounts/{amy}/deposit", json={"amount": "10"},
                        headers=headers(roy, "customer"))
        assert r.status_code == 403
        assert r.json()["detail"]["message"] == \
            "Current user is not authorized to do this operation."

    def test_missing_identity_headers(self, client):
        """Test requests without identity headers are invalid"""
        account_id = register(client, "roy")
        r = client.get(f"/accounts/{account_id}/balance")
        assert r.status_code == 422

    def test_transfer(self, client):
        """Test transferring between customers"""
        roy = register(client, "roy")
        amy = register(client, "amy")
        client.post(f"/accounts/{roy}/deposit", json={"amount": "100"},
                    headers=headers(roy, "customer"))

        r = client.post(f"/accounts/{roy}/transfer",
                        json={"to_account_id": amy, "amount": "40"},
                        headers=headers(roy, "customer"))
        assert r.status_code == 200
        assert Decimal(r.json()["balance"]) == Decimal("60")

        r = client.get(f"/accounts/{amy}/balance", headers=headers(amy, "customer"))
        assert Decimal(r.json()["balance"]) == Decimal("40")

    def test_transfer_to_unknown_account(self, client):
        """Test transfers to missing accounts map to 404"""
        roy = register(client, "roy")
        client.post(f"/accounts/{roy}/deposit", json={"amount": "100"},
                    headers=headers(roy, "customer"))
        r = client.post(f"/accounts/{roy}/transfer",
                        json={"to_account_id": 77, "amount": "40"},
                        headers=headers(roy, "customer"))
        assert r.status_code == 404


class TestStaffFlow:
    """End-to-end manager and auditor tests"""

    def test_pay_interest(self, client, staff):
        """Test the manager pays interest"""
        manager, _ = staff
        bob = register(client, "bob")
        client.post(f"/accounts/{bob}/deposit", json={"amount": "20"},
                    headers=headers(bob, "customer"))

        r = client.post("/interest", headers=manager)
        assert r.status_code == 200
        assert Decimal(r.json()["total_interest"]) == Decimal("2")

    def test_customer_cannot_pay_interest(self, client):
        """Test customers are forbidden from paying interest"""
        bob = register(client, "bob")
        r = client.post("/interest", headers=headers(bob, "customer"))
        assert r.status_code == 403

    def test_collect_tax(self, client, staff):
        """Test the auditor collects tax, reaping small balances"""
        _, auditor = staff
        carl = register(client, "carl")
        client.post(f"/accounts/{carl}/deposit", json={"amount": "8"},
                    headers=headers(carl, "customer"))

        r = client.post("/tax", json={"tax_rate": "50"}, headers=auditor)
        assert r.status_code == 200
        assert Decimal(r.json()["total_tax"]) == Decimal("4")

        r = client.get(f"/events?account_id={carl}&kind=reap", headers=auditor)
        assert r.json()["count"] == 1

    def test_invalid_tax_rate(self, client, staff):
        """Test tax rates above 100 map to 400"""
        _, auditor = staff
        r = client.post("/tax", json={"tax_rate": "150"}, headers=auditor)
        assert r.status_code == 400
        assert r.json()["detail"]["error"] == "invalid_rate"

    def test_update_config(self, client, staff):
        """Test the manager updates rates"""
        manager, auditor = staff
        r = client.patch("/config", json={"interest_rate": "3", "existential_deposit": "1"},
                         headers=manager)
        assert r.status_code == 200
        assert Decimal(r.json()["interest_rate"]) == Decimal("3")
        assert Decimal(r.json()["existential_deposit"]) == Decimal("1")

        r = client.patch("/config", json={"interest_rate": "3"}, headers=auditor)
        assert r.status_code == 403

    def test_update_tax_rate(self, client, staff):
        """Test the auditor sets the default tax rate"""
        _, auditor = staff
        r = client.put("/config/tax-rate", json={"tax_rate": "7.5"}, headers=auditor)
        assert r.status_code == 200
        assert Decimal(r.json()["tax_rate"]) == Decimal("7.5")

    def test_report(self, client, staff):
        """Test the report lists every account"""
        manager, _ = staff
        roy = register(client, "roy")
        client.post(f"/accounts/{roy}/deposit", json={"amount": "100"},
                    headers=headers(roy, "customer"))

        r = client.get("/report", headers=manager)
        assert r.status_code == 200
        rows = r.json()
        assert [row["owner_username"] for row in rows] == ["manager", "auditor", "roy"]
        assert rows[0]["balance"] == "reaped"
        assert rows[2]["balance"] == "100.00"

    def test_events_by_kind(self, client, staff):
        """Test event queries filter by kind"""
        manager, _ = staff
        roy = register(client, "roy")
        auth = headers(roy, "customer")
        client.post(f"/accounts/{roy}/deposit", json={"amount": "100"}, headers=auth)
        client.post(f"/accounts/{roy}/withdraw", json={"amount": "10"}, headers=auth)
        client.post("/interest", headers=manager)

        r = client.get("/events?kind=deposit&kind=withdraw", headers=manager)
        assert r.status_code == 200
        data = r.json()
        assert data["count"] == 2
        assert [e["kind"] for e in data["events"]] == ["deposit", "withdraw"]
        assert data["events"][1]["amount"] == "-10"

        r = client.get("/events", headers=manager)
        assert r.json()["count"] == 3

    def test_events_unknown_kind(self, client, staff):
        """Test unknown event kinds are rejected"""
        manager, _ = staff
        r = client.get("/events?kind=refund", headers=manager)
        assert r.status_code == 400

    def test_customer_cannot_query_events(self, client):
        """Test customers cannot read the event log"""
        roy = register(client, "roy")
        r = client.get("/events", headers=headers(roy, "customer"))
        assert r.status_code == 403

    def test_interest_out_of_range(self, client, staff):
        """Test an interest payout too large to represent maps to 400"""
        manager, _ = staff
        roy = register(client, "roy")
        client.post(f"/accounts/{roy}/deposit", json={"amount": "10"},
                    headers=headers(roy, "customer"))
        client.patch("/config", json={"interest_rate": "1e27"}, headers=manager)

        r = client.post("/interest", headers=manager)
        assert r.status_code == 400
        assert r.json()["detail"]["error"] == "invalid_amount"

        r = client.get(f"/accounts/{roy}/balance", headers=headers(roy, "customer"))
        assert r.json()["balance"] == "10.00"
