"""
FastAPI REST API Module

HTTP boundary of the ledger. The upstream session layer authenticates
users and forwards the result as X-User-Id / X-Role headers; this module
trusts them, calls the engine and maps error kinds to HTTP responses.
"""

from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, status
import uvicorn

from . import __version__
from .config import get_settings
from .engine import Ledger, create_ledger
from .errors import ErrorKind, Result, user_message
from .events import EventKind
from .logging_config import setup_logging
from .money import format_amount
from .permissions import Identity, Role
from .schemas import (
    AmountRequest, BalanceResponse, ConfigResponse, EventListResponse,
    OpenAccountRequest, ReportRowModel, TaxRequest, TransferRequest,
    UpdateConfigRequest, UpdateTaxRateRequest
)


STATUS_CODES: Dict[ErrorKind, int] = {
    ErrorKind.PERMISSION_DENIED: status.HTTP_403_FORBIDDEN,
    ErrorKind.ACCOUNT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INVALID_AMOUNT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.INVALID_RATE: status.HTTP_400_BAD_REQUEST,
    ErrorKind.INSUFFICIENT_FUNDS: status.HTTP_409_CONFLICT,
    ErrorKind.BELOW_EXISTENTIAL_DEPOSIT: status.HTTP_409_CONFLICT,
    ErrorKind.ACCOUNT_EXISTS: status.HTTP_409_CONFLICT,
}


def unwrap(result: Result) -> Any:
    """Return the value of an Ok result or raise the matching HTTP error"""
    if result.is_ok:
        return result.value
    raise HTTPException(
        status_code=STATUS_CODES[result.error],
        detail={'error': result.error.value, 'message': user_message(result.error)}
    )


def parse_role(value: str) -> Role:
    try:
        return Role(value.strip().lower())
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail=f"Unknown role: {value}")


def get_ledger(request: Request) -> Ledger:
    return request.app.state.ledger


def get_identity(x_user_id: int = Header(...), x_role: str = Header(...)) -> Identity:
    """Identity asserted by the upstream session layer"""
    return Identity(user_id=x_user_id, role=parse_role(x_role))


def create_app(ledger: Optional[Ledger] = None) -> FastAPI:
    """Create and configure the FastAPI application"""
    app = FastAPI(
        title="Bank Ledger API",
        description="Permissioned account ledger with an append-only event log",
        version=__version__,
    )
    app.state.ledger = ledger or create_ledger()

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {"status": "healthy", "service": "bank_ledger", "version": __version__}

    # Accounts

    @app.post("/accounts", status_code=status.HTTP_201_CREATED)
    def open_account(request: OpenAccountRequest, ledger: Ledger = Depends(get_ledger)):
        """Register a new account"""
        account_id = unwrap(ledger.open_account(request.username, parse_role(request.role)))
        return {"account_id": account_id}

    @app.get("/accounts/{account_id}/balance", response_model=BalanceResponse)
    def check_balance(account_id: int, identity: Identity = Depends(get_identity),
                      ledger: Ledger = Depends(get_ledger)):
        """Balance of the caller's own account"""
        balance = unwrap(ledger.check_balance(identity, account_id))
        return BalanceResponse.from_balance(account_id, balance, ledger.precision)

    @app.post("/accounts/{account_id}/deposit", response_model=BalanceResponse)
    def deposit(account_id: int, request: AmountRequest,
                identity: Identity = Depends(get_identity),
                ledger: Ledger = Depends(get_ledger)):
        """Make a deposit"""
        balance = unwrap(ledger.deposit(identity, account_id, request.amount))
        return BalanceResponse.from_balance(account_id, balance, ledger.precision)

    @app.post("/accounts/{account_id}/withdraw", response_model=BalanceResponse)
    def withdraw(account_id: int, request: AmountRequest,
                 identity: Identity = Depends(get_identity),
                 ledger: Ledger = Depends(get_ledger)):
        """Make a withdrawal"""
        balance = unwrap(ledger.withdraw(identity, account_id, request.amount))
        return BalanceResponse.from_balance(account_id, balance, ledger.precision)

    @app.post("/accounts/{account_id}/transfer", response_model=BalanceResponse)
    def transfer(account_id: int, request: TransferRequest,
                 identity: Identity = Depends(get_identity),
                 ledger: Ledger = Depends(get_ledger)):
        """Make a transfer between accounts"""
        balance = unwrap(ledger.transfer(identity, account_id, request.to_account_id,
                                         request.amount))
        return BalanceResponse.from_balance(account_id, balance, ledger.precision)

    # Rates

    @app.post("/interest")
    def pay_interest(identity: Identity = Depends(get_identity),
                     ledger: Ledger = Depends(get_ledger)):
        """Pay interest to every funded account"""
        total = unwrap(ledger.pay_interest(identity))
        return {"total_interest": format_amount(total, ledger.precision)}

    @app.post("/tax")
    def collect_tax(request: TaxRequest, identity: Identity = Depends(get_identity),
                    ledger: Ledger = Depends(get_ledger)):
        """Collect tax from every funded account"""
        total = unwrap(ledger.collect_tax(identity, request.tax_rate))
        return {"total_tax": format_amount(total, ledger.precision)}

    @app.patch("/config", response_model=ConfigResponse)
    def update_config(request: UpdateConfigRequest,
                      identity: Identity = Depends(get_identity),
                      ledger: Ledger = Depends(get_ledger)):
        """Update interest rate and/or existential deposit"""
        config = unwrap(ledger.update_config(
            identity,
            interest_rate=request.interest_rate,
            existential_deposit=request.existential_deposit
        ))
        return ConfigResponse.from_config(config)

    @app.put("/config/tax-rate", response_model=ConfigResponse)
    def update_tax_rate(request: UpdateTaxRateRequest,
                        identity: Identity = Depends(get_identity),
                        ledger: Ledger = Depends(get_ledger)):
        """Update the default tax rate"""
        config = unwrap(ledger.update_tax_rate(identity, request.tax_rate))
        return ConfigResponse.from_config(config)

    # Reports

    @app.get("/report", response_model=List[ReportRowModel])
    def view_report(identity: Identity = Depends(get_identity),
                    ledger: Ledger = Depends(get_ledger)):
        """Report every account"""
        rows = unwrap(ledger.view_report(identity))
        return [ReportRowModel.from_row(row, ledger.precision) for row in rows]

    @app.get("/events", response_model=EventListResponse)
    def query_events(account_id: Optional[int] = None,
                     kind: Optional[List[str]] = Query(None),
                     identity: Identity = Depends(get_identity),
                     ledger: Ledger = Depends(get_ledger)):
        """Query the event log by account and/or kind"""
        try:
            kinds = {EventKind(k) for k in kind} if kind else None
        except ValueError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

        if account_id is not None:
            events = unwrap(ledger.events_for_account(identity, account_id))
            if kinds:
                events = [e for e in events if e.kind in kinds]
        elif kinds:
            events = unwrap(ledger.events_by_kind(identity, kinds))
        else:
            events = unwrap(ledger.all_events(identity))

        payload = [e.to_dict() for e in events]
        return EventListResponse(count=len(payload), events=payload)

    return app


def run_server(host: Optional[str] = None, port: Optional[int] = None):
    """Run the API server with settings-driven logging and seed accounts"""
    settings = get_settings()
    setup_logging(settings.log_level, log_format=settings.log_format,
                  log_file=settings.log_file)
    uvicorn.run(
        create_app(create_ledger(settings)),
        host=host or settings.api_host,
        port=port or settings.api_port
    )
