"""
Ledger Engine Module

Executes every balance-mutating operation against the account store,
enforces the existential deposit rule and records committed mutations in
the event log.

Each operation runs as one atomic step under the ledger lock:
permission check, precondition checks, balance updates, event append.
All checks happen before the first write, so a rejected operation leaves
accounts, configuration and log exactly as they were.
"""

import threading
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from .accounts import Account, AccountStore
from .config import LedgerSettings, get_settings
from .errors import Err, ErrorKind, LedgerError, Ok, Result
from .events import EventKind, EventLog
from .logging_config import get_logger, log_action
from .money import HUNDRED, ZERO, exact_arithmetic, parse_amount, parse_rate, percent_of
from .permissions import Identity, Operation, Role, authorize


@dataclass
class LedgerConfig:
    """Process-wide rates; changed only through ledger operations"""
    interest_rate: Decimal = Decimal("1")
    existential_deposit: Decimal = Decimal("5")
    tax_rate: Decimal = Decimal("2")

    def __post_init__(self):
        if self.interest_rate < ZERO:
            raise ValueError("Interest rate cannot be negative")
        if self.existential_deposit < ZERO:
            raise ValueError("Existential deposit cannot be negative")
        if not ZERO <= self.tax_rate <= HUNDRED:
            raise ValueError("Tax rate must be between 0 and 100")

    def to_dict(self) -> Dict[str, str]:
        return {
            'interest_rate': str(self.interest_rate),
            'existential_deposit': str(self.existential_deposit),
            'tax_rate': str(self.tax_rate),
        }


@dataclass(frozen=True)
class ReportRow:
    """One line of the account report; balance None means reaped"""
    id: int
    owner_username: str
    role: Role
    balance: Optional[Decimal]


class Ledger:
    """
    Permissioned ledger of user accounts

    Public operations never raise for business failures: they return
    ``Ok(value)`` on success and ``Err(kind)`` otherwise.
    """

    def __init__(self, config: Optional[LedgerConfig] = None, precision: int = 2):
        self._config = config or LedgerConfig()
        self._accounts = AccountStore()
        self._log = EventLog()
        self._lock = threading.RLock()
        self.precision = precision
        self.logger = get_logger("bank_ledger.engine")

    # Dispatch

    def _execute(self, identity: Identity, operation: Operation,
                 action: Callable[[], Any], account_id: Optional[int] = None) -> Result:
        """Run one operation atomically and turn rejections into Err values"""
        with self._lock:
            try:
                authorize(identity, operation, account_id)
                with exact_arithmetic():
                    value = action()
            except LedgerError as e:
                log_action(
                    self.logger, "warning", f"{operation.value} rejected: {e.kind.value}",
                    user_id=identity.user_id, action=operation.value,
                    resource=self._resource(account_id),
                    details={'error': e.kind.value, 'reason': e.detail}
                )
                return Err(e.kind, e.detail)

        log_action(
            self.logger, "info", f"{operation.value} completed",
            user_id=identity.user_id, action=operation.value,
            resource=self._resource(account_id)
        )
        return Ok(value)

    @staticmethod
    def _resource(account_id: Optional[int]) -> Optional[str]:
        return f"account:{account_id}" if account_id is not None else None

    def _is_dust(self, balance: Decimal) -> bool:
        """A balance that must be reaped rather than kept"""
        return balance == ZERO or balance < self._config.existential_deposit

    # Accounts

    def open_account(self, owner: str, role: Role) -> Result:
        """
        Register a new, unfunded account

        Registration is open to anyone and does not produce an event.

        Returns:
            Ok(account id) or Err(ACCOUNT_EXISTS)
        """
        with self._lock:
            try:
                account_id = self._accounts.create(owner, role)
            except LedgerError as e:
                log_action(self.logger, "warning", f"account registration rejected: {e.kind.value}",
                           action="open_account", details={'username': owner})
                return Err(e.kind, e.detail)

        log_action(self.logger, "info", "account opened", user_id=account_id,
                   action="open_account", resource=self._resource(account_id),
                   details={'username': owner, 'role': role.value})
        return Ok(account_id)

    def check_balance(self, identity: Identity, account_id: int) -> Result:
        """Current balance of the caller's own account (None when reaped)"""
        return self._execute(
            identity, Operation.CHECK_BALANCE,
            lambda: self._accounts.get(account_id).balance,
            account_id
        )

    # Balance mutations

    def deposit(self, identity: Identity, account_id: int, amount: Any) -> Result:
        """
        Deposit funds into the caller's own account

        An unfunded account counts as holding zero. The resulting balance
        must reach the existential deposit.

        Returns:
            Ok(new balance) or Err(INVALID_AMOUNT | ACCOUNT_NOT_FOUND |
            BELOW_EXISTENTIAL_DEPOSIT | PERMISSION_DENIED)
        """
        def action() -> Decimal:
            value = parse_amount(amount, self.precision)
            account = self._accounts.get(account_id)
            new_balance = (account.balance or ZERO) + value
            if new_balance < self._config.existential_deposit:
                raise LedgerError(
                    ErrorKind.BELOW_EXISTENTIAL_DEPOSIT,
                    f"balance {new_balance} below {self._config.existential_deposit}"
                )

            self._accounts.set_balance(account_id, new_balance)
            self._log.append(EventKind.DEPOSIT, (account_id,), value, actor=identity.user_id)
            return new_balance

        return self._execute(identity, Operation.DEPOSIT, action, account_id)

    def withdraw(self, identity: Identity, account_id: int, amount: Any) -> Result:
        """
        Withdraw funds from the caller's own account

        A remainder of zero or below the existential deposit reaps the
        account: its balance is cleared and the remainder is forfeited.

        Returns:
            Ok(new balance, None if reaped) or Err(INVALID_AMOUNT |
            ACCOUNT_NOT_FOUND | INSUFFICIENT_FUNDS | PERMISSION_DENIED)
        """
        def action() -> Optional[Decimal]:
            value = parse_amount(amount, self.precision)
            account = self._accounts.get(account_id)
            remainder = self._debit(account, value)
            reaped = self._is_dust(remainder)

            self._accounts.set_balance(account_id, None if reaped else remainder)
            self._log.append(EventKind.WITHDRAW, (account_id,), ZERO - value,
                             actor=identity.user_id)
            if reaped:
                self._append_reap(account_id, remainder, identity.user_id)
                return None
            return remainder

        return self._execute(identity, Operation.WITHDRAW, action, account_id)

    def transfer(self, identity: Identity, from_account_id: int,
                 to_account_id: int, amount: Any) -> Result:
        """
        Move funds from the caller's own account to another customer account

        Behaves as a withdrawal followed by a deposit, committed together:
        if the receiving balance would stay below the existential deposit
        nothing happens at all. Transferring to oneself changes nothing.

        Returns:
            Ok(source balance, None if reaped) or Err(INVALID_AMOUNT |
            ACCOUNT_NOT_FOUND | INSUFFICIENT_FUNDS |
            BELOW_EXISTENTIAL_DEPOSIT | PERMISSION_DENIED)
        """
        def action() -> Optional[Decimal]:
            value = parse_amount(amount, self.precision)
            source = self._accounts.get(from_account_id)
            if from_account_id == to_account_id:
                return source.balance

            target = self._accounts.get(to_account_id)
            if target.role is not Role.CUSTOMER:
                raise LedgerError(ErrorKind.ACCOUNT_NOT_FOUND,
                                  f"account {to_account_id} is not a customer account")

            remainder = self._debit(source, value)
            target_balance = (target.balance or ZERO) + value
            if target_balance < self._config.existential_deposit:
                raise LedgerError(
                    ErrorKind.BELOW_EXISTENTIAL_DEPOSIT,
                    f"receiving balance {target_balance} below {self._config.existential_deposit}"
                )

            reaped = self._is_dust(remainder)
            self._accounts.set_balance(from_account_id, None if reaped else remainder)
            self._accounts.set_balance(to_account_id, target_balance)
            self._log.append(EventKind.TRANSFER, (from_account_id, to_account_id), value,
                             actor=identity.user_id)
            if reaped:
                self._append_reap(from_account_id, remainder, identity.user_id)
                return None
            return remainder

        return self._execute(identity, Operation.TRANSFER, action, from_account_id)

    def pay_interest(self, identity: Identity) -> Result:
        """
        Credit interest to every funded account at the configured rate

        Each account earns balance * rate / 100, rounded half up to the
        smallest currency unit. One event covers the whole payout.

        Returns:
            Ok(total interest paid) or Err(INVALID_AMOUNT | PERMISSION_DENIED)
        """
        def action() -> Decimal:
            rate = self._config.interest_rate
            funded = self._accounts.funded()
            deltas = [percent_of(a.balance, rate, self.precision) for a in funded]
            new_balances = [a.balance + delta for a, delta in zip(funded, deltas)]
            total = sum(deltas, ZERO)

            for account, new_balance in zip(funded, new_balances):
                self._accounts.set_balance(account.id, new_balance)
            self._log.append(
                EventKind.INTEREST_PAYOUT, [a.id for a in funded], total,
                actor=identity.user_id, amounts=deltas,
                details={'interest_rate': rate}
            )
            return total

        return self._execute(identity, Operation.PAY_INTEREST, action)

    def collect_tax(self, identity: Identity, tax_rate: Any = None) -> Result:
        """
        Collect tax from every funded account

        Uses the configured tax rate when none is given. Accounts left with
        zero or less than the existential deposit are reaped, each with its
        own reap event after the collection event.

        Returns:
            Ok(total tax collected) or Err(INVALID_RATE | INVALID_AMOUNT |
            PERMISSION_DENIED)
        """
        def action() -> Decimal:
            rate = parse_rate(self._config.tax_rate if tax_rate is None else tax_rate,
                              maximum=HUNDRED)
            funded = self._accounts.funded()
            taxes = [percent_of(a.balance, rate, self.precision) for a in funded]
            new_balances = [a.balance - tax for a, tax in zip(funded, taxes)]
            total = sum(taxes, ZERO)

            reaped: List[Tuple[int, Decimal]] = []
            for account, new_balance in zip(funded, new_balances):
                if self._is_dust(new_balance):
                    self._accounts.set_balance(account.id, None)
                    reaped.append((account.id, new_balance))
                else:
                    self._accounts.set_balance(account.id, new_balance)

            self._log.append(
                EventKind.TAX_COLLECTION, [a.id for a in funded], ZERO - total,
                actor=identity.user_id, amounts=[ZERO - t for t in taxes],
                details={'tax_rate': rate}
            )
            for account_id, remainder in reaped:
                self._append_reap(account_id, remainder, identity.user_id)
            return total

        return self._execute(identity, Operation.COLLECT_TAX, action)

    def _debit(self, account: Account, value: Decimal) -> Decimal:
        """Remainder after taking value from a funded account"""
        if account.balance is None or account.balance < value:
            raise LedgerError(
                ErrorKind.INSUFFICIENT_FUNDS,
                f"account {account.id} holds {account.balance}, needs {value}"
            )
        return account.balance - value

    def _append_reap(self, account_id: int, remainder: Decimal, actor: int) -> None:
        self._log.append(EventKind.REAP, (account_id,), ZERO - remainder, actor=actor,
                         details={'forfeited': remainder})

    # Configuration

    def current_config(self) -> LedgerConfig:
        """Copy of the live configuration"""
        with self._lock:
            return replace(self._config)

    def update_config(self, identity: Identity, interest_rate: Any = None,
                      existential_deposit: Any = None) -> Result:
        """
        Change the interest rate and/or existential deposit

        Existing balances are not re-checked against a raised existential
        deposit; they are held to it on their next mutation.

        Returns:
            Ok(updated LedgerConfig) or Err(INVALID_RATE | INVALID_AMOUNT |
            PERMISSION_DENIED)
        """
        def action() -> LedgerConfig:
            changes: Dict[str, Decimal] = {}
            if interest_rate is not None:
                changes['interest_rate'] = parse_rate(interest_rate)
            if existential_deposit is not None:
                changes['existential_deposit'] = parse_amount(
                    existential_deposit, self.precision, allow_zero=True
                )
            self._apply_config(changes, identity.user_id)
            return replace(self._config)

        return self._execute(identity, Operation.UPDATE_CONFIG, action)

    def update_tax_rate(self, identity: Identity, tax_rate: Any) -> Result:
        """
        Change the default tax rate used by collect_tax

        Returns:
            Ok(updated LedgerConfig) or Err(INVALID_RATE | PERMISSION_DENIED)
        """
        def action() -> LedgerConfig:
            self._apply_config({'tax_rate': parse_rate(tax_rate, maximum=HUNDRED)},
                               identity.user_id)
            return replace(self._config)

        return self._execute(identity, Operation.UPDATE_TAX_RATE, action)

    def _apply_config(self, changes: Dict[str, Decimal], actor: int) -> None:
        if not changes:
            return
        old = {name: getattr(self._config, name) for name in changes}
        for name, value in changes.items():
            setattr(self._config, name, value)
        self._log.append(EventKind.CONFIG_UPDATE, (actor,), None, actor=actor,
                         details={'old': old, 'new': dict(changes)})

    # Read-only views

    def view_report(self, identity: Identity) -> Result:
        """
        Report every account in id order

        Returns:
            Ok(tuple of ReportRow) or Err(PERMISSION_DENIED)
        """
        def action() -> Tuple[ReportRow, ...]:
            return tuple(
                ReportRow(a.id, a.owner_username, a.role, a.balance)
                for a in self._accounts.all()
            )

        return self._execute(identity, Operation.VIEW_REPORT, action)

    def events_for_account(self, identity: Identity, account_id: int) -> Result:
        """
        Events involving an account, oldest first

        Returns:
            Ok(EventView) or Err(ACCOUNT_NOT_FOUND | PERMISSION_DENIED)
        """
        def action():
            self._accounts.get(account_id)
            return self._log.query_by_account(account_id)

        return self._execute(identity, Operation.QUERY_EVENTS, action)

    def events_by_kind(self, identity: Identity, kinds: Iterable[EventKind]) -> Result:
        """
        Events of the given kinds, oldest first

        Returns:
            Ok(EventView) or Err(PERMISSION_DENIED)
        """
        kinds = frozenset(kinds)
        return self._execute(identity, Operation.QUERY_EVENTS,
                             lambda: self._log.query_by_kind(kinds))

    def all_events(self, identity: Identity) -> Result:
        """
        Every event, oldest first

        Returns:
            Ok(EventView) or Err(PERMISSION_DENIED)
        """
        return self._execute(identity, Operation.QUERY_EVENTS, self._log.all)

    # Export

    def export_state(self) -> Dict[str, Any]:
        """
        Serialize accounts, configuration and events as three independent
        sections keyed by entity id
        """
        with self._lock:
            return {
                'accounts': {str(a.id): a.to_dict() for a in self._accounts.all()},
                'config': self._config.to_dict(),
                'events': {str(e.id): e.to_dict() for e in self._log.all()},
            }


def create_ledger(settings: Optional[LedgerSettings] = None) -> Ledger:
    """
    Build a ledger from settings and register the seed accounts

    Seed accounts are "username:role" entries, e.g. "alice:customer".
    """
    settings = settings or get_settings()
    ledger = Ledger(
        LedgerConfig(
            interest_rate=settings.interest_rate,
            existential_deposit=settings.existential_deposit,
            tax_rate=settings.tax_rate,
        ),
        precision=settings.currency_precision,
    )

    for entry in settings.seed_accounts:
        username, _, role = entry.partition(":")
        if not username or not role:
            raise ValueError(f"Seed account must be 'username:role', got {entry!r}")
        ledger.open_account(username.strip(), Role(role.strip().lower())).unwrap()

    return ledger
