"""
Role-Based Access Control Module

Closed set of roles and operations with a total permission table. The
ledger never authenticates anyone: callers pass an Identity asserting who
is acting, and this module only decides whether that role may act.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional

from .errors import ErrorKind, LedgerError


class Role(Enum):
    """User roles"""
    CUSTOMER = "customer"
    MANAGER = "manager"
    AUDITOR = "auditor"


class Operation(Enum):
    """Operations subject to permission checks"""
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"
    TRANSFER = "transfer"
    CHECK_BALANCE = "check_balance"
    PAY_INTEREST = "pay_interest"
    COLLECT_TAX = "collect_tax"
    UPDATE_CONFIG = "update_config"
    UPDATE_TAX_RATE = "update_tax_rate"
    VIEW_REPORT = "view_report"
    QUERY_EVENTS = "query_events"


class Decision(Enum):
    """Outcome of a permission check"""
    ALLOWED = "allowed"
    DENIED = "denied"


@dataclass(frozen=True)
class Identity:
    """Already-authenticated caller: the user's own account id and role"""
    user_id: int
    role: Role


PERMISSION_TABLE: Dict[Operation, FrozenSet[Role]] = {
    Operation.DEPOSIT: frozenset({Role.CUSTOMER}),
    Operation.WITHDRAW: frozenset({Role.CUSTOMER}),
    Operation.TRANSFER: frozenset({Role.CUSTOMER}),
    Operation.CHECK_BALANCE: frozenset({Role.CUSTOMER}),
    Operation.PAY_INTEREST: frozenset({Role.MANAGER}),
    Operation.COLLECT_TAX: frozenset({Role.AUDITOR}),
    Operation.UPDATE_CONFIG: frozenset({Role.MANAGER}),
    Operation.UPDATE_TAX_RATE: frozenset({Role.AUDITOR}),
    Operation.VIEW_REPORT: frozenset({Role.MANAGER, Role.AUDITOR}),
    Operation.QUERY_EVENTS: frozenset({Role.MANAGER, Role.AUDITOR}),
}

# Operations a customer may only run against their own account
OWN_ACCOUNT_OPERATIONS: FrozenSet[Operation] = frozenset({
    Operation.DEPOSIT,
    Operation.WITHDRAW,
    Operation.TRANSFER,
    Operation.CHECK_BALANCE,
})


def check(operation: Operation, role: Role) -> Decision:
    """Look up whether a role may perform an operation"""
    if role in PERMISSION_TABLE[operation]:
        return Decision.ALLOWED
    return Decision.DENIED


def authorize(identity: Identity, operation: Operation,
              account_id: Optional[int] = None) -> None:
    """
    Ensure the identity may perform the operation

    Args:
        identity: Caller performing the operation
        operation: Operation being attempted
        account_id: Account the operation acts on, for own-account operations

    Raises:
        LedgerError: PERMISSION_DENIED
    """
    if check(operation, identity.role) is Decision.DENIED:
        raise LedgerError(
            ErrorKind.PERMISSION_DENIED,
            f"{identity.role.value} may not {operation.value}"
        )
    if operation in OWN_ACCOUNT_OPERATIONS and account_id != identity.user_id:
        raise LedgerError(
            ErrorKind.PERMISSION_DENIED,
            f"user {identity.user_id} does not own account {account_id}"
        )
