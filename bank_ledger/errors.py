"""
Ledger Error Module

Closed set of error kinds produced by ledger operations, the exception used
to carry them inside the engine, and the Ok/Err result values every public
operation returns.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Union


class ErrorKind(Enum):
    """Every way a ledger operation can be rejected"""
    PERMISSION_DENIED = "permission_denied"
    ACCOUNT_NOT_FOUND = "account_not_found"
    INVALID_AMOUNT = "invalid_amount"
    INVALID_RATE = "invalid_rate"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    BELOW_EXISTENTIAL_DEPOSIT = "below_existential_deposit"
    ACCOUNT_EXISTS = "account_exists"


class LedgerError(Exception):
    """Raised by validation helpers; converted to Err at the engine boundary"""

    def __init__(self, kind: ErrorKind, detail: str = ""):
        self.kind = kind
        self.detail = detail
        super().__init__(f"{kind.value}: {detail}" if detail else kind.value)


@dataclass(frozen=True)
class Ok:
    """Successful operation result"""
    value: Any = None

    @property
    def is_ok(self) -> bool:
        return True

    def unwrap(self) -> Any:
        return self.value


@dataclass(frozen=True)
class Err:
    """Rejected operation result; nothing was changed"""
    error: ErrorKind
    detail: str = ""

    @property
    def is_ok(self) -> bool:
        return False

    def unwrap(self) -> Any:
        raise LedgerError(self.error, self.detail)


Result = Union[Ok, Err]


# User-facing text for each error kind. Only presentation layers read this.
MESSAGES: Dict[ErrorKind, str] = {
    ErrorKind.PERMISSION_DENIED: "Current user is not authorized to do this operation.",
    ErrorKind.ACCOUNT_NOT_FOUND: "The account does not exist.",
    ErrorKind.INVALID_AMOUNT: "The amount given is not valid.",
    ErrorKind.INVALID_RATE: "The rate given is not valid.",
    ErrorKind.INSUFFICIENT_FUNDS: "The account does not have enough balance.",
    ErrorKind.BELOW_EXISTENTIAL_DEPOSIT: "The resulting balance would be below the existential deposit.",
    ErrorKind.ACCOUNT_EXISTS: "An account with this username already exists.",
}


def user_message(kind: ErrorKind) -> str:
    """Get the user-facing message for an error kind"""
    return MESSAGES[kind]
