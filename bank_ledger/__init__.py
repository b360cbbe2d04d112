"""
Bank Ledger

A permissioned account ledger with role-gated balance operations, an
existential deposit rule, and an append-only, queryable event log.
All monetary calculations use Decimal precision.
"""

__version__ = "1.0.0"

from .errors import Err, ErrorKind, LedgerError, Ok, Result
from .permissions import Decision, Identity, Operation, Role, check
from .accounts import Account, AccountStore
from .events import Event, EventKind, EventLog, EventView
from .engine import Ledger, LedgerConfig, ReportRow, create_ledger

__all__ = [
    "Account", "AccountStore", "Decision", "Err", "ErrorKind", "Event",
    "EventKind", "EventLog", "EventView", "Identity", "Ledger", "LedgerConfig",
    "LedgerError", "Ok", "Operation", "ReportRow", "Result", "Role", "check",
    "create_ledger",
]
