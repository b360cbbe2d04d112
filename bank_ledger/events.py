"""
Event Log Module

Append-only, ordered record of every committed ledger mutation. Events are
immutable once appended; the log never reorders or removes them. It is an
audit trail only: current balances live in the account store.
"""

import heapq
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from itertools import islice
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple


class EventKind(Enum):
    """Kinds of ledger events"""
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"
    TRANSFER = "transfer"
    INTEREST_PAYOUT = "interest_payout"
    TAX_COLLECTION = "tax_collection"
    REAP = "reap"
    CONFIG_UPDATE = "config_update"


def _convert_value(value: Any) -> Any:
    """Convert a value to a JSON-serializable form"""
    if isinstance(value, Decimal):
        return str(value)
    elif isinstance(value, datetime):
        return value.isoformat()
    elif isinstance(value, Enum):
        return value.value
    elif isinstance(value, Mapping):
        return {k: _convert_value(v) for k, v in value.items()}
    elif isinstance(value, (list, tuple)):
        return [_convert_value(v) for v in value]
    return value


@dataclass(frozen=True)
class Event:
    """
    Immutable ledger event

    ``amount`` is the signed change applied to the balance of the involved
    account(s): positive for deposits, interest and the sum moved by a
    transfer; negative for withdrawals, tax and reaped remainders; None for
    configuration updates. ``amounts`` holds the per-account deltas of
    interest payouts and tax collections, aligned with ``account_ids``.
    """
    id: int
    kind: EventKind
    account_ids: Tuple[int, ...]
    amount: Optional[Decimal]
    timestamp: datetime
    actor: Optional[int] = None
    amounts: Tuple[Decimal, ...] = ()
    details: Mapping[str, Any] = field(default_factory=dict)

    def involves(self, account_id: int) -> bool:
        """Check if an account takes part in this event"""
        return account_id in self.account_ids

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for export"""
        return {
            'id': self.id,
            'kind': self.kind.value,
            'account_ids': list(self.account_ids),
            'amount': _convert_value(self.amount),
            'amounts': _convert_value(self.amounts),
            'actor': self.actor,
            'details': _convert_value(self.details),
            'timestamp': self.timestamp.isoformat(),
        }


class EventView:
    """
    Lazy, finite, restartable sequence of events ordered by id

    The view is bounded when it is created, so events appended afterwards
    never show up in it. Every iteration starts again from the beginning.
    """

    def __init__(self, positions: Callable[[], Iterator[int]], size: int,
                 events: List[Event]):
        self._positions = positions
        self._size = size
        self._events = events

    def __iter__(self) -> Iterator[Event]:
        for position in self._positions():
            yield self._events[position]

    def __len__(self) -> int:
        return self._size

    def ids(self) -> List[int]:
        """Event ids in this view"""
        return [event.id for event in self]

    def __repr__(self) -> str:
        return f"EventView(size={self._size})"


class EventLog:
    """
    Append-only event sequence with indexes by account and by kind

    Positions in the indexes are offsets into the main sequence; since the
    sequence only grows, a prefix of any index is stable forever.
    """

    def __init__(self):
        self._events: List[Event] = []
        self._by_account: Dict[int, List[int]] = {}
        self._by_kind: Dict[EventKind, List[int]] = {kind: [] for kind in EventKind}

    def append(
        self,
        kind: EventKind,
        account_ids: Iterable[int],
        amount: Optional[Decimal],
        actor: Optional[int] = None,
        amounts: Iterable[Decimal] = (),
        details: Optional[Dict[str, Any]] = None
    ) -> Event:
        """
        Append an event, assigning its id and timestamp

        Args:
            kind: Kind of event
            account_ids: Accounts involved, in order
            amount: Signed balance change
            actor: User who caused the event
            amounts: Per-account deltas for multi-account events
            details: Kind-specific data

        Returns:
            Appended Event
        """
        position = len(self._events)
        now = datetime.now(timezone.utc)
        if self._events and now < self._events[-1].timestamp:
            now = self._events[-1].timestamp

        event = Event(
            id=position + 1,
            kind=kind,
            account_ids=tuple(account_ids),
            amount=amount,
            timestamp=now,
            actor=actor,
            amounts=tuple(amounts),
            details=MappingProxyType(dict(details or {}))
        )

        self._events.append(event)
        for account_id in dict.fromkeys(event.account_ids):
            self._by_account.setdefault(account_id, []).append(position)
        self._by_kind[kind].append(position)

        return event

    def query_by_account(self, account_id: int) -> EventView:
        """All events involving an account, in append order"""
        positions = self._by_account.get(account_id, [])
        size = len(positions)
        return EventView(lambda: islice(positions, size), size, self._events)

    def query_by_kind(self, kinds: Iterable[EventKind]) -> EventView:
        """All events of the given kinds, in append order"""
        bounded = [(self._by_kind[kind], len(self._by_kind[kind])) for kind in set(kinds)]
        size = sum(n for _, n in bounded)

        def positions() -> Iterator[int]:
            return heapq.merge(*(islice(index, n) for index, n in bounded))

        return EventView(positions, size, self._events)

    def all(self) -> EventView:
        """Every event in append order"""
        size = len(self._events)
        return EventView(lambda: iter(range(size)), size, self._events)

    def last(self) -> Optional[Event]:
        """Most recently appended event"""
        return self._events[-1] if self._events else None

    def __len__(self) -> int:
        return len(self._events)
