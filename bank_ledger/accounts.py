"""
Account Management Module

Stores ledger accounts. Each account belongs to one user, carries that
user's role, and holds either a balance or nothing at all once reaped.
Account records are never deleted.
"""

from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Dict, Iterator, List, Optional, Any

from .errors import ErrorKind, LedgerError
from .permissions import Role


@dataclass(frozen=True)
class Account:
    """
    Ledger account

    ``balance`` is None for accounts that were never funded or have been
    reaped; otherwise it is a non-negative Decimal.
    """
    id: int
    owner_username: str
    role: Role
    balance: Optional[Decimal] = None

    @property
    def is_funded(self) -> bool:
        """Check if the account currently holds a balance"""
        return self.balance is not None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for export"""
        return {
            'id': self.id,
            'owner_username': self.owner_username,
            'role': self.role.value,
            'balance': str(self.balance) if self.balance is not None else None,
        }


class AccountStore:
    """
    Mapping from account id to account state

    Ids come from a counter starting at 1 and are never reused.
    """

    def __init__(self):
        self._accounts: Dict[int, Account] = {}
        self._usernames: Dict[str, int] = {}
        self._next_id = 1

    def create(self, owner: str, role: Role) -> int:
        """
        Create a new, unfunded account

        Raises:
            LedgerError: ACCOUNT_EXISTS if the username is taken
        """
        if owner in self._usernames:
            raise LedgerError(ErrorKind.ACCOUNT_EXISTS, f"username {owner!r} is taken")

        account_id = self._next_id
        self._next_id += 1
        self._accounts[account_id] = Account(id=account_id, owner_username=owner, role=role)
        self._usernames[owner] = account_id
        return account_id

    def get(self, account_id: int) -> Account:
        """
        Get account by ID

        Raises:
            LedgerError: ACCOUNT_NOT_FOUND
        """
        account = self._accounts.get(account_id)
        if account is None:
            raise LedgerError(ErrorKind.ACCOUNT_NOT_FOUND, f"account {account_id} not found")
        return account

    def find_by_username(self, username: str) -> Optional[Account]:
        """Get account by owner username"""
        account_id = self._usernames.get(username)
        if account_id is None:
            return None
        return self._accounts[account_id]

    def owner_of(self, account_id: int) -> str:
        """Get the username owning an account"""
        return self.get(account_id).owner_username

    def set_balance(self, account_id: int, new_balance: Optional[Decimal]) -> None:
        """Replace an account's balance; None clears it"""
        if new_balance is not None and new_balance < 0:
            raise ValueError(f"Balance cannot be negative: {new_balance}")
        account = self.get(account_id)
        self._accounts[account_id] = replace(account, balance=new_balance)

    def funded(self) -> List[Account]:
        """Accounts holding a balance, in id order"""
        return [a for a in self.all() if a.is_funded]

    def all(self) -> List[Account]:
        """All accounts in id order"""
        return [self._accounts[i] for i in sorted(self._accounts)]

    def __iter__(self) -> Iterator[Account]:
        return iter(self.all())

    def __len__(self) -> int:
        return len(self._accounts)

    def __contains__(self, account_id: object) -> bool:
        return account_id in self._accounts
