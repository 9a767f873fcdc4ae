"""
Account Store Module

Durable mapping of account number to owner, type, balance and status.
Balance writes are only allowed inside an atomic unit on a row the caller
has locked; the store never keeps balances in memory between calls.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Any
from enum import Enum

from .amounts import MAX_AMOUNT, ZERO, parse_balance, quantize
from .errors import (
    AccountAlreadyClosed, AccountAlreadyExists, AccountNotFound,
    InsufficientFunds, InvalidAccountData, InvalidAmount
)
from .storage import DuplicateRecordError, StorageInterface


class AccountType(Enum):
    """Banking product types"""
    SAVINGS = "SAVINGS"
    CURRENT = "CURRENT"


class AccountStatus(Enum):
    """Account lifecycle states"""
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"  # Closed; cannot send or receive funds


def parse_account_type(value: Any) -> AccountType:
    """Accept an AccountType or its name"""
    if isinstance(value, AccountType):
        return value
    try:
        return AccountType(str(value).upper())
    except ValueError:
        raise InvalidAccountData("Invalid account type. Must be SAVINGS or CURRENT",
                                 account_type=value)


def parse_account_status(value: Any) -> AccountStatus:
    """Accept an AccountStatus or its name"""
    if isinstance(value, AccountStatus):
        return value
    try:
        return AccountStatus(str(value).upper())
    except ValueError:
        raise InvalidAccountData("Invalid status. Must be ACTIVE or INACTIVE",
                                 status=value)


@dataclass
class Account:
    """
    Bank account owned by exactly one user.
    The account number is immutable once created.
    """
    account_number: str
    owner_id: str
    account_type: AccountType
    balance: Decimal
    status: AccountStatus
    created_at: datetime
    updated_at: datetime

    @property
    def is_active(self) -> bool:
        return self.status == AccountStatus.ACTIVE

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage and API responses"""
        return {
            'account_number': self.account_number,
            'owner_id': self.owner_id,
            'account_type': self.account_type.value,
            'balance': str(self.balance),
            'status': self.status.value,
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Account':
        """Create instance from dictionary"""
        return cls(
            account_number=data['account_number'],
            owner_id=data['owner_id'],
            account_type=AccountType(data['account_type']),
            balance=Decimal(data['balance']),
            status=AccountStatus(data['status']),
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
        )


class AccountStore:
    """
    Account persistence with atomic read-modify-write support
    """

    table_name = "accounts"

    def __init__(self, storage: StorageInterface):
        self.storage = storage

    def get(self, account_number: str) -> Optional[Account]:
        """Get account by number"""
        data = self.storage.load(self.table_name, account_number)
        if data:
            return Account.from_dict(data)
        return None

    def get_for_owner(self, account_number: str, owner_id: str) -> Optional[Account]:
        """Get account by number only if it belongs to owner_id"""
        account = self.get(account_number)
        if account and account.owner_id == str(owner_id):
            return account
        return None

    def list_for_owner(self, owner_id: str) -> List[Account]:
        """Get all accounts for a user, oldest first"""
        accounts_data = self.storage.find(self.table_name, {"owner_id": str(owner_id)})
        return [Account.from_dict(data) for data in accounts_data]

    def exists(self, account_number: str) -> bool:
        return self.storage.exists(self.table_name, account_number)

    def create(self, account: Account) -> Account:
        """
        Persist a new account

        Raises:
            AccountAlreadyExists: if the account number is taken
            InvalidAmount: if the initial balance is negative
        """
        account.balance = parse_balance(account.balance)
        try:
            self.storage.insert(self.table_name, account.account_number, account.to_dict())
        except DuplicateRecordError:
            raise AccountAlreadyExists(account.account_number)
        return account

    def lock_for_update(self, account_numbers: Iterable[str]) -> None:
        """
        Lock account rows for the rest of the current atomic unit.
        Locks are always taken in ascending account-number order.
        """
        self.storage.lock(self.table_name, account_numbers)

    def update_balance(self, account_number: str, new_balance: Decimal) -> Account:
        """
        Write a new balance. Must run inside an atomic unit that has
        locked the row via lock_for_update().

        Raises:
            InvalidAmount: if the balance would exceed MAX_AMOUNT
            InsufficientFunds: if the balance would go negative
        """
        if not self.storage.in_transaction:
            raise RuntimeError("update_balance() must run inside an atomic unit")

        account = self._require(account_number)
        if new_balance > MAX_AMOUNT:
            raise InvalidAmount(new_balance, "Balance limit exceeded")
        new_balance = quantize(new_balance)
        if new_balance < ZERO:
            raise InsufficientFunds(account_number, account.balance, account.balance - new_balance)

        account.balance = new_balance
        return self._save(account)

    def update(
        self,
        account_number: str,
        account_type: Optional[Any] = None,
        status: Optional[Any] = None
    ) -> Account:
        """Update type and/or status; only the provided fields change"""
        new_type = parse_account_type(account_type) if account_type is not None else None
        new_status = parse_account_status(status) if status is not None else None

        with self.storage.atomic():
            self.lock_for_update([account_number])
            account = self._require(account_number)
            if new_type is not None:
                account.account_type = new_type
            if new_status is not None:
                account.status = new_status
            return self._save(account)

    def update_type(self, account_number: str, account_type: Any) -> Account:
        return self.update(account_number, account_type=account_type)

    def update_status(self, account_number: str, status: Any) -> Account:
        return self.update(account_number, status=status)

    def close(self, account_number: str) -> Account:
        """Close an account by setting it INACTIVE"""
        with self.storage.atomic():
            self.lock_for_update([account_number])
            account = self._require(account_number)
            if account.status == AccountStatus.INACTIVE:
                raise AccountAlreadyClosed(account_number)
            account.status = AccountStatus.INACTIVE
            return self._save(account)

    def delete(self, account_number: str) -> None:
        """
        Remove the account row. Callers must check for dependent ledger
        rows inside the same atomic unit first.
        """
        if not self.storage.delete(self.table_name, account_number):
            raise AccountNotFound(account_number)

    def _require(self, account_number: str) -> Account:
        account = self.get(account_number)
        if not account:
            raise AccountNotFound(account_number)
        return account

    def _save(self, account: Account) -> Account:
        account.updated_at = datetime.now(timezone.utc)
        self.storage.save(self.table_name, account.account_number, account.to_dict())
        return account
