"""
Ledger Writer

Append-only transaction ledger. Every balance change on an account is
recorded as exactly one entry carrying the signed delta and the balance
right after it was applied. Entries are never updated or deleted.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Dict, List, Optional, Any
from enum import Enum
import uuid

from .storage import StorageInterface


class TransactionType(Enum):
    """Types of balance-affecting events"""
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"
    TRANSFER = "TRANSFER"


@dataclass(frozen=True)
class LedgerEntry:
    """
    Immutable ledger entry for one account.

    ``amount`` is the signed delta: positive for deposits and transfer
    credit legs, negative for withdrawals and transfer debit legs, so
    ``balance_after`` always equals the previous balance plus ``amount``.
    """
    id: str
    account_number: str
    transaction_type: TransactionType
    amount: Decimal
    balance_after: Decimal
    timestamp: datetime
    description: Optional[str] = None
    related_account_number: Optional[str] = None  # Counterpart leg of a transfer

    @classmethod
    def new(
        cls,
        account_number: str,
        transaction_type: TransactionType,
        amount: Decimal,
        balance_after: Decimal,
        description: Optional[str] = None,
        related_account_number: Optional[str] = None,
        timestamp: Optional[datetime] = None
    ) -> 'LedgerEntry':
        """Build a fresh entry with a new id"""
        return cls(
            id=str(uuid.uuid4()),
            account_number=account_number,
            transaction_type=transaction_type,
            amount=amount,
            balance_after=balance_after,
            timestamp=timestamp or datetime.now(timezone.utc),
            description=description,
            related_account_number=related_account_number,
        )

    @property
    def is_credit(self) -> bool:
        return self.amount > 0

    @property
    def is_debit(self) -> bool:
        return self.amount < 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage and API responses"""
        return {
            'id': self.id,
            'account_number': self.account_number,
            'related_account_number': self.related_account_number,
            'transaction_type': self.transaction_type.value,
            'amount': str(self.amount),
            'balance_after': str(self.balance_after),
            'description': self.description,
            'timestamp': self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LedgerEntry':
        """Create instance from dictionary"""
        return cls(
            id=data['id'],
            account_number=data['account_number'],
            related_account_number=data.get('related_account_number'),
            transaction_type=TransactionType(data['transaction_type']),
            amount=Decimal(data['amount']),
            balance_after=Decimal(data['balance_after']),
            description=data.get('description'),
            timestamp=datetime.fromisoformat(data['timestamp']),
        )


class LedgerWriter:
    """
    Appends and reads ledger entries. Deliberately has no update or
    delete operation.
    """

    table_name = "transactions"

    def __init__(self, storage: StorageInterface):
        self.storage = storage

    def append(self, entry: LedgerEntry) -> LedgerEntry:
        """
        Append an entry. Joins the caller's atomic unit when one is open,
        so the entry commits or rolls back with the balance change.
        """
        self.storage.insert(self.table_name, entry.id, entry.to_dict())
        return entry

    def get(self, entry_id: str) -> Optional[LedgerEntry]:
        """Get a ledger entry by ID"""
        data = self.storage.load(self.table_name, entry_id)
        if data:
            return LedgerEntry.from_dict(data)
        return None

    def list_for(self, account_number: str, limit: Optional[int] = None) -> List[LedgerEntry]:
        """
        Entries for an account, newest first.

        Ties on timestamp are broken by insertion order (later first).
        """
        rows = self.storage.find(self.table_name, {"account_number": account_number})
        entries = [LedgerEntry.from_dict(data) for data in rows]

        # Storage returns insertion order; reversing first makes the stable
        # sort put later insertions ahead of earlier ones on equal timestamps
        entries.reverse()
        entries.sort(key=lambda e: e.timestamp, reverse=True)

        if limit is not None:
            entries = entries[:limit]
        return entries

    def count_for(self, account_number: str) -> int:
        """Number of entries recorded against an account"""
        return len(self.storage.find(self.table_name, {"account_number": account_number}))
