"""
Banking System Container

Wires storage, the account store, the ledger writer, the account number
generator and the balance mutation engine together. The process entry point
owns the storage handle and calls close() on shutdown.
"""

from decimal import Decimal
from datetime import datetime, timezone
from typing import Any, Optional

from .account_numbers import AccountNumberGenerator
from .accounts import (
    Account, AccountStatus, AccountStore, parse_account_status, parse_account_type
)
from .amounts import parse_balance
from .config import LedgerConfig, get_config
from .engine import BalanceMutationEngine
from .errors import AccountAlreadyExists, AccountHasTransactions, AccountNotFound
from .ledger import LedgerWriter
from .logging_config import get_logger, log_action
from .storage import DuplicateRecordError, StorageInterface, create_storage


class BankingSystem:
    """Ledger components sharing one storage handle"""

    def __init__(self, storage: StorageInterface, config: Optional[LedgerConfig] = None):
        self.config = config or get_config()
        self.storage = storage
        self.logger = get_logger("bank_ledger.system")

        self.accounts = AccountStore(self.storage)
        self.ledger = LedgerWriter(self.storage)
        self.account_numbers = AccountNumberGenerator(
            exists=self.accounts.exists,
            length=self.config.account_number_length,
            max_attempts=self.config.account_number_max_attempts,
        )
        self.engine = BalanceMutationEngine(self.storage, self.accounts, self.ledger)

    @classmethod
    def from_config(cls, config: Optional[LedgerConfig] = None) -> 'BankingSystem':
        """Build the system with the storage backend named by config.database_url"""
        config = config or get_config()
        storage = create_storage(
            config.database_url,
            pool_min=config.database_pool_min,
            pool_max=config.database_pool_max,
            sqlite_timeout=config.sqlite_timeout_seconds,
            lock_timeout=config.lock_timeout_seconds,
        )
        return cls(storage, config)

    def open_account(
        self,
        owner_id: str,
        account_type: Any,
        initial_balance: Any = 0,
        status: Any = AccountStatus.ACTIVE
    ) -> Account:
        """
        Create an account with a freshly generated number.

        Each attempt runs in its own atomic unit, so a number claimed
        concurrently by another thread is retried with a fresh one.

        The initial balance is stored on the account directly; no ledger
        entry is written for it.

        Raises:
            InvalidAccountData, InvalidAmount, GenerationExhausted,
            StoreUnavailable
        """
        account_type = parse_account_type(account_type)
        status = parse_account_status(status)
        balance = parse_balance(initial_balance)

        now = datetime.now(timezone.utc)

        def create(account_number: str) -> Account:
            try:
                with self.storage.atomic():
                    return self.accounts.create(Account(
                        account_number=account_number,
                        owner_id=str(owner_id),
                        account_type=account_type,
                        balance=balance,
                        status=status,
                        created_at=now,
                        updated_at=now,
                    ))
            except DuplicateRecordError:
                # In-memory inserts are checked again at commit
                raise AccountAlreadyExists(account_number)

        account = self.account_numbers.claim(create)

        log_action(
            self.logger, "info", "Account opened",
            user_id=account.owner_id, action="open_account",
            resource=f"account:{account.account_number}",
            extra={"account_type": account.account_type.value, "balance": str(account.balance)}
        )
        return account

    def delete_account(self, account_number: str) -> None:
        """
        Delete an account that has no ledger entries.

        Raises:
            AccountNotFound: if the account does not exist
            AccountHasTransactions: if ledger entries reference the account
        """
        with self.storage.atomic():
            self.accounts.lock_for_update([account_number])
            if not self.accounts.exists(account_number):
                raise AccountNotFound(account_number)

            transaction_count = self.ledger.count_for(account_number)
            if transaction_count:
                raise AccountHasTransactions(account_number, transaction_count)

            self.accounts.delete(account_number)

        log_action(
            self.logger, "info", "Account deleted",
            action="delete_account", resource=f"account:{account_number}"
        )

    def deposit(self, account_number: str, amount: Any,
                description: Optional[str] = None):
        return self.engine.deposit(account_number, amount, description)

    def withdraw(self, account_number: str, amount: Any,
                 description: Optional[str] = None):
        return self.engine.withdraw(account_number, amount, description)

    def transfer(self, from_account_number: str, to_account_number: str, amount: Any,
                 description: Optional[str] = None):
        return self.engine.transfer(from_account_number, to_account_number, amount, description)

    def get_balance(self, account_number: str) -> Decimal:
        return self.engine.get_balance(account_number)

    def list_transactions(self, account_number: str, limit: Optional[int] = None):
        return self.engine.list_transactions(account_number, limit=limit)

    def close(self) -> None:
        """Release the storage handle"""
        self.storage.close()
