"""
Balance Mutation Engine

Executes deposits, withdrawals and transfers as all-or-nothing atomic
units. Each operation locks the implicated account rows (in ascending
account-number order), re-reads the current balances, validates, appends
the ledger entries and writes the new balances before committing. If any
step fails, nothing is applied.
"""

from decimal import Decimal
from datetime import datetime, timezone
from typing import List, Optional, Any

from .accounts import Account, AccountStore
from .amounts import parse_amount
from .errors import (
    AccountInactive, AccountNotFound, DestinationAccountNotFound,
    InsufficientFunds, LedgerError, SelfTransfer, SourceAccountNotFound
)
from .ledger import LedgerEntry, LedgerWriter, TransactionType
from .logging_config import get_logger, log_action
from .storage import StorageInterface


class BalanceMutationEngine:
    """
    Double-entry balance mutation engine.

    Balances are never cached between calls; every operation reads them
    from the store inside its own atomic unit. No automatic retries:
    repeating a call repeats its effect.
    """

    def __init__(self, storage: StorageInterface, accounts: AccountStore, ledger: LedgerWriter):
        self.storage = storage
        self.accounts = accounts
        self.ledger = ledger
        self.logger = get_logger("bank_ledger.engine")

    def deposit(
        self,
        account_number: str,
        amount: Any,
        description: Optional[str] = None
    ) -> LedgerEntry:
        """
        Credit an account

        Raises:
            InvalidAmount, AccountNotFound, AccountInactive, StoreUnavailable
        """
        try:
            amount = parse_amount(amount)
            with self.storage.atomic():
                self.accounts.lock_for_update([account_number])
                account = self._load_active(account_number, AccountNotFound)

                new_balance = account.balance + amount
                entry = self.ledger.append(LedgerEntry.new(
                    account_number=account_number,
                    transaction_type=TransactionType.DEPOSIT,
                    amount=amount,
                    balance_after=new_balance,
                    description=description,
                ))
                self.accounts.update_balance(account_number, new_balance)
        except LedgerError as e:
            self._log_rejected("deposit", account_number, amount, e)
            raise

        self._log_committed("deposit", entry)
        return entry

    def withdraw(
        self,
        account_number: str,
        amount: Any,
        description: Optional[str] = None
    ) -> LedgerEntry:
        """
        Debit an account. The ledger entry's amount is negative.

        Raises:
            InvalidAmount, AccountNotFound, AccountInactive,
            InsufficientFunds, StoreUnavailable
        """
        try:
            amount = parse_amount(amount)
            with self.storage.atomic():
                self.accounts.lock_for_update([account_number])
                account = self._load_active(account_number, AccountNotFound)
                self._check_funds(account, amount)

                new_balance = account.balance - amount
                entry = self.ledger.append(LedgerEntry.new(
                    account_number=account_number,
                    transaction_type=TransactionType.WITHDRAWAL,
                    amount=-amount,
                    balance_after=new_balance,
                    description=description,
                ))
                self.accounts.update_balance(account_number, new_balance)
        except LedgerError as e:
            self._log_rejected("withdraw", account_number, amount, e)
            raise

        self._log_committed("withdraw", entry)
        return entry

    def transfer(
        self,
        from_account_number: str,
        to_account_number: str,
        amount: Any,
        description: Optional[str] = None
    ) -> LedgerEntry:
        """
        Move funds between two accounts.

        Writes a debit leg on the source and a credit leg on the destination,
        each pointing at the other account, and both balance updates, in one
        atomic unit. The destination may belong to another user.

        Returns:
            The debit-leg LedgerEntry

        Raises:
            InvalidAmount, SelfTransfer, SourceAccountNotFound,
            DestinationAccountNotFound, AccountInactive, InsufficientFunds,
            StoreUnavailable
        """
        try:
            amount = parse_amount(amount)
            if str(from_account_number) == str(to_account_number):
                raise SelfTransfer(from_account_number)

            with self.storage.atomic():
                self.accounts.lock_for_update([from_account_number, to_account_number])
                source = self._load_active(from_account_number, SourceAccountNotFound)
                destination = self._load_active(to_account_number, DestinationAccountNotFound)
                self._check_funds(source, amount)

                source_balance = source.balance - amount
                destination_balance = destination.balance + amount
                now = datetime.now(timezone.utc)

                debit = self.ledger.append(LedgerEntry.new(
                    account_number=from_account_number,
                    related_account_number=to_account_number,
                    transaction_type=TransactionType.TRANSFER,
                    amount=-amount,
                    balance_after=source_balance,
                    description=description or f"Transfer to {to_account_number}",
                    timestamp=now,
                ))
                credit = self.ledger.append(LedgerEntry.new(
                    account_number=to_account_number,
                    related_account_number=from_account_number,
                    transaction_type=TransactionType.TRANSFER,
                    amount=amount,
                    balance_after=destination_balance,
                    description=description or f"Transfer from {from_account_number}",
                    timestamp=now,
                ))
                self.accounts.update_balance(from_account_number, source_balance)
                self.accounts.update_balance(to_account_number, destination_balance)
        except LedgerError as e:
            self._log_rejected("transfer", from_account_number, amount, e,
                               to_account=to_account_number)
            raise

        self._log_committed("transfer", debit, credit_entry_id=credit.id)
        return debit

    def get_balance(self, account_number: str) -> Decimal:
        """Current balance as stored"""
        account = self.accounts.get(account_number)
        if not account:
            raise AccountNotFound(account_number)
        return account.balance

    def list_transactions(self, account_number: str, limit: Optional[int] = None) -> List[LedgerEntry]:
        """Ledger entries for an account, newest first"""
        if not self.accounts.exists(account_number):
            raise AccountNotFound(account_number)
        return self.ledger.list_for(account_number, limit=limit)

    def _load_active(self, account_number: str, not_found: type) -> Account:
        account = self.accounts.get(account_number)
        if not account:
            raise not_found(account_number)
        if not account.is_active:
            raise AccountInactive(account_number)
        return account

    def _check_funds(self, account: Account, amount: Decimal) -> None:
        if account.balance < amount:
            raise InsufficientFunds(account.account_number, account.balance, amount)

    def _log_committed(self, action: str, entry: LedgerEntry, **extra: Any) -> None:
        log_action(
            self.logger, "info", f"{action.capitalize()} committed",
            action=action, resource=f"account:{entry.account_number}",
            extra={
                "transaction_id": entry.id,
                "amount": str(entry.amount),
                "balance_after": str(entry.balance_after),
                "related_account": entry.related_account_number,
                **extra
            }
        )

    def _log_rejected(self, action: str, account_number: str, amount: Any,
                      error: LedgerError, **extra: Any) -> None:
        log_action(
            self.logger, "warning", f"{action.capitalize()} rejected: {error.message}",
            action=action, resource=f"account:{account_number}",
            extra={"error": error.code, "amount": str(amount), **extra}
        )
