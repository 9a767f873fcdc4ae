"""
Ledger Error Taxonomy

Structured errors raised by the account store, the ledger writer and the
balance mutation engine. Every error carries a stable ``code`` so callers
(and the HTTP layer) can report it without parsing messages.
"""

from typing import Any, Dict, Optional


class LedgerError(Exception):
    """Base class for all ledger errors"""

    code = "ledger_error"

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = {k: v for k, v in details.items() if v is not None}

    def to_dict(self) -> Dict[str, Any]:
        """Structured representation for logs and API responses"""
        result: Dict[str, Any] = {"error": self.code, "message": self.message}
        if self.details:
            result["details"] = {k: str(v) for k, v in self.details.items()}
        return result


class InvalidAmount(LedgerError, ValueError):
    """Amount is not a positive, finite decimal"""

    code = "invalid_amount"

    def __init__(self, amount: Any, reason: str = "Valid amount is required"):
        super().__init__(reason, amount=amount)
        self.amount = amount


class InvalidAccountData(LedgerError, ValueError):
    """Unknown account type or status"""

    code = "invalid_account_data"


class AccountNotFound(LedgerError, LookupError):
    """Account does not exist (or is not visible to the caller)"""

    code = "account_not_found"
    label = "Account"

    def __init__(self, account_number: Optional[str]):
        super().__init__(f"{self.label} not found", account_number=account_number)
        self.account_number = account_number


class SourceAccountNotFound(AccountNotFound):
    code = "source_account_not_found"
    label = "Source account"


class DestinationAccountNotFound(AccountNotFound):
    code = "destination_account_not_found"
    label = "Destination account"


class AccountAlreadyExists(LedgerError):
    """Account number is already taken"""

    code = "account_already_exists"

    def __init__(self, account_number: str):
        super().__init__(f"Account {account_number} already exists",
                         account_number=account_number)
        self.account_number = account_number


class InsufficientFunds(LedgerError):
    """Balance is lower than the requested debit"""

    code = "insufficient_funds"

    def __init__(self, account_number: str, balance: Any, requested: Any):
        super().__init__("Insufficient balance", account_number=account_number,
                         balance=balance, requested=requested)
        self.account_number = account_number
        self.balance = balance
        self.requested = requested


class SelfTransfer(LedgerError, ValueError):
    """Source and destination of a transfer are the same account"""

    code = "self_transfer"

    def __init__(self, account_number: str):
        super().__init__("Cannot transfer to the same account",
                         account_number=account_number)
        self.account_number = account_number


class AccountInactive(LedgerError):
    """Account is INACTIVE and cannot send or receive funds"""

    code = "account_inactive"

    def __init__(self, account_number: str):
        super().__init__(f"Account {account_number} is inactive",
                         account_number=account_number)
        self.account_number = account_number


class AccountAlreadyClosed(LedgerError):
    code = "account_already_closed"

    def __init__(self, account_number: str):
        super().__init__("Account is already closed", account_number=account_number)
        self.account_number = account_number


class DependencyError(LedgerError):
    """Operation blocked because other records depend on the target"""

    code = "dependency_error"


class AccountHasTransactions(DependencyError):
    code = "account_has_transactions"

    def __init__(self, account_number: str, transaction_count: int):
        plural = "s" if transaction_count != 1 else ""
        super().__init__(
            f"Cannot delete account {account_number}: it has "
            f"{transaction_count} transaction{plural}",
            account_number=account_number,
            transaction_count=transaction_count,
        )
        self.account_number = account_number
        self.transaction_count = transaction_count


class GenerationExhausted(LedgerError):
    """No free account number found within the retry budget"""

    code = "generation_exhausted"

    def __init__(self, attempts: int):
        super().__init__(
            f"Could not generate a unique account number after {attempts} attempts",
            attempts=attempts,
        )
        self.attempts = attempts


class StoreUnavailable(LedgerError):
    """Transient failure of the underlying record store"""

    code = "store_unavailable"
