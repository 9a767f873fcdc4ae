"""
Pydantic schemas for API requests

Amounts are accepted as JSON numbers or decimal strings and validated by the
ledger itself, so a bad amount yields the ledger's InvalidAmount error rather
than a schema error. camelCase field names are accepted as well.
"""

from typing import Any, Optional
from pydantic import AliasChoices, BaseModel, ConfigDict, Field


# Account schemas
class CreateAccountRequest(BaseModel):
    account_type: Optional[str] = Field(
        None, description="Account type (SAVINGS, CURRENT)",
        validation_alias=AliasChoices("account_type", "accountType")
    )
    balance: Any = Field(0, description="Initial balance, decimal as string or number")
    status: str = Field("ACTIVE", description="Account status (ACTIVE, INACTIVE)")


class UpdateAccountRequest(BaseModel):
    account_type: Optional[str] = Field(
        None, validation_alias=AliasChoices("account_type", "accountType")
    )
    status: Optional[str] = None


# Transaction schemas
class DepositRequest(BaseModel):
    amount: Any = Field(None, description="Decimal amount as string or number")
    description: Optional[str] = None


class WithdrawRequest(BaseModel):
    amount: Any = Field(None, description="Decimal amount as string or number")
    description: Optional[str] = None


class TransferRequest(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    to_account_number: Optional[str] = Field(
        None, validation_alias=AliasChoices("to_account_number", "toAccountNumber")
    )
    amount: Any = Field(None, description="Decimal amount as string or number")
    description: Optional[str] = None
