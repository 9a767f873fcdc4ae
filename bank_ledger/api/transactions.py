"""
Transaction endpoints
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query, status

from .accounts import get_owned_account
from .auth import BankingSystem, get_banking_system, get_current_user
from .schemas import DepositRequest, WithdrawRequest, TransferRequest
from ..errors import InvalidAccountData, SourceAccountNotFound


router = APIRouter()


@router.get("/{account_number}/transactions")
def get_transactions(
    account_number: str,
    limit: Optional[int] = Query(None, ge=1),
    user_id: str = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    """Get transaction history for an account, newest first"""
    get_owned_account(account_number, user_id, system)
    entries = system.list_transactions(account_number, limit=limit)

    if not entries:
        return {"message": "No transactions found for this account", "transactions": []}
    return {
        "message": "Transactions retrieved successfully",
        "transactions": [entry.to_dict() for entry in entries]
    }


@router.post("/{account_number}/transactions/deposit", status_code=status.HTTP_201_CREATED)
def deposit(
    account_number: str,
    request: DepositRequest,
    user_id: str = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    """Make a deposit"""
    get_owned_account(account_number, user_id, system)
    entry = system.deposit(account_number, request.amount, request.description)
    return {"message": "Deposit successful", "transaction": entry.to_dict()}


@router.post("/{account_number}/transactions/withdraw", status_code=status.HTTP_201_CREATED)
def withdraw(
    account_number: str,
    request: WithdrawRequest,
    user_id: str = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    """Make a withdrawal"""
    get_owned_account(account_number, user_id, system)
    entry = system.withdraw(account_number, request.amount, request.description)
    return {"message": "Withdrawal successful", "transaction": entry.to_dict()}


@router.post("/{account_number}/transactions/transfer", status_code=status.HTTP_201_CREATED)
def transfer(
    account_number: str,
    request: TransferRequest,
    user_id: str = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    """Transfer from one of the caller's accounts to any account"""
    if not request.to_account_number:
        raise InvalidAccountData("Destination account number is required")
    if not system.accounts.get_for_owner(account_number, user_id):
        raise SourceAccountNotFound(account_number)

    entry = system.transfer(
        account_number, request.to_account_number, request.amount, request.description
    )
    return {"message": "Transfer successful", "transaction": entry.to_dict()}
