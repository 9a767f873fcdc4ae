"""
Account management endpoints

Every route acts on an account owned by the caller; an account owned by
someone else is reported as not found.
"""

from fastapi import APIRouter, Depends, status

from .auth import BankingSystem, get_banking_system, get_current_user
from .schemas import CreateAccountRequest, UpdateAccountRequest
from ..accounts import Account
from ..errors import AccountNotFound


router = APIRouter()


def get_owned_account(account_number: str, user_id: str, system: BankingSystem) -> Account:
    account = system.accounts.get_for_owner(account_number, user_id)
    if not account:
        raise AccountNotFound(account_number)
    return account


@router.post("", status_code=status.HTTP_201_CREATED)
def create_account(
    request: CreateAccountRequest,
    user_id: str = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    """Open a new account for the caller"""
    account = system.open_account(
        owner_id=user_id,
        account_type=request.account_type,
        initial_balance=request.balance,
        status=request.status
    )
    return {
        "message": "Account created successfully",
        "account": account.to_dict()
    }


@router.get("/{account_number}")
def get_account(
    account_number: str,
    user_id: str = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    """Get account details"""
    return get_owned_account(account_number, user_id, system).to_dict()


@router.patch("/{account_number}")
def update_account(
    account_number: str,
    request: UpdateAccountRequest,
    user_id: str = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    """Change account type and/or status"""
    get_owned_account(account_number, user_id, system)
    account = system.accounts.update(
        account_number,
        account_type=request.account_type,
        status=request.status
    )
    return {
        "message": "Account updated successfully",
        "account": account.to_dict()
    }


@router.patch("/{account_number}/close")
def close_account(
    account_number: str,
    user_id: str = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    """Close an account (set it INACTIVE)"""
    get_owned_account(account_number, user_id, system)
    account = system.accounts.close(account_number)
    return {
        "message": "Account closed successfully",
        "account": account.to_dict()
    }


@router.delete("/{account_number}")
def delete_account(
    account_number: str,
    user_id: str = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    """Delete an account that has no transactions"""
    get_owned_account(account_number, user_id, system)
    system.delete_account(account_number)
    return {"message": "Account deleted successfully"}


@router.get("/{account_number}/balance")
def get_account_balance(
    account_number: str,
    user_id: str = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    """Get the current balance"""
    account = get_owned_account(account_number, user_id, system)
    return {
        "account_number": account.account_number,
        "balance": str(account.balance)
    }
