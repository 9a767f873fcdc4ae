"""
User-scoped endpoints
"""

from fastapi import APIRouter, Depends, HTTPException

from .auth import BankingSystem, get_banking_system, get_current_user


router = APIRouter()


@router.get("/{user_id}/accounts")
def list_user_accounts(
    user_id: str,
    current_user: str = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    """List the caller's own accounts, oldest first"""
    if user_id != current_user:
        raise HTTPException(status_code=403, detail="Access denied: Cannot access other user data")

    accounts = system.accounts.list_for_owner(user_id)
    return {"accounts": [account.to_dict() for account in accounts]}
