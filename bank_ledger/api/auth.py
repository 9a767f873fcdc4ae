"""
Authentication dependencies
"""

from typing import Optional

import jwt
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..system import BankingSystem


# JWT Security
security = HTTPBearer(auto_error=False)


def get_banking_system(request: Request) -> BankingSystem:
    """Dependency to get the banking system bound to this app"""
    system = getattr(request.app.state, "system", None)
    if system is None:
        raise HTTPException(status_code=503, detail="Banking system not initialized")
    return system


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    system: BankingSystem = Depends(get_banking_system)
) -> str:
    """Dependency that validates the bearer JWT and returns the caller's user id"""
    if not credentials:
        raise HTTPException(status_code=401, detail="Token missing")
    try:
        payload = jwt.decode(
            credentials.credentials,
            system.config.jwt_secret,
            algorithms=[system.config.jwt_algorithm]
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")

    user_id = payload.get("sub") or payload.get("userId")
    if user_id is None or user_id == "":
        raise HTTPException(status_code=401, detail="Invalid token")
    return str(user_id)
