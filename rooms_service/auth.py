import os
from typing import Any, Callable, Dict

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

# Tokens are issued by the users service and must be signed with the same key
SECRET_KEY = os.getenv("JWT_SECRET_KEY", "super-secret-academic-admin-key")
ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

ROLE_ADMINISTRATOR = "Administrator"
STAFF_ROLES = ("Dean", "Program Chair", "Faculty")

security = HTTPBearer()


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_claims(token: str) -> Dict[str, Any]:
    """
    Return ``username``, ``role`` and ``user_id`` from a signed token.

    Raises HTTP 401 when the signature is bad or ``sub``/``role`` is missing.
    """
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise _unauthorized()

    if payload.get("sub") is None or payload.get("role") is None:
        raise _unauthorized()
    return {"username": payload["sub"], "role": payload["role"], "user_id": payload.get("user_id")}


async def get_current_user_claims(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Dict[str, Any]:
    return decode_claims(credentials.credentials)


def actor_id(claims: Dict[str, Any]) -> str:
    """Identifier recorded as ``updatedBy`` in room history."""
    user_id = claims.get("user_id")
    if user_id is None:
        return claims["username"]
    return str(user_id)


def require_roles(*allowed_roles: str) -> Callable:
    """Dependency that lets through only callers holding one of ``allowed_roles`` (403 otherwise)."""

    async def check_role(claims: Dict[str, Any] = Depends(get_current_user_claims)) -> Dict[str, Any]:
        if claims["role"] in allowed_roles:
            return claims
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not enough permissions")

    return check_role
