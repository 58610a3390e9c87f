from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import jwt

from bizledger.core.config import settings
from bizledger.core.errors import Forbidden, Unauthenticated


@dataclass(frozen=True)
class Principal:
    """An already-validated caller identity, passed explicitly into services."""

    user_id: str
    employee_id: Optional[str] = None


def create_token(
    subject: str,
    expires_minutes: Optional[int] = None,
    token_type: str = "access",
    employee_id: Optional[str] = None,
) -> str:
    minutes = expires_minutes if expires_minutes is not None else settings.access_token_expire_minutes
    expire = datetime.now(timezone.utc) + timedelta(minutes=minutes)
    payload: dict[str, Any] = {
        "sub": subject,
        "type": token_type,
        "exp": expire,
        "iat": datetime.now(timezone.utc),
    }
    if employee_id:
        payload["emp"] = employee_id
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> Optional[dict[str, Any]]:
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except jwt.PyJWTError:
        return None


def principal_from_token(token: Optional[str]) -> Principal:
    if not token:
        raise Unauthenticated("Not authenticated")
    payload = decode_token(token)
    if not payload or payload.get("type") != "access" or not payload.get("sub"):
        raise Unauthenticated("Invalid or expired session, sign in again")
    return Principal(user_id=str(payload["sub"]), employee_id=payload.get("emp"))


def require_same_user(principal: Optional[Principal], user_id: str) -> Principal:
    """The caller may only act for itself; a client-supplied user id is never trusted."""
    if principal is None:
        raise Unauthenticated("Not authenticated")
    if not user_id or str(user_id) != principal.user_id:
        raise Forbidden("User ID does not match the authenticated user")
    return principal
