"""
Principal resolution from bearer tokens.

Registration, login and password handling live in an external credential
service that signs tokens with the shared secret_key. This module only reads
them.

Optional routes (link creation) silently treat a missing, malformed, expired
or badly-signed token as anonymous instead of rejecting the request. That is
existing client-facing behavior and is kept on purpose.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from jwt.exceptions import InvalidTokenError
from fastapi import Depends, Header

from clicklink_app.config import Settings
from clicklink_app.dependencies import get_settings
from clicklink_app.exceptions import UnauthorizedError


def create_access_token(user_id: int, settings: Settings, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token for user_id.

    Args:
        user_id: Principal id stored in the `sub` claim
        settings: Supplies the secret, algorithm and default lifetime
        expires_delta: Token expiration time
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.access_token_expire_minutes)

    payload = {
        "sub": str(user_id),
        "exp": datetime.now(timezone.utc) + expires_delta,
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def resolve_principal(authorization: Optional[str], settings: Settings) -> Optional[int]:
    """
    Map an Authorization header to a principal id.

    Never raises: anything other than a valid `Bearer <token>` carrying an
    integer principal yields None (anonymous). The principal is read from
    `sub`, or from `userId` in tokens issued by the credential service.
    """
    if not authorization:
        return None

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None

    try:
        payload = jwt.decode(parts[1], settings.secret_key, algorithms=[settings.jwt_algorithm])
    except InvalidTokenError:
        return None

    subject = payload.get("sub")
    if subject is None:
        subject = payload.get("userId")

    try:
        return int(subject)
    except (TypeError, ValueError):
        return None


def get_optional_principal(
    authorization: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
) -> Optional[int]:
    """FastAPI dependency for routes that accept anonymous callers"""
    return resolve_principal(authorization, settings)


def require_principal(principal_id: Optional[int] = Depends(get_optional_principal)) -> int:
    """FastAPI dependency for owner-only routes"""
    if principal_id is None:
        raise UnauthorizedError()
    return principal_id
