"""FastAPI dependencies for authentication and notifications."""

from datetime import datetime, timezone
from typing import Optional

import jwt
from fastapi import Depends, Header
from jwt import PyJWTError

from .config import settings
from .exceptions import AuthenticationError, AuthorizationError
from .identity import Caller, Role


def _resolve_role(payload: dict) -> Role:
    role = payload.get("role")
    if role is None:
        roles = payload.get("roles") or []
        role = roles[0] if roles else None
    try:
        return Role(role)
    except ValueError:
        raise AuthenticationError(detail=f"Unknown role claim: {role!r}")


def decode_token(token: str) -> Caller:
    """
    Validate a bearer token and build the caller identity from its claims.

    Args:
        token: Encoded JWT

    Returns:
        Caller: Identity from the ``sub``, ``role`` and ``email`` claims

    Raises:
        AuthenticationError: If the token is invalid, expired or incomplete
    """
    try:
        payload = jwt.decode(
            token,
            settings.bearer_token_secret,
            algorithms=["HS256"]
        )
    except PyJWTError as e:
        raise AuthenticationError(detail=f"Token validation failed: {str(e)}")

    user_id = payload.get("sub")
    if user_id is None:
        raise AuthenticationError(detail="Invalid token payload")

    exp = payload.get("exp")
    if exp and datetime.now(timezone.utc).timestamp() > exp:
        raise AuthenticationError(detail="Token has expired")

    try:
        user_id = int(user_id)
    except (TypeError, ValueError):
        raise AuthenticationError(detail="Token subject must be a numeric user id")

    return Caller(user_id=user_id, role=_resolve_role(payload), email=payload.get("email"))


async def get_current_user(
    authorization: Optional[str] = Header(None, alias="Authorization")
) -> Caller:
    """
    Authentication dependency that validates Bearer tokens.

    Raises:
        AuthenticationError: If the header is missing or malformed
    """
    if not authorization:
        raise AuthenticationError(detail="Authorization header missing")

    try:
        scheme, token = authorization.split()
    except ValueError:
        raise AuthenticationError(detail="Invalid authorization header format")

    if scheme.lower() != "bearer":
        raise AuthenticationError(detail="Invalid authentication scheme")

    return decode_token(token)


async def require_staff(caller: Caller = Depends(get_current_user)) -> Caller:
    """Allow reception and admin users only."""
    if not caller.is_staff:
        raise AuthorizationError(
            detail="This operation is restricted to hotel staff",
            required_roles=[Role.RECEPTION.value, Role.ADMIN.value],
        )
    return caller


async def require_admin(caller: Caller = Depends(get_current_user)) -> Caller:
    """Allow admin users only."""
    if not caller.is_admin:
        raise AuthorizationError(
            detail="This operation is restricted to administrators",
            required_roles=[Role.ADMIN.value],
        )
    return caller


def get_notifier():
    """Notifier used for best-effort reservation and invoice emails."""
    from ..services.notification_service import build_notifier
    return build_notifier(settings)

