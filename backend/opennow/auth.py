from __future__ import annotations

from dataclasses import dataclass

from .config import Settings
from .errors import ForbiddenError, UnauthorizedError

MIN_USER_TOKEN_LENGTH = 10


@dataclass(frozen=True)
class Principal:
    user_id: str
    is_admin: bool = False


def bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def resolve_principal(token: str | None, settings: Settings) -> Principal | None:
    """Map a bearer token to a caller.

    Token verification against an identity provider is not done here; this
    only recognises the configured admin and dev tokens and treats any other
    long token as an opaque user id.
    """
    if not token:
        return None
    if token == settings.admin_token:
        return Principal(user_id="admin", is_admin=True)
    if token == settings.dev_token:
        return Principal(user_id=settings.dev_user_id, is_admin=settings.environment != "production")
    if len(token) > MIN_USER_TOKEN_LENGTH:
        return Principal(user_id=token)
    return None


def require_user(principal: Principal | None) -> Principal:
    if principal is None:
        raise UnauthorizedError("Authentication required")
    return principal


def require_admin(principal: Principal | None) -> Principal:
    principal = require_user(principal)
    if not principal.is_admin:
        raise ForbiddenError("Admin access required")
    return principal
