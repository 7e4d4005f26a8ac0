"""JWT codec for access and refresh tokens."""

import logging
import secrets
import time
from dataclasses import dataclass
from typing import Any, Literal

import jwt
from jwt.exceptions import PyJWTError

from plotdesk.core import settings
from plotdesk.services.errors import InternalError, InvalidTokenError, TokenExpiredError

logger = logging.getLogger(__name__)

Role = Literal["admin", "user"]
ROLES: tuple[str, ...] = ("admin", "user")

ACCESS = "access"
REFRESH = "refresh"


@dataclass(frozen=True)
class Identity:
    """Verified claims of an access token. Never persisted."""

    id: str
    role: str
    issued_at: int
    expires_at: int


@dataclass(frozen=True)
class RefreshClaims:
    """Verified claims of a refresh token. Carries no role on purpose."""

    id: str
    issued_at: int
    expires_at: int


def _now() -> int:
    return int(time.time())


def _encode(payload: dict[str, Any], secret: str) -> str:
    try:
        return str(jwt.encode(payload, secret, algorithm=settings.jwt_algorithm))
    except (PyJWTError, TypeError, ValueError) as e:
        logger.exception("Could not sign token")
        raise InternalError("Could not sign token") from e


def create_access_token(account_id: str, role: str, *, expires_in: int | None = None) -> str:
    """Create a short-lived access token carrying the account id and role."""
    if role not in ROLES:
        raise ValueError(f"Unknown role: {role}")
    issued_at = _now()
    lifetime = settings.access_token_expire_seconds if expires_in is None else expires_in
    payload = {
        "sub": str(account_id),
        "role": role,
        "type": ACCESS,
        "jti": secrets.token_hex(16),
        "iat": issued_at,
        "exp": issued_at + lifetime,
    }
    return _encode(payload, settings.access_token_secret)


def create_refresh_token(account_id: str, *, expires_in: int | None = None) -> str:
    """Create a long-lived refresh token.

    The role is re-derived from the requested variant on every refresh,
    so it is not embedded here.
    """
    issued_at = _now()
    lifetime = settings.refresh_token_expire_seconds if expires_in is None else expires_in
    payload = {
        "sub": str(account_id),
        "type": REFRESH,
        "jti": secrets.token_hex(16),
        "iat": issued_at,
        "exp": issued_at + lifetime,
    }
    return _encode(payload, settings.refresh_token_secret)


def decode_token(token: str, secret: str) -> dict[str, Any]:
    """Decode and validate a JWT token."""
    try:
        return jwt.decode(
            token,
            secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["exp", "iat", "sub"]},
        )
    except jwt.ExpiredSignatureError as e:
        raise TokenExpiredError("Token has expired") from e
    except PyJWTError as e:
        raise InvalidTokenError(f"Invalid token: {e}") from e


def decode_access_token(token: str) -> Identity:
    """Validate an access token and return the identity it carries."""
    payload = decode_token(token, settings.access_token_secret)
    if payload.get("type") != ACCESS:
        raise InvalidTokenError("Not an access token")
    if payload.get("role") not in ROLES:
        raise InvalidTokenError("Unknown role claim")
    return Identity(
        id=str(payload["sub"]),
        role=payload["role"],
        issued_at=int(payload["iat"]),
        expires_at=int(payload["exp"]),
    )


def decode_refresh_token(token: str) -> RefreshClaims:
    """Validate a refresh token and return its claims."""
    payload = decode_token(token, settings.refresh_token_secret)
    if payload.get("type") != REFRESH:
        raise InvalidTokenError("Not a refresh token")
    return RefreshClaims(
        id=str(payload["sub"]),
        issued_at=int(payload["iat"]),
        expires_at=int(payload["exp"]),
    )


def remaining_lifetime(expires_at: int, now: float | None = None) -> int:
    """Seconds until ``expires_at``, never negative."""
    current = time.time() if now is None else now
    return max(0, int(expires_at - current))
