"""Refresh token validation strategies.

A deployment picks one strategy via ``REFRESH_TOKEN_MODE``:

- stateless: a refresh token is valid while its signature and expiry check
  out and it is not on the revocation denylist.
- stateful: login also stores a ``refresh_tokens`` row. A token without a
  row is rejected even with a valid signature, and the row is consumed the
  first time the token is presented after expiry.
"""

import logging
import time
from typing import Protocol
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from plotdesk.models.refresh_token import RefreshToken
from plotdesk.services.errors import (
    InternalError,
    InvalidTokenError,
    RefreshTokenExpiredError,
    RefreshTokenRejectedError,
    TokenExpiredError,
)
from plotdesk.services.revocation import RevocationStore, refresh_token_key, token_digest
from plotdesk.services.tokens import RefreshClaims, decode_refresh_token

logger = logging.getLogger(__name__)


class RefreshTokenValidator(Protocol):
    async def register(self, refresh_token: str, claims: RefreshClaims, *, is_admin: bool) -> None:
        """Record a freshly issued refresh token."""
        ...

    async def validate(self, refresh_token: str, *, is_admin: bool) -> RefreshClaims:
        """Return the claims of a refresh token allowed to mint access tokens."""
        ...

    async def discard(self, refresh_token: str) -> None:
        """Forget any server-side record of the token (logout)."""
        ...


def _verify(refresh_token: str) -> RefreshClaims:
    try:
        return decode_refresh_token(refresh_token)
    except TokenExpiredError as e:
        raise RefreshTokenExpiredError() from e
    except InvalidTokenError as e:
        raise RefreshTokenRejectedError() from e


class StatelessRefreshValidator:
    """Signature, expiry and denylist only."""

    def __init__(self, revocations: RevocationStore):
        self.revocations = revocations

    async def register(self, refresh_token: str, claims: RefreshClaims, *, is_admin: bool) -> None:
        return None

    async def validate(self, refresh_token: str, *, is_admin: bool) -> RefreshClaims:
        if await self.revocations.is_revoked(refresh_token_key(refresh_token)):
            raise RefreshTokenRejectedError("Refresh token has been revoked")
        return _verify(refresh_token)

    async def discard(self, refresh_token: str) -> None:
        return None


class StatefulRefreshValidator:
    """Server-side refresh token records with single-use expiry."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _find(self, value_hash: str) -> RefreshToken | None:
        result = await self.session.execute(
            select(RefreshToken).where(RefreshToken.value_hash == value_hash)
        )
        return result.scalar_one_or_none()

    async def register(self, refresh_token: str, claims: RefreshClaims, *, is_admin: bool) -> None:
        try:
            self.session.add(
                RefreshToken(
                    value_hash=token_digest(refresh_token),
                    account_id=UUID(claims.id),
                    is_admin=is_admin,
                    expires_at=claims.expires_at,
                )
            )
            await self.session.flush()
        except SQLAlchemyError as e:
            logger.exception("Could not store refresh token")
            raise InternalError("Could not store refresh token") from e

    async def validate(self, refresh_token: str, *, is_admin: bool) -> RefreshClaims:
        value_hash = token_digest(refresh_token)
        try:
            record = await self._find(value_hash)
        except SQLAlchemyError as e:
            logger.exception("Refresh token lookup failed")
            raise InternalError() from e

        if record is None:
            raise RefreshTokenRejectedError("Forbidden - refresh token does not exist")
        if record.is_admin != is_admin:
            raise RefreshTokenRejectedError()

        try:
            return _verify(refresh_token)
        except RefreshTokenExpiredError:
            # Consume the record so a replay of this token is rejected outright.
            # Committed here because the raised error rolls back the request session.
            account_id = record.account_id
            try:
                await self.session.delete(record)
                await self.session.commit()
            except SQLAlchemyError as e:
                logger.exception("Could not consume expired refresh token")
                raise InternalError() from e
            logger.info(f"Expired refresh token consumed for account {account_id}")
            raise

    async def discard(self, refresh_token: str) -> None:
        try:
            await self.session.execute(
                delete(RefreshToken).where(RefreshToken.value_hash == token_digest(refresh_token))
            )
            await self.session.commit()
        except SQLAlchemyError as e:
            logger.exception("Could not delete refresh token")
            raise InternalError() from e


async def purge_expired_refresh_tokens(session: AsyncSession, now: float | None = None) -> int:
    """Delete stored refresh tokens past their expiry. Returns count removed."""
    cutoff = int(time.time() if now is None else now)
    result = await session.execute(delete(RefreshToken).where(RefreshToken.expires_at <= cutoff))
    await session.commit()
    return result.rowcount or 0


def build_refresh_validator(
    mode: str,
    session: AsyncSession,
    revocations: RevocationStore,
) -> RefreshTokenValidator:
    if mode == "stateful":
        return StatefulRefreshValidator(session)
    if mode == "stateless":
        return StatelessRefreshValidator(revocations)
    raise ValueError(f"Unknown refresh token mode: {mode}")
