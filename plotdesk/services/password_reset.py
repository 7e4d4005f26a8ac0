"""Password reset links - single use, time limited, delivered by mail.

An account has at most one live link. The emailed token is random and
only its digest is stored; presenting an expired link consumes the record,
so every later attempt with it is answered like a link that never existed.
"""

import logging
import secrets
import time
from collections.abc import Callable

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from plotdesk.core import settings
from plotdesk.models.password_reset import PasswordReset
from plotdesk.models.refresh_token import RefreshToken
from plotdesk.services.account import AccountService
from plotdesk.services.errors import AccountNotFoundError, InternalError, PasswordResetLinkError
from plotdesk.services.mailer import Mailer, MailMessage
from plotdesk.services.revocation import token_digest

logger = logging.getLogger(__name__)


def reset_link(token: str) -> str:
    return f"{settings.frontend_url.rstrip('/')}/reset-password/{token}"


class PasswordResetService:
    """Issues and redeems password reset links for player accounts."""

    def __init__(self, session: AsyncSession, clock: Callable[[], float] = time.time):
        self.session = session
        self.accounts = AccountService(session)
        self._clock = clock

    async def request_reset(self, email: str, mailer: Mailer) -> None:
        """Replace the account's reset link with a new one and mail it."""
        account = await self.accounts.get_by_email(email, is_admin=False)
        if account is None:
            raise AccountNotFoundError("Account with that email does not exist")

        token = secrets.token_urlsafe(32)
        ttl = settings.password_reset_expire_seconds
        try:
            await self.session.execute(
                delete(PasswordReset).where(PasswordReset.account_id == account.id)
            )
            self.session.add(
                PasswordReset(
                    account_id=account.id,
                    token_hash=token_digest(token),
                    expires_at=int(self._clock()) + ttl,
                )
            )
            await self.session.flush()
        except SQLAlchemyError as e:
            logger.exception("Could not store password reset link")
            raise InternalError() from e

        await mailer.send(
            MailMessage(
                to=account.email,
                subject="Plotdesk - reset your password",
                body=(
                    f"You can reset your password here: {reset_link(token)}. "
                    f"Link expires in {max(1, ttl // 60)} minutes."
                ),
            )
        )
        logger.info(f"Password reset link issued for account {account.id}")

    async def _find(self, token: str) -> PasswordReset | None:
        try:
            result = await self.session.execute(
                select(PasswordReset).where(PasswordReset.token_hash == token_digest(token))
            )
        except SQLAlchemyError as e:
            logger.exception("Password reset lookup failed")
            raise InternalError() from e
        return result.scalar_one_or_none()

    async def _consume(self, record: PasswordReset) -> None:
        # Committed here because the error raised next rolls back the request session
        try:
            await self.session.delete(record)
            await self.session.commit()
        except SQLAlchemyError as e:
            logger.exception("Could not delete password reset link")
            raise InternalError() from e

    async def renew_password(self, token: str, password: str) -> None:
        """Set a new password through a live link, then drop the link.

        Stored refresh tokens of the account are deleted as well, so
        sessions in the stateful refresh mode have to log in again.
        """
        record = await self._find(token)
        if record is None:
            raise PasswordResetLinkError()

        account_id = record.account_id
        if record.expires_at <= self._clock():
            await self._consume(record)
            logger.info(f"Expired password reset link consumed for account {account_id}")
            raise PasswordResetLinkError()

        account = await self.accounts.get_by_id(account_id)
        if account is None:
            await self._consume(record)
            raise AccountNotFoundError()

        await self.accounts.set_password(account, password)
        try:
            await self.session.execute(
                delete(RefreshToken).where(RefreshToken.account_id == account_id)
            )
            await self.session.delete(record)
            await self.session.flush()
        except SQLAlchemyError as e:
            logger.exception("Could not finish password reset")
            raise InternalError() from e
        logger.info(f"Password reset completed for account {account_id}")


async def purge_expired_password_resets(session: AsyncSession, now: float | None = None) -> int:
    """Delete reset links past their expiry. Returns count removed."""
    cutoff = int(time.time() if now is None else now)
    result = await session.execute(delete(PasswordReset).where(PasswordReset.expires_at <= cutoff))
    await session.commit()
    return result.rowcount or 0
