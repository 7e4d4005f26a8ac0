"""Account service - credential store access for users and CMS admins."""

import logging
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from plotdesk.models.account import Account
from plotdesk.models.password_reset import PasswordReset
from plotdesk.models.refresh_token import RefreshToken
from plotdesk.services.errors import AccountExistsError, AccountNotFoundError, InternalError
from plotdesk.services.passwords import hash_password

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _parse_account_id(account_id: str | UUID) -> UUID | None:
    if isinstance(account_id, UUID):
        return account_id
    try:
        return UUID(account_id)
    except (TypeError, ValueError):
        return None


class AccountService:
    """Reads and writes account records."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_email(self, email: str, *, is_admin: bool) -> Account | None:
        """Get the account with this email in the given role."""
        try:
            result = await self.session.execute(
                select(Account).where(
                    Account.email == normalize_email(email),
                    Account.is_admin == is_admin,
                )
            )
        except SQLAlchemyError as e:
            logger.exception("Account lookup failed")
            raise InternalError() from e
        return result.scalar_one_or_none()

    async def get_by_id(self, account_id: str | UUID) -> Account | None:
        uid = _parse_account_id(account_id)
        if uid is None:
            return None
        try:
            return await self.session.get(Account, uid)
        except SQLAlchemyError as e:
            logger.exception("Account lookup failed")
            raise InternalError() from e

    async def get_existing(self, account_id: str | UUID) -> Account:
        account = await self.get_by_id(account_id)
        if account is None:
            raise AccountNotFoundError()
        return account

    async def register(
        self,
        *,
        email: str,
        password: str,
        name: str,
        surname: str,
        is_admin: bool = False,
    ) -> Account:
        """Create a user or admin account."""
        email = normalize_email(email)
        if await self.get_by_email(email, is_admin=is_admin) is not None:
            raise AccountExistsError(
                "Admin with that email already exists"
                if is_admin
                else "User with that email already exists"
            )

        account = Account(
            email=email,
            password_hash=hash_password(password),
            is_admin=is_admin,
            name=name,
            surname=surname,
        )
        self.session.add(account)
        try:
            await self.session.flush()
        except IntegrityError as e:
            # Lost a race with a concurrent registration of the same email
            await self.session.rollback()
            raise AccountExistsError() from e
        await self.session.refresh(account)

        logger.info(f"New {account.role} {account.id} registered")
        return account

    async def update_profile(
        self,
        account: Account,
        *,
        name: str | None = None,
        surname: str | None = None,
        email: str | None = None,
    ) -> Account:
        if email is not None:
            email = normalize_email(email)
            if email != account.email:
                clash = await self.get_by_email(email, is_admin=account.is_admin)
                if clash is not None:
                    raise AccountExistsError()
                account.email = email
        if name is not None:
            account.name = name
        if surname is not None:
            account.surname = surname
        await self.session.flush()
        await self.session.refresh(account)
        return account

    async def set_password(self, account: Account, password: str) -> None:
        account.password_hash = hash_password(password)
        await self.session.flush()
        logger.info(f"Password changed for account {account.id}")

    async def delete(self, account: Account) -> None:
        """Delete the account with its stored refresh tokens and reset link."""
        account_id = account.id
        try:
            await self.session.execute(
                delete(RefreshToken).where(RefreshToken.account_id == account_id)
            )
            await self.session.execute(
                delete(PasswordReset).where(PasswordReset.account_id == account_id)
            )
            await self.session.delete(account)
            await self.session.flush()
        except SQLAlchemyError as e:
            logger.exception("Account deletion failed")
            raise InternalError() from e
        logger.info(f"Account {account_id} deleted")
