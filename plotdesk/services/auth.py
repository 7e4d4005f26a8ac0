"""Authentication service - login, access token refresh and logout."""

import logging
from dataclasses import dataclass

from argon2.exceptions import Argon2Error, InvalidHashError
from sqlalchemy.ext.asyncio import AsyncSession

from plotdesk.core import settings
from plotdesk.models.account import Account
from plotdesk.services.account import AccountService
from plotdesk.services.errors import (
    InternalError,
    InvalidCredentialsError,
    InvalidTokenError,
    LogoutTokenError,
    RefreshTokenRejectedError,
    TokenExpiredError,
)
from plotdesk.services.passwords import (
    hash_password,
    needs_rehash,
    verify_dummy_password,
    verify_password,
)
from plotdesk.services.refresh import RefreshTokenValidator, build_refresh_validator
from plotdesk.services.revocation import RevocationStore, access_token_key, refresh_token_key
from plotdesk.services.tokens import (
    ACCESS,
    REFRESH,
    Role,
    create_access_token,
    create_refresh_token,
    decode_access_token,
    decode_refresh_token,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


class AuthService:
    """Issues, refreshes and revokes session tokens.

    ``variant`` is the audience authenticating: ``"user"`` for the player
    app, ``"admin"`` for the CMS. It decides which accounts can log in and
    which role lands in the access token.
    """

    def __init__(
        self,
        session: AsyncSession,
        revocations: RevocationStore,
        refresh_validator: RefreshTokenValidator | None = None,
    ):
        self.session = session
        self.accounts = AccountService(session)
        self.revocations = revocations
        self.refresh_validator = refresh_validator or build_refresh_validator(
            settings.refresh_token_mode, session, revocations
        )

    async def authenticate(self, email: str, password: str, variant: Role) -> Account:
        """Return the account matching the credentials in the given variant.

        Raises InvalidCredentialsError for both "no such account" and
        "wrong password" so callers cannot tell which one happened.
        """
        account = await self.accounts.get_by_email(email, is_admin=variant == "admin")

        try:
            if account is None:
                verify_dummy_password(password)
                raise InvalidCredentialsError()

            if not verify_password(password, account.password_hash):
                raise InvalidCredentialsError()

            if needs_rehash(account.password_hash):
                account.password_hash = hash_password(password)
                await self.session.flush()
        except (Argon2Error, InvalidHashError) as e:
            logger.exception("Password verification failed")
            raise InternalError() from e

        return account

    async def login(self, email: str, password: str, variant: Role) -> TokenPair:
        """Verify credentials and issue an access/refresh token pair."""
        try:
            account = await self.authenticate(email, password, variant)
        except InvalidCredentialsError:
            logger.info(f"Failed {variant} login attempt")
            raise

        account_id = str(account.id)
        access_token = create_access_token(account_id, variant)
        refresh_token = create_refresh_token(account_id)
        await self.refresh_validator.register(
            refresh_token,
            decode_refresh_token(refresh_token),
            is_admin=account.is_admin,
        )

        logger.info(f"Account {account_id} logged in as {variant}")
        return TokenPair(access_token=access_token, refresh_token=refresh_token)

    async def refresh(self, refresh_token: str, variant: Role) -> str:
        """Mint a new access token from a refresh token.

        The refresh token itself is left untouched and stays usable until
        it expires or the session logs out.
        """
        claims = await self.refresh_validator.validate(refresh_token, is_admin=variant == "admin")

        account = await self.accounts.get_by_id(claims.id)
        if account is None or account.role != variant:
            logger.warning(f"Refresh rejected: account {claims.id} cannot act as {variant}")
            raise RefreshTokenRejectedError()

        return create_access_token(claims.id, variant)

    async def logout(self, access_token: str, refresh_token: str) -> None:
        """Revoke both tokens of a session.

        Tokens that already expired are skipped. A token with a bad
        signature is reported after the other token has been handled.
        """
        await self.refresh_validator.discard(refresh_token)

        invalid: list[str] = []
        for kind, token in ((REFRESH, refresh_token), (ACCESS, access_token)):
            try:
                await self.revoke(token, kind)
            except InvalidTokenError:
                invalid.append(kind)

        if invalid:
            raise LogoutTokenError(f"Invalid {' and '.join(invalid)} token")

    async def revoke(self, token: str, kind: str) -> bool:
        """Denylist a token until its own expiry.

        Returns False when the token has already expired and nothing was
        recorded.
        """
        try:
            if kind == ACCESS:
                identity = decode_access_token(token)
                key, expires_at = access_token_key(token), identity.expires_at
                account_id, role = identity.id, identity.role
            else:
                claims = decode_refresh_token(token)
                key, expires_at = refresh_token_key(token), claims.expires_at
                account_id, role = claims.id, None
        except TokenExpiredError:
            logger.debug(f"Skipping revocation of expired {kind} token")
            return False

        await self.revocations.revoke(key, expires_at, account_id=account_id, role=role)
        logger.info(f"Revoked {kind} token of account {account_id}")
        return True
