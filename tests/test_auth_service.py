"""Tests for AuthService: credentials, token issuance, refresh and logout."""

import pytest
from argon2 import PasswordHasher

from plotdesk.services.auth import AuthService
from plotdesk.services.errors import (
    InternalError,
    InvalidCredentialsError,
    LogoutTokenError,
    RefreshTokenExpiredError,
    RefreshTokenRejectedError,
)
from plotdesk.services.refresh import StatefulRefreshValidator, StatelessRefreshValidator
from plotdesk.services.revocation import (
    MemoryRevocationStore,
    access_token_key,
    refresh_token_key,
)
from plotdesk.services.tokens import (
    create_access_token,
    create_refresh_token,
    decode_access_token,
)

pytestmark = pytest.mark.asyncio


@pytest.fixture
def revocations() -> MemoryRevocationStore:
    return MemoryRevocationStore()


@pytest.fixture
def stateful_service(db_session, revocations) -> AuthService:
    return AuthService(db_session, revocations, StatefulRefreshValidator(db_session))


@pytest.fixture
def stateless_service(db_session, revocations) -> AuthService:
    return AuthService(db_session, revocations, StatelessRefreshValidator(revocations))


class TestAuthenticate:
    async def test_valid_credentials(self, stateful_service, user_account, test_password):
        account = await stateful_service.authenticate(user_account.email, test_password, "user")
        assert account.id == user_account.id

    async def test_email_is_case_insensitive(self, stateful_service, user_account, test_password):
        account = await stateful_service.authenticate(
            user_account.email.upper(), test_password, "user"
        )
        assert account.id == user_account.id

    async def test_wrong_password(self, stateful_service, user_account):
        with pytest.raises(InvalidCredentialsError):
            await stateful_service.authenticate(user_account.email, "wrong-password", "user")

    async def test_unknown_email(self, stateful_service, test_password):
        with pytest.raises(InvalidCredentialsError):
            await stateful_service.authenticate("nobody@example.com", test_password, "user")

    async def test_user_cannot_log_in_as_admin(
        self, stateful_service, user_account, test_password
    ):
        with pytest.raises(InvalidCredentialsError):
            await stateful_service.authenticate(user_account.email, test_password, "admin")

    async def test_same_email_as_user_and_admin(
        self, stateful_service, account_factory, test_password
    ):
        user = await account_factory(email="both@example.com")
        admin = await account_factory(email="both@example.com", is_admin=True)

        as_user = await stateful_service.authenticate("both@example.com", test_password, "user")
        as_admin = await stateful_service.authenticate("both@example.com", test_password, "admin")

        assert as_user.id == user.id
        assert as_admin.id == admin.id

    async def test_outdated_hash_is_upgraded(self, stateful_service, user_account, test_password):
        user_account.password_hash = PasswordHasher(time_cost=1, memory_cost=8192).hash(
            test_password
        )
        old_hash = user_account.password_hash

        await stateful_service.authenticate(user_account.email, test_password, "user")

        assert user_account.password_hash != old_hash
        assert user_account.password_hash.startswith("$argon2id$")

    async def test_corrupted_hash_is_internal_error(self, stateful_service, user_account):
        user_account.password_hash = "corrupted"
        with pytest.raises(InternalError):
            await stateful_service.authenticate(user_account.email, "whatever", "user")


class TestLogin:
    async def test_access_token_carries_variant_role(
        self, stateful_service, admin_account, test_password
    ):
        tokens = await stateful_service.login(admin_account.email, test_password, "admin")
        identity = decode_access_token(tokens.access_token)
        assert identity.id == str(admin_account.id)
        assert identity.role == "admin"

    async def test_stateful_login_enables_refresh(
        self, stateful_service, user_account, test_password
    ):
        tokens = await stateful_service.login(user_account.email, test_password, "user")
        access_token = await stateful_service.refresh(tokens.refresh_token, "user")
        assert decode_access_token(access_token).role == "user"


class TestRefresh:
    async def test_refresh_keeps_refresh_token_usable(
        self, stateless_service, user_account, test_password
    ):
        tokens = await stateless_service.login(user_account.email, test_password, "user")
        first = await stateless_service.refresh(tokens.refresh_token, "user")
        second = await stateless_service.refresh(tokens.refresh_token, "user")
        assert first != second

    async def test_refresh_for_other_variant_rejected(
        self, stateless_service, user_account, test_password
    ):
        tokens = await stateless_service.login(user_account.email, test_password, "user")
        with pytest.raises(RefreshTokenRejectedError):
            await stateless_service.refresh(tokens.refresh_token, "admin")

    async def test_refresh_for_deleted_account_rejected(
        self, stateful_service, db_session, user_account, test_password
    ):
        tokens = await stateful_service.login(user_account.email, test_password, "user")
        await db_session.delete(user_account)
        await db_session.flush()

        with pytest.raises(RefreshTokenRejectedError):
            await stateful_service.refresh(tokens.refresh_token, "user")

    async def test_expired_refresh_token(self, stateless_service, user_account):
        token = create_refresh_token(str(user_account.id), expires_in=-1)
        with pytest.raises(RefreshTokenExpiredError):
            await stateless_service.refresh(token, "user")


class TestLogout:
    async def test_revokes_both_tokens(
        self, stateless_service, revocations, user_account, test_password
    ):
        tokens = await stateless_service.login(user_account.email, test_password, "user")

        await stateless_service.logout(tokens.access_token, tokens.refresh_token)

        assert await revocations.is_revoked(access_token_key(tokens.access_token))
        assert await revocations.is_revoked(refresh_token_key(tokens.refresh_token))
        with pytest.raises(RefreshTokenRejectedError):
            await stateless_service.refresh(tokens.refresh_token, "user")

    async def test_revocation_lasts_until_token_expiry(
        self, stateless_service, revocations, user_account, test_password
    ):
        tokens = await stateless_service.login(user_account.email, test_password, "user")
        await stateless_service.logout(tokens.access_token, tokens.refresh_token)

        entry = await revocations.get(access_token_key(tokens.access_token))
        assert entry.expires_at == decode_access_token(tokens.access_token).expires_at

    async def test_logout_is_idempotent(
        self, stateless_service, user_account, test_password
    ):
        tokens = await stateless_service.login(user_account.email, test_password, "user")
        await stateless_service.logout(tokens.access_token, tokens.refresh_token)
        await stateless_service.logout(tokens.access_token, tokens.refresh_token)

    async def test_stateful_logout_deletes_record(
        self, stateful_service, user_account, test_password
    ):
        tokens = await stateful_service.login(user_account.email, test_password, "user")
        await stateful_service.logout(tokens.access_token, tokens.refresh_token)

        with pytest.raises(RefreshTokenRejectedError):
            await stateful_service.refresh(tokens.refresh_token, "user")

    async def test_expired_access_token_is_skipped(
        self, stateless_service, revocations, user_account
    ):
        access_token = create_access_token(str(user_account.id), "user", expires_in=-1)
        refresh_token = create_refresh_token(str(user_account.id))

        await stateless_service.logout(access_token, refresh_token)

        assert len(revocations) == 1
        assert await revocations.is_revoked(refresh_token_key(refresh_token))

    async def test_invalid_access_token_still_revokes_refresh(
        self, stateless_service, revocations, user_account
    ):
        refresh_token = create_refresh_token(str(user_account.id))

        with pytest.raises(LogoutTokenError) as exc_info:
            await stateless_service.logout("garbage", refresh_token)

        assert "access" in exc_info.value.message
        assert await revocations.is_revoked(refresh_token_key(refresh_token))

    async def test_both_tokens_invalid(self, stateless_service):
        with pytest.raises(LogoutTokenError) as exc_info:
            await stateless_service.logout("garbage", "also-garbage")
        assert exc_info.value.message == "Invalid refresh and access token"


class TestRevoke:
    async def test_expired_token_not_recorded(self, stateless_service, revocations, user_account):
        token = create_access_token(str(user_account.id), "user", expires_in=-1)
        assert await stateless_service.revoke(token, "access") is False
        assert len(revocations) == 0

    async def test_live_token_recorded(self, stateless_service, revocations, user_account):
        token = create_access_token(str(user_account.id), "user")
        assert await stateless_service.revoke(token, "access") is True
        entry = await revocations.get(access_token_key(token))
        assert entry.account_id == str(user_account.id)
        assert entry.role == "user"
