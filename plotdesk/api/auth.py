"""Authentication API endpoints.

Every endpoint exists twice: once for regular users (``/auth/...``) and
once for CMS admins (``/auth/cms/...``). The route decides the variant.
"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from plotdesk.api.deps import get_auth_service, require_role, to_http_exception
from plotdesk.core import get_db, settings
from plotdesk.schemas.auth import (
    AccessTokenResponse,
    LoginRequest,
    LogoutRequest,
    MessageResponse,
    RefreshRequest,
    RegisterRequest,
    TokenResponse,
)
from plotdesk.services.account import AccountService
from plotdesk.services.auth import AuthService
from plotdesk.services.errors import AuthError
from plotdesk.services.tokens import Identity, Role

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


async def _register(request: RegisterRequest, db: AsyncSession, variant: Role) -> MessageResponse:
    try:
        await AccountService(db).register(
            email=request.email,
            password=request.password,
            name=request.name,
            surname=request.surname,
            is_admin=variant == "admin",
        )
    except AuthError as e:
        raise to_http_exception(e) from e
    return MessageResponse(message="Successfully created account")


async def _login(request: LoginRequest, auth_service: AuthService, variant: Role) -> TokenResponse:
    try:
        tokens = await auth_service.login(request.email, request.password, variant)
    except AuthError as e:
        raise to_http_exception(e) from e
    return TokenResponse(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        expires_in=settings.access_token_expire_seconds,
    )


async def _refresh(
    request: RefreshRequest, auth_service: AuthService, variant: Role
) -> AccessTokenResponse:
    try:
        access_token = await auth_service.refresh(request.refresh_token, variant)
    except AuthError as e:
        logger.info(f"Refresh for {variant} rejected: {e}")
        raise to_http_exception(e) from e
    return AccessTokenResponse(
        access_token=access_token,
        expires_in=settings.access_token_expire_seconds,
    )


async def _logout(request: LogoutRequest, auth_service: AuthService) -> MessageResponse:
    try:
        await auth_service.logout(request.access_token, request.refresh_token)
    except AuthError as e:
        raise to_http_exception(e) from e
    return MessageResponse(message="Logout succeeded")


# --- Regular users ---


@router.post("/register", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def register_user(
    request: RegisterRequest,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """Register a regular user. Returns 409 if the email is taken."""
    return await _register(request, db, "user")


@router.post("/login", response_model=TokenResponse)
async def login_user(
    request: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> TokenResponse:
    """Log in a regular user and get an access/refresh token pair."""
    return await _login(request, auth_service, "user")


@router.post("/refresh-token", response_model=AccessTokenResponse)
async def refresh_user_token(
    request: RefreshRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> AccessTokenResponse:
    """Get a new user access token.

    401 when the refresh token expired (log in again), 403 when it was
    revoked, never issued, or already consumed.
    """
    return await _refresh(request, auth_service, "user")


@router.post("/logout", response_model=MessageResponse)
async def logout_user(
    request: LogoutRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    """Revoke both tokens of a user session. Safe to repeat."""
    return await _logout(request, auth_service)


@router.get("/protected", response_model=MessageResponse)
async def user_protected(identity: Identity = Depends(require_role("user"))) -> MessageResponse:
    return MessageResponse(message="you're allowed to be here")


# --- CMS admins ---


@router.post("/cms/register", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def register_admin(
    request: RegisterRequest,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """Register a CMS admin. Returns 409 if the email is taken."""
    return await _register(request, db, "admin")


@router.post("/cms/login", response_model=TokenResponse)
async def login_admin(
    request: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> TokenResponse:
    """Log in a CMS admin and get an access/refresh token pair."""
    return await _login(request, auth_service, "admin")


@router.post("/cms/refresh-token", response_model=AccessTokenResponse)
async def refresh_admin_token(
    request: RefreshRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> AccessTokenResponse:
    """Get a new admin access token."""
    return await _refresh(request, auth_service, "admin")


@router.post("/cms/logout", response_model=MessageResponse)
async def logout_admin(
    request: LogoutRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    """Revoke both tokens of an admin session. Safe to repeat."""
    return await _logout(request, auth_service)


@router.get("/cms/protected", response_model=MessageResponse)
async def admin_protected(identity: Identity = Depends(require_role("admin"))) -> MessageResponse:
    return MessageResponse(message="you're allowed to be here - admin")
