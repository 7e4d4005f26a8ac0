"""Account endpoints: profile of the caller, password reset, deletion."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from plotdesk.api.deps import forbid_observer, get_current_identity, get_mailer, to_http_exception
from plotdesk.core import get_db
from plotdesk.models.account import Account
from plotdesk.schemas.account import (
    ChangePasswordRequest,
    ProfileResponse,
    ProfileUpdateRequest,
    RemindPasswordRequest,
    RenewPasswordRequest,
)
from plotdesk.schemas.auth import MessageResponse
from plotdesk.services.account import AccountService
from plotdesk.services.errors import AuthError
from plotdesk.services.mailer import Mailer
from plotdesk.services.password_reset import PasswordResetService
from plotdesk.services.tokens import Identity

router = APIRouter(prefix="/users", tags=["users"])


async def _current_account(identity: Identity, service: AccountService) -> Account:
    try:
        return await service.get_existing(identity.id)
    except AuthError as e:
        raise to_http_exception(e) from e


@router.get("/me", response_model=ProfileResponse)
async def get_profile(
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
) -> ProfileResponse:
    """Get the caller's profile."""
    account = await _current_account(identity, AccountService(db))
    return ProfileResponse.model_validate(account)


@router.put(
    "/me",
    response_model=ProfileResponse,
    dependencies=[Depends(forbid_observer())],
)
async def update_profile(
    request: ProfileUpdateRequest,
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
) -> ProfileResponse:
    """Update the caller's profile. The observer account may not."""
    service = AccountService(db)
    account = await _current_account(identity, service)
    try:
        account = await service.update_profile(
            account,
            name=request.name,
            surname=request.surname,
            email=request.email,
        )
    except AuthError as e:
        raise to_http_exception(e) from e
    return ProfileResponse.model_validate(account)


@router.put(
    "/me/password",
    response_model=MessageResponse,
    dependencies=[Depends(forbid_observer())],
)
async def change_password(
    request: ChangePasswordRequest,
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """Change the caller's password. The observer account may not."""
    service = AccountService(db)
    account = await _current_account(identity, service)
    await service.set_password(account, request.password)
    return MessageResponse(message="Password changed successfully")


@router.delete(
    "/me",
    response_model=MessageResponse,
    dependencies=[Depends(forbid_observer())],
)
async def delete_account(
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """Delete the caller's account. The observer account may not."""
    service = AccountService(db)
    account = await _current_account(identity, service)
    try:
        await service.delete(account)
    except AuthError as e:
        raise to_http_exception(e) from e
    return MessageResponse(message="Account was deleted")


@router.post("/remind-password", response_model=MessageResponse)
async def remind_password(
    request: RemindPasswordRequest,
    db: AsyncSession = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
) -> MessageResponse:
    """Mail a single-use password reset link to a player account."""
    try:
        await PasswordResetService(db).request_reset(request.email, mailer)
    except AuthError as e:
        raise to_http_exception(e) from e
    return MessageResponse(
        message=(
            "We've just sent you a link that will allow you to change your password. "
            "Check your email."
        )
    )


@router.post("/renew-password/{token}", response_model=MessageResponse)
async def renew_password(
    token: str,
    request: RenewPasswordRequest,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """Set a new password through a reset link."""
    try:
        await PasswordResetService(db).renew_password(token, request.password)
    except AuthError as e:
        raise to_http_exception(e) from e
    return MessageResponse(message="Password updated successfully")
