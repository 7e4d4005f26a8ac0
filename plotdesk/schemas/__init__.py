# Plotdesk Pydantic Schemas
from plotdesk.schemas.account import ChangePasswordRequest, ProfileResponse, ProfileUpdateRequest
from plotdesk.schemas.auth import (
    AccessTokenResponse,
    LoginRequest,
    LogoutRequest,
    MessageResponse,
    RefreshRequest,
    RegisterRequest,
    TokenResponse,
)

__all__ = [
    "AccessTokenResponse",
    "ChangePasswordRequest",
    "LoginRequest",
    "LogoutRequest",
    "MessageResponse",
    "ProfileResponse",
    "ProfileUpdateRequest",
    "RefreshRequest",
    "RegisterRequest",
    "TokenResponse",
]
