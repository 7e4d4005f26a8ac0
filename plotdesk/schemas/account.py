"""Pydantic schemas for the account profile API."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator


class ProfileResponse(BaseModel):
    """Profile of the authenticated account."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    name: str
    surname: str
    avatar: str | None = None
    role: str
    created_at: datetime


class ProfileUpdateRequest(BaseModel):
    email: EmailStr | None = None
    name: str | None = Field(None, min_length=1, max_length=100)
    surname: str | None = Field(None, min_length=1, max_length=100)

    @model_validator(mode="after")
    def not_empty(self) -> "ProfileUpdateRequest":
        if self.email is None and self.name is None and self.surname is None:
            raise ValueError("Provide at least one of email, name, surname")
        return self


class ChangePasswordRequest(BaseModel):
    """Request for password change."""

    password: str = Field(
        ...,
        min_length=8,
        max_length=128,
        description="New password (minimum 8 characters)",
    )
    repeated_password: str = Field(..., min_length=1, max_length=128)

    @model_validator(mode="after")
    def passwords_match(self) -> "ChangePasswordRequest":
        if self.password != self.repeated_password:
            raise ValueError("Different passwords")
        return self


class RemindPasswordRequest(BaseModel):
    """Request a password reset link by email."""

    email: EmailStr


class RenewPasswordRequest(ChangePasswordRequest):
    """New password submitted through a reset link."""
