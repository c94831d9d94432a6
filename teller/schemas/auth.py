"""
Authentication schemas.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


class RegisterRequest(BaseModel):
    """Account registration request."""

    username: str = Field(..., min_length=3, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=100)
    confirm_password: str

    @field_validator("username", mode="before")
    @classmethod
    def strip_username(cls, v):
        # Length limits apply to the value that gets stored
        if isinstance(v, str):
            return v.strip()
        return v


class LoginRequest(BaseModel):
    """Login request."""

    email: EmailStr
    password: str


class ForgotPasswordRequest(BaseModel):
    """Password reset request."""

    email: EmailStr


class ResetPasswordRequest(BaseModel):
    """Password reset with a previously issued token."""

    email: EmailStr
    token: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=100)
    confirm_new_password: str


class IdentityResponse(BaseModel):
    """Identity summary."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    username: str
    email: str
    email_verified: bool
    created_at: datetime
    last_login_at: Optional[datetime] = None


class AuthResponse(BaseModel):
    """Session token plus the identity it was issued for."""

    access_token: str
    token_type: str = "bearer"
    expires_at: datetime
    expires_in: int
    user: IdentityResponse
