"""
Pydantic schemas for API request/response validation.
"""

from teller.schemas.common import ErrorResponse, SuccessResponse, HealthResponse
from teller.schemas.auth import (
    RegisterRequest,
    LoginRequest,
    ForgotPasswordRequest,
    ResetPasswordRequest,
    IdentityResponse,
    AuthResponse,
)

__all__ = [
    "ErrorResponse",
    "SuccessResponse",
    "HealthResponse",
    "RegisterRequest",
    "LoginRequest",
    "ForgotPasswordRequest",
    "ResetPasswordRequest",
    "IdentityResponse",
    "AuthResponse",
]
