"""
Outcome values returned by the credential use cases.

Expected failures are reported as an AuthErrorKind rather than raised, so the
transport layer can switch on the kind.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class AuthErrorKind(str, Enum):
    """Every failure a credential use case can report."""

    DUPLICATE_EMAIL = "duplicate_email"
    DUPLICATE_USERNAME = "duplicate_username"
    INVALID_CREDENTIALS = "invalid_credentials"
    EMAIL_NOT_VERIFIED = "email_not_verified"
    INVALID_TOKEN = "invalid_token"
    TOKEN_EXPIRED = "token_expired"
    NOT_FOUND = "not_found"
    PASSWORD_MISMATCH = "password_mismatch"
    INTERNAL = "internal"

    @property
    def message(self) -> str:
        return _MESSAGES[self]


_MESSAGES = {
    AuthErrorKind.DUPLICATE_EMAIL: "Email is already in use",
    AuthErrorKind.DUPLICATE_USERNAME: "Username is already in use",
    # Same text for unknown email and wrong password
    AuthErrorKind.INVALID_CREDENTIALS: "Invalid email or password",
    AuthErrorKind.EMAIL_NOT_VERIFIED: "Email not verified",
    AuthErrorKind.INVALID_TOKEN: "Invalid token",
    AuthErrorKind.TOKEN_EXPIRED: "Token has expired",
    AuthErrorKind.NOT_FOUND: "Identity not found",
    AuthErrorKind.PASSWORD_MISMATCH: "Passwords do not match",
    AuthErrorKind.INTERNAL: "Internal server error",
}


@dataclass(frozen=True)
class AuthResult(Generic[T]):
    """Either a value or exactly one error kind."""

    value: Optional[T] = None
    error: Optional[AuthErrorKind] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Optional[T] = None) -> "AuthResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: AuthErrorKind) -> "AuthResult[T]":
        return cls(error=error)
