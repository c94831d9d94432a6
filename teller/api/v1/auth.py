"""
Authentication endpoints.
"""

import uuid

from fastapi import APIRouter, HTTPException, Query, status

from teller.api.deps import CredentialServiceDep, CurrentClaims
from teller.kernel.identity.identity_service import AuthSession
from teller.kernel.identity.results import AuthErrorKind, AuthResult
from teller.schemas.auth import (
    AuthResponse,
    ForgotPasswordRequest,
    IdentityResponse,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
)
from teller.schemas.common import SuccessResponse

router = APIRouter()

ERROR_STATUS = {
    AuthErrorKind.DUPLICATE_EMAIL: status.HTTP_409_CONFLICT,
    AuthErrorKind.DUPLICATE_USERNAME: status.HTTP_409_CONFLICT,
    AuthErrorKind.INVALID_CREDENTIALS: status.HTTP_401_UNAUTHORIZED,
    AuthErrorKind.EMAIL_NOT_VERIFIED: status.HTTP_403_FORBIDDEN,
    AuthErrorKind.INVALID_TOKEN: status.HTTP_400_BAD_REQUEST,
    AuthErrorKind.TOKEN_EXPIRED: status.HTTP_400_BAD_REQUEST,
    AuthErrorKind.PASSWORD_MISMATCH: status.HTTP_400_BAD_REQUEST,
    AuthErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    AuthErrorKind.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def _raise_for(result: AuthResult) -> None:
    """Translate a failed AuthResult into an HTTPException."""
    if result.ok:
        return
    headers = None
    if result.error == AuthErrorKind.INVALID_CREDENTIALS:
        headers = {"WWW-Authenticate": "Bearer"}
    raise HTTPException(
        status_code=ERROR_STATUS[result.error],
        detail=result.error.message,
        headers=headers,
    )


def _auth_response(session: AuthSession) -> AuthResponse:
    return AuthResponse(
        access_token=session.token.access_token,
        token_type=session.token.token_type,
        expires_at=session.token.expires_at,
        expires_in=session.token.expires_in,
        user=IdentityResponse.model_validate(session.identity),
    )


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(data: RegisterRequest, service: CredentialServiceDep):
    """
    Register a new account.

    Returns a session token on success.
    """
    result = await service.register(
        username=data.username,
        email=data.email,
        password=data.password,
        confirm_password=data.confirm_password,
    )
    _raise_for(result)
    return _auth_response(result.value)


@router.post("/login", response_model=AuthResponse)
async def login(data: LoginRequest, service: CredentialServiceDep):
    """Authenticate with email and password."""
    result = await service.login(email=data.email, password=data.password)
    _raise_for(result)
    return _auth_response(result.value)


@router.post("/forgot-password", response_model=SuccessResponse)
async def forgot_password(data: ForgotPasswordRequest, service: CredentialServiceDep):
    """
    Request a password reset.

    Responds identically whether or not the email is registered.
    """
    result = await service.forgot_password(email=data.email)
    _raise_for(result)
    return SuccessResponse(
        message="If the email is registered, password reset instructions have been sent"
    )


@router.post("/reset-password", response_model=SuccessResponse)
async def reset_password(data: ResetPasswordRequest, service: CredentialServiceDep):
    """Reset a password using a reset token."""
    result = await service.reset_password(
        email=data.email,
        token=data.token,
        new_password=data.new_password,
        confirm_new_password=data.confirm_new_password,
    )
    _raise_for(result)
    return SuccessResponse(message="Password has been reset")


@router.get("/verify-email", response_model=SuccessResponse)
async def verify_email(service: CredentialServiceDep, token: str = Query(..., min_length=1)):
    """Verify an email address with the token sent at registration."""
    result = await service.verify_email(token)
    _raise_for(result)
    return SuccessResponse(message="Email verified")


@router.get("/me", response_model=IdentityResponse)
async def get_current_identity(claims: CurrentClaims, service: CredentialServiceDep):
    """Get the identity behind the bearer token."""
    result = await service.get_identity(uuid.UUID(claims.sub))
    _raise_for(result)
    return IdentityResponse.model_validate(result.value)
