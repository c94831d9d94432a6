"""
FastAPI dependencies for database sessions, the credential service and
bearer authentication.
"""

import uuid
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from teller.database import get_db
from teller.kernel.identity.identity_service import CredentialService
from teller.kernel.identity.jwt import SessionClaims, verify_access_token
from teller.kernel.identity.store import SqlAlchemyIdentityStore


# Security scheme
security = HTTPBearer(auto_error=False)

DbSession = Annotated[AsyncSession, Depends(get_db)]


def get_credential_service(db: DbSession) -> CredentialService:
    """Credential service bound to the request's session."""
    return CredentialService(SqlAlchemyIdentityStore(db))


CredentialServiceDep = Annotated[CredentialService, Depends(get_credential_service)]


async def get_current_claims(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
) -> SessionClaims:
    """Validate the bearer token or raise 401."""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    claims = verify_access_token(credentials.credentials)
    if not claims:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        uuid.UUID(claims.sub)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return claims


CurrentClaims = Annotated[SessionClaims, Depends(get_current_claims)]
