"""
Session credential issuance and bearer-token validation.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from jose import JWTError, jwt
from pydantic import BaseModel

from teller.config import get_settings
from teller.kernel.models.identity import Identity

# Every authenticated caller carries this single role
DEFAULT_ROLE = "User"
ACCESS_TOKEN_TYPE = "access"


class SessionClaims(BaseModel):
    """Decoded session token claims."""

    sub: str  # Identity ID
    email: str
    name: str
    role: str
    jti: str  # Token ID, reserved for revocation
    iss: str
    aud: str
    exp: datetime
    iat: datetime


class SessionToken(BaseModel):
    """Signed session credential handed back to the caller."""

    access_token: str
    token_type: str = "bearer"
    expires_at: datetime
    expires_in: int  # Seconds until the token expires


class SessionTokenIssuer:
    """
    Builds signed, time-bounded session credentials.

    The signing key is symmetric, so any instance configured with the same
    key validates tokens issued by any other.
    """

    def __init__(
        self,
        secret_key: Optional[str] = None,
        algorithm: Optional[str] = None,
        issuer: Optional[str] = None,
        audience: Optional[str] = None,
        expire_minutes: Optional[int] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        settings = get_settings()
        self.secret_key = secret_key or settings.secret_key
        self.algorithm = algorithm or settings.algorithm
        self.issuer = issuer or settings.jwt_issuer
        self.audience = audience or settings.jwt_audience
        self.expire_minutes = expire_minutes or settings.access_token_expire_minutes
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def issue(self, identity: Identity) -> SessionToken:
        """
        Create a session token for an authenticated identity.

        Args:
            identity: The identity the token speaks for

        Returns:
            SessionToken with the encoded JWT and its expiry

        Raises:
            ValueError: If the identity has not been assigned an ID
        """
        if identity.id is None:
            raise ValueError("Cannot issue a session token for an identity without an ID")

        now = self._clock()
        # JWT timestamps have second resolution
        now = now.replace(microsecond=0)
        expire = now + timedelta(minutes=self.expire_minutes)

        payload = {
            "sub": str(identity.id),
            "email": identity.email,
            "name": identity.display_name,
            "jti": str(uuid.uuid4()),
            "role": DEFAULT_ROLE,
            "iss": self.issuer,
            "aud": self.audience,
            "iat": now,
            "exp": expire,
            "type": ACCESS_TOKEN_TYPE,
        }

        token = jwt.encode(payload, self.secret_key, algorithm=self.algorithm)
        return SessionToken(
            access_token=token,
            expires_at=expire,
            expires_in=int((expire - now).total_seconds()),
        )

    def verify_access_token(self, token: str) -> Optional[SessionClaims]:
        """
        Verify and decode a session token.

        Checks signature, expiry, issuer, audience and token type.

        Args:
            token: Encoded JWT from the Authorization header

        Returns:
            SessionClaims if valid, None otherwise
        """
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                audience=self.audience,
                issuer=self.issuer,
            )
        except JWTError:
            return None

        if payload.get("type") != ACCESS_TOKEN_TYPE or not payload.get("sub"):
            return None

        try:
            return SessionClaims(
                sub=payload["sub"],
                email=payload["email"],
                name=payload["name"],
                role=payload["role"],
                jti=payload["jti"],
                iss=payload["iss"],
                aud=payload["aud"],
                exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
                iat=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            )
        except KeyError:
            return None


# Default issuer instance
_session_issuer: Optional[SessionTokenIssuer] = None


def get_session_issuer() -> SessionTokenIssuer:
    """Get or create the default session token issuer."""
    global _session_issuer
    if _session_issuer is None:
        _session_issuer = SessionTokenIssuer()
    return _session_issuer


def verify_access_token(token: str) -> Optional[SessionClaims]:
    """Verify a session token with the default issuer."""
    return get_session_issuer().verify_access_token(token)
