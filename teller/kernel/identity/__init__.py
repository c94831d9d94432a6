"""
Identity Core - credentials, single-use tokens and session issuance.
"""

from teller.kernel.identity.password import (
    SecretHasher,
    HashedPassword,
    StoredHashCorruptedError,
    hash_password,
    verify_password,
)
from teller.kernel.identity.jwt import (
    SessionTokenIssuer,
    SessionToken,
    SessionClaims,
    get_session_issuer,
    verify_access_token,
)
from teller.kernel.identity.results import AuthErrorKind, AuthResult
from teller.kernel.identity.store import (
    IdentityStore,
    SqlAlchemyIdentityStore,
    DuplicateIdentityError,
)
from teller.kernel.identity.notifications import Notifier, NotificationKind, LoggingNotifier
from teller.kernel.identity.identity_service import CredentialService, AuthSession

__all__ = [
    "SecretHasher",
    "HashedPassword",
    "StoredHashCorruptedError",
    "hash_password",
    "verify_password",
    "SessionTokenIssuer",
    "SessionToken",
    "SessionClaims",
    "get_session_issuer",
    "verify_access_token",
    "AuthErrorKind",
    "AuthResult",
    "IdentityStore",
    "SqlAlchemyIdentityStore",
    "DuplicateIdentityError",
    "Notifier",
    "NotificationKind",
    "LoggingNotifier",
    "CredentialService",
    "AuthSession",
]
