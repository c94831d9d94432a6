"""
Credential use cases: registration, login, password recovery and email
verification.
"""

import asyncio
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError

from teller.config import Settings, get_settings
from teller.kernel.identity.jwt import SessionToken, SessionTokenIssuer, get_session_issuer
from teller.kernel.identity.notifications import LoggingNotifier, NotificationKind, Notifier
from teller.kernel.identity.password import HashedPassword, SecretHasher, StoredHashCorruptedError
from teller.kernel.identity.results import AuthErrorKind, AuthResult
from teller.kernel.identity.store import DuplicateIdentityError, IdentityStore
from teller.kernel.identity.tokens import TokenFactory, generate_token, tokens_match
from teller.kernel.models.base import ensure_utc, generate_uuid, utcnow
from teller.kernel.models.identity import Identity
from teller.logging_config import get_logger

logger = get_logger(__name__)

_DUPLICATE_KINDS = {
    "email": AuthErrorKind.DUPLICATE_EMAIL,
    "username": AuthErrorKind.DUPLICATE_USERNAME,
}

# Stand-in credential checked when the email is unknown
_DUMMY_HASH: HashedPassword = SecretHasher.hash("teller-unknown-identity")


@dataclass
class AuthSession:
    """An authenticated identity and the session token issued for it."""

    identity: Identity
    token: SessionToken


class CredentialService:
    """
    Orchestrates the credential use cases over an IdentityStore.

    Every public method returns an AuthResult; expected failures are never
    raised. Storage faults are logged and reported as AuthErrorKind.INTERNAL.
    """

    def __init__(
        self,
        store: IdentityStore,
        issuer: Optional[SessionTokenIssuer] = None,
        notifier: Optional[Notifier] = None,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None,
        token_factory: Optional[TokenFactory] = None,
    ):
        self.store = store
        self.issuer = issuer or get_session_issuer()
        self.notifier = notifier or LoggingNotifier()
        self.settings = settings or get_settings()
        self.clock = clock or utcnow
        self.token_factory = token_factory or generate_token

    async def register(
        self,
        username: str,
        email: str,
        password: str,
        confirm_password: str,
    ) -> AuthResult[AuthSession]:
        """
        Create a new identity and open a session for it.

        Args:
            username: Unique (case-insensitive) display name
            email: Unique (case-insensitive) email address
            password: Plain text password
            confirm_password: Must equal password

        Returns:
            AuthResult with the new AuthSession, or PASSWORD_MISMATCH,
            DUPLICATE_EMAIL, DUPLICATE_USERNAME, INTERNAL
        """
        if password != confirm_password:
            return AuthResult.failure(AuthErrorKind.PASSWORD_MISMATCH)

        try:
            if await self.store.exists_by_email(email):
                return AuthResult.failure(AuthErrorKind.DUPLICATE_EMAIL)
            if await self.store.exists_by_username(username):
                return AuthResult.failure(AuthErrorKind.DUPLICATE_USERNAME)

            hashed = await asyncio.to_thread(SecretHasher.hash, password)
            verification_token = self.token_factory()
            identity = Identity(
                id=generate_uuid(),
                username=username,
                email=email,
                password_hash=hashed.digest,
                password_salt=hashed.salt,
                email_verified=False,
                email_verification_token=verification_token,
                created_at=self.clock(),
            )

            # The unique constraints are authoritative over the checks above
            try:
                identity = await self.store.create(identity)
            except DuplicateIdentityError as e:
                logger.info("Registration lost a uniqueness race", extra={"field": e.field})
                return AuthResult.failure(_DUPLICATE_KINDS[e.field])
        except SQLAlchemyError:
            logger.exception("Storage failure during registration")
            return AuthResult.failure(AuthErrorKind.INTERNAL)

        logger.info("Identity registered", extra={"identity_id": str(identity.id)})
        await self._notify(identity, verification_token, NotificationKind.VERIFICATION)

        return AuthResult.success(AuthSession(identity=identity, token=self.issuer.issue(identity)))

    async def login(self, email: str, password: str) -> AuthResult[AuthSession]:
        """
        Authenticate by email and password.

        Unknown email and wrong password both yield INVALID_CREDENTIALS,
        and both run one hash verification.
        EMAIL_NOT_VERIFIED is only reported once the password is confirmed.
        """
        try:
            identity = await self.store.find_by_email(email)
            if identity is None:
                await asyncio.to_thread(
                    SecretHasher.verify, password, _DUMMY_HASH.digest, _DUMMY_HASH.salt
                )
                logger.info("Login failed")
                return AuthResult.failure(AuthErrorKind.INVALID_CREDENTIALS)

            try:
                valid = await asyncio.to_thread(
                    SecretHasher.verify, password, identity.password_hash, identity.password_salt
                )
            except StoredHashCorruptedError:
                logger.error(
                    "Stored password hash is corrupted",
                    extra={"identity_id": str(identity.id)},
                )
                return AuthResult.failure(AuthErrorKind.INVALID_CREDENTIALS)

            if not valid:
                logger.info("Login failed")
                return AuthResult.failure(AuthErrorKind.INVALID_CREDENTIALS)

            if self.settings.require_email_verification and not identity.email_verified:
                return AuthResult.failure(AuthErrorKind.EMAIL_NOT_VERIFIED)

            identity.last_login_at = self.clock()
            identity = await self.store.update(identity)
        except SQLAlchemyError:
            logger.exception("Storage failure during login")
            return AuthResult.failure(AuthErrorKind.INTERNAL)

        logger.info("Login succeeded", extra={"identity_id": str(identity.id)})
        return AuthResult.success(AuthSession(identity=identity, token=self.issuer.issue(identity)))

    async def forgot_password(self, email: str) -> AuthResult[None]:
        """
        Issue a password-reset token.

        Succeeds whether or not the email is registered; an unknown email
        causes no mutation and no notification.
        """
        try:
            identity = await self.store.find_by_email(email)
            if identity is None:
                return AuthResult.success()

            reset_token = self.token_factory()
            identity.password_reset_token = reset_token
            identity.password_reset_expiry = self.clock() + timedelta(
                hours=self.settings.password_reset_expire_hours
            )
            identity = await self.store.update(identity)
        except SQLAlchemyError:
            logger.exception("Storage failure during password reset request")
            return AuthResult.failure(AuthErrorKind.INTERNAL)

        logger.info("Password reset requested", extra={"identity_id": str(identity.id)})
        await self._notify(identity, reset_token, NotificationKind.PASSWORD_RESET)
        return AuthResult.success()

    async def reset_password(
        self,
        email: str,
        token: str,
        new_password: str,
        confirm_new_password: str,
    ) -> AuthResult[None]:
        """
        Replace the password using a reset token.

        The token is expired when now >= expiry.

        Returns:
            AuthResult, or PASSWORD_MISMATCH, INVALID_TOKEN, TOKEN_EXPIRED,
            INTERNAL
        """
        if new_password != confirm_new_password:
            return AuthResult.failure(AuthErrorKind.PASSWORD_MISMATCH)

        try:
            identity = await self.store.find_by_email(email)
            if identity is None or not tokens_match(identity.password_reset_token, token):
                return AuthResult.failure(AuthErrorKind.INVALID_TOKEN)

            now = self.clock()
            expiry = identity.password_reset_expiry
            if expiry is None or now >= ensure_utc(expiry):
                return AuthResult.failure(AuthErrorKind.TOKEN_EXPIRED)

            hashed = await asyncio.to_thread(SecretHasher.hash, new_password)
            consumed = await self.store.consume_reset_token(identity.id, token, hashed, now)
        except SQLAlchemyError:
            logger.exception("Storage failure during password reset")
            return AuthResult.failure(AuthErrorKind.INTERNAL)

        if not consumed:
            # Another request used or replaced the token first
            return AuthResult.failure(AuthErrorKind.INVALID_TOKEN)

        logger.info("Password reset completed", extra={"identity_id": str(identity.id)})
        return AuthResult.success()

    async def verify_email(self, token: str) -> AuthResult[None]:
        """Consume an email-verification token and mark the email verified."""
        try:
            identity = await self.store.find_by_verification_token(token)
            if identity is None or not tokens_match(identity.email_verification_token, token):
                return AuthResult.failure(AuthErrorKind.INVALID_TOKEN)

            consumed = await self.store.consume_verification_token(identity.id, token)
        except SQLAlchemyError:
            logger.exception("Storage failure during email verification")
            return AuthResult.failure(AuthErrorKind.INTERNAL)

        if not consumed:
            return AuthResult.failure(AuthErrorKind.INVALID_TOKEN)

        logger.info("Email verified", extra={"identity_id": str(identity.id)})
        return AuthResult.success()

    async def get_identity(self, identity_id: uuid.UUID) -> AuthResult[Identity]:
        """Look up an identity by ID."""
        try:
            identity = await self.store.find_by_id(identity_id)
        except SQLAlchemyError:
            logger.exception("Storage failure during identity lookup")
            return AuthResult.failure(AuthErrorKind.INTERNAL)

        if identity is None:
            return AuthResult.failure(AuthErrorKind.NOT_FOUND)
        return AuthResult.success(identity)

    async def _notify(self, identity: Identity, token: str, kind: NotificationKind) -> None:
        # Delivery problems never change the outcome of the use case
        try:
            await self.notifier.notify(identity, token, kind)
        except Exception:
            logger.exception(
                "Notifier failed",
                extra={"identity_id": str(identity.id), "kind": kind.value},
            )
