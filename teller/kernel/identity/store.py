"""
Identity persistence.

IdentityStore is the narrow contract the credential core depends on;
SqlAlchemyIdentityStore implements it on an AsyncSession. Uniqueness of email
and username is enforced by database constraints, and single-use tokens are
consumed with guarded UPDATEs, so concurrent requests cannot both succeed.
"""

import uuid
from datetime import datetime
from typing import Optional, Protocol

from sqlalchemy import exists, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from teller.kernel.identity.password import HashedPassword
from teller.kernel.models.identity import Identity


class DuplicateIdentityError(Exception):
    """Raised by create() when a uniqueness constraint rejects the insert."""

    def __init__(self, field: str):
        super().__init__(f"An identity with this {field} already exists")
        self.field = field


def normalize_email(email: str) -> str:
    return email.strip().lower()


class IdentityStore(Protocol):
    """Storage contract consumed by CredentialService."""

    async def find_by_id(self, identity_id: uuid.UUID) -> Optional[Identity]: ...

    async def find_by_email(self, email: str) -> Optional[Identity]: ...

    async def find_by_username(self, username: str) -> Optional[Identity]: ...

    async def find_by_verification_token(self, token: str) -> Optional[Identity]: ...

    async def exists_by_email(self, email: str) -> bool: ...

    async def exists_by_username(self, username: str) -> bool: ...

    async def create(self, identity: Identity) -> Identity: ...

    async def update(self, identity: Identity) -> Identity: ...

    async def consume_verification_token(self, identity_id: uuid.UUID, token: str) -> bool: ...

    async def consume_reset_token(
        self,
        identity_id: uuid.UUID,
        token: str,
        hashed: HashedPassword,
        now: datetime,
    ) -> bool: ...


class SqlAlchemyIdentityStore:
    """IdentityStore backed by the users table."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_by_id(self, identity_id: uuid.UUID) -> Optional[Identity]:
        """Get an identity by ID."""
        return await self.session.get(Identity, identity_id)

    async def find_by_email(self, email: str) -> Optional[Identity]:
        """Get an identity by email, case-insensitively."""
        query = select(Identity).where(Identity.email == normalize_email(email))
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def find_by_username(self, username: str) -> Optional[Identity]:
        """Get an identity by username, case-insensitively."""
        query = select(Identity).where(
            func.lower(Identity.username) == username.strip().lower()
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def find_by_verification_token(self, token: str) -> Optional[Identity]:
        """Get the identity holding a pending email-verification token."""
        if not token:
            return None
        query = select(Identity).where(Identity.email_verification_token == token)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def exists_by_email(self, email: str) -> bool:
        query = select(exists().where(Identity.email == normalize_email(email)))
        result = await self.session.execute(query)
        return bool(result.scalar())

    async def exists_by_username(self, username: str) -> bool:
        query = select(
            exists().where(func.lower(Identity.username) == username.strip().lower())
        )
        result = await self.session.execute(query)
        return bool(result.scalar())

    async def create(self, identity: Identity) -> Identity:
        """
        Insert a new identity.

        Raises:
            DuplicateIdentityError: If the email or username is already taken,
                including when a concurrent registration won the race.
        """
        email = normalize_email(identity.email)
        username = identity.username.strip()
        identity.email = email
        identity.username = username
        self.session.add(identity)
        try:
            await self.session.flush()
        except IntegrityError as e:
            await self.session.rollback()
            if await self.exists_by_email(email):
                raise DuplicateIdentityError("email") from e
            if await self.exists_by_username(username):
                raise DuplicateIdentityError("username") from e
            raise
        return identity

    async def update(self, identity: Identity) -> Identity:
        """Persist changes made to a loaded identity."""
        self.session.add(identity)
        await self.session.flush()
        return identity

    async def consume_verification_token(self, identity_id: uuid.UUID, token: str) -> bool:
        """
        Mark the email verified and clear the token, only if the token is
        still the one stored.

        Returns:
            True if this call consumed the token
        """
        stmt = (
            update(Identity)
            .where(
                Identity.id == identity_id,
                Identity.email_verification_token == token,
            )
            .values(email_verified=True, email_verification_token=None)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return await self._reload_if_changed(identity_id, result.rowcount)

    async def consume_reset_token(
        self,
        identity_id: uuid.UUID,
        token: str,
        hashed: HashedPassword,
        now: datetime,
    ) -> bool:
        """
        Replace the password and clear the reset fields, only if the token is
        still stored and has not expired at ``now``.

        Returns:
            True if this call consumed the token
        """
        stmt = (
            update(Identity)
            .where(
                Identity.id == identity_id,
                Identity.password_reset_token == token,
                Identity.password_reset_expiry > now,
            )
            .values(
                password_hash=hashed.digest,
                password_salt=hashed.salt,
                password_reset_token=None,
                password_reset_expiry=None,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return await self._reload_if_changed(identity_id, result.rowcount)

    async def _reload_if_changed(self, identity_id: uuid.UUID, rowcount: int) -> bool:
        # The guarded UPDATE bypasses the identity map; refresh any loaded copy
        if rowcount != 1:
            return False
        await self.session.get(Identity, identity_id, populate_existing=True)
        return True
