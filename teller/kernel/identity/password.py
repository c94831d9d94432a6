"""
Password hashing using PBKDF2-HMAC-SHA256 with a per-identity salt.
"""

import base64
import binascii
import hashlib
import hmac
import secrets
from typing import NamedTuple

# Fixed derivation parameters; changing any of them invalidates stored hashes
PBKDF2_ALGORITHM = "sha256"
PBKDF2_ITERATIONS = 10_000
SALT_SIZE = 16
DIGEST_SIZE = 32


class StoredHashCorruptedError(Exception):
    """A stored digest or salt could not be decoded."""


class HashedPassword(NamedTuple):
    """Base64-encoded digest and salt, stored and replaced together."""

    digest: str
    salt: str


class SecretHasher:
    """Password hashing service."""

    @staticmethod
    def _derive(password: str, salt: bytes) -> bytes:
        return hashlib.pbkdf2_hmac(
            PBKDF2_ALGORITHM,
            password.encode("utf-8"),
            salt,
            PBKDF2_ITERATIONS,
            dklen=DIGEST_SIZE,
        )

    @staticmethod
    def _decode(value: str, field: str) -> bytes:
        if not value:
            raise StoredHashCorruptedError(f"Stored {field} is empty")
        try:
            return base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError) as e:
            raise StoredHashCorruptedError(f"Stored {field} is not valid base64") from e

    @staticmethod
    def hash(password: str) -> HashedPassword:
        """
        Hash a password with a fresh random salt.

        Args:
            password: Plain text password

        Returns:
            HashedPassword with base64 digest and salt
        """
        salt = secrets.token_bytes(SALT_SIZE)
        digest = SecretHasher._derive(password, salt)
        return HashedPassword(
            digest=base64.b64encode(digest).decode("ascii"),
            salt=base64.b64encode(salt).decode("ascii"),
        )

    @staticmethod
    def verify(password: str, digest: str, salt: str) -> bool:
        """
        Verify a password against a stored digest and salt.

        Args:
            password: Plain text password to verify
            digest: Stored base64 digest
            salt: Stored base64 salt

        Returns:
            True if password matches, False otherwise

        Raises:
            StoredHashCorruptedError: If the stored values cannot be decoded
        """
        expected = SecretHasher._decode(digest, "digest")
        salt_bytes = SecretHasher._decode(salt, "salt")
        computed = SecretHasher._derive(password, salt_bytes)
        return hmac.compare_digest(computed, expected)


# Convenience functions
def hash_password(password: str) -> HashedPassword:
    """Hash a password."""
    return SecretHasher.hash(password)


def verify_password(password: str, digest: str, salt: str) -> bool:
    """Verify a password."""
    return SecretHasher.verify(password, digest, salt)
