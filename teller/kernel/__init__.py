"""
Kernel Layer

The credential core: identity records, password hashing, single-use tokens
and session issuance. Everything outside this package reaches identities only
through CredentialService or the session token claims.
"""

from teller.kernel.models import Identity

__all__ = [
    "Identity",
]
