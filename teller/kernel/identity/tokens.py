"""
Single-use secrets for email verification and password reset.
"""

import hmac
import secrets
from typing import Callable, Optional

TOKEN_BYTES = 16

TokenFactory = Callable[[], str]


def generate_token() -> str:
    """Return 32 lowercase hex characters from the OS CSPRNG."""
    return secrets.token_hex(TOKEN_BYTES)


def tokens_match(expected: Optional[str], supplied: Optional[str]) -> bool:
    """Constant-time equality; an absent token never matches."""
    if not expected or not supplied:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), supplied.encode("utf-8"))
