"""
Kernel Data Models

SQLAlchemy models owned by the credential core.
"""

from teller.kernel.models.base import Base, generate_uuid, utcnow, ensure_utc
from teller.kernel.models.identity import Identity

__all__ = [
    "Base",
    "generate_uuid",
    "utcnow",
    "ensure_utc",
    "Identity",
]
