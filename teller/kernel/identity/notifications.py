"""
Hand-off point for single-use tokens that must reach the account owner.

Delivery (email, queue, etc.) lives outside this service; the core only
produces tokens and passes them to a Notifier.
"""

from enum import Enum
from typing import Protocol

from teller.kernel.models.identity import Identity
from teller.logging_config import get_logger

logger = get_logger(__name__)


class NotificationKind(str, Enum):
    VERIFICATION = "verification"
    PASSWORD_RESET = "password_reset"


class Notifier(Protocol):
    async def notify(self, identity: Identity, token: str, kind: NotificationKind) -> None: ...


class LoggingNotifier:
    """Default notifier: records the dispatch without the token."""

    async def notify(self, identity: Identity, token: str, kind: NotificationKind) -> None:
        logger.info(
            "Token ready for delivery",
            extra={"identity_id": str(identity.id), "kind": kind.value},
        )
