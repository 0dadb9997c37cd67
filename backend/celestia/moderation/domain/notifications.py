"""User-facing notifications emitted after lifecycle changes commit."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Mapping, Protocol

logger = logging.getLogger(__name__)


class NotificationKind(str, Enum):
    APPROVED = "approved"
    REJECTED = "rejected"
    WARNED = "warned"
    SUSPENDED = "suspended"
    BANNED = "banned"
    REINSTATED = "reinstated"
    SUSPENSION_EXPIRED = "suspension_expired"
    APPEAL_SUBMITTED = "appeal_submitted"
    APPEAL_APPROVED = "appeal_approved"
    APPEAL_DENIED = "appeal_denied"


class NotificationDispatcher(Protocol):
    async def notify(self, user_id: str, kind: NotificationKind, payload: Mapping[str, Any]) -> bool:
        """Hand a notification to the delivery pipeline.

        Returns ``False`` when the message was not accepted. May raise on
        transport errors; callers treat both the same way.
        """
        ...


class NullDispatcher(NotificationDispatcher):
    """Dispatcher used when no delivery pipeline is wired."""

    async def notify(self, user_id: str, kind: NotificationKind, payload: Mapping[str, Any]) -> bool:
        logger.debug("notification dropped", extra={"user_id": user_id, "kind": kind.value})
        return True
