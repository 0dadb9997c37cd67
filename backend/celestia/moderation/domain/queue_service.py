"""Moderation queue of automatically flagged accounts."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterable, Sequence
from uuid import uuid4

from celestia.moderation.domain.errors import InvalidTransition, NotFound, ValidationError
from celestia.moderation.domain.lifecycle_service import AccountLifecycleService
from celestia.moderation.domain.models import Account, QueueEntry
from celestia.moderation.domain.repository import ModerationRepository, guarded
from celestia.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)


def default_ban_reason(entry: QueueEntry) -> str:
    return f"Suspicious profile auto-detected with score {entry.suspicion_score}"


@dataclass
class QueueService:
    repository: ModerationRepository
    lifecycle: AccountLifecycleService
    page_size: int = 50

    async def admit(
        self,
        *,
        user_id: str,
        suspicion_score: float,
        indicators: Iterable[str] = (),
        auto_detected: bool = True,
    ) -> QueueEntry:
        score = float(suspicion_score)
        if math.isnan(score) or score < 0.0 or score > 1.0:
            raise ValidationError("invalid_suspicion_score")
        account = await self.lifecycle.get_account(user_id)
        if account.is_banned:
            raise InvalidTransition("account_banned")
        entry = QueueEntry(
            id=str(uuid4()),
            reported_user_id=user_id,
            suspicion_score=score,
            indicators=[str(item) for item in indicators if str(item).strip()],
            timestamp=self.lifecycle.clock(),
            auto_detected=auto_detected,
        )
        stored = await guarded("enqueue", self.repository.enqueue(entry))
        obs_metrics.MOD_QUEUE_EVENTS_TOTAL.labels(event="admitted").inc()
        return stored

    async def get_entry(self, entry_id: str) -> QueueEntry:
        entry = await guarded("get_queue_entry", self.repository.get_queue_entry(entry_id))
        if entry is None:
            raise NotFound("queue_entry_not_found")
        return entry

    async def dismiss(self, *, entry_id: str, actor_id: str | None) -> QueueEntry:
        entry = await self.get_entry(entry_id)
        removed = await guarded("remove_queue_entry", self.repository.remove_queue_entry(entry_id))
        if not removed:
            raise NotFound("queue_entry_not_found")
        obs_metrics.MOD_QUEUE_EVENTS_TOTAL.labels(event="dismissed").inc()
        logger.info("queue entry dismissed", extra={"entry_id": entry_id, "actor_id": actor_id})
        return entry

    async def ban_from_queue(self, *, entry_id: str, reason: str | None, actor_id: str | None) -> Account:
        """Ban the flagged account. The ban purges all of its queue entries.

        Without a reason the ban cites the detector score that flagged it.
        """
        entry = await self.get_entry(entry_id)
        text = (reason or "").strip() or default_ban_reason(entry)
        account = await self.lifecycle.ban(user_id=entry.reported_user_id, actor_id=actor_id, reason=text)
        obs_metrics.MOD_QUEUE_EVENTS_TOTAL.labels(event="banned").inc()
        return account

    async def list_queue(self, *, limit: int | None = None) -> Sequence[QueueEntry]:
        return await guarded("list_queue", self.repository.list_queue(limit=limit or self.page_size))
