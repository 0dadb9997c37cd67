"""Appeal intake and review for banned and suspended accounts."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Sequence
from uuid import uuid4

from celestia.moderation.domain.errors import InvalidTransition, NotFound, ValidationError
from celestia.moderation.domain.lifecycle_service import AccountLifecycleService
from celestia.moderation.domain.models import Appeal, AppealStatus, AppealType
from celestia.moderation.domain.notifications import NotificationDispatcher, NotificationKind, NullDispatcher
from celestia.moderation.domain.repository import ModerationRepository, guarded
from celestia.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

_DECISIONS = {
    "approve": AppealStatus.APPROVED,
    "approved": AppealStatus.APPROVED,
    "deny": AppealStatus.DENIED,
    "denied": AppealStatus.DENIED,
}


@dataclass
class AppealService:
    repository: ModerationRepository
    lifecycle: AccountLifecycleService
    notifications: NotificationDispatcher = field(default_factory=NullDispatcher)
    staff_recipient_ids: Sequence[str] = tuple()
    min_message_length: int = 30

    async def submit_appeal(self, *, user_id: str, message: str | None) -> Appeal:
        account = await self.lifecycle.get_account(user_id)
        if account.is_banned:
            appeal_type = AppealType.BAN
            original_reason = account.ban_reason or ""
        elif account.is_suspended:
            appeal_type = AppealType.SUSPENSION
            original_reason = account.suspension_reason or ""
        else:
            obs_metrics.MOD_APPEALS_TOTAL.labels(stage="submit", outcome="not_sanctioned").inc()
            raise InvalidTransition("account_not_sanctioned")

        text = (message or "").strip()
        if len(text) < self.min_message_length:
            obs_metrics.MOD_APPEALS_TOTAL.labels(stage="submit", outcome="too_short").inc()
            raise ValidationError(
                "appeal_message_too_short",
                f"appeal message must be at least {self.min_message_length} characters",
            )
        existing = await guarded("find_pending_appeal", self.repository.find_pending_appeal(user_id))
        if existing is not None:
            obs_metrics.MOD_APPEALS_TOTAL.labels(stage="submit", outcome="duplicate").inc()
            raise ValidationError("appeal_already_pending")

        appeal = Appeal(
            id=str(uuid4()),
            user_id=user_id,
            type=appeal_type,
            original_reason=original_reason,
            appeal_message=text,
            submitted_at=self.lifecycle.clock(),
        )
        stored = await guarded("create_appeal", self.repository.create_appeal(appeal))
        obs_metrics.MOD_APPEALS_TOTAL.labels(stage="submit", outcome="accepted").inc()
        await self._audit(user_id, "appeal.submit", stored.id, {"type": stored.type.value})
        await self._notify_staff_of_appeal(stored)
        return stored

    async def review_appeal(
        self,
        *,
        appeal_id: str,
        decision: str | AppealStatus,
        reviewer_id: str | None,
        note: str | None = None,
    ) -> Appeal:
        """Record the outcome of an appeal. The account itself is left untouched."""
        status = decision if isinstance(decision, AppealStatus) else _DECISIONS.get((decision or "").strip().lower())
        if status is None or status is AppealStatus.PENDING:
            raise ValidationError("invalid_decision")
        appeal = await self.get_appeal(appeal_id)
        if appeal.status is not AppealStatus.PENDING:
            raise InvalidTransition("appeal_already_reviewed")
        reviewed = await guarded(
            "review_appeal",
            self.repository.review_appeal(
                appeal_id,
                status=status,
                reviewed_by=reviewer_id,
                reviewed_at=self.lifecycle.clock(),
                review_note=(note or "").strip() or None,
            ),
        )
        obs_metrics.MOD_APPEALS_TOTAL.labels(stage="review", outcome=status.value).inc()
        await self._audit(reviewer_id, "appeal.review", reviewed.id, {"status": status.value})
        kind = NotificationKind.APPEAL_APPROVED if status is AppealStatus.APPROVED else NotificationKind.APPEAL_DENIED
        await self._notify(
            reviewed.user_id,
            kind,
            {"appealId": reviewed.id, "type": reviewed.type.value, "note": reviewed.review_note},
        )
        return reviewed

    async def get_appeal(self, appeal_id: str) -> Appeal:
        appeal = await guarded("get_appeal", self.repository.get_appeal(appeal_id))
        if appeal is None:
            raise NotFound("appeal_not_found")
        return appeal

    async def get_pending_appeal(self, user_id: str) -> Optional[Appeal]:
        return await guarded("find_pending_appeal", self.repository.find_pending_appeal(user_id))

    async def list_appeals(self, *, status: AppealStatus | None = AppealStatus.PENDING, limit: int = 50) -> Sequence[Appeal]:
        return await guarded("list_appeals", self.repository.list_appeals(status=status, limit=limit))

    async def _audit(self, actor_id: str | None, action: str, appeal_id: str, meta: Mapping[str, Any]) -> None:
        try:
            await self.repository.audit(actor_id, action, "appeal", appeal_id, meta)
        except Exception:  # noqa: BLE001 - audit is best effort
            obs_metrics.MOD_AUDIT_FAILURES_TOTAL.labels(action=action).inc()
            logger.exception("failed to write audit entry", extra={"action": action, "appeal_id": appeal_id})

    async def _notify_staff_of_appeal(self, appeal: Appeal) -> None:
        payload = {"appealId": appeal.id, "userId": appeal.user_id, "type": appeal.type.value}
        for recipient in self.staff_recipient_ids:
            await self._notify(recipient, NotificationKind.APPEAL_SUBMITTED, payload)

    async def _notify(self, user_id: str, kind: NotificationKind, payload: Mapping[str, Any]) -> None:
        try:
            delivered = await self.notifications.notify(user_id, kind, payload)
        except Exception:  # noqa: BLE001 - notification failures should not block workflow
            obs_metrics.inc_notification(kind.value, "error")
            logger.exception("failed to dispatch appeal notification", extra={"user_id": user_id, "kind": kind.value})
            return
        obs_metrics.inc_notification(kind.value, "sent" if delivered else "rejected")
