"""Account lifecycle orchestration: plan, commit, then notify."""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterator, Optional, Sequence

from celestia.moderation.domain import transitions
from celestia.moderation.domain.errors import ModerationWorkflowError, NotFound, ValidationError
from celestia.moderation.domain.models import (
    Account,
    AccountCommit,
    AppealType,
    AuditLogEntry,
    ProfileStatus,
    Resolution,
)
from celestia.moderation.domain.notifications import NotificationDispatcher, NotificationKind, NullDispatcher
from celestia.moderation.domain.rejection import build_rejection
from celestia.moderation.domain.repository import ModerationRepository, guarded
from celestia.moderation.domain.transitions import AccountAction
from celestia.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

AUTO_SUSPEND_REASON = "Multiple violations"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@contextmanager
def _track(action: AccountAction) -> Iterator[None]:
    start = time.perf_counter()
    try:
        yield
    except ModerationWorkflowError as exc:
        obs_metrics.inc_transition(action.value, exc.default_code)
        raise
    finally:
        obs_metrics.MOD_ACTION_LATENCY_SECONDS.labels(action=action.value).observe(time.perf_counter() - start)


@dataclass(slots=True)
class TransitionPlan:
    """A planned account change plus what to announce once it is committed."""

    action: AccountAction
    previous: Account
    commit: AccountCommit
    kind: NotificationKind | None = None
    payload: dict[str, Any] = field(default_factory=dict)
    meta: dict[str, Any] = field(default_factory=dict)


@dataclass
class AccountLifecycleService:
    repository: ModerationRepository
    notifications: NotificationDispatcher = field(default_factory=NullDispatcher)
    default_suspension_days: int = 7
    warning_auto_suspend_threshold: int = 0
    clock: Callable[[], datetime] = _utcnow

    async def register_account(self, *, user_id: str) -> Account:
        if not user_id:
            raise ValidationError("user_id_required")
        now = self.clock()
        account = Account(id=user_id, created_at=now, profile_status_updated_at=now)
        return await guarded("create_account", self.repository.create_account(account))

    async def get_account(self, user_id: str) -> Account:
        account = await guarded("get_account", self.repository.get_account(user_id))
        if account is None:
            raise NotFound("account_not_found")
        return account

    async def list_accounts(self, *, status: ProfileStatus | None = None, limit: int = 50) -> Sequence[Account]:
        return await guarded("list_accounts", self.repository.list_accounts(status=status, limit=limit))

    async def audit_trail(self, user_id: str, *, limit: int = 50) -> Sequence[AuditLogEntry]:
        """Newest first. Unknown accounts raise ``NotFound``."""
        await self.get_account(user_id)
        return await guarded("list_audit", self.repository.list_audit(target_id=user_id, limit=limit))

    async def approve(self, *, user_id: str, actor_id: str | None) -> Account:
        with _track(AccountAction.APPROVE):
            current = await self.get_account(user_id)
            plan = self._plan(
                AccountAction.APPROVE,
                current,
                transitions.approve(current, now=self.clock()),
                NotificationKind.APPROVED,
            )
            account = await self._commit(plan)
        await self.after_commit(plan, account, actor_id=actor_id)
        return account

    async def reject(
        self,
        *,
        user_id: str,
        actor_id: str | None,
        reason_code: str,
        admin_note: str | None = None,
    ) -> Account:
        with _track(AccountAction.REJECT):
            rejection = build_rejection(reason_code, admin_note)
            current = await self.get_account(user_id)
            plan = self._plan(
                AccountAction.REJECT,
                current,
                transitions.reject(current, rejection, now=self.clock()),
                NotificationKind.REJECTED,
                payload={
                    "reasonCode": rejection.code.value,
                    "message": rejection.message,
                    "fixInstructions": rejection.fix_instructions,
                },
                meta={"reason_code": rejection.code.value, "has_note": bool(admin_note and admin_note.strip())},
            )
            account = await self._commit(plan)
        await self.after_commit(plan, account, actor_id=actor_id)
        return account

    async def retry(self, *, user_id: str) -> Account:
        """Send a rejected profile back for review after the user fixed it."""
        with _track(AccountAction.RETRY):
            current = await self.get_account(user_id)
            plan = self._plan(AccountAction.RETRY, current, transitions.retry(current, now=self.clock()))
            account = await self._commit(plan)
        await self.after_commit(plan, account, actor_id=user_id)
        return account

    async def warn(self, *, user_id: str, actor_id: str | None, reason: str | None) -> Account:
        with _track(AccountAction.WARN):
            current = await self.get_account(user_id)
            plan = self.plan_warn(current, reason)
            account = await self._commit(plan)
        return await self.after_commit(plan, account, actor_id=actor_id)

    async def suspend(
        self,
        *,
        user_id: str,
        actor_id: str | None,
        reason: str | None,
        days: Optional[int] = None,
    ) -> Account:
        with _track(AccountAction.SUSPEND):
            current = await self.get_account(user_id)
            plan = self.plan_suspend(current, reason, days=days)
            account = await self._commit(plan)
        await self.after_commit(plan, account, actor_id=actor_id)
        return account

    async def ban(self, *, user_id: str, actor_id: str | None, reason: str | None) -> Account:
        with _track(AccountAction.BAN):
            current = await self.get_account(user_id)
            plan = self.plan_ban(current, reason)
            account = await self._commit(plan)
        await self.after_commit(plan, account, actor_id=actor_id)
        return account

    async def reinstate(self, *, user_id: str, actor_id: str | None) -> Account:
        with _track(AccountAction.REINSTATE):
            current = await self.get_account(user_id)
            appeal = None
            if current.is_banned:
                appeal = await guarded(
                    "find_approved_appeal",
                    self.repository.find_approved_appeal(user_id, AppealType.BAN),
                )
            plan = self._plan(
                AccountAction.REINSTATE,
                current,
                transitions.reinstate(current, now=self.clock(), ban_appeal_approved=appeal is not None),
                NotificationKind.REINSTATED,
                payload={"previousStatus": current.profile_status.value},
                meta={"appeal_id": appeal.id} if appeal is not None else None,
                consume_appeal_id=appeal.id if appeal is not None else None,
            )
            account = await self._commit(plan)
        await self.after_commit(plan, account, actor_id=actor_id)
        return account

    async def expire_suspension(self, *, user_id: str, now: datetime | None = None) -> Account:
        with _track(AccountAction.EXPIRE):
            current = await self.get_account(user_id)
            plan = self._plan(
                AccountAction.EXPIRE,
                current,
                transitions.expire(current, now=now or self.clock()),
                NotificationKind.SUSPENSION_EXPIRED,
            )
            account = await self._commit(plan)
        await self.after_commit(plan, account, actor_id=None)
        return account

    def plan_warn(self, current: Account, reason: str | None) -> TransitionPlan:
        planned = transitions.warn(current, reason, now=self.clock())
        latest = planned.warnings[-1]
        return self._plan(
            AccountAction.WARN,
            current,
            planned,
            NotificationKind.WARNED,
            payload={"reason": latest.reason, "warningCount": planned.warning_count},
            meta={"reason": latest.reason, "warning_count": planned.warning_count},
        )

    def plan_suspend(self, current: Account, reason: str | None, *, days: Optional[int] = None) -> TransitionPlan:
        duration = self.default_suspension_days if days is None else days
        planned = transitions.suspend(current, reason, days=duration, now=self.clock())
        return self._plan(
            AccountAction.SUSPEND,
            current,
            planned,
            NotificationKind.SUSPENDED,
            payload={
                "reason": planned.suspension_reason,
                "suspendedUntil": planned.suspended_until,
                "days": duration,
            },
            meta={"reason": planned.suspension_reason, "days": duration},
        )

    def plan_ban(self, current: Account, reason: str | None) -> TransitionPlan:
        planned = transitions.ban(current, reason, now=self.clock())
        return self._plan(
            AccountAction.BAN,
            current,
            planned,
            NotificationKind.BANNED,
            payload={"reason": planned.ban_reason},
            meta={"reason": planned.ban_reason},
            purge_queue=True,
        )

    def plan_resolution(
        self,
        current: Account,
        resolution: Resolution,
        reason: str,
        *,
        days: Optional[int] = None,
    ) -> TransitionPlan | None:
        """Plan the account side of a report resolution. ``dismiss`` plans nothing."""
        if resolution is Resolution.WARN:
            return self.plan_warn(current, reason)
        if resolution is Resolution.SUSPEND:
            return self.plan_suspend(current, reason, days=days)
        if resolution is Resolution.BAN:
            return self.plan_ban(current, reason)
        return None

    async def after_commit(self, plan: TransitionPlan, account: Account, *, actor_id: str | None) -> Account:
        """Run post-commit side effects. Returns the latest account state.

        Audit and notification failures are logged and counted only; the
        committed transition stands regardless.
        """
        obs_metrics.inc_transition(plan.action.value, "committed")
        meta = {"from": plan.previous.profile_status.value, "to": account.profile_status.value, **plan.meta}
        await self._audit(actor_id, f"account.{plan.action.value}", account.id, meta)
        if plan.kind is not None:
            await self._notify(account.id, plan.kind, plan.payload)
        if plan.action is AccountAction.WARN:
            return await self._enforce_warning_threshold(account, actor_id=actor_id)
        return account

    def _plan(
        self,
        action: AccountAction,
        current: Account,
        planned: Account,
        kind: NotificationKind | None = None,
        *,
        payload: dict[str, Any] | None = None,
        meta: dict[str, Any] | None = None,
        purge_queue: bool = False,
        consume_appeal_id: str | None = None,
    ) -> TransitionPlan:
        return TransitionPlan(
            action=action,
            previous=current,
            commit=AccountCommit(
                account=planned.evolve(version=current.version + 1),
                expected_version=current.version,
                purge_queue=purge_queue,
                consume_appeal_id=consume_appeal_id,
            ),
            kind=kind,
            payload=payload or {},
            meta=meta or {},
        )

    async def _commit(self, plan: TransitionPlan) -> Account:
        return await guarded("commit_account", self.repository.commit_account(plan.commit))

    async def _enforce_warning_threshold(self, account: Account, *, actor_id: str | None) -> Account:
        threshold = self.warning_auto_suspend_threshold
        if threshold <= 0 or account.warning_count < threshold:
            return account
        if account.is_suspended or not transitions.can_apply(account, AccountAction.SUSPEND):
            return account
        try:
            return await self.suspend(user_id=account.id, actor_id=actor_id, reason=AUTO_SUSPEND_REASON)
        except ModerationWorkflowError as exc:
            logger.warning(
                "automatic suspension after repeated warnings failed",
                extra={"user_id": account.id, "code": exc.code},
            )
            return account

    async def _audit(self, actor_id: str | None, action: str, target_id: str, meta: dict[str, Any]) -> None:
        try:
            await self.repository.audit(actor_id, action, "account", target_id, meta)
        except Exception:  # noqa: BLE001 - audit is best effort once the transition committed
            obs_metrics.MOD_AUDIT_FAILURES_TOTAL.labels(action=action).inc()
            logger.exception("failed to write audit entry", extra={"action": action, "target_id": target_id})

    async def _notify(self, user_id: str, kind: NotificationKind, payload: dict[str, Any]) -> bool:
        try:
            delivered = await self.notifications.notify(user_id, kind, payload)
        except Exception:  # noqa: BLE001 - notification failures never undo a committed transition
            obs_metrics.inc_notification(kind.value, "error")
            logger.exception("failed to dispatch lifecycle notification", extra={"user_id": user_id, "kind": kind.value})
            return False
        if not delivered:
            obs_metrics.inc_notification(kind.value, "rejected")
            logger.warning("lifecycle notification not accepted", extra={"user_id": user_id, "kind": kind.value})
            return False
        obs_metrics.inc_notification(kind.value, "sent")
        return True
