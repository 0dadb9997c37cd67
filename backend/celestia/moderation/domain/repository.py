"""Persistence protocol for the moderation lifecycle plus an in-memory store."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Mapping, Protocol, Sequence, TypeVar

from celestia.moderation.domain.errors import (
    DependencyFailure,
    InvalidTransition,
    ModerationWorkflowError,
    NotFound,
    StaleAccountError,
)
from celestia.moderation.domain.models import (
    Account,
    AccountCommit,
    Appeal,
    AppealStatus,
    AppealType,
    AuditLogEntry,
    ModerationStats,
    ProfileStatus,
    QueueEntry,
    Report,
    ReportStatus,
    Resolution,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ModerationRepository(Protocol):
    """Storage for accounts, reports, appeals, the review queue and the audit trail.

    ``commit_account`` and ``resolve_report`` are the only account writers.
    Both compare the stored version against ``AccountCommit.expected_version``
    and raise ``StaleAccountError`` without writing anything when it moved.
    A commit that consumes an appeal raises ``InvalidTransition`` instead when
    that appeal is no longer approved and unused.
    """

    async def create_account(self, account: Account) -> Account:
        ...

    async def get_account(self, user_id: str) -> Account | None:
        ...

    async def list_accounts(self, *, status: ProfileStatus | None = None, limit: int = 50) -> Sequence[Account]:
        ...

    async def list_expired_suspensions(self, *, now: datetime, limit: int = 100) -> Sequence[Account]:
        ...

    async def commit_account(self, commit: AccountCommit) -> Account:
        ...

    async def create_report(self, report: Report) -> Report:
        ...

    async def get_report(self, report_id: str) -> Report | None:
        ...

    async def list_reports(self, *, status: ReportStatus | None = None, limit: int = 50) -> Sequence[Report]:
        ...

    async def resolve_report(
        self,
        report_id: str,
        *,
        resolution: Resolution,
        resolution_reason: str,
        resolved_at: datetime,
        resolved_by: str | None,
        account_commit: AccountCommit | None = None,
    ) -> tuple[Report, Account | None]:
        ...

    async def enqueue(self, entry: QueueEntry) -> QueueEntry:
        ...

    async def get_queue_entry(self, entry_id: str) -> QueueEntry | None:
        ...

    async def remove_queue_entry(self, entry_id: str) -> bool:
        ...

    async def list_queue(self, *, limit: int = 50) -> Sequence[QueueEntry]:
        ...

    async def count_queue_entries(self, user_id: str) -> int:
        ...

    async def create_appeal(self, appeal: Appeal) -> Appeal:
        ...

    async def get_appeal(self, appeal_id: str) -> Appeal | None:
        ...

    async def find_pending_appeal(self, user_id: str) -> Appeal | None:
        ...

    async def find_approved_appeal(self, user_id: str, appeal_type: AppealType) -> Appeal | None:
        """Latest approved appeal of ``appeal_type`` not yet used to lift a sanction."""
        ...

    async def review_appeal(
        self,
        appeal_id: str,
        *,
        status: AppealStatus,
        reviewed_by: str | None,
        reviewed_at: datetime,
        review_note: str | None,
    ) -> Appeal:
        ...

    async def list_appeals(self, *, status: AppealStatus | None = None, limit: int = 50) -> Sequence[Appeal]:
        ...

    async def audit(
        self,
        actor_id: str | None,
        action: str,
        target_type: str,
        target_id: str,
        meta: Mapping[str, Any],
    ) -> AuditLogEntry:
        ...

    async def list_audit(self, *, target_id: str | None = None, limit: int = 50) -> Sequence[AuditLogEntry]:
        ...

    async def stats(self) -> ModerationStats:
        ...


class InMemoryModerationRepository(ModerationRepository):
    """Simple repository implementation for development and tests.

    Every mutating method finishes its checks before it writes and never
    awaits in between, so each call is atomic with respect to other tasks.
    """

    def __init__(self) -> None:
        self.accounts: dict[str, Account] = {}
        self.reports: dict[str, Report] = {}
        self.queue: dict[str, QueueEntry] = {}
        self.appeals: dict[str, Appeal] = {}
        self.audit_log: list[AuditLogEntry] = []

    async def create_account(self, account: Account) -> Account:
        if account.id in self.accounts:
            return self.accounts[account.id]
        self.accounts[account.id] = account
        return account

    async def get_account(self, user_id: str) -> Account | None:
        return self.accounts.get(user_id)

    async def list_accounts(self, *, status: ProfileStatus | None = None, limit: int = 50) -> Sequence[Account]:
        items = [a for a in self.accounts.values() if status is None or a.profile_status is status]
        items.sort(key=lambda a: a.created_at or datetime.min.replace(tzinfo=timezone.utc))
        return items[:limit]

    async def list_expired_suspensions(self, *, now: datetime, limit: int = 100) -> Sequence[Account]:
        items = [
            a
            for a in self.accounts.values()
            if a.profile_status is ProfileStatus.SUSPENDED and a.suspended_until is not None and a.suspended_until <= now
        ]
        items.sort(key=lambda a: a.suspended_until)
        return items[:limit]

    def _check_commit(self, commit: AccountCommit) -> None:
        current = self.accounts.get(commit.account.id)
        if current is None:
            raise NotFound("account_not_found")
        if current.version != commit.expected_version:
            raise StaleAccountError()
        if commit.consume_appeal_id is not None:
            appeal = self.appeals.get(commit.consume_appeal_id)
            if appeal is None or appeal.status is not AppealStatus.APPROVED or appeal.consumed_at is not None:
                raise InvalidTransition("approved_appeal_required")

    def _apply_commit(self, commit: AccountCommit) -> Account:
        self.accounts[commit.account.id] = commit.account
        if commit.consume_appeal_id is not None:
            appeal = self.appeals[commit.consume_appeal_id]
            appeal.consumed_at = commit.account.profile_status_updated_at or datetime.now(timezone.utc)
        if commit.purge_queue:
            for entry_id in [e.id for e in self.queue.values() if e.reported_user_id == commit.account.id]:
                del self.queue[entry_id]
        return commit.account

    async def commit_account(self, commit: AccountCommit) -> Account:
        self._check_commit(commit)
        return self._apply_commit(commit)

    async def create_report(self, report: Report) -> Report:
        self.reports[report.id] = report
        return report

    async def get_report(self, report_id: str) -> Report | None:
        return self.reports.get(report_id)

    async def list_reports(self, *, status: ReportStatus | None = None, limit: int = 50) -> Sequence[Report]:
        items = [r for r in self.reports.values() if status is None or r.status is status]
        items.sort(key=lambda r: r.timestamp, reverse=True)
        return items[:limit]

    async def resolve_report(
        self,
        report_id: str,
        *,
        resolution: Resolution,
        resolution_reason: str,
        resolved_at: datetime,
        resolved_by: str | None,
        account_commit: AccountCommit | None = None,
    ) -> tuple[Report, Account | None]:
        report = self.reports.get(report_id)
        if report is None:
            raise NotFound("report_not_found")
        if report.is_resolved:
            raise InvalidTransition("report_already_resolved")
        if account_commit is not None:
            self._check_commit(account_commit)
        account = self._apply_commit(account_commit) if account_commit is not None else None
        report.status = ReportStatus.RESOLVED
        report.resolution = resolution
        report.resolution_reason = resolution_reason
        report.resolved_at = resolved_at
        report.resolved_by = resolved_by
        return report, account

    async def enqueue(self, entry: QueueEntry) -> QueueEntry:
        self.queue[entry.id] = entry
        return entry

    async def get_queue_entry(self, entry_id: str) -> QueueEntry | None:
        return self.queue.get(entry_id)

    async def remove_queue_entry(self, entry_id: str) -> bool:
        return self.queue.pop(entry_id, None) is not None

    async def list_queue(self, *, limit: int = 50) -> Sequence[QueueEntry]:
        items = sorted(self.queue.values(), key=lambda e: (-e.suspicion_score, e.timestamp))
        return items[:limit]

    async def count_queue_entries(self, user_id: str) -> int:
        return sum(1 for e in self.queue.values() if e.reported_user_id == user_id)

    async def create_appeal(self, appeal: Appeal) -> Appeal:
        self.appeals[appeal.id] = appeal
        return appeal

    async def get_appeal(self, appeal_id: str) -> Appeal | None:
        return self.appeals.get(appeal_id)

    async def find_pending_appeal(self, user_id: str) -> Appeal | None:
        for appeal in self.appeals.values():
            if appeal.user_id == user_id and appeal.status is AppealStatus.PENDING:
                return appeal
        return None

    async def find_approved_appeal(self, user_id: str, appeal_type: AppealType) -> Appeal | None:
        usable = [
            a
            for a in self.appeals.values()
            if a.user_id == user_id
            and a.type is appeal_type
            and a.status is AppealStatus.APPROVED
            and a.consumed_at is None
        ]
        return max(usable, key=lambda a: a.submitted_at, default=None)

    async def review_appeal(
        self,
        appeal_id: str,
        *,
        status: AppealStatus,
        reviewed_by: str | None,
        reviewed_at: datetime,
        review_note: str | None,
    ) -> Appeal:
        appeal = self.appeals.get(appeal_id)
        if appeal is None:
            raise NotFound("appeal_not_found")
        if appeal.status is not AppealStatus.PENDING:
            raise InvalidTransition("appeal_already_reviewed")
        appeal.status = status
        appeal.reviewed_by = reviewed_by
        appeal.reviewed_at = reviewed_at
        appeal.review_note = review_note
        return appeal

    async def list_appeals(self, *, status: AppealStatus | None = None, limit: int = 50) -> Sequence[Appeal]:
        items = [a for a in self.appeals.values() if status is None or a.status is status]
        items.sort(key=lambda a: a.submitted_at, reverse=True)
        return items[:limit]

    async def audit(
        self,
        actor_id: str | None,
        action: str,
        target_type: str,
        target_id: str,
        meta: Mapping[str, Any],
    ) -> AuditLogEntry:
        entry = AuditLogEntry(
            actor_id=actor_id,
            action=action,
            target_type=target_type,
            target_id=target_id,
            meta=dict(meta),
            created_at=datetime.now(timezone.utc),
        )
        self.audit_log.append(entry)
        return entry

    async def list_audit(self, *, target_id: str | None = None, limit: int = 50) -> Sequence[AuditLogEntry]:
        items = [e for e in self.audit_log if target_id is None or e.target_id == target_id]
        return list(reversed(items))[:limit]

    async def stats(self) -> ModerationStats:
        pending = sum(1 for r in self.reports.values() if r.status is ReportStatus.PENDING)
        return ModerationStats(
            total_reports=len(self.reports),
            pending_reports=pending,
            resolved_reports=len(self.reports) - pending,
            suspicious_profiles=len(self.queue),
            pending_accounts=sum(1 for a in self.accounts.values() if a.profile_status is ProfileStatus.PENDING),
            pending_appeals=sum(1 for a in self.appeals.values() if a.status is AppealStatus.PENDING),
        )


async def guarded(op: str, call: Awaitable[T]) -> T:
    """Await a repository call, surfacing storage errors as ``DependencyFailure``."""
    try:
        return await call
    except ModerationWorkflowError:
        raise
    except Exception as exc:
        logger.exception("moderation repository call failed", extra={"op": op})
        raise DependencyFailure(f"{op}_failed") from exc
