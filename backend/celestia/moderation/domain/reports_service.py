"""User reports and their resolution."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence
from uuid import uuid4

from celestia.moderation.domain.errors import InvalidTransition, NotFound, ValidationError
from celestia.moderation.domain.lifecycle_service import AccountLifecycleService
from celestia.moderation.domain.models import Account, Report, ReportStatus, Resolution
from celestia.moderation.domain.repository import ModerationRepository, guarded
from celestia.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)


def _parse_resolution(raw: str | Resolution) -> Resolution:
    if isinstance(raw, Resolution):
        return raw
    try:
        return Resolution((raw or "").strip().lower())
    except ValueError as exc:
        raise ValidationError("unknown_resolution") from exc


@dataclass
class ReportService:
    repository: ModerationRepository
    lifecycle: AccountLifecycleService

    async def submit_report(
        self,
        *,
        reporter_id: str,
        reported_user_id: str,
        reason: str | None,
        additional_details: str | None = None,
    ) -> Report:
        if not reporter_id:
            raise ValidationError("reporter_id_required")
        if reporter_id == reported_user_id:
            raise ValidationError("cannot_report_self")
        text = (reason or "").strip()
        if not text:
            raise ValidationError("reason_required")
        await self.lifecycle.get_account(reported_user_id)
        details = (additional_details or "").strip() or None
        report = Report(
            id=str(uuid4()),
            reporter_id=reporter_id,
            reported_user_id=reported_user_id,
            reason=text,
            additional_details=details,
            timestamp=self.lifecycle.clock(),
        )
        stored = await guarded("create_report", self.repository.create_report(report))
        obs_metrics.MOD_REPORTS_TOTAL.labels(stage="submitted", resolution="none").inc()
        return stored

    async def get_report(self, report_id: str) -> Report:
        report = await guarded("get_report", self.repository.get_report(report_id))
        if report is None:
            raise NotFound("report_not_found")
        return report

    async def list_reports(
        self,
        *,
        status: ReportStatus | None = ReportStatus.PENDING,
        limit: int = 50,
    ) -> Sequence[Report]:
        return await guarded("list_reports", self.repository.list_reports(status=status, limit=limit))

    async def resolve_report(
        self,
        *,
        report_id: str,
        resolution: str | Resolution,
        reason: str | None,
        actor_id: str | None,
        days: Optional[int] = None,
    ) -> tuple[Report, Optional[Account]]:
        """Resolve a pending report and apply its sanction in one commit.

        ``warn``, ``suspend`` and ``ban`` run the matching account transition
        on the reported user. If that transition is not allowed, or the write
        fails, the report stays pending. A blank reason falls back to the
        reason given by the reporter.
        """
        chosen = _parse_resolution(resolution)
        report = await self.get_report(report_id)
        if report.is_resolved:
            raise InvalidTransition("report_already_resolved")
        text = (reason or "").strip() or report.reason

        plan = None
        if chosen is not Resolution.DISMISS:
            current = await self.lifecycle.get_account(report.reported_user_id)
            plan = self.lifecycle.plan_resolution(current, chosen, text, days=days)

        resolved, account = await guarded(
            "resolve_report",
            self.repository.resolve_report(
                report_id,
                resolution=chosen,
                resolution_reason=text,
                resolved_at=self.lifecycle.clock(),
                resolved_by=actor_id,
                account_commit=plan.commit if plan is not None else None,
            ),
        )
        obs_metrics.MOD_REPORTS_TOTAL.labels(stage="resolved", resolution=chosen.value).inc()
        logger.info(
            "report resolved",
            extra={"report_id": report_id, "resolution": chosen.value, "reported_user_id": report.reported_user_id},
        )
        if plan is not None and account is not None:
            account = await self.lifecycle.after_commit(plan, account, actor_id=actor_id)
        return resolved, account
