"""Request and response bodies for the moderation lifecycle API.

Responses use the camelCase attribute names the mobile clients and the admin
dashboard already read (``profileStatus``, ``moderationFlags``...). Requests
accept either camelCase or snake_case keys.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from celestia.moderation.domain.models import (
    Account,
    Appeal,
    AuditLogEntry,
    Dashboard,
    ModerationStats,
    QueueEntry,
    Report,
)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class WarningOut(CamelModel):
    reason: str
    timestamp: datetime


class ModerationFlagsOut(CamelModel):
    is_banned: bool
    is_suspended: bool
    suspended_until: datetime | None
    suspension_reason: str | None
    ban_reason: str | None
    warning_count: int
    warnings: list[WarningOut]


class AccountOut(CamelModel):
    id: str
    profile_status: str
    moderation_flags: ModerationFlagsOut
    visibility: bool
    profile_status_reason: str | None
    profile_status_reason_code: str | None
    profile_status_fix_instructions: str | None
    profile_status_updated_at: datetime | None
    created_at: datetime | None

    @classmethod
    def from_domain(cls, account: Account) -> "AccountOut":
        return cls(
            id=account.id,
            profile_status=account.profile_status.value,
            moderation_flags=ModerationFlagsOut(
                is_banned=account.is_banned,
                is_suspended=account.is_suspended,
                suspended_until=account.suspended_until,
                suspension_reason=account.suspension_reason,
                ban_reason=account.ban_reason,
                warning_count=account.warning_count,
                warnings=[WarningOut(reason=w.reason, timestamp=w.timestamp) for w in account.warnings],
            ),
            visibility=account.visibility,
            profile_status_reason=account.profile_status_reason,
            profile_status_reason_code=account.profile_status_reason_code,
            profile_status_fix_instructions=account.profile_status_fix_instructions,
            profile_status_updated_at=account.profile_status_updated_at,
            created_at=account.created_at,
        )


class AuditEntryOut(CamelModel):
    actor_id: str | None
    action: str
    target_type: str
    target_id: str
    meta: dict[str, Any]
    created_at: datetime

    @classmethod
    def from_domain(cls, entry: AuditLogEntry) -> "AuditEntryOut":
        return cls(
            actor_id=entry.actor_id,
            action=entry.action,
            target_type=entry.target_type,
            target_id=entry.target_id,
            meta=dict(entry.meta),
            created_at=entry.created_at,
        )


class ReportOut(CamelModel):
    id: str
    reporter_id: str
    reported_user_id: str
    reason: str
    additional_details: str | None
    timestamp: datetime
    status: str
    resolution: str | None
    resolution_reason: str | None
    resolved_at: datetime | None
    resolved_by: str | None

    @classmethod
    def from_domain(cls, report: Report) -> "ReportOut":
        return cls(
            id=report.id,
            reporter_id=report.reporter_id,
            reported_user_id=report.reported_user_id,
            reason=report.reason,
            additional_details=report.additional_details,
            timestamp=report.timestamp,
            status=report.status.value,
            resolution=report.resolution.value if report.resolution else None,
            resolution_reason=report.resolution_reason,
            resolved_at=report.resolved_at,
            resolved_by=report.resolved_by,
        )


class ReportResolutionOut(CamelModel):
    report: ReportOut
    account: AccountOut | None = None


class QueueEntryOut(CamelModel):
    id: str
    reported_user_id: str
    suspicion_score: float
    indicators: list[str]
    auto_detected: bool
    timestamp: datetime

    @classmethod
    def from_domain(cls, entry: QueueEntry) -> "QueueEntryOut":
        return cls(
            id=entry.id,
            reported_user_id=entry.reported_user_id,
            suspicion_score=entry.suspicion_score,
            indicators=list(entry.indicators),
            auto_detected=entry.auto_detected,
            timestamp=entry.timestamp,
        )


class AppealOut(CamelModel):
    id: str
    user_id: str
    type: str
    original_reason: str
    appeal_message: str
    status: str
    submitted_at: datetime
    reviewed_by: str | None
    reviewed_at: datetime | None
    review_note: str | None

    @classmethod
    def from_domain(cls, appeal: Appeal) -> "AppealOut":
        return cls(
            id=appeal.id,
            user_id=appeal.user_id,
            type=appeal.type.value,
            original_reason=appeal.original_reason,
            appeal_message=appeal.appeal_message,
            status=appeal.status.value,
            submitted_at=appeal.submitted_at,
            reviewed_by=appeal.reviewed_by,
            reviewed_at=appeal.reviewed_at,
            review_note=appeal.review_note,
        )


class StatsOut(CamelModel):
    total_reports: int
    pending_reports: int
    resolved_reports: int
    suspicious_profiles: int
    pending_accounts: int
    pending_appeals: int

    @classmethod
    def from_domain(cls, stats: ModerationStats) -> "StatsOut":
        return cls(
            total_reports=stats.total_reports,
            pending_reports=stats.pending_reports,
            resolved_reports=stats.resolved_reports,
            suspicious_profiles=stats.suspicious_profiles,
            pending_accounts=stats.pending_accounts,
            pending_appeals=stats.pending_appeals,
        )


class DashboardOut(CamelModel):
    reports: list[ReportOut]
    suspicious_profiles: list[QueueEntryOut]
    pending_accounts: list[AccountOut]
    stats: StatsOut

    @classmethod
    def from_domain(cls, dashboard: Dashboard) -> "DashboardOut":
        return cls(
            reports=[ReportOut.from_domain(r) for r in dashboard.reports],
            suspicious_profiles=[QueueEntryOut.from_domain(e) for e in dashboard.suspicious_profiles],
            pending_accounts=[AccountOut.from_domain(a) for a in dashboard.pending_accounts],
            stats=StatsOut.from_domain(dashboard.stats),
        )


class RegisterAccountIn(CamelModel):
    user_id: str = Field(..., min_length=1, max_length=128)


class RejectIn(CamelModel):
    reason_code: str
    admin_note: str | None = Field(default=None, max_length=2000)


class ReasonIn(CamelModel):
    reason: str = Field(..., max_length=2000)


class QueueBanIn(CamelModel):
    reason: str | None = Field(default=None, max_length=2000)


class SuspendIn(CamelModel):
    reason: str = Field(..., max_length=2000)
    days: int | None = None


class ReportIn(CamelModel):
    reported_user_id: str
    reason: str = Field(..., max_length=500)
    additional_details: str | None = Field(default=None, max_length=2000)


class ResolveReportIn(CamelModel):
    resolution: Literal["dismiss", "warn", "suspend", "ban"]
    reason: str | None = Field(default=None, max_length=2000)
    days: int | None = None


class QueueAdmitIn(CamelModel):
    user_id: str
    suspicion_score: float
    indicators: list[str] = Field(default_factory=list)
    auto_detected: bool = True


class AppealIn(CamelModel):
    message: str = Field(..., max_length=5000)


class AppealReviewIn(CamelModel):
    decision: Literal["approved", "denied"]
    note: str | None = Field(default=None, max_length=2000)
