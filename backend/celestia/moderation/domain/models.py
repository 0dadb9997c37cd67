"""Records for the account, report, appeal and moderation queue lifecycle."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional, Sequence


class ProfileStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    REJECTED = "rejected"
    SUSPENDED = "suspended"
    BANNED = "banned"


class ReportStatus(str, Enum):
    PENDING = "pending"
    RESOLVED = "resolved"


class Resolution(str, Enum):
    DISMISS = "dismiss"
    WARN = "warn"
    SUSPEND = "suspend"
    BAN = "ban"


class AppealType(str, Enum):
    BAN = "ban"
    SUSPENSION = "suspension"


class AppealStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"


@dataclass(slots=True, frozen=True)
class AccountWarning:
    reason: str
    timestamp: datetime


@dataclass(slots=True, frozen=True)
class Account:
    """One end user and its moderation-relevant state.

    ``profile_status`` is the only stored state. The moderation flags and
    ``visibility`` are derived from it, so a banned account can never look
    active. ``suspended_from`` remembers the status a suspension interrupted
    so lifting it restores that status. ``version`` increases with every
    committed change.
    """

    id: str
    profile_status: ProfileStatus = ProfileStatus.PENDING
    suspended_until: Optional[datetime] = None
    suspension_reason: Optional[str] = None
    ban_reason: Optional[str] = None
    warnings: tuple[AccountWarning, ...] = ()
    profile_status_reason: Optional[str] = None
    profile_status_reason_code: Optional[str] = None
    profile_status_fix_instructions: Optional[str] = None
    suspended_from: Optional[ProfileStatus] = None
    profile_status_updated_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    version: int = 0

    @property
    def is_banned(self) -> bool:
        return self.profile_status is ProfileStatus.BANNED

    @property
    def is_suspended(self) -> bool:
        return self.profile_status is ProfileStatus.SUSPENDED

    @property
    def visibility(self) -> bool:
        return self.profile_status is ProfileStatus.ACTIVE

    @property
    def warning_count(self) -> int:
        return len(self.warnings)

    def evolve(self, **changes: Any) -> "Account":
        return replace(self, **changes)

    def moderation_flags(self) -> dict[str, Any]:
        return {
            "isBanned": self.is_banned,
            "isSuspended": self.is_suspended,
            "suspendedUntil": self.suspended_until,
            "suspensionReason": self.suspension_reason,
            "banReason": self.ban_reason,
            "warningCount": self.warning_count,
            "warnings": [{"reason": w.reason, "timestamp": w.timestamp} for w in self.warnings],
        }

    def to_document(self) -> dict[str, Any]:
        """Serialise with the canonical attribute names used by existing data."""
        return {
            "id": self.id,
            "profileStatus": self.profile_status.value,
            "moderationFlags": self.moderation_flags(),
            "visibility": self.visibility,
            "profileStatusReason": self.profile_status_reason,
            "profileStatusReasonCode": self.profile_status_reason_code,
            "profileStatusFixInstructions": self.profile_status_fix_instructions,
            "profileStatusUpdatedAt": self.profile_status_updated_at,
            "createdAt": self.created_at,
        }


@dataclass(slots=True)
class Report:
    id: str
    reporter_id: str
    reported_user_id: str
    reason: str
    timestamp: datetime
    additional_details: Optional[str] = None
    status: ReportStatus = ReportStatus.PENDING
    resolution: Optional[Resolution] = None
    resolution_reason: Optional[str] = None
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None

    @property
    def is_resolved(self) -> bool:
        return self.status is ReportStatus.RESOLVED


@dataclass(slots=True)
class Appeal:
    id: str
    user_id: str
    type: AppealType
    original_reason: str
    appeal_message: str
    submitted_at: datetime
    status: AppealStatus = AppealStatus.PENDING
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    review_note: Optional[str] = None
    consumed_at: Optional[datetime] = None


@dataclass(slots=True)
class QueueEntry:
    """An automatically flagged account awaiting human review."""

    id: str
    reported_user_id: str
    suspicion_score: float
    indicators: Sequence[str]
    timestamp: datetime
    auto_detected: bool = True


@dataclass(slots=True)
class AuditLogEntry:
    actor_id: Optional[str]
    action: str
    target_type: str
    target_id: str
    meta: Mapping[str, Any]
    created_at: datetime


@dataclass(slots=True)
class ModerationStats:
    total_reports: int = 0
    pending_reports: int = 0
    resolved_reports: int = 0
    suspicious_profiles: int = 0
    pending_accounts: int = 0
    pending_appeals: int = 0


@dataclass(slots=True)
class AccountCommit:
    """A planned account state to be written only if the stored version is unchanged.

    ``consume_appeal_id`` marks the approved appeal that lifts a ban as used, in
    the same write.
    """

    account: Account
    expected_version: int
    purge_queue: bool = False
    consume_appeal_id: Optional[str] = None


@dataclass(slots=True)
class Dashboard:
    reports: list[Report] = field(default_factory=list)
    suspicious_profiles: list[QueueEntry] = field(default_factory=list)
    pending_accounts: list[Account] = field(default_factory=list)
    stats: ModerationStats = field(default_factory=ModerationStats)
