"""Account status state machine.

Each transition is a pure function from the current account to the planned
next account. Nothing here touches storage: callers commit the planned account
with a conditional update keyed on the version they read.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from celestia.moderation.domain.errors import InvalidTransition, ValidationError
from celestia.moderation.domain.models import Account, AccountWarning, ProfileStatus
from celestia.moderation.domain.rejection import RejectionReason


class AccountAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    RETRY = "retry"
    WARN = "warn"
    SUSPEND = "suspend"
    BAN = "ban"
    REINSTATE = "reinstate"
    EXPIRE = "expire"


_SANCTIONABLE = frozenset(
    {
        ProfileStatus.PENDING,
        ProfileStatus.ACTIVE,
        ProfileStatus.REJECTED,
        ProfileStatus.SUSPENDED,
    }
)

ALLOWED_SOURCES: dict[AccountAction, frozenset[ProfileStatus]] = {
    AccountAction.APPROVE: frozenset({ProfileStatus.PENDING}),
    AccountAction.REJECT: frozenset({ProfileStatus.PENDING}),
    AccountAction.RETRY: frozenset({ProfileStatus.REJECTED}),
    AccountAction.WARN: _SANCTIONABLE,
    AccountAction.SUSPEND: _SANCTIONABLE,
    AccountAction.BAN: _SANCTIONABLE,
    AccountAction.REINSTATE: frozenset({ProfileStatus.SUSPENDED, ProfileStatus.BANNED}),
    AccountAction.EXPIRE: frozenset({ProfileStatus.SUSPENDED}),
}


def can_apply(account: Account, action: AccountAction) -> bool:
    return account.profile_status in ALLOWED_SOURCES[action]


def ensure_allowed(account: Account, action: AccountAction) -> None:
    if not can_apply(account, action):
        raise InvalidTransition(
            "invalid_transition",
            f"cannot {action.value} an account in state {account.profile_status.value}",
        )


def _require_reason(reason: Optional[str]) -> str:
    text = (reason or "").strip()
    if not text:
        raise ValidationError("reason_required")
    return text


def _cleared_rejection(account: Account, now: datetime, status: ProfileStatus) -> Account:
    return account.evolve(
        profile_status=status,
        profile_status_reason=None,
        profile_status_reason_code=None,
        profile_status_fix_instructions=None,
        profile_status_updated_at=now,
    )


def approve(account: Account, *, now: datetime) -> Account:
    ensure_allowed(account, AccountAction.APPROVE)
    return _cleared_rejection(account, now, ProfileStatus.ACTIVE)


def reject(account: Account, rejection: RejectionReason, *, now: datetime) -> Account:
    ensure_allowed(account, AccountAction.REJECT)
    return account.evolve(
        profile_status=ProfileStatus.REJECTED,
        profile_status_reason=rejection.message,
        profile_status_reason_code=rejection.code.value,
        profile_status_fix_instructions=rejection.fix_instructions,
        profile_status_updated_at=now,
    )


def retry(account: Account, *, now: datetime) -> Account:
    ensure_allowed(account, AccountAction.RETRY)
    return _cleared_rejection(account, now, ProfileStatus.PENDING)


def warn(account: Account, reason: Optional[str], *, now: datetime) -> Account:
    ensure_allowed(account, AccountAction.WARN)
    text = _require_reason(reason)
    return account.evolve(warnings=account.warnings + (AccountWarning(reason=text, timestamp=now),))


def suspend(account: Account, reason: Optional[str], *, days: int, now: datetime) -> Account:
    ensure_allowed(account, AccountAction.SUSPEND)
    text = _require_reason(reason)
    if days < 1:
        raise ValidationError("invalid_suspension_days")
    # a re-suspension keeps the status the first suspension interrupted
    interrupted = account.suspended_from if account.is_suspended else account.profile_status
    return account.evolve(
        profile_status=ProfileStatus.SUSPENDED,
        suspended_from=interrupted,
        suspended_until=now + timedelta(days=days),
        suspension_reason=text,
        profile_status_updated_at=now,
    )


def ban(account: Account, reason: Optional[str], *, now: datetime) -> Account:
    ensure_allowed(account, AccountAction.BAN)
    text = _require_reason(reason)
    return account.evolve(
        profile_status=ProfileStatus.BANNED,
        ban_reason=text,
        suspended_from=None,
        suspended_until=None,
        suspension_reason=None,
        profile_status_updated_at=now,
    )


def _lifted_suspension(account: Account, now: datetime) -> Account:
    return account.evolve(
        profile_status=account.suspended_from or ProfileStatus.ACTIVE,
        suspended_from=None,
        suspended_until=None,
        suspension_reason=None,
        profile_status_updated_at=now,
    )


def reinstate(account: Account, *, now: datetime, ban_appeal_approved: bool = False) -> Account:
    """Lift a suspension or a ban.

    A suspension can be lifted by an admin at any time and the account goes
    back to the status it had when it was suspended, so a profile that was
    never approved stays out of discovery. A ban is only lifted once an appeal
    against it has been approved, and the account becomes active.
    """
    ensure_allowed(account, AccountAction.REINSTATE)
    if account.is_suspended:
        return _lifted_suspension(account, now)
    if not ban_appeal_approved:
        raise InvalidTransition("approved_appeal_required", "a ban is only lifted through an approved appeal")
    return account.evolve(
        profile_status=ProfileStatus.ACTIVE,
        ban_reason=None,
        profile_status_updated_at=now,
    )


def expire(account: Account, *, now: datetime) -> Account:
    ensure_allowed(account, AccountAction.EXPIRE)
    if account.suspended_until is None or account.suspended_until > now:
        raise InvalidTransition("suspension_not_elapsed")
    return _lifted_suspension(account, now)
