from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from celestia.moderation.domain.errors import (
    DependencyFailure,
    InvalidTransition,
    NotFound,
    StaleAccountError,
)
from celestia.moderation.domain.lifecycle_service import AUTO_SUSPEND_REASON, AccountLifecycleService
from celestia.moderation.domain.models import (
    Account,
    AccountCommit,
    Appeal,
    AppealStatus,
    AppealType,
    ProfileStatus,
    QueueEntry,
)
from celestia.moderation.domain.notifications import NotificationKind
from celestia.moderation.domain.rejection import RejectionCode, template_for
from celestia.moderation.domain.repository import InMemoryModerationRepository

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class RacingRepository(InMemoryModerationRepository):
    """Bans the account right after it is read, as a concurrent admin would."""

    async def get_account(self, user_id: str) -> Account | None:
        account = await super().get_account(user_id)
        if account is not None:
            self.accounts[user_id] = account.evolve(
                profile_status=ProfileStatus.BANNED,
                ban_reason="other admin",
                version=account.version + 1,
            )
        return account


class BrokenCommitRepository(InMemoryModerationRepository):
    async def commit_account(self, commit: AccountCommit) -> Account:
        raise ConnectionError("database went away")


class BrokenAuditRepository(InMemoryModerationRepository):
    async def audit(self, *args, **kwargs):
        raise ConnectionError("audit table locked")


def _service(repository, dispatcher, **kwargs) -> AccountLifecycleService:
    return AccountLifecycleService(repository=repository, notifications=dispatcher, clock=lambda: NOW, **kwargs)


async def _seed(repository, user_id: str = "u1", status: ProfileStatus = ProfileStatus.PENDING, **changes) -> Account:
    return await repository.create_account(Account(id=user_id, profile_status=status, created_at=NOW, **changes))


@pytest.mark.asyncio
async def test_register_account_starts_pending(recording_dispatcher):
    repository = InMemoryModerationRepository()
    service = _service(repository, recording_dispatcher)
    account = await service.register_account(user_id="u9")
    assert account.profile_status is ProfileStatus.PENDING
    assert account.visibility is False
    assert (await repository.get_account("u9")) == account


@pytest.mark.asyncio
async def test_reject_with_note_persists_reason_and_notifies(recording_dispatcher):
    repository = InMemoryModerationRepository()
    await _seed(repository)
    service = _service(repository, recording_dispatcher)

    account = await service.reject(user_id="u1", actor_id="admin-1", reason_code="no_face_photo", admin_note="Please smile")

    template = template_for(RejectionCode.NO_FACE_PHOTO)
    stored = await repository.get_account("u1")
    assert stored == account
    assert stored.profile_status is ProfileStatus.REJECTED
    assert stored.profile_status_reason == template.message
    assert stored.profile_status_reason_code == "no_face_photo"
    assert stored.profile_status_fix_instructions == f"{template.fix_instructions}\n\nAdditional Note from Admin:\nPlease smile"
    assert recording_dispatcher.kinds_for("u1") == [NotificationKind.REJECTED]
    _, _, payload = recording_dispatcher.sent[0]
    assert payload["message"] == template.message


@pytest.mark.asyncio
async def test_missing_account_is_not_found_and_not_notified(recording_dispatcher):
    repository = InMemoryModerationRepository()
    service = _service(repository, recording_dispatcher)
    with pytest.raises(NotFound) as excinfo:
        await service.approve(user_id="ghost", actor_id="admin-1")
    assert excinfo.value.code == "account_not_found"
    assert recording_dispatcher.sent == []
    assert repository.accounts == {}
    assert repository.audit_log == []


@pytest.mark.asyncio
async def test_notification_failure_does_not_roll_back(recording_dispatcher):
    repository = InMemoryModerationRepository()
    await _seed(repository)
    recording_dispatcher.fail = True
    service = _service(repository, recording_dispatcher)

    account = await service.approve(user_id="u1", actor_id="admin-1")

    assert account.profile_status is ProfileStatus.ACTIVE
    assert (await repository.get_account("u1")).profile_status is ProfileStatus.ACTIVE


@pytest.mark.asyncio
async def test_audit_failure_does_not_fail_transition(recording_dispatcher):
    repository = BrokenAuditRepository()
    await _seed(repository)
    service = _service(repository, recording_dispatcher)

    account = await service.approve(user_id="u1", actor_id="admin-1")

    assert account.profile_status is ProfileStatus.ACTIVE
    assert recording_dispatcher.kinds_for("u1") == [NotificationKind.APPROVED]


@pytest.mark.asyncio
async def test_concurrent_change_surfaces_as_invalid_transition(recording_dispatcher):
    repository = RacingRepository()
    await _seed(repository, status=ProfileStatus.ACTIVE)
    service = _service(repository, recording_dispatcher)

    with pytest.raises(StaleAccountError) as excinfo:
        await service.suspend(user_id="u1", actor_id="admin-1", reason="Harassment")

    assert isinstance(excinfo.value, InvalidTransition)
    assert repository.accounts["u1"].profile_status is ProfileStatus.BANNED
    assert recording_dispatcher.sent == []


@pytest.mark.asyncio
async def test_storage_failure_is_dependency_failure(recording_dispatcher):
    repository = BrokenCommitRepository()
    await _seed(repository)
    service = _service(repository, recording_dispatcher)

    with pytest.raises(DependencyFailure):
        await service.approve(user_id="u1", actor_id="admin-1")

    assert repository.accounts["u1"].profile_status is ProfileStatus.PENDING
    assert recording_dispatcher.sent == []


@pytest.mark.asyncio
async def test_invalid_transition_writes_nothing(recording_dispatcher):
    repository = InMemoryModerationRepository()
    await _seed(repository, status=ProfileStatus.BANNED, ban_reason="Scam")
    service = _service(repository, recording_dispatcher)

    with pytest.raises(InvalidTransition):
        await service.warn(user_id="u1", actor_id="admin-1", reason="Spam")

    assert repository.accounts["u1"].warning_count == 0
    assert recording_dispatcher.sent == []


@pytest.mark.asyncio
async def test_ban_purges_queue_and_notifies(recording_dispatcher):
    repository = InMemoryModerationRepository()
    await _seed(repository, user_id="u2", status=ProfileStatus.ACTIVE)
    for index in range(2):
        await repository.enqueue(
            QueueEntry(id=f"q{index}", reported_user_id="u2", suspicion_score=0.8, indicators=["stock_photo"], timestamp=NOW)
        )
    await repository.enqueue(QueueEntry(id="other", reported_user_id="u3", suspicion_score=0.4, indicators=[], timestamp=NOW))
    service = _service(repository, recording_dispatcher)

    account = await service.ban(user_id="u2", actor_id="admin-1", reason="Scam")

    assert account.profile_status is ProfileStatus.BANNED
    assert account.ban_reason == "Scam"
    assert account.visibility is False
    assert await repository.count_queue_entries("u2") == 0
    assert await repository.count_queue_entries("u3") == 1
    assert recording_dispatcher.kinds_for("u2") == [NotificationKind.BANNED]


@pytest.mark.asyncio
async def test_suspend_uses_default_duration(recording_dispatcher):
    repository = InMemoryModerationRepository()
    await _seed(repository, status=ProfileStatus.ACTIVE)
    service = _service(repository, recording_dispatcher, default_suspension_days=7)

    account = await service.suspend(user_id="u1", actor_id="admin-1", reason="Harassment")

    assert account.suspended_until == NOW + timedelta(days=7)
    _, kind, payload = recording_dispatcher.sent[0]
    assert kind is NotificationKind.SUSPENDED
    assert payload["suspendedUntil"] == NOW + timedelta(days=7)


@pytest.mark.asyncio
async def test_retry_returns_rejected_account_to_review(recording_dispatcher):
    repository = InMemoryModerationRepository()
    await _seed(repository)
    service = _service(repository, recording_dispatcher)
    await service.reject(user_id="u1", actor_id="admin-1", reason_code="incomplete_bio")

    account = await service.retry(user_id="u1")

    assert account.profile_status is ProfileStatus.PENDING
    assert account.profile_status_reason_code is None
    assert repository.audit_log[-1].action == "account.retry"
    assert repository.audit_log[-1].actor_id == "u1"


@pytest.mark.asyncio
async def test_audit_records_actor_and_states(recording_dispatcher):
    repository = InMemoryModerationRepository()
    await _seed(repository)
    service = _service(repository, recording_dispatcher)

    await service.approve(user_id="u1", actor_id="admin-7")

    entry = repository.audit_log[-1]
    assert entry.actor_id == "admin-7"
    assert entry.action == "account.approve"
    assert entry.meta["from"] == "pending"
    assert entry.meta["to"] == "active"


@pytest.mark.asyncio
async def test_repeated_warnings_trigger_automatic_suspension(recording_dispatcher):
    repository = InMemoryModerationRepository()
    await _seed(repository, status=ProfileStatus.ACTIVE)
    service = _service(repository, recording_dispatcher, warning_auto_suspend_threshold=3)

    await service.warn(user_id="u1", actor_id="admin-1", reason="Spam")
    await service.warn(user_id="u1", actor_id="admin-1", reason="Spam")
    account = await service.warn(user_id="u1", actor_id="admin-1", reason="Spam")

    assert account.profile_status is ProfileStatus.SUSPENDED
    assert account.suspension_reason == AUTO_SUSPEND_REASON
    assert account.warning_count == 3
    assert recording_dispatcher.kinds_for("u1") == [
        NotificationKind.WARNED,
        NotificationKind.WARNED,
        NotificationKind.WARNED,
        NotificationKind.SUSPENDED,
    ]


@pytest.mark.asyncio
async def test_warnings_do_not_suspend_when_threshold_disabled(recording_dispatcher):
    repository = InMemoryModerationRepository()
    await _seed(repository, status=ProfileStatus.ACTIVE)
    service = _service(repository, recording_dispatcher)

    for _ in range(5):
        account = await service.warn(user_id="u1", actor_id="admin-1", reason="Spam")

    assert account.profile_status is ProfileStatus.ACTIVE
    assert account.warning_count == 5


@pytest.mark.asyncio
async def test_reinstate_banned_account_after_approved_appeal(recording_dispatcher):
    repository = InMemoryModerationRepository()
    await _seed(repository, status=ProfileStatus.BANNED, ban_reason="Scam")
    service = _service(repository, recording_dispatcher)

    with pytest.raises(InvalidTransition):
        await service.reinstate(user_id="u1", actor_id="admin-1")

    await repository.create_appeal(
        Appeal(
            id="a1",
            user_id="u1",
            type=AppealType.BAN,
            original_reason="Scam",
            appeal_message="x" * 40,
            submitted_at=NOW,
            status=AppealStatus.APPROVED,
        )
    )
    account = await service.reinstate(user_id="u1", actor_id="admin-1")

    assert account.profile_status is ProfileStatus.ACTIVE
    assert account.visibility is True
    assert recording_dispatcher.kinds_for("u1") == [NotificationKind.REINSTATED]


@pytest.mark.asyncio
async def test_expire_suspension_notifies(recording_dispatcher):
    repository = InMemoryModerationRepository()
    await _seed(repository, status=ProfileStatus.SUSPENDED, suspended_until=NOW - timedelta(minutes=1), suspension_reason="x")
    service = _service(repository, recording_dispatcher)

    account = await service.expire_suspension(user_id="u1")

    assert account.profile_status is ProfileStatus.ACTIVE
    assert recording_dispatcher.kinds_for("u1") == [NotificationKind.SUSPENSION_EXPIRED]


@pytest.mark.asyncio
async def test_reinstating_suspended_pending_account_keeps_it_pending(recording_dispatcher):
    repository = InMemoryModerationRepository()
    await _seed(repository, user_id="p1")
    service = _service(repository, recording_dispatcher)
    await service.suspend(user_id="p1", actor_id="admin-1", reason="Spam", days=2)

    account = await service.reinstate(user_id="p1", actor_id="admin-1")

    assert account.profile_status is ProfileStatus.PENDING
    assert account.visibility is False


@pytest.mark.asyncio
async def test_expired_suspension_of_rejected_account_stays_rejected(recording_dispatcher):
    repository = InMemoryModerationRepository()
    await _seed(repository, user_id="r1")
    service = _service(repository, recording_dispatcher)
    await service.reject(user_id="r1", actor_id="admin-1", reason_code="spam")
    await service.suspend(user_id="r1", actor_id="admin-1", reason="Spam", days=1)

    account = await service.expire_suspension(user_id="r1", now=NOW + timedelta(days=4))

    assert account.profile_status is ProfileStatus.REJECTED
    assert account.visibility is False


@pytest.mark.asyncio
async def test_approved_appeal_lifts_only_one_ban(recording_dispatcher):
    repository = InMemoryModerationRepository()
    await _seed(repository, status=ProfileStatus.ACTIVE)
    service = _service(repository, recording_dispatcher)
    await service.ban(user_id="u1", actor_id="admin-1", reason="Scam")
    await repository.create_appeal(
        Appeal(
            id="a1",
            user_id="u1",
            type=AppealType.BAN,
            original_reason="Scam",
            appeal_message="x" * 40,
            submitted_at=NOW,
            status=AppealStatus.APPROVED,
        )
    )
    await service.reinstate(user_id="u1", actor_id="admin-1")
    assert repository.appeals["a1"].consumed_at is not None

    await service.ban(user_id="u1", actor_id="admin-1", reason="Scam again")
    with pytest.raises(InvalidTransition) as excinfo:
        await service.reinstate(user_id="u1", actor_id="admin-1")

    assert excinfo.value.code == "approved_appeal_required"
    assert repository.accounts["u1"].profile_status is ProfileStatus.BANNED


@pytest.mark.asyncio
async def test_plans_from_one_read_cannot_both_commit(recording_dispatcher):
    repository = InMemoryModerationRepository()
    await _seed(repository, status=ProfileStatus.ACTIVE)
    service = _service(repository, recording_dispatcher)
    snapshot = await repository.get_account("u1")

    first = service.plan_warn(snapshot, "Spam")
    second = service.plan_warn(snapshot, "Rude messages")
    await repository.commit_account(first.commit)
    with pytest.raises(StaleAccountError):
        await repository.commit_account(second.commit)

    stored = repository.accounts["u1"]
    assert stored.warning_count == 1
    assert stored.version == snapshot.version + 1


@pytest.mark.asyncio
async def test_suspend_planned_before_a_warning_does_not_erase_it(recording_dispatcher):
    repository = InMemoryModerationRepository()
    await _seed(repository, status=ProfileStatus.ACTIVE)
    service = _service(repository, recording_dispatcher)
    snapshot = await repository.get_account("u1")

    warn_plan = service.plan_warn(snapshot, "Spam")
    suspend_plan = service.plan_suspend(snapshot, "Harassment", days=3)
    await repository.commit_account(warn_plan.commit)
    with pytest.raises(StaleAccountError):
        await repository.commit_account(suspend_plan.commit)

    stored = repository.accounts["u1"]
    assert stored.warning_count == 1
    assert stored.profile_status is ProfileStatus.ACTIVE
