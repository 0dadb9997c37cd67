from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from celestia.moderation.domain.lifecycle_service import AccountLifecycleService
from celestia.moderation.domain.models import Account, AccountCommit, ProfileStatus
from celestia.moderation.domain.notifications import NotificationKind
from celestia.moderation.domain.repository import InMemoryModerationRepository
from celestia.moderation.jobs import suspension_expiry
from celestia.obs import metrics

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


async def _service(dispatcher) -> AccountLifecycleService:
    repository = InMemoryModerationRepository()
    await repository.create_account(
        Account(
            id="elapsed",
            profile_status=ProfileStatus.SUSPENDED,
            suspended_until=NOW - timedelta(hours=1),
            suspension_reason="Harassment",
            created_at=NOW,
        )
    )
    await repository.create_account(
        Account(
            id="running",
            profile_status=ProfileStatus.SUSPENDED,
            suspended_until=NOW + timedelta(days=2),
            suspension_reason="Harassment",
            created_at=NOW,
        )
    )
    await repository.create_account(Account(id="active", profile_status=ProfileStatus.ACTIVE, created_at=NOW))
    return AccountLifecycleService(repository=repository, notifications=dispatcher, clock=lambda: NOW)


@pytest.mark.asyncio
async def test_sweep_lifts_only_elapsed_suspensions(recording_dispatcher):
    service = await _service(recording_dispatcher)

    expired = await suspension_expiry.run(service, now=NOW)

    assert expired == 1
    assert (await service.get_account("elapsed")).profile_status is ProfileStatus.ACTIVE
    assert (await service.get_account("running")).profile_status is ProfileStatus.SUSPENDED
    assert recording_dispatcher.kinds_for("elapsed") == [NotificationKind.SUSPENSION_EXPIRED]


@pytest.mark.asyncio
async def test_sweep_is_idempotent(recording_dispatcher):
    service = await _service(recording_dispatcher)
    await suspension_expiry.run(service, now=NOW)

    assert await suspension_expiry.run(service, now=NOW) == 0


@pytest.mark.asyncio
async def test_worker_counts_runs(recording_dispatcher):
    service = await _service(recording_dispatcher)
    worker = suspension_expiry.SuspensionExpiryWorker(service, interval_seconds=0.01)
    before = metrics.BACKGROUND_RUNS.labels(job="suspension_expiry", result="ok")._value.get()

    expired = await worker.run_once()

    assert expired == 1
    after = metrics.BACKGROUND_RUNS.labels(job="suspension_expiry", result="ok")._value.get()
    assert after == before + 1


class FlakyCommitRepository(InMemoryModerationRepository):
    def __init__(self, failing_user_id: str) -> None:
        super().__init__()
        self.failing_user_id = failing_user_id

    async def commit_account(self, commit: AccountCommit) -> Account:
        if commit.account.id == self.failing_user_id:
            raise ConnectionError("connection reset")
        return await super().commit_account(commit)


@pytest.mark.asyncio
async def test_sweep_continues_past_failing_account(recording_dispatcher):
    repository = FlakyCommitRepository("broken")
    for user_id in ("broken", "elapsed"):
        await repository.create_account(
            Account(
                id=user_id,
                profile_status=ProfileStatus.SUSPENDED,
                suspended_until=NOW - timedelta(hours=1),
                suspension_reason="Harassment",
                created_at=NOW,
            )
        )
    service = AccountLifecycleService(repository=repository, notifications=recording_dispatcher, clock=lambda: NOW)

    expired = await suspension_expiry.run(service, now=NOW)

    assert expired == 1
    assert repository.accounts["broken"].profile_status is ProfileStatus.SUSPENDED
    assert repository.accounts["elapsed"].profile_status is ProfileStatus.ACTIVE
