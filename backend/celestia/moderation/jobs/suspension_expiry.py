"""Return suspended accounts to active once their suspension has elapsed."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

from celestia.moderation.domain.errors import DependencyFailure, InvalidTransition, NotFound
from celestia.moderation.domain.lifecycle_service import AccountLifecycleService
from celestia.moderation.domain.repository import guarded
from celestia.obs import metrics as obs_metrics

_LOG = logging.getLogger(__name__)

JOB_NAME = "suspension_expiry"


async def run(
    service: AccountLifecycleService,
    *,
    now: datetime | None = None,
    batch_size: int = 100,
) -> int:
    """Expire every elapsed suspension and return how many were lifted."""

    now = now or datetime.now(timezone.utc)
    due = await guarded(
        "list_expired_suspensions",
        service.repository.list_expired_suspensions(now=now, limit=batch_size),
    )
    expired = 0
    for account in due:
        try:
            await service.expire_suspension(user_id=account.id, now=now)
        except (InvalidTransition, NotFound) as exc:
            # changed by an admin between the scan and the commit
            _LOG.info("suspension expiry skipped", extra={"user_id": account.id, "code": exc.code})
            continue
        except DependencyFailure as exc:
            _LOG.warning("suspension expiry failed", extra={"user_id": account.id, "code": exc.code})
            continue
        expired += 1
    return expired


class SuspensionExpiryWorker:
    """Periodically runs :func:`run` until stopped."""

    def __init__(self, service: AccountLifecycleService, *, interval_seconds: float = 300.0) -> None:
        self.service = service
        self.interval_seconds = interval_seconds
        self._running = False

    async def run_once(self) -> int:
        try:
            expired = await run(self.service)
        except Exception:
            obs_metrics.inc_background_run(JOB_NAME, "error")
            _LOG.exception("suspension expiry sweep failed")
            return 0
        obs_metrics.inc_background_run(JOB_NAME, "ok")
        if expired:
            _LOG.info("suspensions expired", extra={"count": expired})
        return expired

    async def run_forever(self) -> None:
        self._running = True
        while self._running:
            await self.run_once()
            await asyncio.sleep(self.interval_seconds)

    def stop(self) -> None:
        self._running = False
