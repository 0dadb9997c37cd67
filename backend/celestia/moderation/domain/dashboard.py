"""Admin dashboard assembled from concurrent repository reads."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass

from celestia.moderation.domain.errors import DependencyFailure
from celestia.moderation.domain.models import Dashboard, ModerationStats, ProfileStatus, ReportStatus
from celestia.moderation.domain.repository import ModerationRepository, guarded
from celestia.obs import metrics as obs_metrics


@dataclass
class DashboardService:
    repository: ModerationRepository
    page_size: int = 50

    async def load_dashboard(self) -> Dashboard:
        """Fetch the four dashboard sections concurrently.

        Waits for every fetch to finish. If any of them failed the whole load
        fails with ``DependencyFailure``; partial dashboards are never returned.
        """
        start = time.perf_counter()
        results = await asyncio.gather(
            guarded("list_reports", self.repository.list_reports(status=ReportStatus.PENDING, limit=self.page_size)),
            guarded("list_queue", self.repository.list_queue(limit=self.page_size)),
            guarded("list_accounts", self.repository.list_accounts(status=ProfileStatus.PENDING, limit=self.page_size)),
            guarded("stats", self.repository.stats()),
            return_exceptions=True,
        )
        obs_metrics.MOD_DASHBOARD_BUILD_MS.observe((time.perf_counter() - start) * 1000.0)
        for result in results:
            if isinstance(result, DependencyFailure):
                raise result
            if isinstance(result, BaseException):
                raise DependencyFailure("dashboard_load_failed") from result
        reports, queue, accounts, stats = results
        return Dashboard(
            reports=list(reports),
            suspicious_profiles=list(queue),
            pending_accounts=list(accounts),
            stats=stats,
        )

    async def stats(self) -> ModerationStats:
        return await guarded("stats", self.repository.stats())
