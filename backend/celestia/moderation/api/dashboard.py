"""Admin dashboard snapshot."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from celestia.infra.auth import AuthenticatedUser, get_admin_user
from celestia.moderation.domain.container import get_dashboard_service
from celestia.moderation.domain.dashboard import DashboardService

from .schemas import DashboardOut, StatsOut

router = APIRouter(prefix="/api/mod/v1/dashboard", tags=["moderation-dashboard"])


def get_dashboard_service_dep() -> DashboardService:
    return get_dashboard_service()


@router.get("", response_model=DashboardOut)
async def load_dashboard(
    service: DashboardService = Depends(get_dashboard_service_dep),
    _: AuthenticatedUser = Depends(get_admin_user),
) -> DashboardOut:
    return DashboardOut.from_domain(await service.load_dashboard())


@router.get("/stats", response_model=StatsOut)
async def dashboard_stats(
    service: DashboardService = Depends(get_dashboard_service_dep),
    _: AuthenticatedUser = Depends(get_admin_user),
) -> StatsOut:
    return StatsOut.from_domain(await service.stats())
