"""User report intake and admin resolution."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from celestia.infra.auth import AuthenticatedUser, get_admin_user, get_current_user
from celestia.moderation.domain.container import get_report_service
from celestia.moderation.domain.models import ReportStatus
from celestia.moderation.domain.reports_service import ReportService

from .schemas import AccountOut, ReportIn, ReportOut, ReportResolutionOut, ResolveReportIn

router = APIRouter(prefix="/api/mod/v1/reports", tags=["moderation-reports"])


def get_report_service_dep() -> ReportService:
    return get_report_service()


@router.post("", response_model=ReportOut, status_code=status.HTTP_201_CREATED)
async def submit_report(
    body: ReportIn,
    service: ReportService = Depends(get_report_service_dep),
    user: AuthenticatedUser = Depends(get_current_user),
) -> ReportOut:
    report = await service.submit_report(
        reporter_id=user.id,
        reported_user_id=body.reported_user_id,
        reason=body.reason,
        additional_details=body.additional_details,
    )
    return ReportOut.from_domain(report)


@router.get("", response_model=list[ReportOut])
async def list_reports(
    status_filter: ReportStatus | None = Query(default=ReportStatus.PENDING, alias="status"),
    limit: int = Query(default=50, ge=1, le=200),
    service: ReportService = Depends(get_report_service_dep),
    _: AuthenticatedUser = Depends(get_admin_user),
) -> list[ReportOut]:
    reports = await service.list_reports(status=status_filter, limit=limit)
    return [ReportOut.from_domain(report) for report in reports]


@router.post("/{report_id}/resolve", response_model=ReportResolutionOut)
async def resolve_report(
    report_id: str,
    body: ResolveReportIn,
    service: ReportService = Depends(get_report_service_dep),
    admin: AuthenticatedUser = Depends(get_admin_user),
) -> ReportResolutionOut:
    report, account = await service.resolve_report(
        report_id=report_id,
        resolution=body.resolution,
        reason=body.reason,
        actor_id=admin.id,
        days=body.days,
    )
    return ReportResolutionOut(
        report=ReportOut.from_domain(report),
        account=AccountOut.from_domain(account) if account is not None else None,
    )
