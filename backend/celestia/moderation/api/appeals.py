"""Appeal submission for sanctioned users and review for admins."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response, status

from celestia.infra.auth import AuthenticatedUser, get_admin_user, get_current_user
from celestia.moderation.domain.appeals_service import AppealService
from celestia.moderation.domain.container import get_appeal_service
from celestia.moderation.domain.models import AppealStatus

from .schemas import AppealIn, AppealOut, AppealReviewIn

router = APIRouter(prefix="/api/mod/v1/appeals", tags=["moderation-appeals"])


def get_appeal_service_dep() -> AppealService:
    return get_appeal_service()


@router.post("", response_model=AppealOut, status_code=status.HTTP_201_CREATED)
async def submit_appeal(
    body: AppealIn,
    service: AppealService = Depends(get_appeal_service_dep),
    user: AuthenticatedUser = Depends(get_current_user),
) -> AppealOut:
    appeal = await service.submit_appeal(user_id=user.id, message=body.message)
    return AppealOut.from_domain(appeal)


@router.get("/me", response_model=AppealOut)
async def get_my_pending_appeal(
    service: AppealService = Depends(get_appeal_service_dep),
    user: AuthenticatedUser = Depends(get_current_user),
):
    appeal = await service.get_pending_appeal(user.id)
    if appeal is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return AppealOut.from_domain(appeal)


@router.get("", response_model=list[AppealOut])
async def list_appeals(
    status_filter: AppealStatus | None = Query(default=AppealStatus.PENDING, alias="status"),
    limit: int = Query(default=50, ge=1, le=200),
    service: AppealService = Depends(get_appeal_service_dep),
    _: AuthenticatedUser = Depends(get_admin_user),
) -> list[AppealOut]:
    appeals = await service.list_appeals(status=status_filter, limit=limit)
    return [AppealOut.from_domain(appeal) for appeal in appeals]


@router.post("/{appeal_id}/review", response_model=AppealOut)
async def review_appeal(
    appeal_id: str,
    body: AppealReviewIn,
    service: AppealService = Depends(get_appeal_service_dep),
    admin: AuthenticatedUser = Depends(get_admin_user),
) -> AppealOut:
    appeal = await service.review_appeal(
        appeal_id=appeal_id,
        decision=body.decision,
        reviewer_id=admin.id,
        note=body.note,
    )
    return AppealOut.from_domain(appeal)
