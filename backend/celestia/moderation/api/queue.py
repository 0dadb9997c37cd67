"""Moderation queue of automatically flagged profiles."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from celestia.infra.auth import AuthenticatedUser, get_admin_user
from celestia.moderation.domain.container import get_queue_service
from celestia.moderation.domain.queue_service import QueueService

from .schemas import AccountOut, QueueAdmitIn, QueueBanIn, QueueEntryOut

router = APIRouter(prefix="/api/mod/v1/queue", tags=["moderation-queue"])


def get_queue_service_dep() -> QueueService:
    return get_queue_service()


@router.post("", response_model=QueueEntryOut, status_code=status.HTTP_201_CREATED)
async def admit_entry(
    body: QueueAdmitIn,
    service: QueueService = Depends(get_queue_service_dep),
    _: AuthenticatedUser = Depends(get_admin_user),
) -> QueueEntryOut:
    entry = await service.admit(
        user_id=body.user_id,
        suspicion_score=body.suspicion_score,
        indicators=body.indicators,
        auto_detected=body.auto_detected,
    )
    return QueueEntryOut.from_domain(entry)


@router.get("", response_model=list[QueueEntryOut])
async def list_queue(
    limit: int | None = Query(default=None, ge=1, le=200),
    service: QueueService = Depends(get_queue_service_dep),
    _: AuthenticatedUser = Depends(get_admin_user),
) -> list[QueueEntryOut]:
    entries = await service.list_queue(limit=limit)
    return [QueueEntryOut.from_domain(entry) for entry in entries]


@router.post("/{entry_id}/dismiss", status_code=status.HTTP_204_NO_CONTENT)
async def dismiss_entry(
    entry_id: str,
    service: QueueService = Depends(get_queue_service_dep),
    admin: AuthenticatedUser = Depends(get_admin_user),
) -> None:
    await service.dismiss(entry_id=entry_id, actor_id=admin.id)


@router.post("/{entry_id}/ban", response_model=AccountOut)
async def ban_from_queue(
    entry_id: str,
    body: QueueBanIn | None = None,
    service: QueueService = Depends(get_queue_service_dep),
    admin: AuthenticatedUser = Depends(get_admin_user),
) -> AccountOut:
    account = await service.ban_from_queue(entry_id=entry_id, reason=body.reason if body else None, actor_id=admin.id)
    return AccountOut.from_domain(account)
