"""Account lifecycle endpoints for admins and for the account owner."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from celestia.infra.auth import AuthenticatedUser, get_admin_user, get_current_user
from celestia.moderation.domain.container import get_lifecycle_service
from celestia.moderation.domain.lifecycle_service import AccountLifecycleService
from celestia.moderation.domain.models import ProfileStatus

from .schemas import AccountOut, AuditEntryOut, ReasonIn, RegisterAccountIn, RejectIn, SuspendIn

router = APIRouter(prefix="/api/mod/v1/accounts", tags=["moderation-accounts"])


def get_lifecycle_service_dep() -> AccountLifecycleService:
    return get_lifecycle_service()


@router.post("", response_model=AccountOut, status_code=status.HTTP_201_CREATED)
async def register_account(
    body: RegisterAccountIn,
    service: AccountLifecycleService = Depends(get_lifecycle_service_dep),
    _: AuthenticatedUser = Depends(get_admin_user),
) -> AccountOut:
    account = await service.register_account(user_id=body.user_id)
    return AccountOut.from_domain(account)


@router.get("", response_model=list[AccountOut])
async def list_accounts(
    status_filter: ProfileStatus | None = Query(default=None, alias="status"),
    limit: int = Query(default=50, ge=1, le=200),
    service: AccountLifecycleService = Depends(get_lifecycle_service_dep),
    _: AuthenticatedUser = Depends(get_admin_user),
) -> list[AccountOut]:
    accounts = await service.list_accounts(status=status_filter, limit=limit)
    return [AccountOut.from_domain(account) for account in accounts]


@router.get("/me", response_model=AccountOut)
async def get_my_account(
    service: AccountLifecycleService = Depends(get_lifecycle_service_dep),
    user: AuthenticatedUser = Depends(get_current_user),
) -> AccountOut:
    return AccountOut.from_domain(await service.get_account(user.id))


@router.post("/me/retry", response_model=AccountOut)
async def retry_review(
    service: AccountLifecycleService = Depends(get_lifecycle_service_dep),
    user: AuthenticatedUser = Depends(get_current_user),
) -> AccountOut:
    account = await service.retry(user_id=user.id)
    return AccountOut.from_domain(account)


@router.get("/{user_id}", response_model=AccountOut)
async def get_account(
    user_id: str,
    service: AccountLifecycleService = Depends(get_lifecycle_service_dep),
    _: AuthenticatedUser = Depends(get_admin_user),
) -> AccountOut:
    return AccountOut.from_domain(await service.get_account(user_id))


@router.get("/{user_id}/audit", response_model=list[AuditEntryOut])
async def get_account_audit(
    user_id: str,
    limit: int = Query(default=50, ge=1, le=200),
    service: AccountLifecycleService = Depends(get_lifecycle_service_dep),
    _: AuthenticatedUser = Depends(get_admin_user),
) -> list[AuditEntryOut]:
    entries = await service.audit_trail(user_id, limit=limit)
    return [AuditEntryOut.from_domain(entry) for entry in entries]


@router.post("/{user_id}/approve", response_model=AccountOut)
async def approve_account(
    user_id: str,
    service: AccountLifecycleService = Depends(get_lifecycle_service_dep),
    admin: AuthenticatedUser = Depends(get_admin_user),
) -> AccountOut:
    account = await service.approve(user_id=user_id, actor_id=admin.id)
    return AccountOut.from_domain(account)


@router.post("/{user_id}/reject", response_model=AccountOut)
async def reject_account(
    user_id: str,
    body: RejectIn,
    service: AccountLifecycleService = Depends(get_lifecycle_service_dep),
    admin: AuthenticatedUser = Depends(get_admin_user),
) -> AccountOut:
    account = await service.reject(
        user_id=user_id,
        actor_id=admin.id,
        reason_code=body.reason_code,
        admin_note=body.admin_note,
    )
    return AccountOut.from_domain(account)


@router.post("/{user_id}/warn", response_model=AccountOut)
async def warn_account(
    user_id: str,
    body: ReasonIn,
    service: AccountLifecycleService = Depends(get_lifecycle_service_dep),
    admin: AuthenticatedUser = Depends(get_admin_user),
) -> AccountOut:
    account = await service.warn(user_id=user_id, actor_id=admin.id, reason=body.reason)
    return AccountOut.from_domain(account)


@router.post("/{user_id}/suspend", response_model=AccountOut)
async def suspend_account(
    user_id: str,
    body: SuspendIn,
    service: AccountLifecycleService = Depends(get_lifecycle_service_dep),
    admin: AuthenticatedUser = Depends(get_admin_user),
) -> AccountOut:
    account = await service.suspend(user_id=user_id, actor_id=admin.id, reason=body.reason, days=body.days)
    return AccountOut.from_domain(account)


@router.post("/{user_id}/ban", response_model=AccountOut)
async def ban_account(
    user_id: str,
    body: ReasonIn,
    service: AccountLifecycleService = Depends(get_lifecycle_service_dep),
    admin: AuthenticatedUser = Depends(get_admin_user),
) -> AccountOut:
    account = await service.ban(user_id=user_id, actor_id=admin.id, reason=body.reason)
    return AccountOut.from_domain(account)


@router.post("/{user_id}/reinstate", response_model=AccountOut)
async def reinstate_account(
    user_id: str,
    service: AccountLifecycleService = Depends(get_lifecycle_service_dep),
    admin: AuthenticatedUser = Depends(get_admin_user),
) -> AccountOut:
    account = await service.reinstate(user_id=user_id, actor_id=admin.id)
    return AccountOut.from_domain(account)
