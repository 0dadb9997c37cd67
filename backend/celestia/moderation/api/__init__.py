"""Moderation API routers."""

from fastapi import APIRouter

from . import accounts, appeals, dashboard, queue, reports

router = APIRouter()
router.include_router(accounts.router)
router.include_router(reports.router)
router.include_router(queue.router)
router.include_router(appeals.router)
router.include_router(dashboard.router)

__all__ = ["router"]
