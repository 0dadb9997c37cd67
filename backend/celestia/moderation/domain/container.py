"""Lightweight service container shared by moderation modules."""

from __future__ import annotations

from typing import Optional, Sequence

import asyncpg
from redis.asyncio import Redis

from celestia.infra.redis import RedisProxy
from celestia.moderation.domain.appeals_service import AppealService
from celestia.moderation.domain.dashboard import DashboardService
from celestia.moderation.domain.lifecycle_service import AccountLifecycleService
from celestia.moderation.domain.notifications import NotificationDispatcher, NullDispatcher
from celestia.moderation.domain.queue_service import QueueService
from celestia.moderation.domain.reports_service import ReportService
from celestia.moderation.domain.repository import InMemoryModerationRepository, ModerationRepository
from celestia.moderation.infra.notifications import RedisStreamDispatcher
from celestia.moderation.infra.postgres_repo import PostgresModerationRepository
from celestia.settings import settings

_repository: ModerationRepository = InMemoryModerationRepository()
_notifications: NotificationDispatcher = NullDispatcher()
_staff_ids: tuple[str, ...] = tuple(settings.moderation_staff_ids)
_lifecycle_service: AccountLifecycleService
_report_service: ReportService
_appeal_service: AppealService
_queue_service: QueueService
_dashboard_service: DashboardService


def _build() -> None:
    global _lifecycle_service, _report_service, _appeal_service, _queue_service, _dashboard_service
    _lifecycle_service = AccountLifecycleService(
        repository=_repository,
        notifications=_notifications,
        default_suspension_days=settings.suspension_default_days,
        warning_auto_suspend_threshold=settings.warning_auto_suspend_threshold,
    )
    _report_service = ReportService(repository=_repository, lifecycle=_lifecycle_service)
    _appeal_service = AppealService(
        repository=_repository,
        lifecycle=_lifecycle_service,
        notifications=_notifications,
        staff_recipient_ids=_staff_ids,
        min_message_length=settings.appeal_min_length,
    )
    _queue_service = QueueService(
        repository=_repository,
        lifecycle=_lifecycle_service,
        page_size=settings.queue_page_size,
    )
    _dashboard_service = DashboardService(repository=_repository, page_size=settings.queue_page_size)


_build()


def configure(
    *,
    repository: Optional[ModerationRepository] = None,
    notifications: Optional[NotificationDispatcher] = None,
    staff_recipient_ids: Optional[Sequence[str]] = None,
) -> None:
    global _repository, _notifications, _staff_ids
    if repository is not None:
        _repository = repository
    if notifications is not None:
        _notifications = notifications
    if staff_recipient_ids is not None:
        _staff_ids = tuple(staff_recipient_ids)
    _build()


def configure_postgres(pool: asyncpg.Pool, redis_conn: Redis | RedisProxy) -> None:
    proxy = redis_conn if isinstance(redis_conn, RedisProxy) else RedisProxy(redis_conn)
    configure(
        repository=PostgresModerationRepository(pool),
        notifications=RedisStreamDispatcher(
            proxy,
            stream=settings.notification_stream,
            maxlen=settings.notification_stream_maxlen,
        ),
    )


def reset_in_memory() -> None:
    """Swap back to fresh in-memory state (tests and local development)."""
    configure(repository=InMemoryModerationRepository(), notifications=NullDispatcher())


def get_repository() -> ModerationRepository:
    return _repository


def get_notifications() -> NotificationDispatcher:
    return _notifications


def get_lifecycle_service() -> AccountLifecycleService:
    return _lifecycle_service


def get_report_service() -> ReportService:
    return _report_service


def get_appeal_service() -> AppealService:
    return _appeal_service


def get_queue_service() -> QueueService:
    return _queue_service


def get_dashboard_service() -> DashboardService:
    return _dashboard_service
