from __future__ import annotations

from unittest.mock import MagicMock

import asyncpg
from fakeredis.aioredis import FakeRedis

from celestia.infra.redis import RedisProxy
from celestia.moderation.domain import container
from celestia.moderation.infra.notifications import RedisStreamDispatcher
from celestia.moderation.infra.postgres_repo import PostgresModerationRepository


def test_configure_postgres_wires_every_service_to_one_repository() -> None:
    pool = MagicMock(spec=asyncpg.Pool)
    try:
        container.configure_postgres(pool, RedisProxy(FakeRedis()))

        repository = container.get_repository()
        assert isinstance(repository, PostgresModerationRepository)
        assert repository.pool is pool
        assert isinstance(container.get_notifications(), RedisStreamDispatcher)
        assert container.get_lifecycle_service().repository is repository
        assert container.get_report_service().lifecycle is container.get_lifecycle_service()
        assert container.get_appeal_service().lifecycle is container.get_lifecycle_service()
        assert container.get_queue_service().lifecycle is container.get_lifecycle_service()
    finally:
        container.reset_in_memory()


def test_reset_in_memory_drops_postgres_wiring() -> None:
    container.configure_postgres(MagicMock(spec=asyncpg.Pool), FakeRedis())

    container.reset_in_memory()

    assert not isinstance(container.get_repository(), PostgresModerationRepository)
