import sys
from pathlib import Path
from typing import Any, Mapping

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from fakeredis.aioredis import FakeRedis

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

from celestia.infra import postgres
from celestia.main import app
from celestia.moderation.domain import container
from celestia.moderation.domain.notifications import NotificationKind
from celestia.settings import settings


class RecordingDispatcher:
	"""Notification dispatcher that remembers what it was asked to send."""

	def __init__(self, *, fail: bool = False, accept: bool = True) -> None:
		self.fail = fail
		self.accept = accept
		self.sent: list[tuple[str, NotificationKind, dict[str, Any]]] = []

	async def notify(self, user_id: str, kind: NotificationKind, payload: Mapping[str, Any]) -> bool:
		if self.fail:
			raise RuntimeError("push gateway unavailable")
		self.sent.append((user_id, kind, dict(payload)))
		return self.accept

	def kinds_for(self, user_id: str) -> list[NotificationKind]:
		return [kind for recipient, kind, _ in self.sent if recipient == user_id]


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
	from celestia.infra.redis import redis_client, set_redis_client
	original = redis_client._client
	client = FakeRedis(decode_responses=True)
	set_redis_client(client)
	try:
		yield client
	finally:
		set_redis_client(original)
		await client.flushall()


@pytest.fixture(autouse=True)
def patch_postgres(monkeypatch):
	async def _noop():
		return None

	monkeypatch.setattr(postgres, "init_pool", _noop)
	monkeypatch.setattr(postgres, "close_pool", _noop)


@pytest.fixture(autouse=True)
def force_test_settings():
	"""Ensure a consistent test environment.

	API tests authenticate via X-User-Id/X-User-Roles headers, which are only
	accepted in dev mode.
	"""
	original_env = settings.environment
	settings.environment = "dev"
	try:
		yield
	finally:
		settings.environment = original_env


@pytest.fixture(autouse=True)
def moderation_container():
	"""Give every test fresh in-memory moderation state."""
	container.reset_in_memory()
	yield container
	container.reset_in_memory()


@pytest.fixture
def recording_dispatcher() -> RecordingDispatcher:
	dispatcher = RecordingDispatcher()
	container.configure(notifications=dispatcher)
	return dispatcher


@pytest.fixture
def admin_headers() -> dict[str, str]:
	return {"X-User-Id": "admin-1", "X-User-Roles": "admin"}


@pytest_asyncio.fixture
async def api_client():
	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client
