from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from celestia.moderation.domain.notifications import NotificationKind
from celestia.moderation.infra.notifications import RedisStreamDispatcher


@pytest.mark.asyncio
async def test_dispatcher_appends_to_stream(fake_redis):
    dispatcher = RedisStreamDispatcher(fake_redis, stream="notify:test", maxlen=100)
    until = datetime(2026, 3, 8, 12, 0, tzinfo=timezone.utc)

    delivered = await dispatcher.notify("u1", NotificationKind.SUSPENDED, {"reason": "Harassment", "suspendedUntil": until})

    assert delivered is True
    entries = await fake_redis.xrange("notify:test")
    assert len(entries) == 1
    _, fields = entries[0]
    assert fields["user_id"] == "u1"
    assert fields["kind"] == "suspended"
    payload = json.loads(fields["payload"])
    assert payload == {"reason": "Harassment", "suspendedUntil": until.isoformat()}
