"""Redis stream publisher for lifecycle notifications."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from redis.asyncio import Redis

from celestia.infra.redis import RedisProxy
from celestia.moderation.domain.notifications import NotificationDispatcher, NotificationKind


def _encode(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


class RedisStreamDispatcher(NotificationDispatcher):
    """Appends one entry per notification to the push/email delivery stream."""

    def __init__(
        self,
        redis: Redis | RedisProxy,
        *,
        stream: str = "notify:push",
        maxlen: Optional[int] = None,
    ) -> None:
        self._redis = redis if isinstance(redis, RedisProxy) else RedisProxy(redis)
        self._stream = stream
        self._maxlen = maxlen

    async def notify(self, user_id: str, kind: NotificationKind, payload: Mapping[str, Any]) -> bool:
        message_id = await self._redis.xadd(
            self._stream,
            {
                "user_id": user_id,
                "kind": kind.value,
                "payload": json.dumps(dict(payload), default=_encode),
                "created_at": datetime.now(timezone.utc).isoformat(),
            },
            maxlen=self._maxlen,
        )
        return bool(message_id)
