# backend/app/services/realtime.py
"""
Scan change feed

Every scan row written through ScanRepository is published here as an
INSERT/UPDATE event, scoped to the row's owner. Websocket sessions subscribe
per user and receive events in publish order; consumers must not rely on
that order and re-read the authoritative list instead.
"""

import asyncio
from collections import defaultdict
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Dict, Set

from app.core.logging import logger


class ChangeType(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"


@dataclass(frozen=True)
class ScanChangeEvent:
    event_type: ChangeType
    record: Dict[str, Any] = field(default_factory=dict)

    @property
    def user_id(self) -> str:
        return str(self.record.get("user_id", ""))


class ScanFeed:
    """In-process fan-out of scan change events, keyed by owner"""

    def __init__(self, max_queue_size: int = 100):
        self.max_queue_size = max_queue_size
        self._subscribers: Dict[str, Set[asyncio.Queue]] = defaultdict(set)

    def subscribe(self, user_id: str) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.max_queue_size)
        self._subscribers[user_id].add(queue)
        return queue

    def unsubscribe(self, user_id: str, queue: asyncio.Queue):
        queues = self._subscribers.get(user_id)
        if not queues:
            return
        queues.discard(queue)
        if not queues:
            del self._subscribers[user_id]

    @asynccontextmanager
    async def subscription(self, user_id: str) -> AsyncIterator[asyncio.Queue]:
        queue = self.subscribe(user_id)
        try:
            yield queue
        finally:
            self.unsubscribe(user_id, queue)

    def subscriber_count(self, user_id: str) -> int:
        return len(self._subscribers.get(user_id, ()))

    def publish(self, event: ScanChangeEvent):
        for queue in list(self._subscribers.get(event.user_id, ())):
            if queue.full():
                # Slow consumer: drop the oldest event, the next re-fetch catches up
                queue.get_nowait()
                logger.warning("Scan feed queue full, dropped oldest event", extra={"user_id": event.user_id})
            queue.put_nowait(event)


scan_feed = ScanFeed()
