"""Project event bus.

In-process pub/sub used to push render lifecycle changes to editor views
over Server-Sent Events. Delivery is best effort: a view that misses an
event re-reads the project on its next poll.
"""

import asyncio
import json
import logging
from collections import defaultdict
from collections.abc import AsyncGenerator
from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import UUID

logger = logging.getLogger(__name__)

RENDER_STARTED = "render_started"
RENDER_COMPLETED = "render_completed"
RENDER_FAILED = "render_failed"
STATUS_CHANGED = "status_changed"
EDIT_SAVED = "edit_saved"


@dataclass
class ProjectEvent:
    event_type: str
    project_id: str
    timestamp: str = field(default_factory=lambda: datetime.now(UTC).isoformat())
    data: dict | None = None

    def to_sse(self) -> str:
        """Format event for SSE transmission."""
        payload = {
            "type": self.event_type,
            "project_id": self.project_id,
            "timestamp": self.timestamp,
        }
        if self.data:
            payload["data"] = self.data
        return f"event: {self.event_type}\ndata: {json.dumps(payload)}\n\n"


class ProjectEventManager:
    """Fan-out of project events to per-subscriber queues."""

    def __init__(self, max_queue_size: int = 100) -> None:
        self._subscribers: dict[str, set[asyncio.Queue[ProjectEvent]]] = defaultdict(set)
        self._lock = asyncio.Lock()
        self._max_queue_size = max_queue_size

    async def subscribe(self, project_id: str | UUID) -> AsyncGenerator[ProjectEvent, None]:
        """Yield events for one project until the consumer goes away."""
        key = str(project_id)
        queue: asyncio.Queue[ProjectEvent] = asyncio.Queue(maxsize=self._max_queue_size)

        async with self._lock:
            self._subscribers[key].add(queue)
        logger.debug(f"Subscriber added for project {key}")

        try:
            while True:
                yield await queue.get()
        finally:
            async with self._lock:
                self._subscribers[key].discard(queue)
                if not self._subscribers[key]:
                    del self._subscribers[key]
            logger.debug(f"Subscriber removed for project {key}")

    async def publish(
        self,
        project_id: str | UUID,
        event_type: str,
        data: dict | None = None,
    ) -> int:
        """Publish an event; returns the number of subscribers reached."""
        key = str(project_id)
        event = ProjectEvent(event_type=event_type, project_id=key, data=data)

        async with self._lock:
            subscribers = self._subscribers.get(key, set()).copy()

        notified = 0
        for queue in subscribers:
            try:
                queue.put_nowait(event)
                notified += 1
            except asyncio.QueueFull:
                logger.warning(f"Dropping {event_type} for slow subscriber of project {key}")

        if notified:
            logger.info(f"Published {event_type} to {notified} subscriber(s) for project {key}")
        return notified

    def get_subscriber_count(self, project_id: str | UUID) -> int:
        return len(self._subscribers.get(str(project_id), set()))


# Global event manager instance
event_manager = ProjectEventManager()
