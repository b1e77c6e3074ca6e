# listing_api/services/events.py
import logging
from abc import ABC, abstractmethod
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Dict, Optional, Tuple

from starlette.concurrency import run_in_threadpool

from listing_api.monitoring.metrics import trigger_events

logger = logging.getLogger(__name__)

PROPERTY_CREATED = "property.created"
PROPERTY_DELETED = "property.deleted"
OBJECT_FINALIZED = "object.finalized"

EVENT_TASKS = {
    PROPERTY_CREATED: "listing_api.workers.triggers.on_property_created",
    PROPERTY_DELETED: "listing_api.workers.triggers.on_property_deleted",
    OBJECT_FINALIZED: "listing_api.workers.triggers.on_object_finalized",
}

EventHandler = Callable[[str, Dict[str, Any]], Awaitable[Any]]


class EventDispatcher(ABC):
    mode = "abstract"

    @abstractmethod
    async def dispatch(self, name: str, payload: Dict[str, Any]):
        pass

    async def drain(self) -> int:
        return 0


class LocalEventDispatcher(EventDispatcher):
    """In-process queue, drained once the current request has been answered"""

    mode = "local"

    def __init__(self, handler: Optional[EventHandler] = None):
        self.handler = handler
        self._queue: Deque[Tuple[str, Dict[str, Any]]] = deque()

    @property
    def pending(self) -> int:
        return len(self._queue)

    async def dispatch(self, name: str, payload: Dict[str, Any]):
        trigger_events.labels(event=name, mode=self.mode).inc()
        self._queue.append((name, payload))

    async def drain(self) -> int:
        """Run queued events, including the ones their handlers emit"""
        handled = 0
        while self._queue:
            name, payload = self._queue.popleft()
            handled += 1
            if self.handler is None:
                logger.warning(f"No handler registered, dropping {name}")
                continue
            try:
                await self.handler(name, payload)
            except Exception as e:
                logger.exception(f"Trigger {name} failed for {payload}: {e}")
        return handled


class CeleryEventDispatcher(EventDispatcher):
    """Hands events to Celery workers"""

    mode = "celery"

    def __init__(self, celery_app, finalize_countdown: int = 0):
        self.celery_app = celery_app
        self.finalize_countdown = finalize_countdown

    async def dispatch(self, name: str, payload: Dict[str, Any]):
        task_name = EVENT_TASKS[name]
        # Give the ingestion handler time to append the variant stub
        countdown = self.finalize_countdown if name == OBJECT_FINALIZED else None
        trigger_events.labels(event=name, mode=self.mode).inc()
        await run_in_threadpool(
            self.celery_app.send_task,
            task_name,
            kwargs={"payload": payload},
            countdown=countdown,
        )
        logger.info(f"Sent {name} to {task_name}")
