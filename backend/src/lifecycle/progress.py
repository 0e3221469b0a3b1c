"""Progress Emitter - one-way ordered event channel for a single request.

Producers (the provisioner) push events synchronously; the SSE route drains
them asynchronously. Delivery is at-most-once: nothing is replayed to a
reconnecting client and a full queue drops the event.
"""

import asyncio
import logging
from typing import AsyncIterator, Optional

from .errors import LifecycleError, ProvisioningError
from .models import ErrorEvent, LogEvent, ProgressEvent, SuccessEvent

logger = logging.getLogger(__name__)


class ProgressEmitter:
    """Per-request push channel, closed after the first terminal event."""

    def __init__(self, request_id: str = "", maxsize: int = 1000):
        self.request_id = request_id
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self.terminal_event: Optional[ProgressEvent] = None

    @property
    def closed(self) -> bool:
        return self._closed

    def emit(self, event: ProgressEvent) -> bool:
        """Queue an event. Returns False when it was not delivered."""
        if self._closed:
            logger.debug(f"[DEPLOY] {self.request_id}: dropping event after terminal: {event}")
            return False
        if event.terminal:
            self._closed = True
            self.terminal_event = event
        return self._safe_put(event)

    def _safe_put(self, event: ProgressEvent) -> bool:
        try:
            self._queue.put_nowait(event)
            return True
        except asyncio.QueueFull:
            logger.warning(f"[DEPLOY] {self.request_id}: progress queue full, event dropped")
            return False

    def log(self, message: str) -> bool:
        logger.info(f"[DEPLOY] {self.request_id}: {message}")
        return self.emit(LogEvent(message))

    def error(self, message: str, error_type: str = "ProvisioningError",
              step: Optional[str] = None, resource: Optional[str] = None) -> bool:
        logger.error(f"[DEPLOY] {self.request_id}: {message} (step={step}, resource={resource})")
        return self.emit(ErrorEvent(message, error_type=error_type, step=step, resource=resource))

    def fail(self, exc: LifecycleError) -> bool:
        """Terminate the channel with the error event describing ``exc``."""
        step = resource = None
        if isinstance(exc, ProvisioningError):
            step, resource = exc.step, exc.resource
        return self.error(exc.message, error_type=exc.error_type, step=step, resource=resource)

    def success(self, name: str, port: int, namespace: Optional[str] = None, message: str = "") -> bool:
        logger.info(f"[DEPLOY] {self.request_id}: {message or 'success'}")
        return self.emit(SuccessEvent(name=name, port=port, namespace=namespace, message=message))

    async def events(self) -> AsyncIterator[ProgressEvent]:
        """Yield events in production order until the terminal one.

        Also stops once the channel is closed and drained, which covers a
        terminal event that was dropped on a full queue.
        """
        while not (self._closed and self._queue.empty()):
            event = await self._queue.get()
            yield event
            if event.terminal:
                return
