"""
Fire-and-forget notification dispatch.

notify() only enqueues; a single worker task drains the queue into the sink. Sink failures
are logged by the worker and never reach the code that raised the event.
"""

import asyncio
import logging
from typing import Dict, Optional

from fastapi import Request

from mwss.core.config import settings
from mwss.notifications.sinks import (
    LoggingNotificationSink,
    Notification,
    NotificationEvent,
    NotificationSink,
    WebhookNotificationSink,
)

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    def __init__(self, sink: NotificationSink, max_queue_size: int = 1000) -> None:
        self._sink = sink
        self._queue: "asyncio.Queue[Notification]" = asyncio.Queue(maxsize=max_queue_size)
        self._worker: Optional[asyncio.Task] = None

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def notify(
        self,
        event_type: NotificationEvent,
        recipient: Optional[str],
        details: Optional[Dict[str, str]] = None,
    ) -> None:
        """Queue a notification. Never raises and never waits."""
        if not recipient:
            return
        notification = Notification(event_type=event_type, recipient=recipient, details=details or {})
        try:
            self._queue.put_nowait(notification)
        except asyncio.QueueFull:
            logger.warning("Notification queue full, dropping %s for %s", event_type.value, recipient)

    def start(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run(), name="notification-dispatcher")

    async def drain(self) -> None:
        """Wait until every queued notification has been handed to the sink."""
        await self._queue.join()

    async def stop(self, timeout: float = 5.0) -> None:
        if self._worker is not None:
            try:
                await asyncio.wait_for(self.drain(), timeout=timeout)
            except asyncio.TimeoutError:
                logger.warning("Stopping notification worker with %d undelivered notification(s)", self.pending)
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None
        close = getattr(self._sink, "aclose", None)
        if close is not None:
            await close()

    async def _run(self) -> None:
        while True:
            notification = await self._queue.get()
            try:
                await self._sink.send(notification)
            except Exception:
                logger.exception(
                    "Notification %s to %s failed",
                    notification.event_type.value,
                    notification.recipient,
                )
            finally:
                self._queue.task_done()


def build_dispatcher() -> NotificationDispatcher:
    if settings.notification_webhook_url:
        sink: NotificationSink = WebhookNotificationSink(
            settings.notification_webhook_url,
            timeout_seconds=settings.notification_timeout_seconds,
        )
    else:
        sink = LoggingNotificationSink()
    return NotificationDispatcher(sink, max_queue_size=settings.notification_queue_size)


def get_dispatcher(request: Request) -> NotificationDispatcher:
    """FastAPI dependency: the dispatcher created by the application lifespan."""
    return request.app.state.dispatcher
