"""
Notification sinks: where dispatched notifications end up.

Delivery (email, SMS) is owned by an external service; this side only hands events over.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Dict, Optional, Protocol

import httpx
from pydantic import BaseModel, Field

from mwss.core.clock import utcnow
from mwss.core.exceptions import NotificationError

logger = logging.getLogger(__name__)

ADMIN_RECIPIENT = "admin"


class NotificationEvent(str, Enum):
    PAYMENT_SUBMITTED = "payment_submitted"
    PAYMENT_APPROVED = "payment_approved"
    PAYMENT_REJECTED = "payment_rejected"
    MEMBER_REGISTERED = "member_registered"
    MEMBER_VERIFIED = "member_verified"
    STUDENT_REGISTERED = "student_registered"
    VOLUNTEER_REGISTERED = "volunteer_registered"
    VOLUNTEER_APPROVED = "volunteer_approved"


class Notification(BaseModel):
    event_type: NotificationEvent
    recipient: str
    details: Dict[str, str] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)


class NotificationSink(Protocol):
    async def send(self, notification: Notification) -> None:
        ...


class LoggingNotificationSink:
    """Default sink: records the event in the application log."""

    async def send(self, notification: Notification) -> None:
        logger.info(
            "Notification %s -> %s %s",
            notification.event_type.value,
            notification.recipient,
            notification.details,
        )


class WebhookNotificationSink:
    """POSTs each notification as JSON to an external delivery service."""

    def __init__(self, url: str, timeout_seconds: float = 5.0, client: Optional[httpx.AsyncClient] = None) -> None:
        self._url = url
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)

    async def send(self, notification: Notification) -> None:
        try:
            response = await self._client.post(self._url, json=notification.model_dump(mode="json"))
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise NotificationError(f"Webhook delivery failed: {exc}") from exc

    async def aclose(self) -> None:
        await self._client.aclose()
