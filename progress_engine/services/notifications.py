"""Best-effort user notifications.

The engine never delivers notifications itself.  It hands them to a
``NotificationDispatcher`` that is constructed once from configuration
and injected into the services that need it:

  - HttpNotificationDispatcher:         POSTs JSON to NOTIFICATION_URL.
  - UnconfiguredNotificationDispatcher: NOTIFICATION_URL unset; logs and drops.
  - InMemoryNotificationDispatcher:     records what was sent (tests).

Services call ``send_best_effort`` after their transaction has committed.
A failed notification is logged and counted, and never propagates.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol, runtime_checkable
from uuid import UUID

import httpx

from progress_engine.core.config import SETTINGS, Settings
from progress_engine.core.metrics import NOTIFICATION_FAILURES

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Notification:
    user_id: UUID
    type: str  # course_completed|certificate_earned|quiz_graded|assignment_feedback
    title: str
    message: str
    link: str | None = None


@runtime_checkable
class NotificationDispatcher(Protocol):
    async def notify(self, notification: Notification) -> None:
        """Deliver one notification.  May raise on transport failure."""
        ...


class HttpNotificationDispatcher:
    def __init__(
        self,
        url: str,
        timeout_seconds: float,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url
        self._timeout = timeout_seconds
        self._transport = transport

    async def notify(self, notification: Notification) -> None:
        async with httpx.AsyncClient(
            timeout=self._timeout, transport=self._transport
        ) as client:
            response = await client.post(
                self._url,
                json={
                    "userId": str(notification.user_id),
                    "type": notification.type,
                    "title": notification.title,
                    "message": notification.message,
                    "link": notification.link,
                },
            )
            response.raise_for_status()


class UnconfiguredNotificationDispatcher:
    async def notify(self, notification: Notification) -> None:
        logger.debug(
            "Notification dropped (no NOTIFICATION_URL): type=%s user=%s",
            notification.type,
            notification.user_id,
        )


class InMemoryNotificationDispatcher:
    """Records notifications; set ``fail_with`` to simulate an outage."""

    def __init__(self) -> None:
        self.sent: list[Notification] = []
        self.fail_with: Exception | None = None

    async def notify(self, notification: Notification) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append(notification)

    def of_type(self, notification_type: str) -> list[Notification]:
        return [n for n in self.sent if n.type == notification_type]


async def send_best_effort(
    dispatcher: NotificationDispatcher, notification: Notification
) -> bool:
    """Dispatch and swallow delivery errors.  Returns True when delivered."""
    try:
        await dispatcher.notify(notification)
    except Exception:
        NOTIFICATION_FAILURES.labels(type=notification.type).inc()
        logger.warning(
            "Notification failed: type=%s user=%s",
            notification.type,
            notification.user_id,
            exc_info=True,
        )
        return False
    return True


def build_dispatcher(settings: Settings) -> NotificationDispatcher:
    if settings.notification_url:
        return HttpNotificationDispatcher(
            settings.notification_url, settings.notification_timeout_seconds
        )
    return UnconfiguredNotificationDispatcher()


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

notification_dispatcher: NotificationDispatcher = build_dispatcher(SETTINGS)
