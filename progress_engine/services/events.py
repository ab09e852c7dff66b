"""In-process domain events.

Handlers run synchronously, in subscription order, inside the publisher's
unit of work: whatever they write commits or rolls back with the event's
own write.  Handler return values are handed back to the publisher.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from progress_engine.db.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)

EventHandler = Callable[[UnitOfWork, Any], Coroutine[Any, Any, Any]]


@dataclass(frozen=True, slots=True)
class CompletionRecorded:
    """A lesson completion row changed for (student, course)."""

    student_id: UUID
    course_id: UUID


class EventBus:
    def __init__(self) -> None:
        self._handlers: dict[type, list[EventHandler]] = {}

    def subscribe(self, event_type: type, handler: EventHandler) -> None:
        self._handlers.setdefault(event_type, []).append(handler)

    async def publish(self, uow: UnitOfWork, event: object) -> list[Any]:
        handlers = self._handlers.get(type(event), [])
        if not handlers:
            logger.debug("No handlers for %s", type(event).__name__)
        results = []
        for handle in handlers:
            results.append(await handle(uow, event))
        return results
