"""Background worker process.

RUN:  python -m progress_engine.worker

Same image as the API, different command.  Polls every registered queue
round-robin, dispatches each task to its handler, and logs the outcome.
A failing task is logged and dropped.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import time
from collections.abc import Callable, Coroutine
from typing import Any
from uuid import UUID

from progress_engine.core.config import SETTINGS
from progress_engine.core.logging import setup_logging
from progress_engine.core.metrics import QUEUE_DEPTH
from progress_engine.services.notifications import (
    Notification,
    NotificationDispatcher,
    notification_dispatcher,
    send_best_effort,
)
from progress_engine.services.task_queue import CERTIFICATE_QUEUE, TaskQueue, task_queue

TaskHandler = Callable[[dict], Coroutine[Any, Any, None]]

logger = logging.getLogger("worker")


HANDLERS: dict[str, TaskHandler] = {}


def register_handler(queue: str):
    """Decorator: register a coroutine as the handler for a queue."""

    def decorator(func):
        HANDLERS[queue] = func
        return func

    return decorator


def certificate_number(now: float | None = None) -> str:
    """``CERT-<epoch ms>-<9 uppercase alphanumerics>``."""
    millis = int((time.time() if now is None else now) * 1000)
    alphabet = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
    suffix = "".join(secrets.choice(alphabet) for _ in range(9))
    return f"CERT-{millis}-{suffix}"


async def issue_certificate(
    payload: dict, dispatcher: NotificationDispatcher = notification_dispatcher
) -> str:
    student_id = UUID(payload["student_id"])
    number = certificate_number()
    title = payload.get("course_title") or "the course"
    logger.info(
        "Issuing certificate=%s to student=%s for course=%s",
        number,
        student_id,
        payload.get("course_id"),
    )
    await send_best_effort(
        dispatcher,
        Notification(
            user_id=student_id,
            type="certificate_earned",
            title="Certificate earned",
            message=f'You\'ve earned a certificate for completing "{title}".',
            link=f"/certificates/{number}",
        ),
    )
    return number


@register_handler(CERTIFICATE_QUEUE)
async def handle_certificate_issuance(payload: dict) -> None:
    await issue_certificate(payload)


async def run_once(queue: TaskQueue = task_queue, timeout: int = 1) -> int:
    """One round-robin pass over all queues.  Returns tasks processed."""
    processed = 0
    for queue_name, handler in HANDLERS.items():
        task = await queue.dequeue(queue_name, timeout=timeout)
        if task is None:
            continue
        processed += 1
        try:
            await handler(task.payload)
            logger.info("Task %s on [%s] completed", task.id, queue_name)
        except Exception:
            logger.exception("Task %s on [%s] failed", task.id, queue_name)
        QUEUE_DEPTH.labels(queue_name=queue_name).set(
            await queue.queue_length(queue_name)
        )
    return processed


async def run_worker() -> None:
    logger.info("Worker started, listening on queues: %s", list(HANDLERS))
    while True:
        if not await run_once():
            # The in-memory queue does not block on dequeue.
            await asyncio.sleep(0.5)


if __name__ == "__main__":
    setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)
    asyncio.run(run_worker())
