"""Derives an enrollment's progress_percentage from lesson completions.

The percentage is always recomputed from the full set of completion rows
for the course, never incremented.  The enrollment row is locked before
counting, so two recomputes for the same enrollment serialize and the
one that commits last has counted every committed completion.

``metrics``: PROGRESS_RECALCULATIONS.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from uuid import UUID

from progress_engine.core.clock import Clock, utc_now
from progress_engine.core.errors import NotFound, Unauthenticated
from progress_engine.core.metrics import PROGRESS_RECALCULATIONS, QUEUE_DEPTH
from progress_engine.db.unit_of_work import UnitOfWork, UnitOfWorkFactory, unit_of_work
from progress_engine.models.progress import ProgressSnapshot
from progress_engine.services.cache import CacheService, cache_service, progress_key
from progress_engine.services.events import CompletionRecorded
from progress_engine.services.notifications import (
    Notification,
    NotificationDispatcher,
    notification_dispatcher,
    send_best_effort,
)
from progress_engine.services.task_queue import CERTIFICATE_QUEUE, TaskQueue, task_queue

logger = logging.getLogger(__name__)


def percentage(part: int, whole: int) -> int:
    """Whole-number percentage rounded half up; 0 when ``whole`` is 0.

    Integer arithmetic only: 1/8 gives 13 and 5/8 gives 63, where
    round() would give 12 and 62.
    """
    if whole == 0:
        return 0
    return (200 * part + whole) // (2 * whole)


class ProgressRecalculator:
    def __init__(
        self,
        *,
        uow_factory: UnitOfWorkFactory = unit_of_work,
        cache: CacheService = cache_service,
        dispatcher: NotificationDispatcher = notification_dispatcher,
        queue: TaskQueue = task_queue,
        clock: Clock = utc_now,
    ) -> None:
        self._uow_factory = uow_factory
        self._cache = cache
        self._dispatcher = dispatcher
        self._queue = queue
        self._clock = clock

    async def recalculate(self, student_id: UUID | None, course_id: UUID) -> int:
        """Recompute in a unit of work of its own and return the percentage."""
        if student_id is None:
            raise Unauthenticated()
        async with self._uow_factory() as uow:
            snapshot = await self.recalculate_in(uow, student_id, course_id)
        await self.settle(snapshot)
        return snapshot.progress_percentage

    async def recalculate_in(
        self, uow: UnitOfWork, student_id: UUID, course_id: UUID
    ) -> ProgressSnapshot:
        """Recompute inside the caller's unit of work."""
        course = await uow.catalog.get_course(course_id)
        if course is None:
            raise NotFound("course", course_id)

        enrollment = await uow.progress.get_enrollment(
            student_id, course_id, for_update=True
        )
        if enrollment is None:
            raise NotFound("enrollment", f"{student_id}/{course_id}")

        lesson_ids = await uow.catalog.list_lesson_ids(course_id)
        total = len(lesson_ids)
        completed = await uow.progress.count_completed(student_id, lesson_ids)
        pct = percentage(completed, total)

        reached = pct == 100 and enrollment.completed_at is None
        completed_at = self._clock() if reached else enrollment.completed_at
        if (pct, completed_at) != (
            enrollment.progress_percentage,
            enrollment.completed_at,
        ):
            await uow.progress.save_enrollment(
                replace(
                    enrollment, progress_percentage=pct, completed_at=completed_at
                )
            )

        PROGRESS_RECALCULATIONS.inc()
        logger.info(
            "Progress recalculated student=%s course=%s completed=%d total=%d pct=%d",
            student_id,
            course_id,
            completed,
            total,
            pct,
        )
        return ProgressSnapshot(
            student_id=student_id,
            course_id=course_id,
            total_lessons=total,
            completed_lessons=completed,
            progress_percentage=pct,
            reached_completion=reached,
            course_title=course.title,
        )

    async def handle_completion_recorded(
        self, uow: UnitOfWork, event: CompletionRecorded
    ) -> ProgressSnapshot:
        return await self.recalculate_in(uow, event.student_id, event.course_id)

    async def settle(self, snapshot: ProgressSnapshot) -> None:
        """Post-commit side effects of a recompute.  Never raises."""
        try:
            await self._cache.delete(
                progress_key(snapshot.student_id, snapshot.course_id)
            )
        except Exception:
            logger.warning(
                "Progress cache invalidation failed student=%s course=%s",
                snapshot.student_id,
                snapshot.course_id,
                exc_info=True,
            )

        if not snapshot.reached_completion:
            return

        logger.info(
            "Course completed student=%s course=%s",
            snapshot.student_id,
            snapshot.course_id,
        )
        title = snapshot.course_title or "the course"
        await send_best_effort(
            self._dispatcher,
            Notification(
                user_id=snapshot.student_id,
                type="course_completed",
                title="Course completed",
                message=f'Congratulations! You\'ve completed "{title}".',
                link=f"/student/courses/{snapshot.course_id}",
            ),
        )
        try:
            await self._queue.enqueue(
                CERTIFICATE_QUEUE,
                {
                    "student_id": str(snapshot.student_id),
                    "course_id": str(snapshot.course_id),
                    "course_title": snapshot.course_title,
                },
            )
            QUEUE_DEPTH.labels(queue_name=CERTIFICATE_QUEUE).set(
                await self._queue.queue_length(CERTIFICATE_QUEUE)
            )
        except Exception:
            logger.exception(
                "Certificate task enqueue failed student=%s course=%s",
                snapshot.student_id,
                snapshot.course_id,
            )


progress_recalculator = ProgressRecalculator()
