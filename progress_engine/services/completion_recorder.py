"""Records that a student finished (or un-finished) a lesson.

The completion row is upserted and ``CompletionRecorded`` is published in
the same unit of work; the progress recalculator is subscribed to it, so
the completion and the new percentage commit together.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from uuid import UUID

from progress_engine.core.clock import Clock, utc_now
from progress_engine.core.config import SETTINGS, CompletionTimestampPolicy
from progress_engine.core.errors import NotEnrolled, NotFound, Unauthenticated
from progress_engine.core.metrics import LESSON_COMPLETIONS
from progress_engine.db.unit_of_work import UnitOfWorkFactory, unit_of_work
from progress_engine.models.progress import (
    CompletionResult,
    LessonCompletion,
    ProgressSnapshot,
)
from progress_engine.services.events import CompletionRecorded, EventBus
from progress_engine.services.progress_recalculator import progress_recalculator

logger = logging.getLogger(__name__)


class CompletionRecorder:
    def __init__(
        self,
        *,
        bus: EventBus,
        settle: Callable[[ProgressSnapshot], Awaitable[None]],
        uow_factory: UnitOfWorkFactory = unit_of_work,
        clock: Clock = utc_now,
        timestamp_policy: CompletionTimestampPolicy = "latest",
    ) -> None:
        self._bus = bus
        self._settle = settle
        self._uow_factory = uow_factory
        self._clock = clock
        self._timestamp_policy = timestamp_policy

    async def record_completion(
        self, student_id: UUID | None, lesson_id: UUID, completed: bool = True
    ) -> CompletionResult:
        if student_id is None:
            raise Unauthenticated()

        async with self._uow_factory() as uow:
            lesson = await uow.catalog.get_lesson(lesson_id)
            if lesson is None:
                raise NotFound("lesson", lesson_id)
            module = await uow.catalog.get_module(lesson.module_id)
            if module is None:
                raise NotFound("module", lesson.module_id)
            course_id = module.course_id

            if await uow.progress.get_enrollment(student_id, course_id) is None:
                logger.warning(
                    "Completion rejected: student=%s not enrolled in course=%s",
                    student_id,
                    course_id,
                )
                raise NotEnrolled(student_id, course_id)

            previous = await uow.progress.get_completion(student_id, lesson_id)
            completion = LessonCompletion(
                student_id=student_id,
                lesson_id=lesson_id,
                completed=completed,
                completed_at=self._completed_at(previous, completed),
            )
            await uow.progress.upsert_completion(completion)

            results = await self._bus.publish(
                uow, CompletionRecorded(student_id, course_id)
            )
            snapshot = next(
                (r for r in results if isinstance(r, ProgressSnapshot)), None
            )
            if snapshot is None:
                raise RuntimeError("no progress handler subscribed to CompletionRecorded")

        LESSON_COMPLETIONS.labels(completed=str(completed).lower()).inc()
        logger.info(
            "Lesson completion recorded student=%s lesson=%s completed=%s",
            student_id,
            lesson_id,
            completed,
        )
        await self._settle(snapshot)

        return CompletionResult(
            lesson_id=lesson_id,
            course_id=course_id,
            completed=completion.completed,
            completed_at=completion.completed_at,
            progress_percentage=snapshot.progress_percentage,
        )

    def _completed_at(
        self, previous: LessonCompletion | None, completed: bool
    ) -> int | None:
        if not completed:
            return None
        if (
            self._timestamp_policy == "first"
            and previous is not None
            and previous.completed_at is not None
        ):
            return previous.completed_at
        return self._clock()


def build_event_bus(recalculator=progress_recalculator) -> EventBus:
    bus = EventBus()
    bus.subscribe(CompletionRecorded, recalculator.handle_completion_recorded)
    return bus


event_bus = build_event_bus()

completion_recorder = CompletionRecorder(
    bus=event_bus,
    settle=progress_recalculator.settle,
    timestamp_policy=SETTINGS.completion_timestamp_policy,
)
