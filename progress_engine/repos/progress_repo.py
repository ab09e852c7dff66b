from __future__ import annotations

from collections.abc import Collection
from typing import Protocol
from uuid import UUID

from progress_engine.models.course import Enrollment
from progress_engine.models.progress import LessonCompletion


class ProgressRepo(Protocol):
    async def get_enrollment(
        self, student_id: UUID, course_id: UUID, *, for_update: bool = False
    ) -> Enrollment | None: ...
    async def add_enrollment(self, enrollment: Enrollment) -> None: ...
    async def save_enrollment(self, enrollment: Enrollment) -> None: ...
    async def get_completion(
        self, student_id: UUID, lesson_id: UUID
    ) -> LessonCompletion | None: ...
    async def upsert_completion(self, completion: LessonCompletion) -> None: ...
    async def count_completed(
        self, student_id: UUID, lesson_ids: Collection[UUID]
    ) -> int: ...


class InMemoryProgressRepo:
    def __init__(self) -> None:
        self._enrollments: dict[tuple[UUID, UUID], Enrollment] = {}
        self._completions: dict[tuple[UUID, UUID], LessonCompletion] = {}

    async def get_enrollment(
        self, student_id: UUID, course_id: UUID, *, for_update: bool = False
    ) -> Enrollment | None:
        # Row locking is provided by the store-wide transaction lock.
        return self._enrollments.get((student_id, course_id))

    async def add_enrollment(self, enrollment: Enrollment) -> None:
        key = (enrollment.student_id, enrollment.course_id)
        if key in self._enrollments:
            raise ValueError("enrollment already exists")
        self._enrollments[key] = enrollment

    async def save_enrollment(self, enrollment: Enrollment) -> None:
        key = (enrollment.student_id, enrollment.course_id)
        if key not in self._enrollments:
            raise KeyError("enrollment not found")
        self._enrollments[key] = enrollment

    async def get_completion(
        self, student_id: UUID, lesson_id: UUID
    ) -> LessonCompletion | None:
        return self._completions.get((student_id, lesson_id))

    async def upsert_completion(self, completion: LessonCompletion) -> None:
        self._completions[(completion.student_id, completion.lesson_id)] = completion

    async def count_completed(
        self, student_id: UUID, lesson_ids: Collection[UUID]
    ) -> int:
        wanted = set(lesson_ids)
        return sum(
            1
            for (sid, lid), c in self._completions.items()
            if sid == student_id and lid in wanted and c.completed
        )

    # --- transaction support ---

    def snapshot(self) -> tuple[dict, dict]:
        return dict(self._enrollments), dict(self._completions)

    def restore(self, state: tuple[dict, dict]) -> None:
        self._enrollments, self._completions = dict(state[0]), dict(state[1])

    def clear(self) -> None:
        self._enrollments.clear()
        self._completions.clear()
