from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True, slots=True)
class LessonCompletion:
    """Canonical record that a student finished a lesson.

    Keyed by (student_id, lesson_id).  completed_at is set iff completed.
    """

    student_id: UUID
    lesson_id: UUID
    completed: bool
    completed_at: int | None

    def __post_init__(self) -> None:
        if self.completed != (self.completed_at is not None):
            raise ValueError("completed_at must be set iff completed is true")


@dataclass(frozen=True, slots=True)
class ProgressSnapshot:
    """Result of one recomputation: the counts and the stored percentage."""

    student_id: UUID
    course_id: UUID
    total_lessons: int
    completed_lessons: int
    progress_percentage: int
    reached_completion: bool = False  # crossed into 100 during this recompute
    course_title: str = ""


@dataclass(frozen=True, slots=True)
class CompletionResult:
    lesson_id: UUID
    course_id: UUID
    completed: bool
    completed_at: int | None
    progress_percentage: int
