from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class Course:
    id: UUID
    slug: str
    title: str
    instructor_id: UUID | None = None
    status: str = "published"  # draft|published|retired

    @staticmethod
    def new(
        *, slug: str, title: str, instructor_id: UUID | None = None
    ) -> Course:
        return Course(id=uuid4(), slug=slug, title=title, instructor_id=instructor_id)


@dataclass(frozen=True, slots=True)
class CourseModule:
    id: UUID
    course_id: UUID
    position: int
    title: str

    @staticmethod
    def new(*, course_id: UUID, position: int, title: str) -> CourseModule:
        return CourseModule(
            id=uuid4(), course_id=course_id, position=position, title=title
        )


@dataclass(frozen=True, slots=True)
class Lesson:
    id: UUID
    module_id: UUID
    position: int
    title: str

    @staticmethod
    def new(*, module_id: UUID, position: int, title: str) -> Lesson:
        return Lesson(id=uuid4(), module_id=module_id, position=position, title=title)


@dataclass(frozen=True, slots=True)
class Enrollment:
    """A student's membership in a course.

    progress_percentage is a derived cache: only the progress recalculator
    writes it, and always from the full set of completion records.
    """

    student_id: UUID
    course_id: UUID
    enrolled_at: int
    progress_percentage: int = 0
    completed_at: int | None = None  # first time progress reached 100
