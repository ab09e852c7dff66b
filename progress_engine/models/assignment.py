from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class Assignment:
    id: UUID
    course_id: UUID
    title: str
    max_points: int = 100

    @staticmethod
    def new(*, course_id: UUID, title: str, max_points: int = 100) -> Assignment:
        return Assignment(
            id=uuid4(), course_id=course_id, title=title, max_points=max_points
        )


@dataclass(frozen=True, slots=True)
class AssignmentSubmission:
    id: UUID
    student_id: UUID
    assignment_id: UUID
    status: str = "not_submitted"  # not_submitted|submitted|graded
    submission_text: str | None = None
    file_url: str | None = None
    score: int | None = None
    feedback: str | None = None
    submitted_at: int | None = None
    graded_at: int | None = None
    graded_by: UUID | None = None

    @property
    def is_graded(self) -> bool:
        return self.status == "graded"

    @staticmethod
    def new(*, student_id: UUID, assignment_id: UUID) -> AssignmentSubmission:
        return AssignmentSubmission(
            id=uuid4(), student_id=student_id, assignment_id=assignment_id
        )
