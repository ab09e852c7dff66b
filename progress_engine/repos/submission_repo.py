from __future__ import annotations

from typing import Protocol
from uuid import UUID

from progress_engine.models.assignment import AssignmentSubmission


class SubmissionRepo(Protocol):
    async def get(
        self, submission_id: UUID, *, for_update: bool = False
    ) -> AssignmentSubmission | None: ...
    async def get_for_student(
        self, student_id: UUID, assignment_id: UUID, *, for_update: bool = False
    ) -> AssignmentSubmission | None: ...
    async def save(self, submission: AssignmentSubmission) -> None: ...


class InMemorySubmissionRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, AssignmentSubmission] = {}

    async def get(
        self, submission_id: UUID, *, for_update: bool = False
    ) -> AssignmentSubmission | None:
        return self._by_id.get(submission_id)

    async def get_for_student(
        self, student_id: UUID, assignment_id: UUID, *, for_update: bool = False
    ) -> AssignmentSubmission | None:
        for s in self._by_id.values():
            if s.student_id == student_id and s.assignment_id == assignment_id:
                return s
        return None

    async def save(self, submission: AssignmentSubmission) -> None:
        existing = await self.get_for_student(
            submission.student_id, submission.assignment_id
        )
        if existing is not None and existing.id != submission.id:
            raise ValueError("submission already exists for student and assignment")
        self._by_id[submission.id] = submission

    # --- transaction support ---

    def snapshot(self) -> dict:
        return dict(self._by_id)

    def restore(self, state: dict) -> None:
        self._by_id = dict(state)

    def clear(self) -> None:
        self._by_id.clear()
