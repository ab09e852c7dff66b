"""PostgreSQL implementation of SubmissionRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from progress_engine.db.tables import AssignmentSubmissionRow
from progress_engine.models.assignment import AssignmentSubmission


class PgSubmissionRepo:
    """Satisfies the SubmissionRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(
        self, submission_id: UUID, *, for_update: bool = False
    ) -> AssignmentSubmission | None:
        stmt = select(AssignmentSubmissionRow).where(
            AssignmentSubmissionRow.id == submission_id
        )
        if for_update:
            stmt = stmt.with_for_update()
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_submission(row)

    async def get_for_student(
        self, student_id: UUID, assignment_id: UUID, *, for_update: bool = False
    ) -> AssignmentSubmission | None:
        stmt = select(AssignmentSubmissionRow).where(
            AssignmentSubmissionRow.student_id == student_id,
            AssignmentSubmissionRow.assignment_id == assignment_id,
        )
        if for_update:
            stmt = stmt.with_for_update()
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_submission(row)

    async def save(self, submission: AssignmentSubmission) -> None:
        row = await self._session.get(AssignmentSubmissionRow, submission.id)
        if row is None:
            row = AssignmentSubmissionRow(
                id=submission.id,
                student_id=submission.student_id,
                assignment_id=submission.assignment_id,
            )
            self._session.add(row)
        row.status = submission.status
        row.submission_text = submission.submission_text
        row.file_url = submission.file_url
        row.score = submission.score
        row.feedback = submission.feedback
        row.submitted_at = submission.submitted_at
        row.graded_at = submission.graded_at
        row.graded_by = submission.graded_by
        # The (student_id, assignment_id) unique constraint surfaces here.
        await self._session.flush()


def _row_to_submission(row: AssignmentSubmissionRow) -> AssignmentSubmission:
    return AssignmentSubmission(
        id=row.id,
        student_id=row.student_id,
        assignment_id=row.assignment_id,
        status=row.status,
        submission_text=row.submission_text,
        file_url=row.file_url,
        score=row.score,
        feedback=row.feedback,
        submitted_at=row.submitted_at,
        graded_at=row.graded_at,
        graded_by=row.graded_by,
    )
