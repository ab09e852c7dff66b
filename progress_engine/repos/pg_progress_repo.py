"""PostgreSQL implementation of ProgressRepo."""

from __future__ import annotations

from collections.abc import Collection
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from progress_engine.db.tables import EnrollmentRow, LessonCompletionRow
from progress_engine.models.course import Enrollment
from progress_engine.models.progress import LessonCompletion


class PgProgressRepo:
    """Satisfies the ProgressRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_enrollment(
        self, student_id: UUID, course_id: UUID, *, for_update: bool = False
    ) -> Enrollment | None:
        stmt = select(EnrollmentRow).where(
            EnrollmentRow.student_id == student_id,
            EnrollmentRow.course_id == course_id,
        )
        if for_update:
            # Serializes concurrent recomputes for the same enrollment: the
            # second waits here, then counts with the first one committed.
            stmt = stmt.with_for_update()
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_enrollment(row)

    async def add_enrollment(self, enrollment: Enrollment) -> None:
        self._session.add(
            EnrollmentRow(
                student_id=enrollment.student_id,
                course_id=enrollment.course_id,
                enrolled_at=enrollment.enrolled_at,
                progress_percentage=enrollment.progress_percentage,
                completed_at=enrollment.completed_at,
            )
        )
        await self._session.flush()

    async def save_enrollment(self, enrollment: Enrollment) -> None:
        stmt = (
            update(EnrollmentRow)
            .where(
                EnrollmentRow.student_id == enrollment.student_id,
                EnrollmentRow.course_id == enrollment.course_id,
            )
            .values(
                progress_percentage=enrollment.progress_percentage,
                completed_at=enrollment.completed_at,
            )
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            raise KeyError("enrollment not found")

    async def get_completion(
        self, student_id: UUID, lesson_id: UUID
    ) -> LessonCompletion | None:
        row = await self._session.get(LessonCompletionRow, (student_id, lesson_id))
        if row is None:
            return None
        return LessonCompletion(
            student_id=row.student_id,
            lesson_id=row.lesson_id,
            completed=row.completed,
            completed_at=row.completed_at,
        )

    async def upsert_completion(self, completion: LessonCompletion) -> None:
        stmt = insert(LessonCompletionRow).values(
            student_id=completion.student_id,
            lesson_id=completion.lesson_id,
            completed=completion.completed,
            completed_at=completion.completed_at,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[LessonCompletionRow.student_id, LessonCompletionRow.lesson_id],
            set_={
                "completed": stmt.excluded.completed,
                "completed_at": stmt.excluded.completed_at,
            },
        )
        await self._session.execute(stmt)

    async def count_completed(
        self, student_id: UUID, lesson_ids: Collection[UUID]
    ) -> int:
        if not lesson_ids:
            return 0
        stmt = select(func.count()).where(
            LessonCompletionRow.student_id == student_id,
            LessonCompletionRow.completed.is_(True),
            LessonCompletionRow.lesson_id.in_(list(lesson_ids)),
        )
        return int((await self._session.execute(stmt)).scalar_one())


def _row_to_enrollment(row: EnrollmentRow) -> Enrollment:
    return Enrollment(
        student_id=row.student_id,
        course_id=row.course_id,
        enrolled_at=row.enrolled_at,
        progress_percentage=row.progress_percentage,
        completed_at=row.completed_at,
    )
