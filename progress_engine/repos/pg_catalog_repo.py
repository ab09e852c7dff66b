"""PostgreSQL implementation of CatalogRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from progress_engine.db.tables import (
    AssignmentRow,
    CourseRow,
    LegacyQuizOptionRow,
    LessonRow,
    ModuleRow,
    QuizQuestionOptionRow,
    QuizQuestionRow,
    QuizRow,
)
from progress_engine.models.assignment import Assignment
from progress_engine.models.course import Course, CourseModule, Lesson
from progress_engine.models.quiz import Quiz, QuizOption, QuizQuestion


class PgCatalogRepo:
    """Satisfies the CatalogRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_course(self, course_id: UUID) -> Course | None:
        row = await self._session.get(CourseRow, course_id)
        if row is None:
            return None
        return Course(
            id=row.id,
            slug=row.slug,
            title=row.title,
            instructor_id=row.instructor_id,
            status=row.status,
        )

    async def get_module(self, module_id: UUID) -> CourseModule | None:
        row = await self._session.get(ModuleRow, module_id)
        if row is None:
            return None
        return CourseModule(
            id=row.id, course_id=row.course_id, position=row.position, title=row.title
        )

    async def get_lesson(self, lesson_id: UUID) -> Lesson | None:
        row = await self._session.get(LessonRow, lesson_id)
        if row is None:
            return None
        return Lesson(
            id=row.id, module_id=row.module_id, position=row.position, title=row.title
        )

    async def list_lesson_ids(self, course_id: UUID) -> list[UUID]:
        stmt = (
            select(LessonRow.id)
            .join(ModuleRow, LessonRow.module_id == ModuleRow.id)
            .where(ModuleRow.course_id == course_id)
        )
        return list((await self._session.execute(stmt)).scalars().all())

    async def get_quiz(self, quiz_id: UUID) -> Quiz | None:
        row = await self._session.get(QuizRow, quiz_id)
        if row is None:
            return None
        return Quiz(
            id=row.id,
            course_id=row.course_id,
            title=row.title,
            passing_score=row.passing_score,
            time_limit_minutes=row.time_limit_minutes,
            max_attempts=row.max_attempts,
            lesson_id=row.lesson_id,
        )

    async def list_questions(self, quiz_id: UUID) -> list[QuizQuestion]:
        stmt = (
            select(QuizQuestionRow)
            .where(QuizQuestionRow.quiz_id == quiz_id)
            .order_by(QuizQuestionRow.order_index, QuizQuestionRow.id)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [
            QuizQuestion(
                id=r.id,
                quiz_id=r.quiz_id,
                question_type=r.question_type,
                prompt=r.prompt,
                position=r.order_index,
            )
            for r in rows
        ]

    async def list_current_options(self, question_id: UUID) -> list[QuizOption]:
        stmt = (
            select(QuizQuestionOptionRow)
            .where(QuizQuestionOptionRow.question_id == question_id)
            .order_by(QuizQuestionOptionRow.order_index)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_option(r) for r in rows]

    async def list_legacy_options(self, question_id: UUID) -> list[QuizOption]:
        stmt = (
            select(LegacyQuizOptionRow)
            .where(LegacyQuizOptionRow.question_id == question_id)
            .order_by(LegacyQuizOptionRow.order_index)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_option(r) for r in rows]

    async def get_assignment(self, assignment_id: UUID) -> Assignment | None:
        row = await self._session.get(AssignmentRow, assignment_id)
        if row is None:
            return None
        return Assignment(
            id=row.id,
            course_id=row.course_id,
            title=row.title,
            max_points=row.max_points,
        )


def _row_to_option(row: QuizQuestionOptionRow | LegacyQuizOptionRow) -> QuizOption:
    return QuizOption(
        id=row.id,
        question_id=row.question_id,
        option_text=row.option_text,
        is_correct=row.is_correct,
        position=row.order_index,
    )
