"""PostgreSQL implementation of AttemptRepo."""

from __future__ import annotations

import hashlib
from collections.abc import Sequence
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from progress_engine.db.tables import QuizAnswerRow, QuizAttemptRow, QuizSessionRow
from progress_engine.models.quiz import QuizAnswer, QuizAttempt, QuizSession


def advisory_key(student_id: UUID, quiz_id: UUID) -> int:
    """Stable signed 64-bit key for pg_advisory_xact_lock."""
    digest = hashlib.blake2b(student_id.bytes + quiz_id.bytes, digest_size=8).digest()
    return int.from_bytes(digest, "big", signed=True)


class PgAttemptRepo:
    """Satisfies the AttemptRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def lock_student_quiz(self, student_id: UUID, quiz_id: UUID) -> None:
        # Released automatically at commit or rollback.
        await self._session.execute(
            select(func.pg_advisory_xact_lock(advisory_key(student_id, quiz_id)))
        )

    async def count_attempts(self, student_id: UUID, quiz_id: UUID) -> int:
        stmt = select(func.count()).where(
            QuizAttemptRow.student_id == student_id,
            QuizAttemptRow.quiz_id == quiz_id,
        )
        return int((await self._session.execute(stmt)).scalar_one())

    async def get_attempt(self, attempt_id: UUID) -> QuizAttempt | None:
        row = await self._session.get(QuizAttemptRow, attempt_id)
        if row is None:
            return None
        return _row_to_attempt(row)

    async def find_by_token(
        self, student_id: UUID, quiz_id: UUID, token: str
    ) -> QuizAttempt | None:
        stmt = select(QuizAttemptRow).where(
            QuizAttemptRow.student_id == student_id,
            QuizAttemptRow.quiz_id == quiz_id,
            QuizAttemptRow.submission_token == token,
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_attempt(row)

    async def list_attempts(self, student_id: UUID, quiz_id: UUID) -> list[QuizAttempt]:
        stmt = (
            select(QuizAttemptRow)
            .where(
                QuizAttemptRow.student_id == student_id,
                QuizAttemptRow.quiz_id == quiz_id,
            )
            .order_by(QuizAttemptRow.submitted_at, QuizAttemptRow.id)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_attempt(r) for r in rows]

    async def add_attempt(self, attempt: QuizAttempt) -> None:
        self._session.add(
            QuizAttemptRow(
                id=attempt.id,
                student_id=attempt.student_id,
                quiz_id=attempt.quiz_id,
                score=attempt.score,
                passed=attempt.passed,
                correct_count=attempt.correct_count,
                gradable_count=attempt.gradable_count,
                started_at=attempt.started_at,
                submitted_at=attempt.submitted_at,
                submission_token=attempt.submission_token,
                answers_fingerprint=attempt.answers_fingerprint,
            )
        )
        await self._session.flush()

    async def add_answers(self, answers: Sequence[QuizAnswer]) -> None:
        for answer in answers:
            self._session.add(
                QuizAnswerRow(
                    attempt_id=answer.attempt_id,
                    question_id=answer.question_id,
                    option_source=answer.option_source,
                    selected_option_id=answer.selected_option_id,
                    answer_text=answer.answer_text,
                    is_correct=answer.is_correct,
                )
            )
        await self._session.flush()

    async def list_answers(self, attempt_id: UUID) -> list[QuizAnswer]:
        stmt = select(QuizAnswerRow).where(QuizAnswerRow.attempt_id == attempt_id)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [
            QuizAnswer(
                attempt_id=r.attempt_id,
                question_id=r.question_id,
                option_source=r.option_source,
                selected_option_id=r.selected_option_id,
                answer_text=r.answer_text,
                is_correct=r.is_correct,
            )
            for r in rows
        ]

    async def get_session(self, student_id: UUID, quiz_id: UUID) -> QuizSession | None:
        row = await self._session.get(QuizSessionRow, (student_id, quiz_id))
        if row is None:
            return None
        return QuizSession(
            student_id=row.student_id,
            quiz_id=row.quiz_id,
            started_at=row.started_at,
            deadline=row.deadline,
        )

    async def save_session(self, session: QuizSession) -> None:
        stmt = insert(QuizSessionRow).values(
            student_id=session.student_id,
            quiz_id=session.quiz_id,
            started_at=session.started_at,
            deadline=session.deadline,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[QuizSessionRow.student_id, QuizSessionRow.quiz_id],
            set_={
                "started_at": stmt.excluded.started_at,
                "deadline": stmt.excluded.deadline,
            },
        )
        await self._session.execute(stmt)

    async def delete_session(self, student_id: UUID, quiz_id: UUID) -> None:
        await self._session.execute(
            delete(QuizSessionRow).where(
                QuizSessionRow.student_id == student_id,
                QuizSessionRow.quiz_id == quiz_id,
            )
        )


def _row_to_attempt(row: QuizAttemptRow) -> QuizAttempt:
    return QuizAttempt(
        id=row.id,
        student_id=row.student_id,
        quiz_id=row.quiz_id,
        score=row.score,
        passed=row.passed,
        correct_count=row.correct_count,
        gradable_count=row.gradable_count,
        started_at=row.started_at,
        submitted_at=row.submitted_at,
        submission_token=row.submission_token,
        answers_fingerprint=row.answers_fingerprint,
    )
