from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol
from uuid import UUID

from progress_engine.models.quiz import QuizAnswer, QuizAttempt, QuizSession


class AttemptRepo(Protocol):
    async def lock_student_quiz(self, student_id: UUID, quiz_id: UUID) -> None: ...
    async def count_attempts(self, student_id: UUID, quiz_id: UUID) -> int: ...
    async def get_attempt(self, attempt_id: UUID) -> QuizAttempt | None: ...
    async def find_by_token(
        self, student_id: UUID, quiz_id: UUID, token: str
    ) -> QuizAttempt | None: ...
    async def list_attempts(
        self, student_id: UUID, quiz_id: UUID
    ) -> list[QuizAttempt]: ...
    async def add_attempt(self, attempt: QuizAttempt) -> None: ...
    async def add_answers(self, answers: Sequence[QuizAnswer]) -> None: ...
    async def list_answers(self, attempt_id: UUID) -> list[QuizAnswer]: ...
    async def get_session(
        self, student_id: UUID, quiz_id: UUID
    ) -> QuizSession | None: ...
    async def save_session(self, session: QuizSession) -> None: ...
    async def delete_session(self, student_id: UUID, quiz_id: UUID) -> None: ...


class InMemoryAttemptRepo:
    def __init__(self) -> None:
        self._attempts: dict[UUID, QuizAttempt] = {}
        self._answers: dict[tuple[UUID, UUID], QuizAnswer] = {}
        self._sessions: dict[tuple[UUID, UUID], QuizSession] = {}

    async def lock_student_quiz(self, student_id: UUID, quiz_id: UUID) -> None:
        # Serialized by the store-wide transaction lock.
        return None

    async def count_attempts(self, student_id: UUID, quiz_id: UUID) -> int:
        return len(await self.list_attempts(student_id, quiz_id))

    async def get_attempt(self, attempt_id: UUID) -> QuizAttempt | None:
        return self._attempts.get(attempt_id)

    async def find_by_token(
        self, student_id: UUID, quiz_id: UUID, token: str
    ) -> QuizAttempt | None:
        for attempt in self._attempts.values():
            if (
                attempt.student_id == student_id
                and attempt.quiz_id == quiz_id
                and attempt.submission_token == token
            ):
                return attempt
        return None

    async def list_attempts(self, student_id: UUID, quiz_id: UUID) -> list[QuizAttempt]:
        attempts = [
            a
            for a in self._attempts.values()
            if a.student_id == student_id and a.quiz_id == quiz_id
        ]
        return sorted(attempts, key=lambda a: a.submitted_at)

    async def add_attempt(self, attempt: QuizAttempt) -> None:
        if attempt.id in self._attempts:
            raise ValueError("attempt already exists")
        if attempt.submission_token is not None and await self.find_by_token(
            attempt.student_id, attempt.quiz_id, attempt.submission_token
        ):
            raise ValueError("submission token already used")
        self._attempts[attempt.id] = attempt

    async def add_answers(self, answers: Sequence[QuizAnswer]) -> None:
        for answer in answers:
            if answer.attempt_id not in self._attempts:
                raise KeyError("attempt not found")
            key = (answer.attempt_id, answer.question_id)
            if key in self._answers:
                raise ValueError("answer already recorded")
            self._answers[key] = answer

    async def list_answers(self, attempt_id: UUID) -> list[QuizAnswer]:
        return [a for (aid, _), a in self._answers.items() if aid == attempt_id]

    async def get_session(self, student_id: UUID, quiz_id: UUID) -> QuizSession | None:
        return self._sessions.get((student_id, quiz_id))

    async def save_session(self, session: QuizSession) -> None:
        self._sessions[(session.student_id, session.quiz_id)] = session

    async def delete_session(self, student_id: UUID, quiz_id: UUID) -> None:
        self._sessions.pop((student_id, quiz_id), None)

    # --- transaction support ---

    def snapshot(self) -> tuple[dict, dict, dict]:
        return dict(self._attempts), dict(self._answers), dict(self._sessions)

    def restore(self, state: tuple[dict, dict, dict]) -> None:
        self._attempts = dict(state[0])
        self._answers = dict(state[1])
        self._sessions = dict(state[2])

    def clear(self) -> None:
        self._attempts.clear()
        self._answers.clear()
        self._sessions.clear()
