"""Runs quiz attempts to a definitive score.

Per attempt: NotStarted -> InProgress (while a timer session exists) ->
Submitted.  A timed quiz must be started before it can be submitted.
Submission and grading happen in one step, and the attempt row plus one
answer row per question are written in a single unit of work.  If any write
fails, no trace of the attempt remains.

Scoring:
  - choice questions (single_choice, true_false) are correct when the
    chosen option is marked correct;
  - fill_blank compares trimmed, case-folded text against the correct
    options; a fill_blank question without options is never correct;
  - short_answer and essay are stored but never auto-scored;
  - score = round-half-up(100 * correct / questions), 0 for a quiz with
    no questions; passed = score >= passing_score.  Manual questions stay
    in the denominator.

Double submission is blocked by a per (student, quiz) transaction lock
and, when the client sends one, a submission token: the same token with
the same answers returns the original attempt.
"""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Sequence
from uuid import UUID, uuid4

from progress_engine.core.clock import Clock, utc_now
from progress_engine.core.config import SETTINGS
from progress_engine.core.errors import (
    AttemptLimitReached,
    IdempotencyConflict,
    NotEnrolled,
    NotFound,
    PermissionDenied,
    TimeLimitExceeded,
    Unauthenticated,
    ValidationError,
)
from progress_engine.core.metrics import QUIZ_ATTEMPTS
from progress_engine.db.unit_of_work import UnitOfWork, UnitOfWorkFactory, unit_of_work
from progress_engine.models.quiz import (
    CHOICE_TYPES,
    GradedAttempt,
    QuestionView,
    Quiz,
    QuizAnswer,
    QuizAttempt,
    QuizQuestion,
    QuizSession,
    QuizView,
    ResolvedOptions,
    SubmittedAnswer,
)
from progress_engine.services.notifications import (
    Notification,
    NotificationDispatcher,
    notification_dispatcher,
    send_best_effort,
)
from progress_engine.services.option_resolver import OptionResolver
from progress_engine.services.progress_recalculator import percentage

logger = logging.getLogger(__name__)


def answers_fingerprint(answers: Sequence[SubmittedAnswer]) -> str:
    """Order-independent digest of a set of submitted answers."""
    canonical = sorted(
        [
            str(a.question_id),
            str(a.selected_option_id) if a.selected_option_id else None,
            a.answer_text,
        ]
        for a in answers
    )
    return hashlib.sha256(
        json.dumps(canonical, separators=(",", ":")).encode()
    ).hexdigest()


def _is_gradable(question: QuizQuestion, resolved: ResolvedOptions) -> bool:
    if not question.is_auto_gradable:
        return False
    if question.question_type == "fill_blank":
        return bool(resolved.options)
    return True


def grade_question(
    attempt_id: UUID,
    question: QuizQuestion,
    resolved: ResolvedOptions,
    answer: SubmittedAnswer | None,
) -> QuizAnswer:
    """Build the stored answer row for one question.

    ``is_correct`` is None for questions that are not auto-gradable.
    """
    if question.question_type in CHOICE_TYPES:
        option = None
        if answer is not None and answer.selected_option_id is not None:
            option = resolved.find(answer.selected_option_id)
        if option is None:
            return QuizAnswer(
                attempt_id, question.id, resolved.source, is_correct=False
            )
        if resolved.source == "current":
            return QuizAnswer(
                attempt_id,
                question.id,
                "current",
                selected_option_id=option.id,
                is_correct=option.is_correct,
            )
        # Legacy ids have no row in the current option table.
        return QuizAnswer(
            attempt_id,
            question.id,
            "legacy",
            answer_text=option.option_text,
            is_correct=option.is_correct,
        )

    text = answer.answer_text if answer is not None else None
    if not _is_gradable(question, resolved):
        return QuizAnswer(attempt_id, question.id, None, answer_text=text)

    matched = resolved.match_text(text) if text is not None else None
    return QuizAnswer(
        attempt_id,
        question.id,
        resolved.source,
        answer_text=text,
        is_correct=matched is not None and matched.is_correct,
    )


def _validate_answers(
    questions: Sequence[QuizQuestion],
    resolved: dict[UUID, ResolvedOptions],
    answers: Sequence[SubmittedAnswer],
) -> dict[UUID, SubmittedAnswer]:
    by_id = {q.id: q for q in questions}
    by_question: dict[UUID, SubmittedAnswer] = {}
    for answer in answers:
        question = by_id.get(answer.question_id)
        if question is None:
            raise ValidationError(f"question {answer.question_id} is not in this quiz")
        if answer.question_id in by_question:
            raise ValidationError(f"question {answer.question_id} answered twice")
        if question.question_type in CHOICE_TYPES:
            if answer.answer_text is not None:
                raise ValidationError(
                    f"question {question.id} takes selected_option_id, not text"
                )
            if (
                answer.selected_option_id is not None
                and resolved[question.id].find(answer.selected_option_id) is None
            ):
                raise ValidationError(
                    f"option {answer.selected_option_id} does not belong to "
                    f"question {question.id}"
                )
        elif answer.selected_option_id is not None:
            raise ValidationError(f"question {question.id} takes answer_text")
        by_question[answer.question_id] = answer
    return by_question


class ScoringEngine:
    def __init__(
        self,
        *,
        uow_factory: UnitOfWorkFactory = unit_of_work,
        dispatcher: NotificationDispatcher = notification_dispatcher,
        clock: Clock = utc_now,
        timer_grace_seconds: int = 30,
    ) -> None:
        self._uow_factory = uow_factory
        self._dispatcher = dispatcher
        self._clock = clock
        self._grace = timer_grace_seconds

    # --- display ---

    async def describe_quiz(self, student_id: UUID | None, quiz_id: UUID) -> QuizView:
        if student_id is None:
            raise Unauthenticated()
        async with self._uow_factory() as uow:
            quiz = await self._get_quiz(uow, quiz_id)
            await self._require_enrollment(uow, student_id, quiz)
            questions = await uow.catalog.list_questions(quiz_id)
            resolver = OptionResolver(uow.catalog)
            views = [
                QuestionView(question=q, resolved=await resolver.resolve(q.id))
                for q in questions
            ]
        return QuizView(quiz=quiz, questions=tuple(views))

    # --- timer ---

    async def start_attempt(self, student_id: UUID | None, quiz_id: UUID) -> QuizSession:
        """Open (or return the running) timer session for a quiz."""
        if student_id is None:
            raise Unauthenticated()
        async with self._uow_factory() as uow:
            quiz = await self._get_quiz(uow, quiz_id)
            await self._require_enrollment(uow, student_id, quiz)
            await uow.attempts.lock_student_quiz(student_id, quiz_id)
            await self._check_attempt_limit(uow, student_id, quiz)

            now = self._clock()
            existing = await uow.attempts.get_session(student_id, quiz_id)
            if existing is not None and (
                existing.deadline is None or now <= existing.deadline
            ):
                return existing

            deadline = (
                now + 60 * quiz.time_limit_minutes if quiz.time_limit_minutes else None
            )
            session = QuizSession(
                student_id=student_id, quiz_id=quiz_id, started_at=now, deadline=deadline
            )
            await uow.attempts.save_session(session)

        logger.info(
            "Quiz session started student=%s quiz=%s deadline=%s",
            student_id,
            quiz_id,
            deadline,
        )
        return session

    # --- submission ---

    async def submit_attempt(
        self,
        student_id: UUID | None,
        quiz_id: UUID,
        answers: Sequence[SubmittedAnswer],
        submission_token: str | None = None,
    ) -> GradedAttempt:
        if student_id is None:
            raise Unauthenticated()

        async with self._uow_factory() as uow:
            quiz = await self._get_quiz(uow, quiz_id)
            await self._require_enrollment(uow, student_id, quiz)

            questions = await uow.catalog.list_questions(quiz_id)
            resolver = OptionResolver(uow.catalog)
            resolved = await resolver.resolve_many(q.id for q in questions)
            by_question = _validate_answers(questions, resolved, answers)
            fingerprint = answers_fingerprint(answers)

            await uow.attempts.lock_student_quiz(student_id, quiz_id)

            if submission_token is not None:
                previous = await uow.attempts.find_by_token(
                    student_id, quiz_id, submission_token
                )
                if previous is not None:
                    return await self._replay(uow, previous, fingerprint)

            await self._check_attempt_limit(uow, student_id, quiz)

            now = self._clock()
            session = await uow.attempts.get_session(student_id, quiz_id)
            if session is None and quiz.time_limit_minutes:
                logger.warning(
                    "Timed quiz submitted without a session student=%s quiz=%s",
                    student_id,
                    quiz_id,
                )
                raise TimeLimitExceeded("timed quiz must be started before submitting")
            if (
                session is not None
                and session.deadline is not None
                and now > session.deadline + self._grace
            ):
                logger.warning(
                    "Late submission rejected student=%s quiz=%s deadline=%d now=%d",
                    student_id,
                    quiz_id,
                    session.deadline,
                    now,
                )
                raise TimeLimitExceeded(
                    f"time limit of {quiz.time_limit_minutes} minutes exceeded"
                )

            attempt_id = uuid4()
            rows = [
                grade_question(attempt_id, q, resolved[q.id], by_question.get(q.id))
                for q in questions
            ]
            gradable = sum(1 for q in questions if _is_gradable(q, resolved[q.id]))
            correct = sum(1 for r in rows if r.is_correct)
            score = percentage(correct, len(questions))

            attempt = QuizAttempt(
                id=attempt_id,
                student_id=student_id,
                quiz_id=quiz_id,
                score=score,
                passed=score >= quiz.passing_score,
                correct_count=correct,
                gradable_count=gradable,
                started_at=session.started_at if session is not None else now,
                submitted_at=now,
                submission_token=submission_token,
                answers_fingerprint=fingerprint,
            )
            await uow.attempts.add_attempt(attempt)
            await uow.attempts.add_answers(rows)
            await uow.attempts.delete_session(student_id, quiz_id)

        QUIZ_ATTEMPTS.labels(result="passed" if attempt.passed else "failed").inc()
        logger.info(
            "Quiz attempt graded student=%s quiz=%s attempt=%s score=%d/%d passed=%s",
            student_id,
            quiz_id,
            attempt.id,
            correct,
            len(questions),
            attempt.passed,
        )
        await send_best_effort(
            self._dispatcher,
            Notification(
                user_id=student_id,
                type="quiz_graded",
                title="Quiz graded",
                message=f'You scored {score}% on "{quiz.title}".',
                link=f"/student/quizzes/{quiz_id}",
            ),
        )
        return GradedAttempt(attempt=attempt, answers=tuple(rows))

    # --- history ---

    async def list_attempts(
        self, student_id: UUID | None, quiz_id: UUID
    ) -> list[QuizAttempt]:
        if student_id is None:
            raise Unauthenticated()
        async with self._uow_factory() as uow:
            await self._get_quiz(uow, quiz_id)
            return await uow.attempts.list_attempts(student_id, quiz_id)

    async def get_attempt(
        self, student_id: UUID | None, attempt_id: UUID
    ) -> GradedAttempt:
        if student_id is None:
            raise Unauthenticated()
        async with self._uow_factory() as uow:
            attempt = await uow.attempts.get_attempt(attempt_id)
            if attempt is None:
                raise NotFound("attempt", attempt_id)
            if attempt.student_id != student_id:
                logger.warning(
                    "Attempt read denied: attempt=%s owner=%s caller=%s",
                    attempt_id,
                    attempt.student_id,
                    student_id,
                )
                raise PermissionDenied("attempt belongs to another student")
            answers = await self._ordered_answers(uow, attempt)
        return GradedAttempt(attempt=attempt, answers=answers)

    # --- helpers ---

    async def _get_quiz(self, uow: UnitOfWork, quiz_id: UUID) -> Quiz:
        quiz = await uow.catalog.get_quiz(quiz_id)
        if quiz is None:
            raise NotFound("quiz", quiz_id)
        return quiz

    async def _require_enrollment(
        self, uow: UnitOfWork, student_id: UUID, quiz: Quiz
    ) -> None:
        if await uow.progress.get_enrollment(student_id, quiz.course_id) is None:
            logger.warning(
                "Quiz access rejected: student=%s not enrolled in course=%s",
                student_id,
                quiz.course_id,
            )
            raise NotEnrolled(student_id, quiz.course_id)

    async def _check_attempt_limit(
        self, uow: UnitOfWork, student_id: UUID, quiz: Quiz
    ) -> None:
        if quiz.max_attempts <= 0:
            return
        used = await uow.attempts.count_attempts(student_id, quiz.id)
        if used >= quiz.max_attempts:
            logger.warning(
                "Attempt limit reached student=%s quiz=%s used=%d max=%d",
                student_id,
                quiz.id,
                used,
                quiz.max_attempts,
            )
            raise AttemptLimitReached(
                f"all {quiz.max_attempts} attempts have been used"
            )

    async def _replay(
        self, uow: UnitOfWork, previous: QuizAttempt, fingerprint: str
    ) -> GradedAttempt:
        if previous.answers_fingerprint != fingerprint:
            logger.warning(
                "Submission token reused with different answers attempt=%s",
                previous.id,
            )
            raise IdempotencyConflict(
                "submission token was already used with different answers"
            )
        logger.info("Replaying attempt=%s for repeated submission", previous.id)
        answers = await self._ordered_answers(uow, previous)
        return GradedAttempt(attempt=previous, answers=answers, replayed=True)

    async def _ordered_answers(
        self, uow: UnitOfWork, attempt: QuizAttempt
    ) -> tuple[QuizAnswer, ...]:
        order = {
            q.id: q.position for q in await uow.catalog.list_questions(attempt.quiz_id)
        }
        answers = await uow.attempts.list_answers(attempt.id)
        return tuple(sorted(answers, key=lambda a: order.get(a.question_id, 0)))


scoring_engine = ScoringEngine(timer_grace_seconds=SETTINGS.quiz_timer_grace_seconds)
