"""Quiz display, timer sessions, submission and attempt history.

Options are returned without their ``is_correct`` flag.  Each question
carries ``option_source`` so clients can tell which storage generation
the shown option ids belong to.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Response, status
from pydantic import BaseModel, Field

from progress_engine.api.dependencies import CurrentUserId
from progress_engine.api.errors import to_http
from progress_engine.core.errors import EngineError
from progress_engine.models.quiz import (
    GradedAttempt,
    QuizAttempt,
    QuizView,
    SubmittedAnswer,
)
from progress_engine.services.scoring_engine import scoring_engine

router = APIRouter(prefix="/v1", tags=["quizzes"])


# --- schemas ---


class OptionOut(BaseModel):
    id: UUID
    option_text: str
    position: int


class QuestionOut(BaseModel):
    id: UUID
    question_type: str
    prompt: str
    position: int
    option_source: str
    options: list[OptionOut]


class QuizOut(BaseModel):
    id: UUID
    course_id: UUID
    title: str
    passing_score: int
    time_limit_minutes: int | None
    max_attempts: int
    questions: list[QuestionOut]


class SessionOut(BaseModel):
    quiz_id: UUID
    started_at: int
    deadline: int | None


class AnswerIn(BaseModel):
    question_id: UUID
    selected_option_id: UUID | None = None
    answer_text: str | None = None


class SubmissionIn(BaseModel):
    answers: list[AnswerIn] = Field(default_factory=list)
    submission_token: str | None = Field(default=None, max_length=255)


class AttemptOut(BaseModel):
    id: UUID
    quiz_id: UUID
    score: int
    passed: bool
    correct_count: int
    gradable_count: int
    started_at: int
    submitted_at: int


class AnswerOut(BaseModel):
    question_id: UUID
    option_source: str | None
    selected_option_id: UUID | None
    answer_text: str | None
    is_correct: bool | None


class GradedAttemptOut(AttemptOut):
    replayed: bool = False
    answers: list[AnswerOut]


def _attempt_fields(attempt: QuizAttempt) -> dict:
    return {
        "id": attempt.id,
        "quiz_id": attempt.quiz_id,
        "score": attempt.score,
        "passed": attempt.passed,
        "correct_count": attempt.correct_count,
        "gradable_count": attempt.gradable_count,
        "started_at": attempt.started_at,
        "submitted_at": attempt.submitted_at,
    }


def _graded_out(graded: GradedAttempt) -> GradedAttemptOut:
    return GradedAttemptOut(
        **_attempt_fields(graded.attempt),
        replayed=graded.replayed,
        answers=[
            AnswerOut(
                question_id=a.question_id,
                option_source=a.option_source,
                selected_option_id=a.selected_option_id,
                answer_text=a.answer_text,
                is_correct=a.is_correct,
            )
            for a in graded.answers
        ],
    )


def _quiz_out(view: QuizView) -> QuizOut:
    quiz = view.quiz
    return QuizOut(
        id=quiz.id,
        course_id=quiz.course_id,
        title=quiz.title,
        passing_score=quiz.passing_score,
        time_limit_minutes=quiz.time_limit_minutes,
        max_attempts=quiz.max_attempts,
        questions=[
            QuestionOut(
                id=qv.question.id,
                question_type=qv.question.question_type,
                prompt=qv.question.prompt,
                position=qv.question.position,
                option_source=qv.resolved.source,
                options=[
                    OptionOut(id=o.id, option_text=o.option_text, position=o.position)
                    for o in qv.resolved.options
                ],
            )
            for qv in view.questions
        ],
    )


# --- endpoints ---


@router.get("/quizzes/{quiz_id}", response_model=QuizOut)
async def describe_quiz(quiz_id: UUID, student_id: CurrentUserId) -> QuizOut:
    try:
        view = await scoring_engine.describe_quiz(student_id, quiz_id)
    except EngineError as e:
        raise to_http(e) from None
    return _quiz_out(view)


@router.post(
    "/quizzes/{quiz_id}/sessions",
    response_model=SessionOut,
    status_code=status.HTTP_201_CREATED,
)
async def start_attempt(quiz_id: UUID, student_id: CurrentUserId) -> SessionOut:
    try:
        session = await scoring_engine.start_attempt(student_id, quiz_id)
    except EngineError as e:
        raise to_http(e) from None
    return SessionOut(
        quiz_id=session.quiz_id, started_at=session.started_at, deadline=session.deadline
    )


@router.post(
    "/quizzes/{quiz_id}/attempts",
    response_model=GradedAttemptOut,
    status_code=status.HTTP_201_CREATED,
)
async def submit_attempt(
    quiz_id: UUID,
    body: SubmissionIn,
    student_id: CurrentUserId,
    response: Response,
) -> GradedAttemptOut:
    answers = [
        SubmittedAnswer(
            question_id=a.question_id,
            selected_option_id=a.selected_option_id,
            answer_text=a.answer_text,
        )
        for a in body.answers
    ]
    try:
        graded = await scoring_engine.submit_attempt(
            student_id, quiz_id, answers, body.submission_token
        )
    except EngineError as e:
        raise to_http(e) from None
    if graded.replayed:
        response.status_code = status.HTTP_200_OK
    return _graded_out(graded)


@router.get("/quizzes/{quiz_id}/attempts", response_model=list[AttemptOut])
async def list_attempts(quiz_id: UUID, student_id: CurrentUserId) -> list[AttemptOut]:
    try:
        attempts = await scoring_engine.list_attempts(student_id, quiz_id)
    except EngineError as e:
        raise to_http(e) from None
    return [AttemptOut(**_attempt_fields(a)) for a in attempts]


@router.get("/attempts/{attempt_id}", response_model=GradedAttemptOut)
async def get_attempt(attempt_id: UUID, student_id: CurrentUserId) -> GradedAttemptOut:
    try:
        graded = await scoring_engine.get_attempt(student_id, attempt_id)
    except EngineError as e:
        raise to_http(e) from None
    return _graded_out(graded)
