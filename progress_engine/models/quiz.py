from __future__ import annotations

from dataclasses import dataclass
from typing import Literal
from uuid import UUID, uuid4

OptionSource = Literal["current", "legacy"]

# Question types whose answer is a choice among stored options.
CHOICE_TYPES = frozenset({"single_choice", "true_false"})
# Question types answered with free text.  fill_blank is still auto-graded
# (text compared against the correct option); the others never are.
TEXT_TYPES = frozenset({"short_answer", "essay", "fill_blank"})
MANUAL_TYPES = frozenset({"short_answer", "essay"})
QUESTION_TYPES = CHOICE_TYPES | TEXT_TYPES


@dataclass(frozen=True, slots=True)
class Quiz:
    id: UUID
    course_id: UUID
    title: str
    passing_score: int = 70
    time_limit_minutes: int | None = None
    max_attempts: int = 0  # 0 = unlimited
    lesson_id: UUID | None = None

    @staticmethod
    def new(
        *,
        course_id: UUID,
        title: str,
        passing_score: int = 70,
        time_limit_minutes: int | None = None,
        max_attempts: int = 0,
        lesson_id: UUID | None = None,
    ) -> Quiz:
        return Quiz(
            id=uuid4(),
            course_id=course_id,
            title=title,
            passing_score=passing_score,
            time_limit_minutes=time_limit_minutes,
            max_attempts=max_attempts,
            lesson_id=lesson_id,
        )


@dataclass(frozen=True, slots=True)
class QuizQuestion:
    id: UUID
    quiz_id: UUID
    question_type: str  # single_choice|true_false|short_answer|essay|fill_blank
    prompt: str
    position: int

    @property
    def is_auto_gradable(self) -> bool:
        return self.question_type not in MANUAL_TYPES

    @staticmethod
    def new(
        *, quiz_id: UUID, question_type: str, prompt: str, position: int
    ) -> QuizQuestion:
        if question_type not in QUESTION_TYPES:
            raise ValueError(f"unknown question_type {question_type!r}")
        return QuizQuestion(
            id=uuid4(),
            quiz_id=quiz_id,
            question_type=question_type,
            prompt=prompt,
            position=position,
        )


@dataclass(frozen=True, slots=True)
class QuizOption:
    """One answer choice.  The same shape is stored in both generations."""

    id: UUID
    question_id: UUID
    option_text: str
    is_correct: bool
    position: int

    @staticmethod
    def new(
        *, question_id: UUID, option_text: str, is_correct: bool, position: int
    ) -> QuizOption:
        return QuizOption(
            id=uuid4(),
            question_id=question_id,
            option_text=option_text,
            is_correct=is_correct,
            position=position,
        )


@dataclass(frozen=True, slots=True)
class ResolvedOptions:
    """The options of one question, tagged with the generation they came from.

    Resolved once per question per operation and reused for both display
    and grading, so a single question never mixes rows from both stores.
    """

    question_id: UUID
    source: OptionSource
    options: tuple[QuizOption, ...]

    def find(self, option_id: UUID) -> QuizOption | None:
        for option in self.options:
            if option.id == option_id:
                return option
        return None

    def match_text(self, text: str) -> QuizOption | None:
        wanted = text.strip().casefold()
        for option in self.options:
            if option.option_text.strip().casefold() == wanted:
                return option
        return None


@dataclass(frozen=True, slots=True)
class SubmittedAnswer:
    """What the student sent for one question."""

    question_id: UUID
    selected_option_id: UUID | None = None
    answer_text: str | None = None


@dataclass(frozen=True, slots=True)
class QuizAttempt:
    id: UUID
    student_id: UUID
    quiz_id: UUID
    score: int
    passed: bool
    correct_count: int
    gradable_count: int
    started_at: int
    submitted_at: int
    submission_token: str | None = None
    answers_fingerprint: str | None = None


@dataclass(frozen=True, slots=True)
class QuizAnswer:
    """Persisted answer for one question of an attempt.

    Current-generation choices are stored by option id; legacy-generation
    choices by the chosen option's text, since legacy ids have no stable
    counterpart in the current store.
    """

    attempt_id: UUID
    question_id: UUID
    option_source: OptionSource | None
    selected_option_id: UUID | None = None
    answer_text: str | None = None
    is_correct: bool | None = None  # None for manually graded types


@dataclass(frozen=True, slots=True)
class QuizSession:
    """Server-side timer for an attempt in progress."""

    student_id: UUID
    quiz_id: UUID
    started_at: int
    deadline: int | None = None  # None when the quiz is untimed

    def remaining_seconds(self, now: int) -> int | None:
        if self.deadline is None:
            return None
        return max(0, self.deadline - now)


@dataclass(frozen=True, slots=True)
class GradedAttempt:
    attempt: QuizAttempt
    answers: tuple[QuizAnswer, ...]
    replayed: bool = False  # True when an idempotent re-submission was answered


@dataclass(frozen=True, slots=True)
class QuestionView:
    question: QuizQuestion
    resolved: ResolvedOptions


@dataclass(frozen=True, slots=True)
class QuizView:
    """A quiz as shown to a student, options already resolved."""

    quiz: Quiz
    questions: tuple[QuestionView, ...]
