from __future__ import annotations

import asyncio
import sys
from dataclasses import dataclass, field
from pathlib import Path
from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient

from progress_engine.db.unit_of_work import memory_store
from progress_engine.main import app
from progress_engine.models.assignment import Assignment
from progress_engine.models.course import Course, CourseModule, Enrollment, Lesson
from progress_engine.models.quiz import Quiz, QuizOption, QuizQuestion
from progress_engine.services import token_service
from progress_engine.services.cache import cache_service
from progress_engine.services.notifications import InMemoryNotificationDispatcher
from progress_engine.services.task_queue import task_queue

# Ensure repo root is on sys.path so `import progress_engine` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

EPOCH = 1_700_000_000


@pytest.fixture(autouse=True)
def reset_store() -> None:
    """Empty the in-memory catalog, enrollments, attempts and submissions."""
    memory_store.reset()


@pytest.fixture(autouse=True)
def reset_cache() -> None:
    """Clear cache between tests."""
    if hasattr(cache_service, "_store"):
        cache_service._store.clear()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_task_queue() -> None:
    """Clear task queues between tests."""
    if hasattr(task_queue, "_queues"):
        task_queue._queues.clear()  # type: ignore[union-attr]


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def mint_token(
    user_id: UUID | str | None = None,
    roles: list[str] | None = None,
    ttl_minutes: int = token_service.ACCESS_TOKEN_TTL_MIN,
) -> str:
    """Create a valid ES256 JWT for testing.  The subject defaults to a new UUID."""
    sub = str(user_id) if user_id is not None else str(uuid4())
    return token_service.create_access_token(
        sub=sub, roles=roles, ttl_minutes=ttl_minutes
    )


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def student_id() -> UUID:
    return uuid4()


@pytest.fixture
def token(student_id: UUID) -> str:
    """Token for ``student_id`` with the default (student) role."""
    return mint_token(student_id)


# ---------------------------------------------------------------------------
# Service collaborators
# ---------------------------------------------------------------------------


class FakeClock:
    """Deterministic epoch-seconds clock; call ``advance`` to move time."""

    def __init__(self, now: int = EPOCH) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def dispatcher() -> InMemoryNotificationDispatcher:
    return InMemoryNotificationDispatcher()


# ---------------------------------------------------------------------------
# Catalog helpers
# ---------------------------------------------------------------------------


@dataclass
class SeededCourse:
    course: Course
    modules: list[CourseModule] = field(default_factory=list)
    lessons: list[Lesson] = field(default_factory=list)

    @property
    def id(self) -> UUID:
        return self.course.id


def seed_course(
    lesson_count: int = 4,
    *,
    module_count: int = 1,
    instructor_id: UUID | None = None,
    title: str = "Test Course",
) -> SeededCourse:
    """Add a course whose lessons are spread round-robin over its modules."""
    course = Course.new(
        slug=f"course-{uuid4().hex[:8]}", title=title, instructor_id=instructor_id
    )
    memory_store.catalog.add_course(course)
    seeded = SeededCourse(course=course)
    for m in range(module_count):
        module = CourseModule.new(
            course_id=course.id, position=m + 1, title=f"Module {m + 1}"
        )
        memory_store.catalog.add_module(module)
        seeded.modules.append(module)
    for n in range(lesson_count):
        module = seeded.modules[n % module_count]
        lesson = Lesson.new(module_id=module.id, position=n + 1, title=f"L{n + 1}")
        memory_store.catalog.add_lesson(lesson)
        seeded.lessons.append(lesson)
    return seeded


def seed_quiz(
    course_id: UUID,
    *,
    passing_score: int = 70,
    time_limit_minutes: int | None = None,
    max_attempts: int = 0,
) -> Quiz:
    quiz = Quiz.new(
        course_id=course_id,
        title="Test Quiz",
        passing_score=passing_score,
        time_limit_minutes=time_limit_minutes,
        max_attempts=max_attempts,
    )
    memory_store.catalog.add_quiz(quiz)
    return quiz


def _next_position(quiz: Quiz) -> int:
    return 1 + sum(
        1
        for q in memory_store.catalog._questions.values()  # type: ignore[attr-defined]
        if q.quiz_id == quiz.id
    )


def add_question(
    quiz: Quiz,
    question_type: str = "single_choice",
    options: list[tuple[str, bool]] | None = None,
    *,
    source: str = "current",
) -> tuple[QuizQuestion, list[QuizOption]]:
    """Add a question and its options to the current or legacy option store."""
    question = QuizQuestion.new(
        quiz_id=quiz.id,
        question_type=question_type,
        prompt=f"Question {_next_position(quiz)}",
        position=_next_position(quiz),
    )
    memory_store.catalog.add_question(question)
    if options is None and question_type in ("single_choice", "true_false"):
        options = [("right", True), ("wrong", False)]
    added = []
    for i, (text, correct) in enumerate(options or []):
        option = QuizOption.new(
            question_id=question.id, option_text=text, is_correct=correct, position=i
        )
        if source == "legacy":
            memory_store.catalog.add_legacy_option(option)
        else:
            memory_store.catalog.add_current_option(option)
        added.append(option)
    return question, added


def correct_option(options: list[QuizOption]) -> QuizOption:
    return next(o for o in options if o.is_correct)


def wrong_option(options: list[QuizOption]) -> QuizOption:
    return next(o for o in options if not o.is_correct)


def seed_assignment(course_id: UUID, max_points: int = 100) -> Assignment:
    assignment = Assignment.new(
        course_id=course_id, title="Essay", max_points=max_points
    )
    memory_store.catalog.add_assignment(assignment)
    return assignment


def enroll(student_id: UUID, course_id: UUID, enrolled_at: int = EPOCH) -> None:
    asyncio.run(
        memory_store.progress.add_enrollment(
            Enrollment(student_id=student_id, course_id=course_id, enrolled_at=enrolled_at)
        )
    )


def get_enrollment(student_id: UUID, course_id: UUID) -> Enrollment | None:
    return asyncio.run(memory_store.progress.get_enrollment(student_id, course_id))
