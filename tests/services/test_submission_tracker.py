from __future__ import annotations

import asyncio
from uuid import uuid4

import pytest
from prometheus_client import REGISTRY

from progress_engine.core.errors import (
    NotEnrolled,
    NotFound,
    PermissionDenied,
    SubmissionLocked,
    ValidationError,
)
from progress_engine.services.submission_tracker import SubmissionTracker
from tests.conftest import enroll, seed_assignment, seed_course


@pytest.fixture
def tracker(clock, dispatcher) -> SubmissionTracker:
    return SubmissionTracker(dispatcher=dispatcher, clock=clock)


@pytest.fixture
def classroom():
    """An enrolled student, the course instructor and a 50-point assignment."""
    instructor = uuid4()
    student = uuid4()
    course = seed_course(1, instructor_id=instructor)
    enroll(student, course.id)
    assignment = seed_assignment(course.id, max_points=50)
    return student, instructor, assignment


def _events(event: str) -> float:
    value = REGISTRY.get_sample_value(
        "assignment_submission_events_total", {"event": event}
    )
    return value if value is not None else 0.0


def test_submit_creates_submitted_record(tracker, classroom, clock) -> None:
    student, _, assignment = classroom

    submission = asyncio.run(
        tracker.submit(student, assignment.id, submission_text="  my answer  ")
    )

    assert submission.status == "submitted"
    assert submission.submission_text == "my answer"
    assert submission.file_url is None
    assert submission.submitted_at == clock.now
    assert submission.score is None


def test_resubmission_overwrites_until_graded(tracker, classroom, clock) -> None:
    student, _, assignment = classroom
    first = asyncio.run(tracker.submit(student, assignment.id, submission_text="v1"))

    clock.advance(30)
    before = _events("resubmitted")
    second = asyncio.run(
        tracker.submit(student, assignment.id, file_url="https://files/v2.pdf")
    )

    assert second.id == first.id
    assert second.submission_text is None
    assert second.file_url == "https://files/v2.pdf"
    assert second.submitted_at == clock.now
    assert _events("resubmitted") - before == 1
    stored = asyncio.run(tracker.get_submission(student, assignment.id))
    assert stored == second


def test_graded_submission_is_locked(tracker, classroom) -> None:
    student, instructor, assignment = classroom
    submission = asyncio.run(tracker.submit(student, assignment.id, submission_text="v1"))
    asyncio.run(tracker.grade(instructor, submission.id, 40))

    before = _events("rejected_locked")
    with pytest.raises(SubmissionLocked):
        asyncio.run(tracker.submit(student, assignment.id, submission_text="v2"))

    assert _events("rejected_locked") - before == 1
    stored = asyncio.run(tracker.get_submission(student, assignment.id))
    assert stored.submission_text == "v1"
    assert stored.status == "graded"


def test_empty_submission_is_rejected(tracker, classroom) -> None:
    student, _, assignment = classroom

    with pytest.raises(ValidationError):
        asyncio.run(
            tracker.submit(student, assignment.id, submission_text="   ", file_url="")
        )


def test_submit_requires_enrollment(tracker, classroom) -> None:
    _, _, assignment = classroom

    with pytest.raises(NotEnrolled):
        asyncio.run(tracker.submit(uuid4(), assignment.id, submission_text="hi"))


def test_submit_unknown_assignment(tracker, classroom) -> None:
    student, _, _ = classroom

    with pytest.raises(NotFound):
        asyncio.run(tracker.submit(student, uuid4(), submission_text="hi"))


def test_get_submission_before_submitting_is_none(tracker, classroom) -> None:
    student, _, assignment = classroom

    assert asyncio.run(tracker.get_submission(student, assignment.id)) is None


# ---- grading ----


def test_grade_records_score_and_notifies(tracker, classroom, clock, dispatcher) -> None:
    student, instructor, assignment = classroom
    submission = asyncio.run(tracker.submit(student, assignment.id, submission_text="x"))

    clock.advance(100)
    graded = asyncio.run(tracker.grade(instructor, submission.id, 42, "Good work"))

    assert graded.status == "graded"
    assert graded.score == 42
    assert graded.feedback == "Good work"
    assert graded.graded_at == clock.now
    assert graded.graded_by == instructor
    [notification] = dispatcher.of_type("assignment_feedback")
    assert notification.user_id == student
    assert "42/50" in notification.message


@pytest.mark.parametrize(("given", "stored"), [(75, 50), (-5, 0), (50, 50), (0, 0)])
def test_grade_clamps_score_to_max_points(tracker, classroom, given, stored) -> None:
    student, instructor, assignment = classroom
    submission = asyncio.run(tracker.submit(student, assignment.id, submission_text="x"))

    graded = asyncio.run(tracker.grade(instructor, submission.id, given))

    assert graded.score == stored


def test_regrading_is_allowed(tracker, classroom) -> None:
    student, instructor, assignment = classroom
    submission = asyncio.run(tracker.submit(student, assignment.id, submission_text="x"))

    asyncio.run(tracker.grade(instructor, submission.id, 20))
    regraded = asyncio.run(tracker.grade(instructor, submission.id, 30, "Revised"))

    assert regraded.score == 30
    assert regraded.feedback == "Revised"


def test_only_course_instructor_may_grade(tracker, classroom) -> None:
    student, _, assignment = classroom
    submission = asyncio.run(tracker.submit(student, assignment.id, submission_text="x"))

    with pytest.raises(PermissionDenied):
        asyncio.run(tracker.grade(uuid4(), submission.id, 10))
    with pytest.raises(PermissionDenied):
        asyncio.run(tracker.grade(student, submission.id, 50))


def test_grade_unknown_submission(tracker, classroom) -> None:
    _, instructor, _ = classroom

    with pytest.raises(NotFound):
        asyncio.run(tracker.grade(instructor, uuid4(), 10))


def test_feedback_notification_failure_keeps_grade(tracker, classroom, dispatcher) -> None:
    student, instructor, assignment = classroom
    submission = asyncio.run(tracker.submit(student, assignment.id, submission_text="x"))
    dispatcher.fail_with = TimeoutError("slow")

    graded = asyncio.run(tracker.grade(instructor, submission.id, 25))

    assert graded.score == 25
    stored = asyncio.run(tracker.get_submission(student, assignment.id))
    assert stored.status == "graded"
