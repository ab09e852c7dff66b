from __future__ import annotations

import asyncio
from uuid import uuid4

import pytest
from prometheus_client import REGISTRY

from progress_engine.core.errors import NotEnrolled, NotFound, Unauthenticated
from progress_engine.db.unit_of_work import memory_store
from progress_engine.services.completion_recorder import (
    CompletionRecorder,
    build_event_bus,
)
from progress_engine.services.events import CompletionRecorded, EventBus
from progress_engine.services.progress_recalculator import ProgressRecalculator
from tests.conftest import enroll, get_enrollment, seed_course


def _recorder(clock, dispatcher, policy: str = "latest") -> CompletionRecorder:
    recalculator = ProgressRecalculator(dispatcher=dispatcher, clock=clock)
    return CompletionRecorder(
        bus=build_event_bus(recalculator),
        settle=recalculator.settle,
        clock=clock,
        timestamp_policy=policy,  # type: ignore[arg-type]
    )


def _completion(student, lesson_id):
    return asyncio.run(memory_store.progress.get_completion(student, lesson_id))


def test_record_completion_returns_new_percentage(clock, dispatcher) -> None:
    recorder = _recorder(clock, dispatcher)
    course = seed_course(4)
    student = uuid4()
    enroll(student, course.id)

    result = asyncio.run(recorder.record_completion(student, course.lessons[0].id))

    assert result.course_id == course.id
    assert result.completed is True
    assert result.completed_at == clock.now
    assert result.progress_percentage == 25
    stored = _completion(student, course.lessons[0].id)
    assert stored.completed is True
    assert stored.completed_at == clock.now


def test_record_completion_counts_metric(clock, dispatcher) -> None:
    recorder = _recorder(clock, dispatcher)
    course = seed_course(2)
    student = uuid4()
    enroll(student, course.id)

    labels = {"completed": "true"}
    before = REGISTRY.get_sample_value("lesson_completions_total", labels) or 0.0
    asyncio.run(recorder.record_completion(student, course.lessons[0].id))
    after = REGISTRY.get_sample_value("lesson_completions_total", labels) or 0.0
    assert after - before == 1


def test_uncompleting_a_lesson_lowers_progress(clock, dispatcher) -> None:
    recorder = _recorder(clock, dispatcher)
    course = seed_course(2)
    student = uuid4()
    enroll(student, course.id)
    asyncio.run(recorder.record_completion(student, course.lessons[0].id))

    result = asyncio.run(
        recorder.record_completion(student, course.lessons[0].id, completed=False)
    )

    assert result.completed is False
    assert result.completed_at is None
    assert result.progress_percentage == 0
    stored = _completion(student, course.lessons[0].id)
    assert stored.completed is False
    assert stored.completed_at is None


def test_repeated_completion_keeps_percentage(clock, dispatcher) -> None:
    recorder = _recorder(clock, dispatcher)
    course = seed_course(3)
    student = uuid4()
    enroll(student, course.id)

    first = asyncio.run(recorder.record_completion(student, course.lessons[0].id))
    second = asyncio.run(recorder.record_completion(student, course.lessons[0].id))

    assert first.progress_percentage == second.progress_percentage == 33


# ---- completed_at policy ----


def test_latest_policy_refreshes_timestamp(clock, dispatcher) -> None:
    recorder = _recorder(clock, dispatcher, policy="latest")
    course = seed_course(2)
    student = uuid4()
    enroll(student, course.id)
    lesson_id = course.lessons[0].id

    asyncio.run(recorder.record_completion(student, lesson_id))
    clock.advance(3600)
    result = asyncio.run(recorder.record_completion(student, lesson_id))

    assert result.completed_at == clock.now


def test_first_policy_keeps_original_timestamp(clock, dispatcher) -> None:
    recorder = _recorder(clock, dispatcher, policy="first")
    course = seed_course(2)
    student = uuid4()
    enroll(student, course.id)
    lesson_id = course.lessons[0].id

    first = asyncio.run(recorder.record_completion(student, lesson_id))
    clock.advance(3600)
    second = asyncio.run(recorder.record_completion(student, lesson_id))

    assert second.completed_at == first.completed_at


def test_first_policy_restamps_after_uncomplete(clock, dispatcher) -> None:
    recorder = _recorder(clock, dispatcher, policy="first")
    course = seed_course(2)
    student = uuid4()
    enroll(student, course.id)
    lesson_id = course.lessons[0].id

    asyncio.run(recorder.record_completion(student, lesson_id))
    asyncio.run(recorder.record_completion(student, lesson_id, completed=False))
    clock.advance(3600)
    result = asyncio.run(recorder.record_completion(student, lesson_id))

    assert result.completed_at == clock.now


# ---- rejections ----


def test_record_completion_requires_enrollment(clock, dispatcher) -> None:
    recorder = _recorder(clock, dispatcher)
    course = seed_course(2)
    student = uuid4()

    with pytest.raises(NotEnrolled):
        asyncio.run(recorder.record_completion(student, course.lessons[0].id))
    assert _completion(student, course.lessons[0].id) is None


def test_record_completion_unknown_lesson(clock, dispatcher) -> None:
    recorder = _recorder(clock, dispatcher)

    with pytest.raises(NotFound) as exc_info:
        asyncio.run(recorder.record_completion(uuid4(), uuid4()))
    assert exc_info.value.entity == "lesson"


def test_record_completion_requires_identity(clock, dispatcher) -> None:
    recorder = _recorder(clock, dispatcher)
    course = seed_course(1)

    with pytest.raises(Unauthenticated):
        asyncio.run(recorder.record_completion(None, course.lessons[0].id))


# ---- atomicity and concurrency ----


def test_failed_recalculation_rolls_back_completion(clock, dispatcher) -> None:
    bus = EventBus()

    async def explode(uow, event):
        raise RuntimeError("recalculation failed")

    bus.subscribe(CompletionRecorded, explode)

    recalculator = ProgressRecalculator(dispatcher=dispatcher, clock=clock)
    recorder = CompletionRecorder(bus=bus, settle=recalculator.settle, clock=clock)
    course = seed_course(2)
    student = uuid4()
    enroll(student, course.id)

    with pytest.raises(RuntimeError, match="recalculation failed"):
        asyncio.run(recorder.record_completion(student, course.lessons[0].id))

    assert _completion(student, course.lessons[0].id) is None
    assert get_enrollment(student, course.id).progress_percentage == 0


def test_concurrent_completions_count_every_lesson(clock, dispatcher) -> None:
    recorder = _recorder(clock, dispatcher)
    course = seed_course(8, module_count=3)
    student = uuid4()
    enroll(student, course.id)

    async def complete_all():
        return await asyncio.gather(
            *(
                recorder.record_completion(student, lesson.id)
                for lesson in course.lessons
            )
        )

    results = asyncio.run(complete_all())

    assert max(r.progress_percentage for r in results) == 100
    assert get_enrollment(student, course.id).progress_percentage == 100
    assert len(dispatcher.of_type("course_completed")) == 1


def test_two_students_progress_independently(clock, dispatcher) -> None:
    recorder = _recorder(clock, dispatcher)
    course = seed_course(2)
    alice, bob = uuid4(), uuid4()
    enroll(alice, course.id)
    enroll(bob, course.id)

    asyncio.run(recorder.record_completion(alice, course.lessons[0].id))

    assert get_enrollment(alice, course.id).progress_percentage == 50
    assert get_enrollment(bob, course.id).progress_percentage == 0
