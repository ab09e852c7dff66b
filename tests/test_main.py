from __future__ import annotations

from fastapi.testclient import TestClient

from progress_engine.db.seed import SAMPLE_COURSE_ID, seed_sample_catalog
from progress_engine.db.unit_of_work import memory_store
from progress_engine.main import app
from tests.conftest import bearer, mint_token


def test_all_engine_routes_are_mounted() -> None:
    paths = {route.path for route in app.routes}
    assert {
        "/health",
        "/ready",
        "/metrics",
        "/v1/courses/{course_id}/enroll",
        "/v1/courses/{course_id}/progress",
        "/v1/courses/{course_id}/progress/recalculate",
        "/v1/lessons/{lesson_id}/completion",
        "/v1/quizzes/{quiz_id}",
        "/v1/quizzes/{quiz_id}/sessions",
        "/v1/quizzes/{quiz_id}/attempts",
        "/v1/attempts/{attempt_id}",
        "/v1/assignments/{assignment_id}/submission",
        "/v1/submissions/{submission_id}/grade",
    } <= paths


def test_seed_is_idempotent() -> None:
    assert seed_sample_catalog(memory_store.catalog) == SAMPLE_COURSE_ID
    assert seed_sample_catalog(memory_store.catalog) == SAMPLE_COURSE_ID


def test_sample_course_walkthrough(client: TestClient) -> None:
    """Enroll in the sample course, take its quiz and finish every lesson."""
    seed_sample_catalog(memory_store.catalog)
    headers = bearer(mint_token())

    enrolled = client.post(f"/v1/courses/{SAMPLE_COURSE_ID}/enroll", headers=headers)
    assert enrolled.status_code == 201

    quiz_id = next(iter(memory_store.catalog._quizzes))  # type: ignore[attr-defined]
    quiz = client.get(f"/v1/quizzes/{quiz_id}", headers=headers).json()
    assert [q["option_source"] for q in quiz["questions"]] == ["legacy", "current"]

    answers = [
        {
            "question_id": q["id"],
            "selected_option_id": next(
                o["id"] for o in q["options"] if o["option_text"] in ("True", "13%")
            ),
        }
        for q in quiz["questions"]
    ]
    graded = client.post(
        f"/v1/quizzes/{quiz_id}/attempts", json={"answers": answers}, headers=headers
    )
    assert graded.status_code == 201
    assert graded.json()["score"] == 100

    lesson_ids = list(memory_store.catalog._lessons)  # type: ignore[attr-defined]
    for lesson_id in lesson_ids:
        client.post(f"/v1/lessons/{lesson_id}/completion", headers=headers)

    progress = client.get(f"/v1/courses/{SAMPLE_COURSE_ID}/progress", headers=headers)
    assert progress.json()["progress_percentage"] == 100
    assert progress.json()["completed_at"] is not None
