"""Enrollment, progress read and recalculation endpoints."""

from __future__ import annotations

from uuid import UUID, uuid4

from fastapi.testclient import TestClient

from tests.conftest import bearer, enroll, mint_token, seed_course

# ---- enroll ----


def test_enroll_returns_201(client: TestClient, token: str, student_id: UUID) -> None:
    course = seed_course(2)

    resp = client.post(f"/v1/courses/{course.id}/enroll", headers=bearer(token))

    assert resp.status_code == 201
    body = resp.json()
    assert body["student_id"] == str(student_id)
    assert body["course_id"] == str(course.id)
    assert body["progress_percentage"] == 0
    assert body["completed_at"] is None


def test_enroll_twice_returns_409(client: TestClient, token: str) -> None:
    course = seed_course(2)
    client.post(f"/v1/courses/{course.id}/enroll", headers=bearer(token))

    resp = client.post(f"/v1/courses/{course.id}/enroll", headers=bearer(token))

    assert resp.status_code == 409


def test_enroll_unknown_course_returns_404(client: TestClient, token: str) -> None:
    resp = client.post(f"/v1/courses/{uuid4()}/enroll", headers=bearer(token))
    assert resp.status_code == 404


def test_enroll_malformed_course_id_returns_422(client: TestClient, token: str) -> None:
    resp = client.post("/v1/courses/not-a-uuid/enroll", headers=bearer(token))
    assert resp.status_code == 422


# ---- progress ----


def test_progress_reflects_completions(
    client: TestClient, token: str, student_id: UUID
) -> None:
    course = seed_course(4)
    enroll(student_id, course.id)

    first = client.get(f"/v1/courses/{course.id}/progress", headers=bearer(token))
    assert first.status_code == 200
    assert first.json()["progress_percentage"] == 0

    client.post(
        f"/v1/lessons/{course.lessons[0].id}/completion", headers=bearer(token)
    )

    second = client.get(f"/v1/courses/{course.id}/progress", headers=bearer(token))
    assert second.json()["progress_percentage"] == 25


def test_progress_when_not_enrolled_returns_404(client: TestClient, token: str) -> None:
    course = seed_course(1)
    resp = client.get(f"/v1/courses/{course.id}/progress", headers=bearer(token))
    assert resp.status_code == 404


def test_progress_is_per_student(client: TestClient, student_id: UUID) -> None:
    course = seed_course(1)
    other = uuid4()
    enroll(student_id, course.id)
    enroll(other, course.id)
    client.post(
        f"/v1/lessons/{course.lessons[0].id}/completion",
        headers=bearer(mint_token(student_id)),
    )

    resp = client.get(
        f"/v1/courses/{course.id}/progress", headers=bearer(mint_token(other))
    )

    assert resp.json()["progress_percentage"] == 0


# ---- recalculate ----


def test_recalculate_returns_percentage(
    client: TestClient, token: str, student_id: UUID
) -> None:
    course = seed_course(3)
    enroll(student_id, course.id)
    client.post(
        f"/v1/lessons/{course.lessons[0].id}/completion", headers=bearer(token)
    )

    resp = client.post(
        f"/v1/courses/{course.id}/progress/recalculate", headers=bearer(token)
    )

    assert resp.status_code == 200
    assert resp.json() == {"course_id": str(course.id), "progress_percentage": 33}


def test_recalculate_when_not_enrolled_returns_404(
    client: TestClient, token: str
) -> None:
    course = seed_course(1)
    resp = client.post(
        f"/v1/courses/{course.id}/progress/recalculate", headers=bearer(token)
    )
    assert resp.status_code == 404


def test_recalculate_requires_token(client: TestClient) -> None:
    course = seed_course(1)
    resp = client.post(f"/v1/courses/{course.id}/progress/recalculate")
    assert resp.status_code == 401
