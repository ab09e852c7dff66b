from __future__ import annotations

from uuid import UUID, uuid4

from fastapi.testclient import TestClient

from tests.conftest import bearer, enroll, get_enrollment, seed_course


def test_completion_without_body_marks_complete(
    client: TestClient, token: str, student_id: UUID
) -> None:
    course = seed_course(2)
    enroll(student_id, course.id)
    lesson = course.lessons[0]

    resp = client.post(f"/v1/lessons/{lesson.id}/completion", headers=bearer(token))

    assert resp.status_code == 200
    body = resp.json()
    assert body["lesson_id"] == str(lesson.id)
    assert body["course_id"] == str(course.id)
    assert body["completed"] is True
    assert isinstance(body["completed_at"], int)
    assert body["progress_percentage"] == 50


def test_completion_can_be_undone(
    client: TestClient, token: str, student_id: UUID
) -> None:
    course = seed_course(2)
    enroll(student_id, course.id)
    url = f"/v1/lessons/{course.lessons[0].id}/completion"
    client.post(url, headers=bearer(token))

    resp = client.post(url, json={"completed": False}, headers=bearer(token))

    assert resp.status_code == 200
    assert resp.json()["completed"] is False
    assert resp.json()["completed_at"] is None
    assert resp.json()["progress_percentage"] == 0


def test_completing_every_lesson_completes_course(
    client: TestClient, token: str, student_id: UUID
) -> None:
    course = seed_course(2)
    enroll(student_id, course.id)

    for lesson in course.lessons:
        resp = client.post(f"/v1/lessons/{lesson.id}/completion", headers=bearer(token))

    assert resp.json()["progress_percentage"] == 100
    assert get_enrollment(student_id, course.id).completed_at is not None


def test_completion_when_not_enrolled_returns_403(
    client: TestClient, token: str
) -> None:
    course = seed_course(1)
    resp = client.post(
        f"/v1/lessons/{course.lessons[0].id}/completion", headers=bearer(token)
    )
    assert resp.status_code == 403


def test_completion_for_unknown_lesson_returns_404(
    client: TestClient, token: str
) -> None:
    resp = client.post(f"/v1/lessons/{uuid4()}/completion", headers=bearer(token))
    assert resp.status_code == 404


def test_completion_requires_token(client: TestClient) -> None:
    course = seed_course(1)
    resp = client.post(f"/v1/lessons/{course.lessons[0].id}/completion")
    assert resp.status_code == 401
