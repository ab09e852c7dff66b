"""Quiz display, timer session, submission and attempt history endpoints."""

from __future__ import annotations

from uuid import UUID, uuid4

from fastapi.testclient import TestClient

from tests.conftest import (
    add_question,
    bearer,
    correct_option,
    enroll,
    mint_token,
    seed_course,
    seed_quiz,
    wrong_option,
)


def _quiz_for(student_id: UUID, **quiz_kwargs):
    course = seed_course(1)
    enroll(student_id, course.id)
    return seed_quiz(course.id, **quiz_kwargs)


def _answer(question, option) -> dict:
    return {"question_id": str(question.id), "selected_option_id": str(option.id)}


# ---- display ----


def test_describe_quiz_hides_correct_flags(
    client: TestClient, token: str, student_id: UUID
) -> None:
    quiz = _quiz_for(student_id, passing_score=60, time_limit_minutes=15)
    legacy_q, _ = add_question(quiz, "true_false", source="legacy")
    current_q, current_opts = add_question(quiz)

    resp = client.get(f"/v1/quizzes/{quiz.id}", headers=bearer(token))

    assert resp.status_code == 200
    body = resp.json()
    assert body["passing_score"] == 60
    assert body["time_limit_minutes"] == 15
    assert [q["id"] for q in body["questions"]] == [str(legacy_q.id), str(current_q.id)]
    assert [q["option_source"] for q in body["questions"]] == ["legacy", "current"]
    options = body["questions"][1]["options"]
    assert [o["id"] for o in options] == [str(o.id) for o in current_opts]
    assert all(set(o) == {"id", "option_text", "position"} for o in options)


def test_describe_unknown_quiz_returns_404(client: TestClient, token: str) -> None:
    resp = client.get(f"/v1/quizzes/{uuid4()}", headers=bearer(token))
    assert resp.status_code == 404


def test_describe_quiz_when_not_enrolled_returns_403(
    client: TestClient, token: str
) -> None:
    quiz = seed_quiz(seed_course(1).id)
    add_question(quiz)

    resp = client.get(f"/v1/quizzes/{quiz.id}", headers=bearer(token))

    assert resp.status_code == 403


# ---- sessions ----


def test_start_session_returns_deadline(
    client: TestClient, token: str, student_id: UUID
) -> None:
    quiz = _quiz_for(student_id, time_limit_minutes=5)

    resp = client.post(f"/v1/quizzes/{quiz.id}/sessions", headers=bearer(token))

    assert resp.status_code == 201
    body = resp.json()
    assert body["quiz_id"] == str(quiz.id)
    assert body["deadline"] == body["started_at"] + 300


def test_start_session_when_not_enrolled_returns_403(
    client: TestClient, token: str
) -> None:
    quiz = seed_quiz(seed_course(1).id)
    resp = client.post(f"/v1/quizzes/{quiz.id}/sessions", headers=bearer(token))
    assert resp.status_code == 403


# ---- submission ----


def test_submit_returns_graded_attempt(
    client: TestClient, token: str, student_id: UUID
) -> None:
    quiz = _quiz_for(student_id, passing_score=50)
    q1, o1 = add_question(quiz)
    q2, o2 = add_question(quiz)

    resp = client.post(
        f"/v1/quizzes/{quiz.id}/attempts",
        json={"answers": [_answer(q1, correct_option(o1)), _answer(q2, wrong_option(o2))]},
        headers=bearer(token),
    )

    assert resp.status_code == 201
    body = resp.json()
    assert body["score"] == 50
    assert body["passed"] is True
    assert body["correct_count"] == 1
    assert body["gradable_count"] == 2
    assert body["replayed"] is False
    assert [a["is_correct"] for a in body["answers"]] == [True, False]
    assert body["answers"][0]["option_source"] == "current"


def test_resubmission_with_same_token_returns_200(
    client: TestClient, token: str, student_id: UUID
) -> None:
    quiz = _quiz_for(student_id)
    q, opts = add_question(quiz)
    payload = {"answers": [_answer(q, correct_option(opts))], "submission_token": "abc"}

    first = client.post(
        f"/v1/quizzes/{quiz.id}/attempts", json=payload, headers=bearer(token)
    )
    second = client.post(
        f"/v1/quizzes/{quiz.id}/attempts", json=payload, headers=bearer(token)
    )

    assert first.status_code == 201
    assert second.status_code == 200
    assert second.json()["id"] == first.json()["id"]
    assert second.json()["replayed"] is True


def test_reused_token_with_new_answers_returns_409(
    client: TestClient, token: str, student_id: UUID
) -> None:
    quiz = _quiz_for(student_id)
    q, opts = add_question(quiz)
    url = f"/v1/quizzes/{quiz.id}/attempts"

    client.post(
        url,
        json={"answers": [_answer(q, correct_option(opts))], "submission_token": "t"},
        headers=bearer(token),
    )
    resp = client.post(
        url,
        json={"answers": [_answer(q, wrong_option(opts))], "submission_token": "t"},
        headers=bearer(token),
    )

    assert resp.status_code == 409


def test_attempt_limit_returns_409(
    client: TestClient, token: str, student_id: UUID
) -> None:
    quiz = _quiz_for(student_id, max_attempts=1)
    url = f"/v1/quizzes/{quiz.id}/attempts"

    assert client.post(url, json={"answers": []}, headers=bearer(token)).status_code == 201
    assert client.post(url, json={"answers": []}, headers=bearer(token)).status_code == 409


def test_timed_quiz_submitted_without_session_returns_409(
    client: TestClient, token: str, student_id: UUID
) -> None:
    quiz = _quiz_for(student_id, time_limit_minutes=10)
    url = f"/v1/quizzes/{quiz.id}/attempts"

    rejected = client.post(url, json={"answers": []}, headers=bearer(token))
    assert rejected.status_code == 409

    client.post(f"/v1/quizzes/{quiz.id}/sessions", headers=bearer(token))
    accepted = client.post(url, json={"answers": []}, headers=bearer(token))
    assert accepted.status_code == 201


def test_invalid_option_returns_422(
    client: TestClient, token: str, student_id: UUID
) -> None:
    quiz = _quiz_for(student_id)
    q, _ = add_question(quiz)

    resp = client.post(
        f"/v1/quizzes/{quiz.id}/attempts",
        json={"answers": [{"question_id": str(q.id), "selected_option_id": str(uuid4())}]},
        headers=bearer(token),
    )

    assert resp.status_code == 422


def test_submit_when_not_enrolled_returns_403(client: TestClient, token: str) -> None:
    quiz = seed_quiz(seed_course(1).id)
    resp = client.post(
        f"/v1/quizzes/{quiz.id}/attempts", json={"answers": []}, headers=bearer(token)
    )
    assert resp.status_code == 403


# ---- history ----


def test_list_and_get_attempts(
    client: TestClient, token: str, student_id: UUID
) -> None:
    quiz = _quiz_for(student_id)
    q, opts = add_question(quiz)
    submitted = client.post(
        f"/v1/quizzes/{quiz.id}/attempts",
        json={"answers": [_answer(q, correct_option(opts))]},
        headers=bearer(token),
    ).json()

    listed = client.get(f"/v1/quizzes/{quiz.id}/attempts", headers=bearer(token))
    assert listed.status_code == 200
    assert [a["id"] for a in listed.json()] == [submitted["id"]]
    assert "answers" not in listed.json()[0]

    fetched = client.get(f"/v1/attempts/{submitted['id']}", headers=bearer(token))
    assert fetched.status_code == 200
    assert fetched.json()["answers"] == submitted["answers"]


def test_attempt_of_another_student_returns_403(
    client: TestClient, token: str, student_id: UUID
) -> None:
    quiz = _quiz_for(student_id)
    submitted = client.post(
        f"/v1/quizzes/{quiz.id}/attempts", json={"answers": []}, headers=bearer(token)
    ).json()

    resp = client.get(
        f"/v1/attempts/{submitted['id']}", headers=bearer(mint_token(uuid4()))
    )

    assert resp.status_code == 403


def test_unknown_attempt_returns_404(client: TestClient, token: str) -> None:
    resp = client.get(f"/v1/attempts/{uuid4()}", headers=bearer(token))
    assert resp.status_code == 404
