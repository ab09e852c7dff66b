"""Bearer token validation on /v1 endpoints."""

from __future__ import annotations

from uuid import uuid4

from fastapi.testclient import TestClient

from tests.conftest import bearer, mint_token, seed_course


def test_missing_token_is_rejected(client: TestClient) -> None:
    course = seed_course(1)
    resp = client.post(f"/v1/courses/{course.id}/enroll")
    assert resp.status_code == 401
    assert resp.headers.get("www-authenticate") == "Bearer"


def test_malformed_token_is_rejected(client: TestClient) -> None:
    course = seed_course(1)
    resp = client.post(
        f"/v1/courses/{course.id}/enroll", headers=bearer("not-a-jwt")
    )
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Invalid token"


def test_expired_token_is_rejected(client: TestClient) -> None:
    course = seed_course(1)
    expired = mint_token(uuid4(), ttl_minutes=-1)
    resp = client.post(f"/v1/courses/{course.id}/enroll", headers=bearer(expired))
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Token expired"


def test_non_uuid_subject_is_rejected(client: TestClient) -> None:
    course = seed_course(1)
    resp = client.post(
        f"/v1/courses/{course.id}/enroll", headers=bearer(mint_token("tee"))
    )
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Invalid token subject"


def test_valid_token_is_accepted(client: TestClient, token: str) -> None:
    course = seed_course(1)
    resp = client.post(f"/v1/courses/{course.id}/enroll", headers=bearer(token))
    assert resp.status_code == 201
