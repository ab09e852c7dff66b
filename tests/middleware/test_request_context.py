"""Request context middleware: X-Request-ID on every response."""

from __future__ import annotations

import uuid

from fastapi.testclient import TestClient


def test_request_id_generated_when_not_provided(client: TestClient) -> None:
    resp = client.get("/health")
    req_id = resp.headers.get("x-request-id")
    assert req_id is not None
    uuid.UUID(req_id)  # raises ValueError if invalid


def test_request_id_echoed_when_provided(client: TestClient) -> None:
    resp = client.get("/health", headers={"X-Request-ID": "trace-42"})
    assert resp.headers.get("x-request-id") == "trace-42"


def test_request_id_present_on_rejected_requests(client: TestClient) -> None:
    resp = client.get(f"/v1/attempts/{uuid.uuid4()}")  # no token: 401
    assert resp.status_code == 401
    assert resp.headers.get("x-request-id") is not None


def test_request_is_logged_with_context(client: TestClient, caplog) -> None:
    with caplog.at_level("INFO", logger="progress_engine.middleware.request_context"):
        resp = client.get("/health", headers={"X-Request-ID": "log-me"})

    [record] = [
        r
        for r in caplog.records
        if r.name == "progress_engine.middleware.request_context"
    ]
    assert record.request_id == "log-me"
    assert record.status_code == resp.status_code
    assert record.path == "/health"
