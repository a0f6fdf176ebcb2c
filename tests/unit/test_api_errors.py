"""Unit tests for the domain error to HTTP response mapping."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from backend.tripdesk.api.errors import register_exception_handlers
from backend.tripdesk.errors import (
    AllProvidersUnavailableError,
    HandoffExpiredError,
    NoResultsError,
    NotFoundError,
    ProviderAttempt,
    ProviderUnavailableError,
)

ERRORS: dict[str, Exception] = {
    "expired": HandoffExpiredError("Handoff has expired", details={"handoff_id": "h-1"}),
    "missing": NotFoundError("trip", "t-404"),
    "empty": NoResultsError("kiwi", "no flights JFK-LHR"),
    "down": AllProvidersUnavailableError("flights", [ProviderAttempt("amadeus", "HTTP 500")]),
    "adapter": ProviderUnavailableError("serper", "HTTP 429"),
}


@pytest.fixture
def client() -> TestClient:
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/raise/{name}")
    async def raise_error(name: str) -> None:
        raise ERRORS[name]

    return TestClient(app)


def test_policy_violation_is_400(client: TestClient) -> None:
    response = client.get("/raise/expired")

    assert response.status_code == 400
    assert response.json() == {"error": "Handoff has expired", "details": {"handoff_id": "h-1"}}


def test_not_found_is_404(client: TestClient) -> None:
    response = client.get("/raise/missing")

    assert response.status_code == 404
    assert response.json() == {"error": "Trip not found", "details": {"id": "t-404"}}


def test_no_results_is_404(client: TestClient) -> None:
    response = client.get("/raise/empty")

    assert response.status_code == 404
    assert response.json()["details"] == {"provider": "kiwi", "reason": "no flights JFK-LHR"}


def test_all_providers_down_is_retryable_503(client: TestClient) -> None:
    response = client.get("/raise/down")

    assert response.status_code == 503
    assert response.headers["Retry-After"] == "30"
    assert response.json()["details"]["attempts"] == [{"provider": "amadeus", "reason": "HTTP 500"}]


def test_lone_adapter_failure_is_503(client: TestClient) -> None:
    response = client.get("/raise/adapter")

    assert response.status_code == 503
    assert response.json() == {"error": "Provider unavailable", "details": {"provider": "serper"}}
