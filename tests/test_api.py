"""Tests for API endpoints and HTTP error mapping."""

import pytest
from fastapi import Request
from fastapi.testclient import TestClient

from conftest import FakeSearchProvider, denver_weather_results
from search_intel import main
from search_intel.clients.serper_client import SearchProviderError
from search_intel.logging_config import clear_request_id, set_request_id
from search_intel.services.search_service import SearchService

DENVER_QUERY = "current weather in Denver today"


@pytest.fixture
def provider():
    return FakeSearchProvider(results=denver_weather_results())


@pytest.fixture
def client(monkeypatch, test_settings, provider, clock):
    """Test client whose lifespan builds a service around the fake provider."""
    service = SearchService(settings=test_settings, provider=provider, clock=clock)
    monkeypatch.setattr(main, "SearchService", lambda settings: service)
    with TestClient(main.app) as client:
        yield client


class TestEndpoints:
    """Test successful requests."""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["cache_size"] == 0
        assert "search_provider_configured" in data

    def test_request_id_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"

    def test_request_id_generated(self, client):
        response = client.get("/health")
        assert response.headers["X-Request-ID"]

    def test_classify_intent(self, client):
        response = client.post("/api/v1/intent", json={"query": DENVER_QUERY})

        assert response.status_code == 200
        data = response.json()
        assert data["primary_intent"] == "status"
        assert data["entities"]["locations"] == ["Denver"]
        assert data["search_strategy"]["priority"] == "high"

    def test_search(self, client, provider):
        response = client.post("/api/v1/search", json={"query": DENVER_QUERY})

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "completed"
        assert data["results"]
        assert data["from_cache"] is False
        assert len(provider.queries) == 1

    def test_search_then_cache_stats(self, client):
        client.post("/api/v1/search", json={"query": DENVER_QUERY})
        client.post("/api/v1/search", json={"query": DENVER_QUERY})

        response = client.get("/api/v1/cache/stats")

        assert response.status_code == 200
        data = response.json()
        assert data["size"] == 1
        assert data["hits"] == 1
        assert data["lookups"] == 2
        assert data["hit_rate"] == pytest.approx(0.5)

    def test_cache_cleanup(self, client):
        client.post("/api/v1/search", json={"query": DENVER_QUERY})

        response = client.post("/api/v1/cache/cleanup", params={"force_resize": True})

        assert response.status_code == 200
        assert response.json() == {"removed": 0, "size": 1}

    def test_context(self, client):
        response = client.post(
            "/api/v1/context",
            json={
                "query": DENVER_QUERY,
                "options": {"max_tokens": 300, "compression_level": "aggressive"},
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["search"]["status"] == "completed"
        assert data["context"]["total_tokens"] <= 300
        assert "web_results" in data["context"]["context_sources"]

    def test_context_without_search(self, client, provider):
        response = client.post(
            "/api/v1/context", json={"query": DENVER_QUERY, "include_web_results": False}
        )

        assert response.status_code == 200
        assert response.json()["search"] is None
        assert provider.queries == []


class TestErrorMapping:
    """Test HTTP error status codes."""

    def test_provider_error_returns_502(self, monkeypatch, test_settings, clock):
        provider = FakeSearchProvider(
            error=SearchProviderError("Web search API error: HTTP 500", status_code=500)
        )
        service = SearchService(settings=test_settings, provider=provider, clock=clock)
        monkeypatch.setattr(main, "SearchService", lambda settings: service)

        with TestClient(main.app) as client:
            response = client.post("/api/v1/search", json={"query": DENVER_QUERY})

        assert response.status_code == 502
        data = response.json()
        assert data["error"] == "Search Provider Error"
        assert data["detail"] == "Web search API error: HTTP 500"
        assert data["status_code"] == 502
        assert data["request_id"] == response.headers["X-Request-ID"]

    def test_invalid_max_results_returns_422(self, client):
        response = client.post("/api/v1/search", json={"query": DENVER_QUERY, "max_results": 20})

        assert response.status_code == 422
        data = response.json()
        assert data["error"] == "Validation Error"
        assert "max_results" in data["detail"]

    def test_missing_query_returns_422(self, client):
        response = client.post("/api/v1/search", json={})

        assert response.status_code == 422
        assert "query" in response.json()["detail"]

    def test_invalid_compression_level_returns_422(self, client):
        response = client.post(
            "/api/v1/context",
            json={"query": DENVER_QUERY, "options": {"compression_level": "extreme"}},
        )

        assert response.status_code == 422

    def test_service_not_initialized_returns_503(self, monkeypatch):
        monkeypatch.setattr(main, "search_service", None)
        client = TestClient(main.app)

        response = client.post("/api/v1/search", json={"query": DENVER_QUERY})

        assert response.status_code == 503
        assert response.json()["detail"] == "Search service not initialized"

    def test_error_response_falls_back_to_logging_request_id(self):
        request = Request({"type": "http", "method": "GET", "path": "/", "headers": []})
        set_request_id("req-from-context")

        try:
            response = main._error_response(request, 500, "Internal Server Error", "boom")
        finally:
            clear_request_id()

        assert response.status_code == 500
        assert response.headers["X-Request-ID"] == "req-from-context"
        assert b'"request_id":"req-from-context"' in response.body
