"""
Tests for the HTTP API.

Verifies health endpoints, service evaluation, release gating and the
error mapping for unknown, empty and unavailable services.
"""

from datetime import timedelta
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from budgetgate import main
from budgetgate.core.config import settings
from budgetgate.core.slo import InMemorySLISource, SLODefinition, SLOEngine, set_engine
from budgetgate.main import app

NOW_PARAM = {"now": "2026-01-15T12:00:00Z"}
CONFIG_DIR = Path(__file__).resolve().parents[1] / "config"


@pytest.fixture(autouse=True)
def no_rate_limit(monkeypatch):
    monkeypatch.setattr(main.limiter, "enabled", False)


@pytest.fixture
def engine(definition, now):
    sli = InMemorySLISource()
    sli.record("checkout", now - timedelta(minutes=10), good=9995, total=10000)
    sli.record("search", now - timedelta(minutes=10), good=9980, total=10000)

    payments = SLODefinition("payments-availability", "payments", 0.99, timedelta(days=7))
    search = SLODefinition("search-availability", "search", 0.999, timedelta(days=7))
    engine = SLOEngine([definition, payments, search], sli)
    set_engine(engine)
    return engine


@pytest.fixture
def client(engine):
    """Create test client for FastAPI app."""
    return TestClient(app)


def test_root_endpoint(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["status"] == "running"


def test_health_endpoints(client):
    assert client.get("/health").json() == {"status": "ok"}
    assert client.get("/livez").json() == {"status": "alive"}
    assert client.get("/healthz").json() == {"status": "ok", "services": 3}


def test_healthz_degraded_without_definitions(now):
    set_engine(SLOEngine([], InMemorySLISource()))
    client = TestClient(app)

    assert client.get("/healthz").json()["status"] == "degraded"


def test_healthz_reports_stopped_scheduler(client, monkeypatch):
    from budgetgate.core.slo import scheduler

    monkeypatch.setattr(settings, "SCHEDULER_ENABLED", True)
    monkeypatch.setattr(scheduler, "_scheduler", None)

    data = client.get("/healthz").json()
    assert data["status"] == "degraded"
    assert data["scheduler"]["running"] is False
    assert data["scheduler"]["ticks"] == 0


def test_request_id_echoed(client):
    response = client.get("/health", headers={"X-Request-ID": "deploy-7"})
    assert response.headers["x-request-id"] == "deploy-7"

    assert client.get("/health").headers["x-request-id"]


def test_metrics_disabled(client):
    assert client.get("/metrics").status_code == 404


def test_list_services(client):
    response = client.get("/api/v1/slo/services")
    assert response.status_code == 200

    data = response.json()
    assert [s["service"] for s in data] == ["checkout", "payments", "search"]
    assert data[0]["target"] == 0.999
    assert len(data[0]["burn_rate_rules"]) == 2


def test_service_status(client):
    response = client.get("/api/v1/slo/checkout/status", params=NOW_PARAM)
    assert response.status_code == 200

    data = response.json()
    assert data["status"] == "healthy"
    assert data["complete"] is True
    assert data["budget"]["sample_count"] == 10000
    assert data["budget"]["remaining_pct"] == pytest.approx(50.0)
    assert data["fired_rules"] == []
    assert len(data["readings"]) == 2


def test_over_budget_status_is_clamped_for_display(client):
    response = client.get("/api/v1/slo/search/status", params=NOW_PARAM)
    assert response.status_code == 200

    budget = response.json()["budget"]
    assert response.json()["status"] == "exhausted"
    assert budget["remaining_ratio"] == pytest.approx(-1.0)
    assert budget["remaining_pct"] == 0.0


def test_default_memory_backend_serves_example_files(monkeypatch):
    monkeypatch.setattr(settings, "SLI_BACKEND", "memory")
    monkeypatch.setattr(settings, "SLO_DEFINITIONS_PATH", str(CONFIG_DIR / "slos.example.json"))
    monkeypatch.setattr(settings, "SLI_EVENTS_PATH", str(CONFIG_DIR / "events.example.json"))
    monkeypatch.setattr(settings, "ALERT_WEBHOOK_URL", "")
    client = TestClient(app)

    response = client.get("/api/v1/slo/search/status", params=NOW_PARAM)
    assert response.status_code == 200
    # 10 of 50 allowed failures spent
    assert response.json()["status"] == "healthy"
    assert response.json()["budget"]["sample_count"] == 5000
    assert response.json()["budget"]["remaining_ratio"] == pytest.approx(0.8)

    response = client.post("/api/v1/slo/search/decision", params=NOW_PARAM, json={"risk": "low"})
    assert response.status_code == 200
    assert response.json()["decision"]["outcome"] == "approve"


def test_unknown_service_404(client):
    response = client.get("/api/v1/slo/nope/status", params=NOW_PARAM)
    assert response.status_code == 404


def test_no_samples_is_unknown(client):
    response = client.get("/api/v1/slo/payments/status", params=NOW_PARAM)
    assert response.status_code == 422

    detail = response.json()["detail"]
    assert detail["status"] == "unknown"
    assert "payments" in detail["reason"]


def test_source_unavailable_503(definition, make_source, unavailable):
    source = make_source({}, failures={timedelta(days=30): unavailable})
    set_engine(SLOEngine([definition], source))
    client = TestClient(app)

    response = client.get("/api/v1/slo/checkout/status", params=NOW_PARAM)
    assert response.status_code == 503
    assert response.json()["detail"]["status"] == "unknown"


def test_evaluation_in_progress_409(client, engine):
    lock = engine.pipeline("checkout")._running
    lock.acquire()
    try:
        response = client.get("/api/v1/slo/checkout/status", params=NOW_PARAM)
    finally:
        lock.release()

    assert response.status_code == 409


def test_release_gate(client):
    response = client.post(
        "/api/v1/slo/checkout/decision",
        params=NOW_PARAM,
        json={"risk": "high"},
    )
    assert response.status_code == 200

    data = response.json()
    assert data["evaluation"]["status"] == "healthy"
    assert data["decision"]["outcome"] == "review"
    assert data["decision"]["allowed"] is True


def test_release_gate_blocks_exhausted_service(client):
    response = client.post(
        "/api/v1/slo/search/decision",
        params=NOW_PARAM,
        json={"risk": "low"},
    )

    assert response.json()["decision"]["outcome"] == "block"
    assert response.json()["decision"]["allowed"] is False


def test_release_gate_rejects_unknown_risk(client):
    response = client.post("/api/v1/slo/checkout/decision", json={"risk": "extreme"})
    assert response.status_code == 422


def test_decide_lookup(client):
    response = client.get("/api/v1/slo/decide", params={"status": "critical", "risk": "low"})
    assert response.status_code == 200

    data = response.json()
    assert data["outcome"] == "delay"
    assert data["conditions"]


def test_decide_rejects_unknown_status(client):
    response = client.get("/api/v1/slo/decide", params={"status": "fine", "risk": "low"})
    assert response.status_code == 422


class TestAuth:
    """Bearer token auth guards the SLO API, never health endpoints."""

    @pytest.fixture(autouse=True)
    def enable_auth(self, monkeypatch):
        monkeypatch.setattr(settings, "AUTH_ENABLED", True)
        monkeypatch.setattr(settings, "API_KEY", "test-key-12345")

    def test_health_is_public(self, client):
        assert client.get("/healthz").status_code == 200

    def test_missing_token(self, client):
        assert client.get("/api/v1/slo/services").status_code == 403

    def test_wrong_token(self, client):
        response = client.get(
            "/api/v1/slo/services", headers={"Authorization": "Bearer wrong"}
        )
        assert response.status_code == 403

    def test_valid_token(self, client):
        response = client.get(
            "/api/v1/slo/services", headers={"Authorization": "Bearer test-key-12345"}
        )
        assert response.status_code == 200
