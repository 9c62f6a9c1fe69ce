"""Unit tests for the Prometheus metrics and their instrumentation points."""

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

from cerebro.api.main import app
from cerebro.config import Settings
from cerebro.dialogue.engine import DialogueEngine
from cerebro.observability.metrics import (
    LOG_ANALYSES_TOTAL,
    MESSAGES_PROCESSED_TOTAL,
    REQUEST_DURATION,
    REQUESTS_IN_PROGRESS,
    REQUESTS_TOTAL,
    TICKETS_CREATED_TOTAL,
    WEBSOCKET_SUBSCRIBERS,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _sample(metric_name: str, labels: dict[str, str] | None = None) -> float:
    """Read current value from the default registry (0.0 if never observed)."""
    value = REGISTRY.get_sample_value(metric_name, labels or {})
    return value if value is not None else 0.0


@pytest.fixture
def client(mock_settings: Settings) -> Generator[TestClient]:  # noqa: ARG001 (mock_settings activates patches)
    with TestClient(app) as tc:
        yield tc


# ---------------------------------------------------------------------------
# Metric definition tests
# ---------------------------------------------------------------------------


class TestMetricDefinitions:
    """Verify all expected metrics are registered with correct types."""

    def test_request_duration_is_histogram(self) -> None:
        assert REQUEST_DURATION._type == "histogram"

    def test_requests_total_is_counter(self) -> None:
        assert REQUESTS_TOTAL._type == "counter"

    def test_requests_in_progress_is_gauge(self) -> None:
        assert REQUESTS_IN_PROGRESS._type == "gauge"

    def test_messages_processed_is_counter(self) -> None:
        assert MESSAGES_PROCESSED_TOTAL._type == "counter"

    def test_tickets_created_is_counter(self) -> None:
        assert TICKETS_CREATED_TOTAL._type == "counter"

    def test_log_analyses_is_counter(self) -> None:
        assert LOG_ANALYSES_TOTAL._type == "counter"

    def test_websocket_subscribers_is_gauge(self) -> None:
        assert WEBSOCKET_SUBSCRIBERS._type == "gauge"


# ---------------------------------------------------------------------------
# Dialogue instrumentation
# ---------------------------------------------------------------------------


class TestDialogueMetrics:
    def test_messages_counted_by_scenario(self, engine: DialogueEngine) -> None:
        before = _sample("cerebro_messages_processed_total", {"scenario": "sales_report"})
        engine.process_message("m1", "The daily sales report won't generate")
        after = _sample("cerebro_messages_processed_total", {"scenario": "sales_report"})
        assert after - before == 1

    def test_ticket_status_counted_separately(self, engine: DialogueEngine) -> None:
        before = _sample("cerebro_messages_processed_total", {"scenario": "ticket_status"})
        engine.process_message("m1", "check ticket #48201")
        after = _sample("cerebro_messages_processed_total", {"scenario": "ticket_status"})
        assert after - before == 1

    def test_tickets_counted_by_application(self, engine: DialogueEngine) -> None:
        before = _sample("cerebro_tickets_created_total", {"application": "Finance App"})
        for text in ("Invoice approval is failing", "Finance App", "just now", "error 500"):
            engine.process_message("m1", text)
        engine.should_create_ticket("m1", "u1", "Tester")
        engine.should_create_ticket("m1", "u1", "Tester")
        after = _sample("cerebro_tickets_created_total", {"application": "Finance App"})
        assert after - before == 1


# ---------------------------------------------------------------------------
# HTTP instrumentation
# ---------------------------------------------------------------------------


class TestRequestMetrics:
    @pytest.mark.integration
    def test_metrics_endpoint(self, client: TestClient) -> None:
        resp = client.get("/metrics")
        assert resp.status_code == 200
        assert "cerebro_requests_total" in resp.text
        assert "cerebro_messages_processed_total" in resp.text

    @pytest.mark.integration
    def test_requests_labelled_by_route_template(self, client: TestClient) -> None:
        labels = {"endpoint": "/api/tickets/{ticket_id}", "status": "error"}
        before = _sample("cerebro_requests_total", labels)
        client.get("/api/tickets/missing")
        after = _sample("cerebro_requests_total", labels)
        assert after - before == 1

    @pytest.mark.integration
    def test_success_counted(self, client: TestClient) -> None:
        labels = {"endpoint": "/health", "status": "success"}
        before = _sample("cerebro_requests_total", labels)
        client.get("/health")
        assert _sample("cerebro_requests_total", labels) - before == 1

    @pytest.mark.integration
    def test_duration_observed(self, client: TestClient) -> None:
        before = _sample("cerebro_request_duration_seconds_count", {"endpoint": "/api/tickets"})
        client.get("/api/tickets")
        after = _sample("cerebro_request_duration_seconds_count", {"endpoint": "/api/tickets"})
        assert after - before == 1

    @pytest.mark.integration
    def test_in_progress_back_to_zero(self, client: TestClient) -> None:
        client.get("/api/tickets")
        assert _sample("cerebro_requests_in_progress", {"endpoint": "/api/tickets"}) == 0

    @pytest.mark.integration
    def test_websocket_gauge(self, client: TestClient) -> None:
        with client.websocket_connect("/ws"):
            client.get("/health")
            assert _sample("cerebro_websocket_subscribers") == 1
