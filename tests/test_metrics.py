import pytest

from helpdesk.metrics import (
    MetricDefinition,
    MetricsRegistry,
    PrometheusExporter,
    register_default_metrics,
    track_duration,
)
from helpdesk.metrics.definitions import DEFAULT_METRIC_DEFINITIONS, TICKET_CLAIMS


def test_default_metrics_are_registered():
    registry = register_default_metrics(MetricsRegistry())

    assert {metric.name for metric in registry.metrics()} == {
        definition.name for definition in DEFAULT_METRIC_DEFINITIONS
    }


def test_same_name_returns_same_metric():
    registry = MetricsRegistry()

    assert registry.counter("jobs_total") is registry.counter("jobs_total")
    with pytest.raises(TypeError):
        registry.distribution("jobs_total")


def test_counter_validates_labels():
    counter = MetricsRegistry().counter("claims", label_names=("outcome",))

    counter.inc(labels={"outcome": "claimed"})
    counter.inc(2, labels={"outcome": "claimed"})

    assert counter.value({"outcome": "claimed"}) == 3
    assert counter.value({"outcome": "conflict"}) == 0
    with pytest.raises(ValueError):
        counter.inc(labels={"result": "claimed"})
    with pytest.raises(ValueError):
        counter.inc()
    with pytest.raises(ValueError):
        counter.inc(-1, labels={"outcome": "claimed"})


def test_track_duration_observes_even_on_error():
    distribution = MetricsRegistry().distribution("work_seconds")

    with pytest.raises(RuntimeError):
        with track_duration(distribution):
            raise RuntimeError("boom")

    stats = distribution.snapshot()[()]
    assert stats["count"] == 1.0
    assert stats["sum"] >= 0.0


def test_prometheus_payload():
    registry = register_default_metrics(MetricsRegistry())
    registry.counter(TICKET_CLAIMS).inc(labels={"outcome": "conflict"})
    registry.distribution("helpdesk_request_duration_seconds").observe(
        0.5, labels={"route": 'GET /tickets/{ticket_id}'}
    )

    payload = PrometheusExporter(registry).build_payload()

    assert "# TYPE helpdesk_ticket_claims_total counter" in payload
    assert 'helpdesk_ticket_claims_total{outcome="conflict"} 1.0' in payload
    assert 'helpdesk_request_duration_seconds_count{route="GET /tickets/{ticket_id}"} 1.0' in payload
    assert 'helpdesk_request_duration_seconds_sum{route="GET /tickets/{ticket_id}"} 0.5' in payload
    assert payload.endswith("\n")


def test_empty_registry_renders_nothing():
    assert PrometheusExporter(MetricsRegistry()).build_payload() == ""


def test_register_rejects_unknown_metric_type():
    with pytest.raises(ValueError):
        MetricsRegistry().register(MetricDefinition(name="odd", metric_type="gauge", description="?"))
