"""Process-wide metrics: counters for lifecycle events and request timings."""
from .base import CounterMetric, DistributionMetric, track_duration
from .definitions import DEFAULT_METRIC_DEFINITIONS, MetricDefinition
from .exporters import PrometheusExporter
from .registry import MetricsRegistry

metrics_registry = MetricsRegistry()


def register_default_metrics(registry: MetricsRegistry | None = None) -> MetricsRegistry:
    """Make sure every helpdesk metric exists in ``registry`` (the global one by default)."""
    target = metrics_registry if registry is None else registry
    for definition in DEFAULT_METRIC_DEFINITIONS:
        target.register(definition)
    return target


register_default_metrics()

__all__ = [
    "CounterMetric",
    "DistributionMetric",
    "MetricDefinition",
    "MetricsRegistry",
    "PrometheusExporter",
    "metrics_registry",
    "register_default_metrics",
    "track_duration",
]
