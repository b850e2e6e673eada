"""In-process metrics registry."""
from __future__ import annotations

from threading import Lock
from typing import Callable, Dict, Iterable, Mapping, Tuple, TypeVar

from .base import CounterMetric, DistributionMetric, Metric
from .definitions import MetricDefinition

_M = TypeVar("_M", bound=Metric)


class MetricsRegistry:
    """Holds metrics by name; asking twice for the same name returns the same metric."""

    def __init__(self) -> None:
        self._metrics: Dict[str, Metric] = {}
        self._lock = Lock()

    def _get_or_create(self, name: str, kind: type[_M], factory: Callable[[], _M]) -> _M:
        with self._lock:
            metric = self._metrics.get(name)
            if metric is None:
                metric = self._metrics[name] = factory()
        if not isinstance(metric, kind):
            raise TypeError(f"Metric '{name}' already exists with a different type")
        return metric

    def counter(
        self,
        name: str,
        *,
        description: str = "",
        label_names: Iterable[str] | None = None,
    ) -> CounterMetric:
        return self._get_or_create(
            name,
            CounterMetric,
            lambda: CounterMetric(name, description=description, label_names=label_names),
        )

    def distribution(
        self,
        name: str,
        *,
        description: str = "",
        label_names: Iterable[str] | None = None,
    ) -> DistributionMetric:
        return self._get_or_create(
            name,
            DistributionMetric,
            lambda: DistributionMetric(name, description=description, label_names=label_names),
        )

    def register(self, definition: MetricDefinition) -> Metric:
        """Create (or fetch) the metric a definition describes."""

        factories = {"counter": self.counter, "distribution": self.distribution}
        try:
            factory = factories[definition.metric_type]
        except KeyError:
            raise ValueError(f"Unsupported metric type: {definition.metric_type}") from None
        return factory(definition.name, description=definition.description, label_names=definition.label_names)

    def metrics(self) -> Tuple[Metric, ...]:
        with self._lock:
            return tuple(self._metrics.values())

    def snapshot(self) -> Dict[str, Mapping[Tuple[str, ...], Mapping[str, float]]]:
        with self._lock:
            metrics = dict(self._metrics)
        return {name: metric.snapshot() for name, metric in metrics.items()}
