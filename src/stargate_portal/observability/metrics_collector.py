"""Metrics collection and reporting for the application."""

import asyncio
import threading
import time
from collections import defaultdict, deque
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional, Union

from ..core.interfaces import StorageBackendInterface
from .logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class MetricPoint:
    """Represents a single metric measurement."""
    name: str
    value: Union[int, float]
    timestamp: datetime = field(default_factory=datetime.now)
    tags: Dict[str, str] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)


class MetricsCollector:
    """Collects pipeline, LLM and store metrics in memory.

    Points can optionally be written through to a storage backend; that
    only happens when a running event loop is available, so the collector
    is equally usable from synchronous code.
    """

    def __init__(
        self,
        storage: Optional[StorageBackendInterface] = None,
        max_points_per_metric: int = 1000,
        enabled: bool = True,
    ):
        """Initialize the metrics collector.

        Args:
            storage: Storage backend for persistence.
            max_points_per_metric: Maximum number of points to keep per metric.
            enabled: When False every recording call is a no-op.
        """
        self.storage = storage
        self.max_points_per_metric = max_points_per_metric
        self.enabled = enabled

        self._metrics: Dict[str, deque] = defaultdict(lambda: deque(maxlen=max_points_per_metric))
        self._counters: Dict[str, int] = defaultdict(int)
        self._gauges: Dict[str, Union[int, float]] = {}
        self._histograms: Dict[str, List[Union[int, float]]] = defaultdict(list)
        self._pending: set = set()

        self._lock = threading.Lock()

    def increment_counter(self, name: str, value: int = 1, tags: Optional[Dict[str, str]] = None) -> None:
        """Increment a counter metric."""
        if not self.enabled:
            return
        with self._lock:
            self._counters[name] += value

        self._record_point(name, value, tags or {}, {"type": "counter"})

    def set_gauge(self, name: str, value: Union[int, float], tags: Optional[Dict[str, str]] = None) -> None:
        """Set a gauge metric."""
        if not self.enabled:
            return
        with self._lock:
            self._gauges[name] = value

        self._record_point(name, value, tags or {}, {"type": "gauge"})

    def record_histogram(self, name: str, value: Union[int, float], tags: Optional[Dict[str, str]] = None) -> None:
        """Record a value in a histogram metric."""
        if not self.enabled:
            return
        with self._lock:
            self._histograms[name].append(value)

        self._record_point(name, value, tags or {}, {"type": "histogram"})

    def record_timing(self, name: str, duration: float, tags: Optional[Dict[str, str]] = None) -> None:
        """Record a duration in seconds under ``<name>.duration``."""
        self.record_histogram(f"{name}.duration", duration, tags)

    @contextmanager
    def timer(self, name: str, tags: Optional[Dict[str, str]] = None) -> Iterator[None]:
        """Time the enclosed block with :meth:`record_timing`."""
        start = time.perf_counter()
        try:
            yield
        finally:
            self.record_timing(name, time.perf_counter() - start, tags)

    def _record_point(
        self,
        name: str,
        value: Union[int, float],
        tags: Dict[str, str],
        metadata: Dict[str, Any]
    ) -> None:
        point = MetricPoint(name=name, value=value, tags=tags, metadata=metadata)

        with self._lock:
            self._metrics[name].append(point)

        if self.storage is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        task = loop.create_task(self._persist_metric_point(point))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _persist_metric_point(self, point: MetricPoint) -> None:
        try:
            await self.storage.save_metric(
                metric_name=point.name,
                value=point.value,
                metadata={
                    "timestamp": point.timestamp,
                    "tags": point.tags,
                    **point.metadata
                }
            )
        except Exception as e:
            logger.error(f"Failed to persist metric {point.name}: {e}")

    async def flush(self) -> None:
        """Wait for pending storage writes."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def get_metric_values(self, name: str, limit: Optional[int] = None) -> List[MetricPoint]:
        """Get recorded points for a metric, most recent last."""
        with self._lock:
            points = list(self._metrics[name])

        if limit:
            points = points[-limit:]

        return points

    def get_counter_value(self, name: str) -> int:
        with self._lock:
            return self._counters[name]

    def get_gauge_value(self, name: str) -> Optional[Union[int, float]]:
        with self._lock:
            return self._gauges.get(name)

    def get_histogram_stats(self, name: str) -> Dict[str, Union[int, float]]:
        """Get count, min, max, average and sum for a histogram."""
        with self._lock:
            values = list(self._histograms[name])

        if not values:
            return {"count": 0}

        return {
            "count": len(values),
            "min": min(values),
            "max": max(values),
            "avg": sum(values) / len(values),
            "sum": sum(values),
        }

    def get_all_metrics_summary(self) -> Dict[str, Any]:
        """Get a summary of all metrics."""
        with self._lock:
            summary = {
                "counters": dict(self._counters),
                "gauges": dict(self._gauges),
                "histograms": {},
            }
            histogram_names = [name for name, values in self._histograms.items() if values]

        for name in histogram_names:
            summary["histograms"][name] = self.get_histogram_stats(name)
        return summary

    def clear_metrics(self, name: Optional[str] = None) -> None:
        """Clear one metric, or all of them."""
        with self._lock:
            if name:
                if name in self._metrics:
                    self._metrics[name].clear()
                if name in self._counters:
                    self._counters[name] = 0
                if name in self._gauges:
                    del self._gauges[name]
                if name in self._histograms:
                    self._histograms[name].clear()
            else:
                self._metrics.clear()
                self._counters.clear()
                self._gauges.clear()
                self._histograms.clear()


_metrics_collector: Optional[MetricsCollector] = None


def get_metrics_collector() -> MetricsCollector:
    """Get the process-wide metrics collector."""
    global _metrics_collector
    if _metrics_collector is None:
        _metrics_collector = MetricsCollector()
    return _metrics_collector
