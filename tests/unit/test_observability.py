"""Unit tests for logging and metrics."""

import logging
from logging.handlers import RotatingFileHandler

import pytest
from unittest.mock import AsyncMock, MagicMock

from stargate_portal.observability import (
    LoggerMixin,
    MetricsCollector,
    get_logger,
    get_metrics_collector,
    setup_logging,
)


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


class TestLoggingConfig:
    """Test logging setup."""

    def test_setup_logging_with_file(self, tmp_path, restore_root_logger):
        """Test a rotating file handler is attached."""
        log_file = tmp_path / "logs" / "stargate.log"
        setup_logging(level="DEBUG", log_file=str(log_file))

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert any(isinstance(h, RotatingFileHandler) for h in root.handlers)
        assert log_file.parent.exists()

    def test_setup_logging_from_config(self, restore_root_logger):
        """Test the level comes from the configuration."""
        config = MagicMock()
        config.get.side_effect = lambda key, default=None: {
            "logging.level": "WARNING",
            "logging.json_format": True,
        }.get(key, default)

        setup_logging(config)

        assert logging.getLogger().level == logging.WARNING

    def test_noisy_loggers_quieted(self, restore_root_logger):
        """Test chatty third-party loggers are raised to WARNING."""
        setup_logging(level="DEBUG")
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("sqlalchemy").level == logging.WARNING

    def test_logger_mixin(self):
        """Test the mixin names the logger after the class."""
        class Widget(LoggerMixin):
            pass

        assert Widget().logger is not None
        assert get_logger("stargate_portal.test") is not None


class TestMetricsCollector:
    """Test metrics collection."""

    def test_counters_and_gauges(self):
        """Test counters accumulate and gauges overwrite."""
        metrics = MetricsCollector()
        metrics.increment_counter("runs")
        metrics.increment_counter("runs", 2)
        metrics.set_gauge("active", 3)
        metrics.set_gauge("active", 1)

        assert metrics.get_counter_value("runs") == 3
        assert metrics.get_gauge_value("active") == 1
        assert len(metrics.get_metric_values("runs")) == 2
        assert metrics.get_metric_values("runs", limit=1)[0].value == 2

    def test_histogram_stats(self):
        """Test histogram statistics."""
        metrics = MetricsCollector()
        for value in (1.0, 2.0, 6.0):
            metrics.record_histogram("score", value)

        stats = metrics.get_histogram_stats("score")
        assert stats == {"count": 3, "min": 1.0, "max": 6.0, "avg": 3.0, "sum": 9.0}
        assert metrics.get_histogram_stats("empty") == {"count": 0}

    def test_timer(self):
        """Test the timer records under <name>.duration."""
        metrics = MetricsCollector()
        with metrics.timer("phase"):
            pass
        assert metrics.get_histogram_stats("phase.duration")["count"] == 1

    def test_disabled(self):
        """Test a disabled collector records nothing."""
        metrics = MetricsCollector(enabled=False)
        metrics.increment_counter("runs")
        metrics.record_timing("phase", 1.0)
        assert metrics.get_counter_value("runs") == 0
        assert metrics.get_all_metrics_summary()["histograms"] == {}

    def test_summary_and_clear(self):
        """Test the summary and clearing one or all metrics."""
        metrics = MetricsCollector()
        metrics.increment_counter("runs")
        metrics.set_gauge("active", 2)
        metrics.record_histogram("score", 8.0)

        summary = metrics.get_all_metrics_summary()
        assert summary["counters"] == {"runs": 1}
        assert summary["gauges"] == {"active": 2}
        assert summary["histograms"]["score"]["count"] == 1

        metrics.clear_metrics("active")
        assert metrics.get_gauge_value("active") is None
        assert metrics.get_counter_value("runs") == 1

        metrics.clear_metrics()
        assert metrics.get_all_metrics_summary() == {"counters": {}, "gauges": {}, "histograms": {}}

    @pytest.mark.asyncio
    async def test_persists_to_storage(self):
        """Test points are written through when a loop is running."""
        storage = MagicMock()
        storage.save_metric = AsyncMock()
        metrics = MetricsCollector(storage=storage)

        metrics.increment_counter("runs", tags={"status": "completed"})
        await metrics.flush()

        storage.save_metric.assert_awaited_once()
        kwargs = storage.save_metric.await_args.kwargs
        assert kwargs["metric_name"] == "runs"
        assert kwargs["metadata"]["tags"] == {"status": "completed"}
        assert kwargs["metadata"]["type"] == "counter"

    @pytest.mark.asyncio
    async def test_persist_failure_logged(self):
        """Test storage errors do not escape the collector."""
        storage = MagicMock()
        storage.save_metric = AsyncMock(side_effect=RuntimeError("disk full"))
        metrics = MetricsCollector(storage=storage)

        metrics.set_gauge("active", 1)
        await metrics.flush()

        assert metrics.get_gauge_value("active") == 1

    def test_no_loop_skips_storage(self):
        """Test synchronous use keeps points in memory only."""
        storage = MagicMock()
        storage.save_metric = AsyncMock()
        metrics = MetricsCollector(storage=storage)

        metrics.increment_counter("runs")

        storage.save_metric.assert_not_called()
        assert metrics.get_counter_value("runs") == 1

    def test_global_collector(self):
        """Test the process-wide collector is a singleton."""
        assert get_metrics_collector() is get_metrics_collector()
