"""Observability layer for StargatePortal.

This module provides structured logging and metrics collection for the
generation pipeline and the back-office services.
"""

from .logging_config import setup_logging, get_logger, LoggerMixin
from .metrics_collector import MetricsCollector, MetricPoint, get_metrics_collector

__all__ = [
    "setup_logging",
    "get_logger",
    "LoggerMixin",
    "MetricsCollector",
    "MetricPoint",
    "get_metrics_collector",
]
