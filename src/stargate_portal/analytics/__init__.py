"""Visitor analytics for generated sites."""

from .service import AnalyticsService, CONVERSION_EVENTS, PAGE_VIEW

__all__ = ["AnalyticsService", "CONVERSION_EVENTS", "PAGE_VIEW"]
