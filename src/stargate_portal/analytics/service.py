"""Visitor analytics for generated sites."""

from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from ..core.types import AnalyticsEvent
from ..observability.logging_config import LoggerMixin

PAGE_VIEW = "page_view"
CONVERSION_EVENTS = {"conversion", "purchase", "form_submit", "signup"}


class AnalyticsService(LoggerMixin):
    """Records site events and aggregates them into a dashboard."""

    def __init__(self, storage):
        self.storage = storage

    async def record_event(
        self,
        project_id: str,
        event_type: str,
        page: Optional[str] = None,
        session_id: Optional[str] = None,
        properties: Optional[Dict[str, Any]] = None,
    ) -> AnalyticsEvent:
        """Store one event.

        Raises:
            ValueError: If ``event_type`` is blank.
        """
        event_type = (event_type or "").strip().lower()
        if not event_type:
            raise ValueError("event_type is required")

        event = await self.storage.save_event(
            AnalyticsEvent(
                project_id=project_id,
                event_type=event_type,
                page=page,
                session_id=session_id,
                properties=properties or {},
            )
        )
        self.logger.debug("Event recorded", project_id=project_id, event_type=event_type)
        return event

    async def get_dashboard(self, project_id: str, days: int = 30) -> Dict[str, Any]:
        """Aggregate the last ``days`` days of events.

        The conversion rate is the share of unique sessions with at least
        one conversion event, in percent.
        """
        if days < 1:
            raise ValueError("days must be at least 1")

        end = datetime.now()
        start = (end - timedelta(days=days - 1)).replace(hour=0, minute=0, second=0, microsecond=0)
        events = await self.storage.list_events(project_id, start_time=start, end_time=end)

        by_type = Counter(event.event_type for event in events)
        sessions = {event.session_id for event in events if event.session_id}
        page_views = Counter(event.page or "/" for event in events if event.event_type == PAGE_VIEW)
        conversions = sum(count for event_type, count in by_type.items() if event_type in CONVERSION_EVENTS)
        converted_sessions = {
            event.session_id for event in events
            if event.session_id and event.event_type in CONVERSION_EVENTS
        }

        daily = {}
        for offset in range(days):
            day = (start + timedelta(days=offset)).date().isoformat()
            daily[day] = {"date": day, "events": 0, "page_views": 0, "conversions": 0}
        for event in events:
            bucket = daily.get(event.created_at.date().isoformat())
            if bucket is None:
                continue
            bucket["events"] += 1
            if event.event_type == PAGE_VIEW:
                bucket["page_views"] += 1
            elif event.event_type in CONVERSION_EVENTS:
                bucket["conversions"] += 1

        return {
            "project_id": project_id,
            "period_days": days,
            "total_events": len(events),
            "events_by_type": dict(by_type),
            "unique_sessions": len(sessions),
            "page_views": dict(page_views.most_common()),
            "conversions": conversions,
            "converted_sessions": len(converted_sessions),
            "conversion_rate": round(len(converted_sessions) / len(sessions) * 100, 2) if sessions else 0.0,
            "daily": list(daily.values()),
        }
