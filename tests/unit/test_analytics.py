"""Unit tests for visitor analytics."""

from datetime import date

import pytest

from stargate_portal.analytics import AnalyticsService


@pytest.fixture
def analytics(test_storage_backend):
    return AnalyticsService(test_storage_backend)


class TestAnalyticsService:
    """Test event recording and the dashboard."""

    @pytest.mark.asyncio
    async def test_record_event(self, analytics):
        """Test events are normalised and stored with an id."""
        event = await analytics.record_event("p1", " Page_View ", page="/menu", session_id="s1")

        assert event.id is not None
        assert event.event_type == "page_view"
        assert event.page == "/menu"

    @pytest.mark.asyncio
    async def test_blank_event_type(self, analytics):
        """Test a blank event type is rejected."""
        with pytest.raises(ValueError, match="event_type is required"):
            await analytics.record_event("p1", "  ")

    @pytest.mark.asyncio
    async def test_dashboard(self, analytics):
        """Test totals, page views and the per-session conversion rate."""
        await analytics.record_event("p1", "page_view", page="/", session_id="s1")
        await analytics.record_event("p1", "page_view", page="/", session_id="s2")
        await analytics.record_event("p1", "page_view", page="/menu", session_id="s2")
        await analytics.record_event("p1", "page_view", session_id="s3")
        await analytics.record_event("p1", "form_submit", session_id="s2")
        await analytics.record_event("p1", "click", session_id="s4")
        await analytics.record_event("p2", "page_view", session_id="other")

        dashboard = await analytics.get_dashboard("p1", days=7)

        assert dashboard["total_events"] == 6
        assert dashboard["unique_sessions"] == 4
        assert dashboard["events_by_type"] == {"page_view": 4, "form_submit": 1, "click": 1}
        assert dashboard["page_views"] == {"/": 3, "/menu": 1}
        assert dashboard["conversions"] == 1
        assert dashboard["converted_sessions"] == 1
        assert dashboard["conversion_rate"] == 25.0

    @pytest.mark.asyncio
    async def test_session_converting_twice(self, analytics):
        """Test a session with several conversions counts once towards the rate."""
        await analytics.record_event("p1", "page_view", session_id="s1")
        await analytics.record_event("p1", "form_submit", session_id="s1")
        await analytics.record_event("p1", "purchase", session_id="s1")
        await analytics.record_event("p1", "page_view", session_id="s2")

        dashboard = await analytics.get_dashboard("p1", days=7)

        assert dashboard["conversions"] == 2
        assert dashboard["converted_sessions"] == 1
        assert dashboard["conversion_rate"] == 50.0

    @pytest.mark.asyncio
    async def test_rate_never_exceeds_hundred(self, analytics):
        """Test the rate caps at every session converting."""
        for event_type in ("form_submit", "purchase", "purchase"):
            await analytics.record_event("p1", event_type, session_id="s1")

        dashboard = await analytics.get_dashboard("p1", days=7)

        assert dashboard["conversion_rate"] == 100.0

    @pytest.mark.asyncio
    async def test_daily_buckets(self, analytics):
        """Test one bucket per day ending today."""
        await analytics.record_event("p1", "page_view", session_id="s1")
        await analytics.record_event("p1", "purchase", session_id="s1")

        daily = (await analytics.get_dashboard("p1", days=3))["daily"]

        assert len(daily) == 3
        today = daily[-1]
        assert today["date"] == date.today().isoformat()
        assert today == {"date": today["date"], "events": 2, "page_views": 1, "conversions": 1}
        assert daily[0]["events"] == 0

    @pytest.mark.asyncio
    async def test_empty_dashboard(self, analytics):
        """Test a project without events."""
        dashboard = await analytics.get_dashboard("p1")
        assert dashboard["total_events"] == 0
        assert dashboard["conversion_rate"] == 0.0
        assert len(dashboard["daily"]) == 30

    @pytest.mark.asyncio
    async def test_invalid_period(self, analytics):
        """Test the period must be at least a day."""
        with pytest.raises(ValueError, match="at least 1"):
            await analytics.get_dashboard("p1", days=0)
