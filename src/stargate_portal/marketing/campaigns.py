"""Email campaign management."""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..core.types import Campaign, CampaignStatus
from ..observability.logging_config import LoggerMixin


class CampaignService(LoggerMixin):
    """Draft, schedule and report on email campaigns."""

    def __init__(self, storage):
        self.storage = storage

    async def create_campaign(
        self,
        project_id: str,
        name: str,
        subject: str = "",
        content: str = "",
        audience: Optional[str] = None,
    ) -> Campaign:
        campaign = Campaign(
            id=str(uuid.uuid4()),
            project_id=project_id,
            name=name,
            subject=subject,
            content=content,
            audience=audience,
        )
        await self.storage.save_campaign(campaign)
        self.logger.info("Campaign created", campaign_id=campaign.id, project_id=project_id)
        return campaign

    async def get_campaign(self, campaign_id: str) -> Optional[Campaign]:
        return await self.storage.get_campaign(campaign_id)

    async def list_campaigns(self, project_id: str) -> List[Campaign]:
        return await self.storage.list_campaigns(project_id)

    async def schedule_campaign(self, campaign_id: str, send_at: datetime) -> Optional[Campaign]:
        """Schedule a draft for a future send time.

        Raises:
            ValueError: If the campaign is not a draft or the time is not in the future.
        """
        campaign = await self.storage.get_campaign(campaign_id)
        if campaign is None:
            return None
        if campaign.status != CampaignStatus.DRAFT:
            raise ValueError(f"Only draft campaigns can be scheduled (status: {campaign.status.value})")
        now = datetime.now(send_at.tzinfo) if send_at.tzinfo else datetime.now()
        if send_at <= now:
            raise ValueError("Scheduled time must be in the future")

        campaign.status = CampaignStatus.SCHEDULED
        campaign.scheduled_at = send_at
        await self.storage.save_campaign(campaign)
        self.logger.info("Campaign scheduled", campaign_id=campaign_id, send_at=send_at.isoformat())
        return campaign

    async def mark_sent(self, campaign_id: str, recipients: Optional[int] = None) -> Optional[Campaign]:
        """Mark a draft or scheduled campaign as sent.

        Raises:
            ValueError: If the campaign was already sent.
        """
        campaign = await self.storage.get_campaign(campaign_id)
        if campaign is None:
            return None
        if campaign.status == CampaignStatus.SENT:
            raise ValueError("Campaign has already been sent")

        campaign.status = CampaignStatus.SENT
        campaign.sent_at = datetime.now()
        if recipients is not None:
            campaign.stats = {**campaign.stats, "recipients": recipients}
        await self.storage.save_campaign(campaign)
        self.logger.info("Campaign sent", campaign_id=campaign_id)
        return campaign

    async def record_stats(
        self,
        campaign_id: str,
        recipients: Optional[int] = None,
        opens: Optional[int] = None,
        clicks: Optional[int] = None,
    ) -> Optional[Campaign]:
        """Overwrite the delivery counters that are given.

        Raises:
            ValueError: For negative counts.
        """
        campaign = await self.storage.get_campaign(campaign_id)
        if campaign is None:
            return None

        stats = dict(campaign.stats)
        for key, value in (("recipients", recipients), ("opens", opens), ("clicks", clicks)):
            if value is None:
                continue
            if value < 0:
                raise ValueError(f"{key} cannot be negative")
            stats[key] = value

        campaign.stats = stats
        await self.storage.save_campaign(campaign)
        return campaign

    async def get_campaign_report(self, campaign_id: str) -> Optional[Dict[str, Any]]:
        """Campaign stats with open and click rates as percentages of recipients."""
        campaign = await self.storage.get_campaign(campaign_id)
        if campaign is None:
            return None

        recipients = campaign.stats.get("recipients", 0)
        opens = campaign.stats.get("opens", 0)
        clicks = campaign.stats.get("clicks", 0)
        return {
            "campaign_id": campaign.id,
            "name": campaign.name,
            "status": campaign.status.value,
            "scheduled_at": campaign.scheduled_at.isoformat() if campaign.scheduled_at else None,
            "sent_at": campaign.sent_at.isoformat() if campaign.sent_at else None,
            "recipients": recipients,
            "opens": opens,
            "clicks": clicks,
            "open_rate": round(opens / recipients * 100, 2) if recipients else 0.0,
            "click_rate": round(clicks / recipients * 100, 2) if recipients else 0.0,
        }
