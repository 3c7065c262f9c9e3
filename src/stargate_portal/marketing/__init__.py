"""Email marketing for generated sites."""

from .campaigns import CampaignService

__all__ = ["CampaignService"]
