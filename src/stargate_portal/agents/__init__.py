"""Competing design agents for StargatePortal."""

from .profiles import AgentProfile, AGENT_PROFILES, get_agent_profiles, get_agent_by_philosophy, build_agent_prompt
from .competition import DesignCompetition

__all__ = [
    "AgentProfile",
    "AGENT_PROFILES",
    "get_agent_profiles",
    "get_agent_by_philosophy",
    "build_agent_prompt",
    "DesignCompetition",
]
