"""Design competition: the agent profiles design the same component in parallel."""

import asyncio
import logging
import random
import string
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..core.interfaces import LLMBackendInterface
from ..core.types import (
    AgentDesign,
    Competition,
    CompetitionStatus,
    DesignPhilosophy,
    DesignRequest,
    LLMTaskType,
)
from ..pipeline.phases.base_phase import extract_json
from .profiles import AgentProfile, build_agent_prompt, get_agent_by_philosophy, get_agent_profiles

logger = logging.getLogger(__name__)

EMPTY_DESIGN_CHOICES = {"colors": [], "typography": [], "spacing": "", "layout": "", "visualStyle": ""}


def _competition_id() -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"comp-{int(time.time() * 1000)}-{suffix}"


class DesignCompetition:
    """Runs design competitions and keeps their results.

    Each profile prefers its own provider. When that provider is not
    configured the prompt goes through the fallback chain instead.
    Competitions live in memory and are also written to storage when a
    storage backend is given.
    """

    def __init__(self, llm_backend: LLMBackendInterface, storage=None, max_tokens: int = 4096):
        self.llm_backend = llm_backend
        self.storage = storage
        self.max_tokens = max_tokens
        self._competitions: Dict[str, Competition] = {}

    def _backend_for(self, agent: AgentProfile) -> LLMBackendInterface:
        get_backend = getattr(self.llm_backend, "get_backend", None)
        preferred = get_backend(agent.backend) if get_backend else None
        if preferred is not None and preferred.is_available:
            return preferred
        return self.llm_backend

    async def _save(self, competition: Competition) -> None:
        self._competitions[competition.id] = competition
        if self.storage is not None:
            await self.storage.save_competition(competition)

    async def generate_single_design(self, philosophy, request: DesignRequest) -> AgentDesign:
        """Have one agent design the requested component.

        Raises:
            ValueError: For an unknown philosophy or an unparseable reply.
        """
        agent = get_agent_by_philosophy(philosophy)
        if agent is None:
            raise ValueError(f"Agent with philosophy {philosophy} not found")

        backend = self._backend_for(agent)
        start = time.perf_counter()
        response = await backend.generate(
            prompt=build_agent_prompt(agent, request),
            options={
                "task_type": LLMTaskType.DESIGN.value,
                "temperature": 0.7,
                "max_tokens": self.max_tokens,
                "json_mode": True,
                "system": f"You are {agent.name}, a {agent.philosophy.value} designer. Always respond with valid JSON.",
            },
        )
        data = extract_json(response.content)

        try:
            confidence = float(data.get("confidence") or 0.5)
        except (TypeError, ValueError):
            confidence = 0.5

        design = AgentDesign(
            agent_id=agent.id,
            agent_name=agent.name,
            philosophy=agent.philosophy,
            html=data.get("html") or "<div>Error: No HTML generated</div>",
            css=data.get("css") or "",
            reasoning=data.get("reasoning") or "No reasoning provided",
            design_choices=data.get("designChoices") or dict(EMPTY_DESIGN_CHOICES),
            confidence=min(max(confidence, 0.0), 1.0),
            generation_time=time.perf_counter() - start,
            backend=(response.metadata or {}).get("used_backend", backend.name),
        )
        logger.info(f"{agent.name} produced a design in {design.generation_time:.1f}s")
        return design

    async def start_competition(self, request: DesignRequest) -> Competition:
        """Generate one design per agent concurrently.

        Agents that fail are dropped from the result.

        Raises:
            RuntimeError: If every agent fails.
        """
        philosophies = request.philosophies or [profile.philosophy for profile in get_agent_profiles()]
        competition = Competition(
            id=_competition_id(),
            project_id=request.project_id,
            user_id=request.user_id,
            request=request,
        )
        await self._save(competition)

        results = await asyncio.gather(
            *(self.generate_single_design(philosophy, request) for philosophy in philosophies),
            return_exceptions=True,
        )

        for philosophy, result in zip(philosophies, results):
            if isinstance(result, Exception):
                logger.error(f"Agent {philosophy.value} failed in competition {competition.id}: {result}")
                competition.errors.append(f"{philosophy.value}: {result}")
            else:
                competition.designs.append(result)

        competition.completed_at = datetime.now()
        if not competition.designs:
            competition.status = CompetitionStatus.ERROR
            await self._save(competition)
            raise RuntimeError(f"All agents failed in competition {competition.id}")

        competition.status = CompetitionStatus.COMPLETED
        await self._save(competition)
        logger.info(f"Competition {competition.id} completed with {len(competition.designs)} designs")
        return competition

    async def get_competition_result(self, competition_id: str) -> Optional[Competition]:
        competition = self._competitions.get(competition_id)
        if competition is None and self.storage is not None:
            competition = await self.storage.get_competition(competition_id)
        return competition

    async def get_competitions_for_project(
        self,
        project_id: str,
        user_id: Optional[str] = None,
    ) -> List[Competition]:
        """Competitions of a project, newest first."""
        if self.storage is not None:
            competitions = await self.storage.list_competitions(project_id=project_id, user_id=user_id)
        else:
            competitions = [
                competition for competition in self._competitions.values()
                if competition.project_id == project_id and (user_id is None or competition.user_id == user_id)
            ]
        return sorted(competitions, key=lambda competition: competition.created_at, reverse=True)

    async def select_winner(self, competition_id: str, winner: str) -> Optional[Competition]:
        """Record the user's pick by agent id or philosophy.

        Returns:
            The updated competition, or None when it does not exist.

        Raises:
            ValueError: If no design in the competition matches ``winner``.
        """
        competition = await self.get_competition_result(competition_id)
        if competition is None:
            return None

        design = next(
            (d for d in competition.designs if winner in (d.agent_id, d.philosophy.value)),
            None,
        )
        if design is None:
            raise ValueError(f"No design from '{winner}' in competition {competition_id}")

        competition.winner = design.philosophy
        await self._save(competition)
        logger.info(f"Competition {competition_id}: {design.philosophy.value} design selected")
        return competition

    async def get_competition_stats(
        self,
        user_id: Optional[str] = None,
        project_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Win counts and timings across competitions with a winner."""
        if project_id is not None:
            competitions = await self.get_competitions_for_project(project_id, user_id)
        elif self.storage is not None:
            competitions = await self.storage.list_competitions(user_id=user_id)
        else:
            competitions = [
                c for c in self._competitions.values() if user_id is None or c.user_id == user_id
            ]

        wins_by_philosophy = {philosophy.value: 0 for philosophy in DesignPhilosophy}
        generation_times = []
        for competition in competitions:
            if competition.winner is None:
                continue
            wins_by_philosophy[competition.winner.value] += 1
            generation_times.extend(design.generation_time for design in competition.designs)

        most_wins = max(wins_by_philosophy.values())
        preferred = None
        if most_wins > 0:
            preferred = next(name for name, wins in wins_by_philosophy.items() if wins == most_wins)

        return {
            "total_competitions": len(competitions),
            "wins_by_philosophy": wins_by_philosophy,
            "average_generation_time": (
                sum(generation_times) / len(generation_times) if generation_times else 0.0
            ),
            "preferred_philosophy": preferred,
        }
