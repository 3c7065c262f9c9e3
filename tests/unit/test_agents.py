"""Unit tests for the design competition."""

import json

import pytest
from unittest.mock import AsyncMock, MagicMock

from stargate_portal.agents import (
    AGENT_PROFILES,
    DesignCompetition,
    build_agent_prompt,
    get_agent_by_philosophy,
)
from stargate_portal.core.types import (
    CompetitionStatus,
    DesignPhilosophy,
    DesignRequest,
    LLMResponse,
)


def design_reply(philosophy, **extra):
    payload = {
        "html": f"<section class='{philosophy}'>Hero</section>",
        "css": f".{philosophy} {{ padding: 2rem; }}",
        "reasoning": f"A {philosophy} take",
        "confidence": 0.9,
    }
    payload.update(extra)
    return LLMResponse(content=json.dumps(payload), metadata={"used_backend": "openai"})


def competition_llm(fail=()):
    """LLM whose reply depends on which designer the prompt addresses."""
    async def generate(prompt, options=None):
        for profile in AGENT_PROFILES:
            if prompt.startswith(f"You are {profile.name}"):
                if profile.philosophy.value in fail:
                    raise RuntimeError("provider down")
                return design_reply(profile.philosophy.value)
        raise AssertionError("unexpected prompt")

    llm = MagicMock()
    llm.name = "fallback"
    llm.get_backend = MagicMock(return_value=None)
    llm.generate = AsyncMock(side_effect=generate)
    return llm


@pytest.fixture
def request_():
    return DesignRequest(
        project_id="p1",
        user_id="u1",
        component_type="pricing table",
        business_name="Bella Cucina",
        industry="restaurant",
        requirements=["Three tiers"],
    )


class TestAgentProfiles:
    """Test agent profiles and prompts."""

    def test_three_philosophies(self):
        """Test one agent per philosophy, each on its own provider."""
        assert {profile.philosophy for profile in AGENT_PROFILES} == set(DesignPhilosophy)
        assert len({profile.backend for profile in AGENT_PROFILES}) == 3

    def test_lookup_by_value(self):
        """Test philosophy lookup accepts enums and strings."""
        assert get_agent_by_philosophy("bold").id == "agent-bold"
        assert get_agent_by_philosophy(DesignPhilosophy.ELEGANT).backend == "gemini"
        assert get_agent_by_philosophy("brutalist") is None

    def test_prompt(self, request_):
        """Test the prompt carries the request context."""
        prompt = build_agent_prompt(get_agent_by_philosophy("minimalist"), request_)
        assert "design a pricing table component" in prompt
        assert "- Business: Bella Cucina" in prompt
        assert "- Three tiers" in prompt
        assert "Target audience" not in prompt

    def test_to_dict(self):
        """Test profiles serialise with the philosophy value."""
        assert AGENT_PROFILES[0].to_dict()["philosophy"] == "minimalist"


class TestDesignCompetition:
    """Test competitions."""

    @pytest.mark.asyncio
    async def test_single_design(self, request_):
        """Test one agent's design is parsed."""
        competition = DesignCompetition(competition_llm())
        design = await competition.generate_single_design("bold", request_)

        assert design.agent_id == "agent-bold"
        assert design.philosophy == DesignPhilosophy.BOLD
        assert design.confidence == 0.9
        assert design.backend == "openai"
        assert design.design_choices["colors"] == []

    @pytest.mark.asyncio
    async def test_single_design_defaults(self, request_):
        """Test missing fields get defaults and confidence is clamped."""
        llm = competition_llm()
        llm.generate = AsyncMock(return_value=LLMResponse(content='{"confidence": 7}'))
        design = await DesignCompetition(llm).generate_single_design("elegant", request_)

        assert design.html == "<div>Error: No HTML generated</div>"
        assert design.reasoning == "No reasoning provided"
        assert design.confidence == 1.0
        assert design.backend == "fallback"

    @pytest.mark.asyncio
    async def test_unknown_philosophy(self, request_):
        """Test an unknown philosophy raises."""
        with pytest.raises(ValueError, match="not found"):
            await DesignCompetition(competition_llm()).generate_single_design("brutalist", request_)

    @pytest.mark.asyncio
    async def test_preferred_backend_used(self, request_):
        """Test an agent uses its own provider when configured."""
        preferred = MagicMock()
        preferred.name = "gemini"
        preferred.is_available = True
        preferred.generate = AsyncMock(return_value=design_reply("elegant"))
        llm = competition_llm()
        llm.get_backend = MagicMock(return_value=preferred)

        await DesignCompetition(llm).generate_single_design("elegant", request_)

        llm.get_backend.assert_called_with("gemini")
        preferred.generate.assert_called_once()
        llm.generate.assert_not_called()

    @pytest.mark.asyncio
    async def test_start_competition(self, request_):
        """Test every agent contributes a design."""
        competition = await DesignCompetition(competition_llm()).start_competition(request_)

        assert competition.id.startswith("comp-")
        assert competition.status == CompetitionStatus.COMPLETED
        assert {design.philosophy for design in competition.designs} == set(DesignPhilosophy)
        assert competition.completed_at is not None

    @pytest.mark.asyncio
    async def test_failed_agent_dropped(self, request_):
        """Test a failing agent is recorded as an error."""
        competition = await DesignCompetition(competition_llm(fail={"bold"})).start_competition(request_)

        assert len(competition.designs) == 2
        assert competition.errors == ["bold: provider down"]

    @pytest.mark.asyncio
    async def test_all_agents_fail(self, request_):
        """Test a competition with no designs raises and is marked ERROR."""
        service = DesignCompetition(competition_llm(fail={"minimalist", "bold", "elegant"}))
        with pytest.raises(RuntimeError, match="All agents failed"):
            await service.start_competition(request_)

        competitions = await service.get_competitions_for_project("p1")
        assert competitions[0].status == CompetitionStatus.ERROR

    @pytest.mark.asyncio
    async def test_subset_of_philosophies(self, request_):
        """Test a request can pick its competitors."""
        request_.philosophies = [DesignPhilosophy.MINIMALIST]
        competition = await DesignCompetition(competition_llm()).start_competition(request_)
        assert [design.agent_id for design in competition.designs] == ["agent-minimalist"]

    @pytest.mark.asyncio
    async def test_select_winner(self, request_):
        """Test a winner is picked by agent id or philosophy."""
        service = DesignCompetition(competition_llm())
        competition = await service.start_competition(request_)

        updated = await service.select_winner(competition.id, "agent-bold")
        assert updated.winner == DesignPhilosophy.BOLD

        updated = await service.select_winner(competition.id, "elegant")
        assert updated.winner == DesignPhilosophy.ELEGANT

        with pytest.raises(ValueError, match="No design"):
            await service.select_winner(competition.id, "brutalist")
        assert await service.select_winner("missing", "bold") is None

    @pytest.mark.asyncio
    async def test_competition_stats(self, request_):
        """Test win counts and the preferred philosophy."""
        service = DesignCompetition(competition_llm())
        first = await service.start_competition(request_)
        second = await service.start_competition(request_)
        await service.start_competition(request_)
        await service.select_winner(first.id, "bold")
        await service.select_winner(second.id, "bold")

        stats = await service.get_competition_stats(user_id="u1")

        assert stats["total_competitions"] == 3
        assert stats["wins_by_philosophy"] == {"minimalist": 0, "bold": 2, "elegant": 0}
        assert stats["preferred_philosophy"] == "bold"
        assert stats["average_generation_time"] >= 0.0

    @pytest.mark.asyncio
    async def test_stats_without_winners(self):
        """Test stats before any pick."""
        stats = await DesignCompetition(competition_llm()).get_competition_stats()
        assert stats["preferred_philosophy"] is None
        assert stats["average_generation_time"] == 0.0

    @pytest.mark.asyncio
    async def test_persisted_to_storage(self, request_, test_storage_backend):
        """Test competitions are written to and read back from storage."""
        competition = await DesignCompetition(competition_llm(), storage=test_storage_backend).start_competition(request_)

        fresh = DesignCompetition(competition_llm(), storage=test_storage_backend)
        loaded = await fresh.get_competition_result(competition.id)
        assert loaded.status == CompetitionStatus.COMPLETED
        assert len(loaded.designs) == 3
        assert [c.id for c in await fresh.get_competitions_for_project("p1", user_id="u1")] == [competition.id]
