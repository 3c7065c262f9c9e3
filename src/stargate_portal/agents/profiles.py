"""Design agent profiles for the competition mode."""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from ..core.types import DesignPhilosophy, DesignRequest


@dataclass(frozen=True)
class AgentProfile:
    """A designer persona bound to one LLM provider."""
    id: str
    name: str
    philosophy: DesignPhilosophy
    backend: str
    description: str
    personality: str
    strengths: List[str] = field(default_factory=list)
    design_principles: List[str] = field(default_factory=list)
    example_websites: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["philosophy"] = self.philosophy.value
        return data


AGENT_PROFILES = [
    AgentProfile(
        id="agent-minimalist",
        name="Minimalist Maven",
        philosophy=DesignPhilosophy.MINIMALIST,
        backend="anthropic",
        description="Focuses on simplicity, whitespace, and clarity. Less is more.",
        personality="Calm, thoughtful, and precise. Believes in the power of restraint.",
        strengths=["Clean layouts", "Generous whitespace", "Clear typography", "Subtle colors"],
        design_principles=[
            "Remove everything that is not essential",
            "Let content breathe with whitespace",
            "Use subtle, neutral colors",
            "Sans-serif typography for clarity",
            "Grid-based layouts for order",
        ],
        example_websites=["Apple.com", "Stripe.com", "Linear.app"],
    ),
    AgentProfile(
        id="agent-bold",
        name="Bold Innovator",
        philosophy=DesignPhilosophy.BOLD,
        backend="openai",
        description="Embraces vibrant colors, large typography, and high contrast. Make a statement.",
        personality="Confident, energetic, and daring. Believes in standing out.",
        strengths=["Vibrant color palettes", "Large, impactful typography", "High contrast", "Dynamic layouts"],
        design_principles=[
            "Use color to command attention",
            "Typography should be large and impactful",
            "Embrace asymmetry and dynamism",
            "Create visual hierarchy with contrast",
            "Be memorable and distinctive",
        ],
        example_websites=["Spotify.com", "Airbnb.com", "Dropbox.com"],
    ),
    AgentProfile(
        id="agent-elegant",
        name="Elegant Craftsperson",
        philosophy=DesignPhilosophy.ELEGANT,
        backend="gemini",
        description="Prioritizes sophistication, refinement, and timeless beauty. Classic and polished.",
        personality="Refined, detail-oriented, and classic. Believes in timeless design.",
        strengths=["Serif typography", "Subtle color harmony", "Balanced layouts", "Refined details"],
        design_principles=[
            "Use serif fonts for sophistication",
            "Choose muted, harmonious colors",
            "Create balanced, symmetrical layouts",
            "Add refined details and flourishes",
            "Aim for timeless, not trendy",
        ],
        example_websites=["Chanel.com", "Rolex.com", "Tesla.com"],
    ),
]


def get_agent_profiles() -> List[AgentProfile]:
    return list(AGENT_PROFILES)


def get_agent_by_philosophy(philosophy) -> Optional[AgentProfile]:
    """Look up a profile by philosophy (enum or its string value)."""
    value = getattr(philosophy, "value", philosophy)
    for profile in AGENT_PROFILES:
        if profile.philosophy.value == value:
            return profile
    return None


def build_agent_prompt(agent: AgentProfile, request: DesignRequest) -> str:
    """Prompt asking an agent for a component design as JSON."""
    lines = [
        f"You are {agent.name}, a {agent.philosophy.value} designer with a distinct design philosophy.",
        "",
        f"Your personality: {agent.personality}",
        "",
        "Your design principles:",
    ]
    lines += [f"- {principle}" for principle in agent.design_principles]
    lines += [
        "",
        f"Your task: design a {request.component_type} component that embodies your "
        f"{agent.philosophy.value} philosophy.",
    ]

    context = {
        "Business": request.business_name,
        "Page type": request.page_type,
        "Industry": request.industry,
        "Target audience": request.target_audience,
        "Brand personality": request.brand_personality,
    }
    context_lines = [f"- {label}: {value}" for label, value in context.items() if value]
    if context_lines:
        lines += ["", "Context:"] + context_lines

    if request.requirements:
        lines += ["", "Requirements:"] + [f"- {requirement}" for requirement in request.requirements]

    lines += [
        "",
        "Respond with a JSON object:",
        "{",
        '  "html": "<!-- semantic HTML for the component -->",',
        '  "css": "/* the component styles */",',
        f'  "reasoning": "why this design embodies the {agent.philosophy.value} philosophy",',
        '  "designChoices": {"colors": [], "typography": [], "spacing": "", "layout": "", "visualStyle": ""},',
        '  "confidence": 0.85',
        "}",
        "",
        f"Stay true to your {agent.philosophy.value} philosophy. Your design should be distinctly "
        "different from other philosophies.",
    ]
    return "\n".join(lines)
