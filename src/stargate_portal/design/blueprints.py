"""Page blueprints: static section templates chosen by industry keywords."""

from functools import lru_cache
from typing import Dict, List

from pydantic import BaseModel, Field

from ..core.types import IndustryProfile, LayoutPlan, SectionPlan
from .loader import keyword_score, load_data_file

# Section kinds the site renderer knows how to draw
SUPPORTED_SECTIONS = (
    "hero",
    "stats",
    "services",
    "about",
    "team",
    "gallery",
    "process",
    "pricing",
    "testimonials",
    "faq",
    "cta",
    "contact",
    "footer",
)

DEFAULT_HEADINGS = {
    "hero": "",
    "stats": "By the Numbers",
    "services": "What We Offer",
    "about": "About Us",
    "team": "Meet the Team",
    "gallery": "Gallery",
    "process": "How It Works",
    "pricing": "Pricing",
    "testimonials": "What Our Clients Say",
    "faq": "Frequently Asked Questions",
    "cta": "Ready to Get Started?",
    "contact": "Get in Touch",
    "footer": "",
}

# Industry section names that map onto a renderer section
SECTION_ALIASES = {
    "features": "services",
    "programs": "services",
    "practice-areas": "services",
    "menu-preview": "services",
    "membership": "pricing",
    "how-it-works": "process",
    "portfolio-grid": "gallery",
    "projects": "gallery",
    "featured-listings": "gallery",
    "transformations": "gallery",
    "facilities": "gallery",
    "attorneys": "team",
    "doctors": "team",
    "trainers": "team",
    "chef": "team",
    "results": "stats",
    "market-stats": "stats",
    "consultation-cta": "cta",
    "quote-form": "contact",
    "reservation": "contact",
    "appointment": "contact",
    "booking": "contact",
    "location": "contact",
}


class Blueprint(BaseModel):
    id: str
    name: str
    keywords: List[str] = Field(default_factory=list)
    hero_style: str = "split"
    sections: List[SectionPlan] = Field(default_factory=list)

    def to_layout(self) -> LayoutPlan:
        return LayoutPlan(
            blueprint_id=self.id,
            hero_style=self.hero_style,
            sections=[
                SectionPlan(kind=s.kind, heading=s.heading or DEFAULT_HEADINGS.get(s.kind, ""))
                for s in self.sections
            ],
        )


@lru_cache(maxsize=None)
def _blueprints() -> Dict[str, Blueprint]:
    data = load_data_file("blueprints.yaml")
    return {entry["id"]: Blueprint(**entry) for entry in data["blueprints"]}


def list_blueprints() -> List[Blueprint]:
    return list(_blueprints().values())


def get_blueprint(blueprint_id: str) -> Blueprint:
    blueprints = _blueprints()
    if blueprint_id not in blueprints:
        raise KeyError(f"Unknown blueprint: {blueprint_id}")
    return blueprints[blueprint_id]


def industry_search_text(profile: IndustryProfile) -> str:
    return " ".join([profile.id, profile.name, *profile.keywords])


def select_blueprint(profile: IndustryProfile) -> Blueprint:
    """Pick the blueprint whose keywords best match the industry."""
    data = load_data_file("blueprints.yaml")
    text = industry_search_text(profile)
    best = get_blueprint(data.get("default_blueprint", "classic-business"))
    best_score = 0
    for blueprint in list_blueprints():
        score = keyword_score(blueprint.keywords, text)
        if score > best_score:
            best, best_score = blueprint, score
    return best


def normalize_section_kind(name: str) -> str:
    """Map an industry or LLM section name onto a renderer section kind."""
    name = name.strip().lower().replace("_", "-").replace(" ", "-")
    return SECTION_ALIASES.get(name, name)


def normalize_layout(plan: LayoutPlan) -> LayoutPlan:
    """Keep renderable sections only, without duplicates, hero first and footer last."""
    seen = set()
    sections = []
    for section in plan.sections:
        kind = normalize_section_kind(section.kind)
        if kind not in SUPPORTED_SECTIONS or kind in seen or kind in ("hero", "footer"):
            continue
        seen.add(kind)
        sections.append(SectionPlan(kind=kind, heading=section.heading or DEFAULT_HEADINGS[kind]))

    hero = next((s for s in plan.sections if normalize_section_kind(s.kind) == "hero"), None)
    sections.insert(0, SectionPlan(kind="hero", heading=hero.heading if hero else ""))
    sections.append(SectionPlan(kind="footer", heading=""))
    return plan.model_copy(update={"sections": sections})


def insert_section(plan: LayoutPlan, kind: str, heading: str = "") -> LayoutPlan:
    """Add a section before the footer (or before contact for a CTA)."""
    if plan.has_section(kind):
        return plan
    sections = list(plan.sections)
    anchor = "contact" if kind in ("cta", "testimonials") and plan.has_section("contact") else "footer"
    index = next((i for i, s in enumerate(sections) if s.kind == anchor), len(sections))
    sections.insert(index, SectionPlan(kind=kind, heading=heading or DEFAULT_HEADINGS.get(kind, "")))
    return plan.model_copy(update={"sections": sections})
