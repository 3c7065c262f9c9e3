"""Layout planning: which sections the page has and in what order."""

import json
import logging
from typing import Any, Dict

from ...core.types import GenerationContext, GenerationPhase, LLMTaskType, LayoutPlan, SectionPlan
from ...design.blueprints import (
    DEFAULT_HEADINGS,
    SUPPORTED_SECTIONS,
    insert_section,
    normalize_layout,
    normalize_section_kind,
    select_blueprint,
)
from .base_phase import BasePhase

logger = logging.getLogger(__name__)

MIN_CONTENT_SECTIONS = 5

# Sections added, in order, when a reviewer reports too few sections
FILLER_SECTIONS = ("services", "about", "testimonials", "stats", "process", "faq")


class LayoutPhase(BasePhase):
    """Selects a blueprint and lets the LLM refine section order and headings."""

    phase = GenerationPhase.LAYOUT
    task_type = LLMTaskType.LAYOUT

    def __init__(self, llm_backend=None, max_prompt_length: int = 12000):
        super().__init__(
            name="layout_phase",
            description="Plans page sections from blueprints and industry DNA",
            llm_backend=llm_backend,
            max_prompt_length=max_prompt_length,
        )

    async def run(self, context: GenerationContext) -> Dict[str, Any]:
        blueprint = select_blueprint(context.industry)
        plan = blueprint.to_layout()
        metadata: Dict[str, Any] = {"source": "template", "blueprint": blueprint.id}

        if self.llm_backend is not None:
            try:
                data, response_metadata = await self._generate_json(
                    self._create_prompt(context, plan),
                    temperature=0.4,
                    max_tokens=1200,
                )
                plan = self._parse_plan(data, plan)
                metadata.update(source="llm", used_backend=response_metadata.get("used_backend"))
            except Exception as e:
                logger.warning(f"{self.name}: using blueprint {blueprint.id} as-is: {e}")

        plan = normalize_layout(plan)
        plan = self.apply_revisions(plan, context.revision_codes(self.phase))
        context.layout = plan
        metadata["sections"] = plan.kinds()
        return metadata

    def _create_prompt(self, context: GenerationContext, plan: LayoutPlan) -> str:
        industry = context.industry
        blueprint_sections = [{"kind": s.kind, "heading": s.heading} for s in plan.sections]
        feedback = self.revision_notes(context, self.phase)
        return f"""You are a senior web designer planning a one-page website.

Business: {context.brief.business_name}
Description: {context.brief.description}
Industry: {industry.name} ({industry.design.aesthetic})
Recommended sections for this industry: {", ".join(industry.sections)}

Starting blueprint:
{json.dumps(blueprint_sections, indent=2)}

Allowed section kinds: {", ".join(SUPPORTED_SECTIONS)}

Reorder, add or remove sections so the page tells a convincing story for this business,
and write a short, specific heading for each section. Every heading must be unique.
{feedback}

Respond with a JSON object:
{{"hero_style": "split|full-bleed|centered", "sections": [{{"kind": "hero", "heading": ""}}, ...]}}"""

    @staticmethod
    def _parse_plan(data: Dict[str, Any], fallback: LayoutPlan) -> LayoutPlan:
        """Validate the LLM plan; unknown kinds are dropped."""
        raw_sections = data.get("sections")
        if not isinstance(raw_sections, list) or not raw_sections:
            raise ValueError("Layout response has no sections")

        sections = []
        for entry in raw_sections:
            if isinstance(entry, str):
                entry = {"kind": entry}
            if not isinstance(entry, dict) or not entry.get("kind"):
                continue
            kind = normalize_section_kind(str(entry["kind"]))
            if kind in SUPPORTED_SECTIONS:
                sections.append(SectionPlan(kind=kind, heading=str(entry.get("heading") or "").strip()))

        if len([s for s in sections if s.kind not in ("hero", "footer")]) < 3:
            raise ValueError("Layout response has too few usable sections")

        hero_style = data.get("hero_style")
        if hero_style not in ("split", "full-bleed", "centered"):
            hero_style = fallback.hero_style
        return LayoutPlan(blueprint_id=fallback.blueprint_id, hero_style=hero_style, sections=sections)

    @staticmethod
    def apply_revisions(plan: LayoutPlan, codes) -> LayoutPlan:
        """Deterministic structural fixes for reviewer issue codes."""
        codes = set(codes)
        if "missing_testimonials" in codes:
            plan = insert_section(plan, "testimonials")
        if "missing_contact_section" in codes:
            plan = insert_section(plan, "contact")
            plan = insert_section(plan, "cta")
        if "missing_trust_signals" in codes:
            plan = insert_section(plan, "stats")
        if "too_few_sections" in codes or "missing_navigation" in codes:
            for kind in FILLER_SECTIONS:
                if len([s for s in plan.sections if s.kind not in ("hero", "footer")]) >= MIN_CONTENT_SECTIONS:
                    break
                plan = insert_section(plan, kind)
            if not plan.has_section("contact"):
                plan = insert_section(plan, "contact")
        if "duplicate_headings" in codes:
            seen = set()
            sections = []
            for section in plan.sections:
                heading = section.heading
                if heading and heading.lower() in seen:
                    heading = DEFAULT_HEADINGS.get(section.kind) or section.kind.title()
                seen.add(heading.lower())
                sections.append(section.model_copy(update={"heading": heading}))
            plan = plan.model_copy(update={"sections": sections})
        return plan
