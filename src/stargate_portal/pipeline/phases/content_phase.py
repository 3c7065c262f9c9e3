"""Content generation: tagline, services, section copy and SEO fields."""

import json
import logging
import re
from typing import Any, Dict, Iterable, List, Optional

from ...core.types import (
    GenerationContext,
    GenerationPhase,
    LLMTaskType,
    LayoutPlan,
    SectionContent,
    ServiceItem,
    SiteContent,
)
from ...design.blueprints import DEFAULT_HEADINGS
from ...design.industries import pick_tagline
from ...quality.assessor import PLACEHOLDER_PATTERNS
from .base_phase import BasePhase

logger = logging.getLogger(__name__)

TITLE_LIMITS = (15, 70)
META_LIMITS = (50, 160)
MIN_SECTION_WORDS = 40

# Replacements for words an industry's copy should avoid
SOFTER_WORDS = {
    "cheap": "great-value",
    "discount": "special offer",
    "deal": "offer",
    "budget": "value",
    "basic": "essential",
    "easy": "straightforward",
    "nice": "remarkable",
    "good": "outstanding",
    "solutions": "services",
    "helping": "supporting",
    "affordable": "accessible",
    "old": "established",
    "traditional": "time-honored",
    "legacy": "heritage",
    "fixer-upper": "renovation opportunity",
    "gentle": "focused",
    "slow": "steady",
    "comfortable": "confident",
    "relaxed": "focused",
    "quick fix": "lasting result",
}

TESTIMONIAL_AUTHORS = (("Jordan P.", "Client"), ("Alex R.", "Returning Client"), ("Sam T.", "Client"))


def _sentence(text: str) -> str:
    text = " ".join((text or "").split())
    if text and text[-1] not in ".!?":
        text += "."
    return text


def _word_count(text: str) -> int:
    return len(re.findall(r"[A-Za-z0-9'-]+", text or ""))


def _clip(text: str, limit: int) -> str:
    """Shorten ``text`` to ``limit`` characters on a word boundary."""
    if len(text) <= limit:
        return text
    clipped = text[:limit - 3].rsplit(" ", 1)[0].rstrip(",;:-")
    return f"{clipped}..."


class ContentPhase(BasePhase):
    """Writes the site copy with the LLM, falling back to industry templates."""

    phase = GenerationPhase.CONTENT
    task_type = LLMTaskType.COPYWRITING

    def __init__(self, llm_backend=None, max_prompt_length: int = 12000):
        super().__init__(
            name="content_phase",
            description="Writes taglines, section copy and SEO metadata",
            llm_backend=llm_backend,
            max_prompt_length=max_prompt_length,
        )

    async def run(self, context: GenerationContext) -> Dict[str, Any]:
        if context.layout is None:
            raise RuntimeError("Content generation requires a layout plan")

        content = self.template_content(context)
        metadata: Dict[str, Any] = {"source": "template"}

        if self.llm_backend is not None:
            try:
                data, response_metadata = await self._generate_json(
                    self._create_prompt(context, content),
                    temperature=0.7,
                    max_tokens=3000,
                )
                content = self._merge_llm_content(context, content, data)
                metadata.update(source="llm", used_backend=response_metadata.get("used_backend"))
            except Exception as e:
                logger.warning(f"{self.name}: using template copy: {e}")

        content = self.apply_revisions(context, content, context.revision_codes(self.phase))
        context.content = content
        metadata["word_count"] = sum(_word_count(s.body) for s in content.sections)
        return metadata

    # -- templates -----------------------------------------------------------

    def template_content(self, context: GenerationContext) -> SiteContent:
        """Complete copy built from the brief and the industry DNA."""
        brief, industry = context.brief, context.industry
        tagline = brief.tagline or pick_tagline(industry, seed=brief.business_name)
        services = list(brief.services) or list(industry.default_services)
        guidelines = industry.copy_guidelines
        cta_texts = guidelines.cta_text or ["Get Started", "Learn More"]

        content = SiteContent(
            business_name=brief.business_name,
            tagline=tagline,
            description=_sentence(brief.description),
            services=services,
            cta_primary=cta_texts[0],
            cta_secondary=cta_texts[1] if len(cta_texts) > 1 else "Learn More",
            keywords=self._keywords(context),
        )
        content.sections = [
            self._template_section(context, content, plan.kind, plan.heading)
            for plan in context.layout.sections
            if plan.kind != "footer"
        ]
        content.seo_title = self._fit_title(content, industry.name)
        content.meta_description = self._fit_meta_description(content, brief.location)
        return content

    @staticmethod
    def _keywords(context: GenerationContext) -> List[str]:
        keywords = [context.brief.business_name.lower()] + list(context.industry.keywords[:5])
        if context.brief.location:
            keywords.append(context.brief.location.lower())
        return list(dict.fromkeys(keywords))

    def _template_section(self, context: GenerationContext, content: SiteContent, kind: str, heading: str) -> SectionContent:
        brief, industry = context.brief, context.industry
        name = brief.business_name
        where = f" in {brief.location}" if brief.location else ""
        power = industry.copy_guidelines.power_words
        promise = " ".join(f"{word.capitalize()}." for word in power[:3])
        heading = heading or DEFAULT_HEADINGS.get(kind, kind.title())
        cta_texts = industry.copy_guidelines.cta_text or [content.cta_primary]

        if kind == "hero":
            return SectionContent(kind=kind, heading=content.tagline, body=content.description)

        if kind == "services":
            return SectionContent(
                kind=kind,
                heading=heading,
                subheading=f"Everything {name} offers is shaped by one goal: results our clients can see and feel.",
                items=[
                    {"name": s.name, "description": s.description or f"{s.name}, delivered with care by the {name} team."}
                    for s in content.services
                ],
            )

        if kind == "about":
            paragraphs = [
                f"{name} was founded on a simple idea: every client deserves work they can be proud of. {content.description}",
                f"Our team brings years of hands-on experience in {industry.name.lower()}{where}. We listen first, "
                f"plan carefully and stay with you until the job is done right.",
            ]
            if promise:
                paragraphs.append(f"Our promise: {promise}")
            return SectionContent(kind=kind, heading=heading, body="\n\n".join(paragraphs))

        if kind == "stats":
            return SectionContent(kind=kind, heading=heading, items=[
                {"value": "10+", "label": "Years of Experience"},
                {"value": "500+", "label": "Happy Clients"},
                {"value": "98%", "label": "Client Satisfaction"},
                {"value": "5-Star", "label": "Average Rating"},
            ])

        if kind == "team":
            return SectionContent(kind=kind, heading=heading, items=[
                {"name": "Founder & Director", "role": "Leadership",
                 "description": f"Sets the standard for every project at {name} and stays close to each client."},
                {"name": "Client Experience Lead", "role": "Your first point of contact",
                 "description": "Keeps you informed at every step and makes sure nothing falls through the cracks."},
                {"name": "Specialist Team", "role": "Hands-on experts",
                 "description": f"Skilled professionals who bring {industry.name.lower()} know-how to every detail."},
            ])

        if kind == "gallery":
            captions = [s.name for s in content.services[:5]] + ["Behind the Scenes"]
            return SectionContent(kind=kind, heading=heading, items=[{"caption": c} for c in captions])

        if kind == "process":
            return SectionContent(kind=kind, heading=heading, items=[
                {"name": "Consultation", "description": "We start by understanding your goals, timeline and priorities."},
                {"name": "Tailored Plan", "description": "You receive a clear plan with scope, milestones and pricing."},
                {"name": "Expert Delivery", "description": f"The {name} team gets to work and keeps you updated throughout."},
                {"name": "Ongoing Support", "description": "We follow up to make sure you are delighted with the outcome."},
            ])

        if kind == "pricing":
            return SectionContent(kind=kind, heading=heading, cta_text=cta_texts[0], items=[
                {"name": "Starter", "price": "Tailored quote", "description": "The essentials, done properly, for smaller needs."},
                {"name": "Professional", "price": "Tailored quote", "description": "Our most popular option with extra attention and support."},
                {"name": "Premium", "price": "Tailored quote", "description": "A fully managed, white-glove experience from start to finish."},
            ])

        if kind == "testimonials":
            quotes = [
                f"Working with {name} was a great experience from the first conversation to the final result. "
                f"I recommend them to anyone.",
                f"Professional, responsive and clearly passionate about what they do. {name} made the whole process feel effortless.",
                "The attention to detail is outstanding. This team takes real pride in their work and it shows in every result.",
            ]
            return SectionContent(kind=kind, heading=heading, items=[
                {"quote": quote, "author": author, "role": role}
                for quote, (author, role) in zip(quotes, TESTIMONIAL_AUTHORS)
            ])

        if kind == "faq":
            return SectionContent(kind=kind, heading=heading, items=[
                {"question": f"What does {name} offer?",
                 "answer": f"We specialize in {', '.join(s.name.lower() for s in content.services[:3]) or industry.name.lower()}."},
                {"question": "How do I get started?",
                 "answer": "Reach out through the contact form or give us a call and we will arrange a first conversation."},
                {"question": "Where are you located?",
                 "answer": f"We are based{where or ' locally'} and serve clients throughout the surrounding area."},
                {"question": "How long does a typical project take?",
                 "answer": "Timelines depend on scope. We agree on a schedule up front and keep you updated as we go."},
            ])

        if kind == "cta":
            return SectionContent(
                kind=kind,
                heading=heading,
                body=f"Take the first step today. {name} is ready to listen, plan and deliver work that exceeds your expectations.",
                cta_text=cta_texts[0],
            )

        if kind == "contact":
            return SectionContent(
                kind=kind,
                heading=heading,
                body=f"Have a question or ready to start? Send {name} a message and we will get back to you within one business day.",
                cta_text="Send Message",
            )

        return SectionContent(kind=kind, heading=heading)

    @staticmethod
    def _fit_title(content: SiteContent, industry_name: str) -> str:
        low, high = TITLE_LIMITS
        for candidate in (
            content.seo_title,
            f"{content.business_name} | {content.tagline}",
            f"{content.business_name} | {industry_name}",
            content.business_name,
        ):
            if candidate and low <= len(candidate) <= high:
                return candidate
        return _clip(f"{content.business_name} | {industry_name}", high)

    @staticmethod
    def _fit_meta_description(content: SiteContent, location: Optional[str] = None) -> str:
        low, high = META_LIMITS
        text = " ".join((content.meta_description or f"{content.business_name}: {content.description}").split())
        if len(text) < low:
            extras = [content.tagline]
            if location:
                extras.append(f"Serving {location}")
            extras.append(f"Contact {content.business_name} today")
            for extra in extras:
                if len(text) >= low:
                    break
                text = f"{_sentence(text)} {_sentence(extra)}"
        return _clip(text, high)

    # -- LLM -------------------------------------------------------------------

    def _create_prompt(self, context: GenerationContext, content: SiteContent) -> str:
        brief, industry = context.brief, context.industry
        guidelines = industry.copy_guidelines
        sections = [{"kind": s.kind, "heading": s.heading} for s in content.sections]
        services = [s.model_dump() for s in content.services]
        feedback = self.revision_notes(context, self.phase)
        return f"""You are an award-winning copywriter writing a one-page website.

Business: {brief.business_name}
Description: {brief.description}
Location: {brief.location or "not specified"}
Industry: {industry.name}
Tone: {guidelines.tone}
Power words to use: {", ".join(guidelines.power_words)}
Words to avoid: {", ".join(guidelines.avoid_words)}
Tagline style: {guidelines.tagline_style}
Services: {json.dumps(services)}

Sections to write:
{json.dumps(sections, indent=2)}

Write specific, vivid copy. Each section heading must be unique. The about section
needs at least 80 words. Testimonials need "quote", "author" and "role" items, stats
need "value" and "label" items, faq needs "question" and "answer" items, services,
team and process need "name" and "description" items. Never use placeholder text.
{"Keep this tagline: " + brief.tagline if brief.tagline else ""}
{feedback}

Respond with a JSON object:
{{"tagline": "...", "services": [{{"name": "...", "description": "..."}}],
  "sections": {{"<kind>": {{"heading": "...", "subheading": "...", "body": "...", "items": [...], "cta_text": "..."}}}},
  "seo_title": "...", "meta_description": "...", "keywords": ["..."],
  "cta_primary": "...", "cta_secondary": "..."}}"""

    @staticmethod
    def _text(value: Any) -> Optional[str]:
        if isinstance(value, str) and value.strip():
            return " ".join(value.split()) if "\n\n" not in value else value.strip()
        return None

    def _merge_llm_content(self, context: GenerationContext, content: SiteContent, data: Dict[str, Any]) -> SiteContent:
        """Overlay valid LLM copy on the template content."""
        updates: Dict[str, Any] = {}

        tagline = self._text(data.get("tagline"))
        if tagline and not context.brief.tagline:
            updates["tagline"] = tagline

        raw_services = data.get("services")
        if not context.brief.services and isinstance(raw_services, list):
            services = [
                ServiceItem(name=str(s["name"]).strip(), description=str(s.get("description") or "").strip())
                for s in raw_services
                if isinstance(s, dict) and s.get("name")
            ]
            if services:
                updates["services"] = services

        for field in ("seo_title", "meta_description", "cta_primary", "cta_secondary"):
            value = self._text(data.get(field))
            if value:
                updates[field] = value

        keywords = data.get("keywords")
        if isinstance(keywords, list):
            cleaned = [str(k).strip().lower() for k in keywords if str(k).strip()]
            if cleaned:
                updates["keywords"] = list(dict.fromkeys(cleaned))[:12]

        merged = content.model_copy(update=updates)
        raw_sections = data.get("sections") if isinstance(data.get("sections"), dict) else {}

        sections = []
        for section in content.sections:
            if section.kind == "services" and "services" in updates:
                section = section.model_copy(update={"items": [
                    {"name": s.name, "description": s.description} for s in updates["services"]
                ]})
            if section.kind == "hero":
                section = section.model_copy(update={"heading": merged.tagline})
            sections.append(self._merge_section(section, raw_sections.get(section.kind)))
        merged.sections = sections

        if not self._text(data.get("seo_title")):
            merged.seo_title = self._fit_title(merged.model_copy(update={"seo_title": ""}), context.industry.name)
        return merged

    def _merge_section(self, section: SectionContent, raw: Any) -> SectionContent:
        if not isinstance(raw, dict):
            return section
        updates: Dict[str, Any] = {}
        for field in ("heading", "subheading", "body", "cta_text"):
            value = self._text(raw.get(field))
            if value and not (section.kind == "hero" and field == "heading"):
                updates[field] = value

        items = raw.get("items")
        if isinstance(items, list):
            cleaned = [
                {str(k): str(v) for k, v in item.items() if v is not None}
                for item in items
                if isinstance(item, dict) and item
            ]
            if cleaned:
                updates["items"] = cleaned
        return section.model_copy(update=updates)

    # -- revisions -------------------------------------------------------------

    def apply_revisions(self, context: GenerationContext, content: SiteContent, codes: Iterable[str]) -> SiteContent:
        """Deterministic copy fixes for reviewer issue codes."""
        codes = set(codes)
        if not codes:
            return content
        guidelines = context.industry.copy_guidelines
        content = content.model_copy(deep=True)

        if "placeholder_text" in codes:
            content = self._remove_placeholders(context, content)
        if "avoid_words" in codes:
            content = self._replace_words(content, guidelines.avoid_words)
        if "duplicate_headings" in codes:
            self._dedupe_headings(content)
        if "thin_content" in codes:
            self._expand_copy(context, content)
        if codes & {"no_power_words", "few_power_words"} and guidelines.power_words:
            self._add_power_words(content, guidelines.power_words)
        if codes & {"missing_title", "title_length"}:
            content.seo_title = self._fit_title(content.model_copy(update={"seo_title": ""}), context.industry.name)
        if codes & {"missing_meta_description", "meta_description_length"}:
            content.meta_description = self._fit_meta_description(content, context.brief.location)
        if "few_ctas" in codes:
            cta_texts = guidelines.cta_text or ["Get Started"]
            content.cta_primary = content.cta_primary or cta_texts[0]
            content.cta_secondary = content.cta_secondary or "Learn More"
            for section in content.sections:
                if section.kind in ("cta", "contact", "pricing") and not section.cta_text:
                    section.cta_text = cta_texts[0]
        return content

    def _remove_placeholders(self, context: GenerationContext, content: SiteContent) -> SiteContent:
        def has_placeholder(text: str) -> bool:
            lowered = (text or "").lower()
            return any(pattern in lowered for pattern in PLACEHOLDER_PATTERNS)

        sections = []
        for section in content.sections:
            values = [section.heading, section.subheading, section.body]
            values += [v for item in section.items for v in item.values()]
            if any(has_placeholder(v) for v in values):
                section = self._template_section(context, content, section.kind, "")
            sections.append(section)
        content.sections = sections
        if has_placeholder(content.tagline):
            content.tagline = pick_tagline(context.industry, seed=context.brief.business_name)
        return content

    @staticmethod
    def _replace_words(content: SiteContent, avoid_words: List[str]) -> SiteContent:
        patterns = [
            (re.compile(rf"\b{re.escape(word)}\b", re.IGNORECASE), SOFTER_WORDS.get(word.lower(), ""))
            for word in avoid_words
        ]

        def clean(text: str) -> str:
            for pattern, replacement in patterns:
                text = pattern.sub(replacement, text)
            return re.sub(r"\s{2,}", " ", text).strip() if "\n\n" not in text else text

        data = content.model_dump()
        for key in ("tagline", "description", "meta_description", "seo_title"):
            data[key] = clean(data[key])
        for section in data["sections"]:
            for key in ("heading", "subheading", "body"):
                section[key] = clean(section[key])
            section["items"] = [{k: clean(v) for k, v in item.items()} for item in section["items"]]
        return SiteContent(**data)

    @staticmethod
    def _dedupe_headings(content: SiteContent) -> None:
        seen = set()
        for section in content.sections:
            if section.kind == "hero" or not section.heading:
                continue
            heading = section.heading
            if heading.lower() in seen:
                heading = DEFAULT_HEADINGS.get(section.kind) or section.kind.title()
                if heading.lower() in seen:
                    heading = f"{heading} at {content.business_name}"
                section.heading = heading
            seen.add(heading.lower())

    def _expand_copy(self, context: GenerationContext, content: SiteContent) -> None:
        industry = context.industry
        name = content.business_name
        extra = {
            "about": (
                f"From the first conversation we focus on what matters most to you. Every {industry.name.lower()} "
                f"project at {name} is handled by experienced people who care about the details, communicate "
                f"clearly and stand behind their work long after it is finished."
            ),
            "cta": f"Whether you have a clear plan or just an idea, {name} will help you shape it into something remarkable.",
            "contact": "Prefer to talk? Call or email us and a real person will answer your questions, with no obligation.",
            "hero": f"{name} combines {industry.name.lower()} expertise with personal service you will not find anywhere else.",
        }
        for section in content.sections:
            if section.kind in extra and _word_count(section.body) < MIN_SECTION_WORDS:
                addition = extra[section.kind]
                separator = "\n\n" if section.kind == "about" else " "
                section.body = f"{section.body}{separator}{addition}".strip() if section.body else addition
            if section.kind == "services":
                for item in section.items:
                    if _word_count(item.get("description", "")) < 12:
                        item["description"] = _sentence(
                            f"{item.get('description', '')} Delivered by the {name} team with clear communication "
                            f"and results that last"
                        )

    @staticmethod
    def _add_power_words(content: SiteContent, power_words: List[str]) -> None:
        promise = "Our promise: " + " ".join(f"{word.capitalize()}." for word in power_words[:3])
        target = content.section("about") or content.section("cta") or content.section("hero")
        if target is not None and promise not in target.body:
            separator = "\n\n" if target.kind == "about" else " "
            target.body = f"{target.body}{separator}{promise}".strip()
