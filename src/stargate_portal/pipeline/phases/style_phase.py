"""Style system phase: palette, typography and visual tokens."""

import logging
from typing import Any, Dict, Iterable

from ...core.types import GenerationContext, GenerationPhase, LLMTaskType, StyleSystem
from ...design.style_system import (
    build_style_system,
    contrast_ratio,
    ensure_contrast,
    is_hex_color,
    list_typography,
    readable_text_color,
    select_palette,
)
from .base_phase import BasePhase

logger = logging.getLogger(__name__)

COLOR_FIELDS = ("primary", "secondary", "accent", "background", "text")

TEXT_CONTRAST = 4.5
PRIMARY_CONTRAST = 3.0


class StylePhase(BasePhase):
    """Starts from the industry design and lets the LLM propose refinements."""

    phase = GenerationPhase.STYLE
    task_type = LLMTaskType.DESIGN

    def __init__(self, llm_backend=None, max_prompt_length: int = 12000):
        super().__init__(
            name="style_phase",
            description="Resolves palette, typography and design tokens",
            llm_backend=llm_backend,
            max_prompt_length=max_prompt_length,
        )

    async def run(self, context: GenerationContext) -> Dict[str, Any]:
        style = build_style_system(context.industry)
        metadata: Dict[str, Any] = {"source": "template"}

        if self.llm_backend is not None:
            try:
                data, response_metadata = await self._generate_json(
                    self._create_prompt(context, style),
                    temperature=0.6,
                    max_tokens=600,
                )
                style = self._apply_proposal(style, data)
                metadata.update(source="llm", used_backend=response_metadata.get("used_backend"))
            except Exception as e:
                logger.warning(f"{self.name}: keeping industry design tokens: {e}")

        style = self.apply_revisions(context, style, context.revision_codes(self.phase))
        context.style = style
        metadata["palette"] = style.palette_id
        return metadata

    def _create_prompt(self, context: GenerationContext, style: StyleSystem) -> str:
        typography = ", ".join(t.id for t in list_typography())
        feedback = self.revision_notes(context, self.phase)
        return f"""You are a brand designer refining a website's visual system.

Business: {context.brief.business_name}
Industry: {context.industry.name}
Aesthetic: {context.industry.design.aesthetic}

Current tokens:
- primary: {style.primary}
- secondary: {style.secondary}
- accent: {style.accent}
- background: {style.background}
- text: {style.text}
- heading font: {style.heading_font}
- body font: {style.body_font}

Suggest refined hex colors that keep the industry mood. Body text must reach a
WCAG contrast of at least 4.5:1 against the background. You may pick one of these
typography pairings: {typography}.
{feedback}

Respond with a JSON object:
{{"primary": "#RRGGBB", "secondary": "#RRGGBB", "accent": "#RRGGBB", "background": "#RRGGBB", "text": "#RRGGBB", "typography": "<id or null>"}}"""

    @staticmethod
    def _apply_proposal(style: StyleSystem, data: Dict[str, Any]) -> StyleSystem:
        """Take the valid hex colors (and a known typography id) from a proposal."""
        updates: Dict[str, Any] = {}
        for field in COLOR_FIELDS:
            value = data.get(field)
            if isinstance(value, str) and is_hex_color(value.strip()):
                updates[field] = value.strip().upper()

        typography_id = data.get("typography")
        for typography in list_typography():
            if typography.id == typography_id:
                updates.update(heading_font=typography.heading, body_font=typography.body)

        if not updates:
            raise ValueError("Style response contained no usable tokens")
        if any(field in updates for field in COLOR_FIELDS):
            updates["palette_id"] = "custom"
        return style.model_copy(update=updates)

    @staticmethod
    def apply_revisions(context: GenerationContext, style: StyleSystem, codes: Iterable[str]) -> StyleSystem:
        """Deterministic color fixes for reviewer issue codes."""
        codes = set(codes)

        if "flat_palette" in codes:
            palette = select_palette(context.industry, exclude=[style.palette_id])
            style = build_style_system(context.industry, palette=palette).model_copy(
                update={"heading_font": style.heading_font, "body_font": style.body_font}
            )

        if "low_contrast" in codes:
            text = ensure_contrast(style.text, style.background, TEXT_CONTRAST)
            if contrast_ratio(text, style.background) < TEXT_CONTRAST:
                text = readable_text_color(style.background)
            style = style.model_copy(update={"text": text})

        if "low_primary_contrast" in codes:
            style = style.model_copy(
                update={"primary": ensure_contrast(style.primary, style.background, PRIMARY_CONTRAST)}
            )

        return style
