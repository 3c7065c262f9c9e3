"""Code generation: renders the planned site to HTML and CSS."""

import logging
import re
from typing import Any, Dict, Optional

from ...core.types import GenerationContext, GenerationPhase, LLMTaskType
from ...integrations.scripts import collect_scripts
from ..renderer import SiteRenderer
from .base_phase import BasePhase

logger = logging.getLogger(__name__)

MAX_CUSTOM_CSS = 4000
_UNSAFE_CSS = re.compile(r"<|expression\s*\(|javascript:|@import", re.IGNORECASE)


class CodePhase(BasePhase):
    """Renders the site; the LLM may contribute a small block of signature CSS."""

    phase = GenerationPhase.CODE
    task_type = LLMTaskType.CODE

    def __init__(self, llm_backend=None, renderer: Optional[SiteRenderer] = None, max_prompt_length: int = 12000):
        super().__init__(
            name="code_phase",
            description="Builds the HTML and CSS for the site",
            llm_backend=llm_backend,
            max_prompt_length=max_prompt_length,
        )
        self.renderer = renderer or SiteRenderer()

    async def run(self, context: GenerationContext) -> Dict[str, Any]:
        for required in ("layout", "style", "content"):
            if getattr(context, required) is None:
                raise RuntimeError(f"Code generation requires the {required} artifact")

        metadata: Dict[str, Any] = {"source": "template"}
        codes = context.revision_codes(self.phase)
        extra_css = ""

        # A reviewer complaint about the markup drops any custom CSS and renders the template as-is
        if self.llm_backend is not None and not codes:
            try:
                data, response_metadata = await self._generate_json(
                    self._create_prompt(context),
                    temperature=0.5,
                    max_tokens=1500,
                )
                extra_css = self.validate_custom_css(data.get("css", ""))
                metadata.update(source="llm", used_backend=response_metadata.get("used_backend"))
            except Exception as e:
                logger.warning(f"{self.name}: rendering without custom CSS: {e}")

        scripts = collect_scripts(context.brief.integrations)
        context.site = self.renderer.render(
            context.brief,
            context.layout,
            context.style,
            context.content,
            context.images,
            industry_id=context.industry.id,
            scripts=scripts,
            extra_css=extra_css,
        )
        metadata.update(
            html_bytes=len(context.site.html),
            css_bytes=len(context.site.css),
            integrations=sorted(scripts),
        )
        return metadata

    def artifact(self, context: GenerationContext) -> Any:
        return context.site

    def _create_prompt(self, context: GenerationContext) -> str:
        style = context.style
        return f"""You are a front-end developer adding signature touches to a website stylesheet.

Business: {context.brief.business_name}
Aesthetic: {context.industry.design.aesthetic}
Sections: {", ".join(context.layout.kinds())}
CSS variables available: --color-primary, --color-secondary, --color-accent,
--color-background, --color-text, --font-heading, --font-body, --border-radius, --shadow.
Palette: primary {style.primary}, secondary {style.secondary}, accent {style.accent}.

Existing class names: .hero, .hero-content, .card, .btn, .btn-primary, .section-stats,
.stat-value, .testimonial, .gallery-item, .section-cta, .site-footer.

Write at most 40 lines of extra CSS (hover effects, decorative accents, refined spacing)
that fit the aesthetic. Use the CSS variables. Do not change text or background colors
of body text. No @import, no HTML.

Respond with a JSON object: {{"css": "..."}}"""

    @staticmethod
    def validate_custom_css(css: Any) -> str:
        """Accept a bounded, markup-free block of CSS.

        Raises:
            ValueError: If the CSS is unusable.
        """
        if not isinstance(css, str) or not css.strip():
            raise ValueError("No CSS in response")
        css = css.strip()
        if len(css) > MAX_CUSTOM_CSS:
            raise ValueError(f"Custom CSS too long ({len(css)} characters)")
        if _UNSAFE_CSS.search(css):
            raise ValueError("Custom CSS contains markup or imports")
        if css.count("{") != css.count("}"):
            raise ValueError("Custom CSS has unbalanced braces")
        return css
