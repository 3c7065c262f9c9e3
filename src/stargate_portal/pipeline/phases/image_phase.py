"""Image generation for the hero and content sections."""

import logging
from typing import Any, Dict, List, Optional

from ...core.types import GeneratedImage, GenerationContext, GenerationPhase
from ...design.style_system import readable_text_color
from ...images.service import ImageService
from .base_phase import BasePhase

logger = logging.getLogger(__name__)

IMAGE_SECTIONS = ("hero", "services", "about", "team")

ALT_TEMPLATES = {
    "hero": "{name}: {tagline}",
    "services": "Services offered by {name}",
    "about": "The {name} team at work",
    "team": "Meet the people behind {name}",
}


class ImagePhase(BasePhase):
    """Generates one image per visual section through the image service."""

    phase = GenerationPhase.IMAGES

    def __init__(self, image_service: Optional[ImageService] = None, max_prompt_length: int = 12000):
        super().__init__(
            name="image_phase",
            description="Generates hero and section imagery",
            llm_backend=None,
            max_prompt_length=max_prompt_length,
        )
        self.image_service = image_service or ImageService()

    async def run(self, context: GenerationContext) -> Dict[str, Any]:
        codes = set(context.revision_codes(self.phase))
        sections = self.image_sections(context)

        # Revisions that only touch alt text reuse the existing images
        covered = {image.section for image in context.images}
        if context.images and codes and codes <= {"missing_alt_text"} and covered.issuperset(sections):
            context.images = self.fill_alt_text(context, context.images)
            return {"source": "revision", "images": len(context.images)}

        # Sections that already have an image keep it unless images were flagged
        existing = {} if "no_images" in codes else {image.section: image for image in context.images}
        missing = [section for section in sections if section not in existing]

        if not missing:
            generated = []
        elif context.brief.generate_images:
            generated = await self.image_service.generate_section_images(
                [self._request(context, section) for section in missing]
            )
        else:
            generated = [
                await self.image_service.placeholder_image(section, **self._placeholder_options(context, section))
                for section in missing
            ]
        available = {**existing, **{image.section: image for image in generated}}
        images = [available[section] for section in sections if section in available]

        for image in generated:
            for error in image.metadata.get("errors", []):
                context.errors.append(f"Image generation ({image.section}): {error}")

        context.images = self.fill_alt_text(context, images)
        providers = sorted({image.provider for image in images})
        logger.info(f"{self.name}: {len(images)} images from {', '.join(providers) or 'no provider'}")
        return {
            "source": "placeholder" if all(image.placeholder for image in images) else "provider",
            "providers": providers,
            "images": len(images),
        }

    def artifact(self, context: GenerationContext) -> Any:
        return context.images

    @staticmethod
    def image_sections(context: GenerationContext) -> List[str]:
        planned = context.layout.kinds() if context.layout else ["hero"]
        return [section for section in IMAGE_SECTIONS if section == "hero" or section in planned]

    def _prompt(self, context: GenerationContext, section: str) -> str:
        prompts = context.industry.images
        subject = getattr(prompts, section, None) or prompts.hero
        prompt = f"{subject}. {prompts.style}. For {context.brief.business_name}."
        return self._truncate(prompt)

    def _placeholder_options(self, context: GenerationContext, section: str) -> Dict[str, Any]:
        background = context.style.primary if context.style else context.industry.design.primary_color
        return {
            "prompt": self._prompt(context, section),
            "label": f"{context.brief.business_name} {section.title()}",
            "background": background,
            "foreground": readable_text_color(background),
        }

    def _request(self, context: GenerationContext, section: str) -> Dict[str, Any]:
        request = self._placeholder_options(context, section)
        request["section"] = section
        return request

    @staticmethod
    def fill_alt_text(context: GenerationContext, images: List[GeneratedImage]) -> List[GeneratedImage]:
        tagline = context.content.tagline if context.content else (context.brief.tagline or "")
        filled = []
        for image in images:
            if not image.alt.strip():
                template = ALT_TEMPLATES.get(image.section, "{name}")
                alt = template.format(name=context.brief.business_name, tagline=tagline).rstrip(": ")
                image = image.model_copy(update={"alt": alt})
            filled.append(image)
        return filled
