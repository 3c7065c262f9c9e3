"""Image service with provider fallback and local download."""

import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx

from ..config.settings import ImageSettings
from ..core.interfaces import ImageBackendInterface
from ..core.types import GeneratedImage
from .providers import OpenAIImageBackend, PlaceholderImageBackend, UnsplashImageBackend

logger = logging.getLogger(__name__)

_CONTENT_TYPE_SUFFIXES = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/webp": ".webp",
    "image/svg+xml": ".svg",
}


class ImageService:
    """Tries image providers in order and always returns an image.

    The placeholder provider is appended to the chain when missing, so a
    section never ends up without an image. Provider failures are logged
    and collected in ``GeneratedImage.metadata["errors"]``.
    """

    def __init__(
        self,
        providers: Optional[List[ImageBackendInterface]] = None,
        max_concurrency: int = 4,
        download_timeout: int = 60,
    ):
        self.providers = list(providers) if providers is not None else [PlaceholderImageBackend()]
        if not any(isinstance(p, PlaceholderImageBackend) for p in self.providers):
            self.providers.append(PlaceholderImageBackend())
        self.placeholder = next(p for p in self.providers if isinstance(p, PlaceholderImageBackend))
        self.download_timeout = download_timeout
        self._semaphore = asyncio.Semaphore(max_concurrency)

    @classmethod
    def from_settings(cls, settings: ImageSettings, openai_api_key: Optional[str] = None) -> "ImageService":
        available = {
            "openai": lambda: OpenAIImageBackend(
                api_key=openai_api_key,
                model=settings.openai_model,
                size=settings.size,
                quality=settings.quality,
                timeout=settings.timeout,
            ),
            "unsplash": lambda: UnsplashImageBackend(
                access_key=settings.unsplash_access_key,
                base_url=settings.unsplash_base_url,
                timeout=settings.timeout,
            ),
            "placeholder": lambda: PlaceholderImageBackend(base_url=settings.placeholder_base_url),
        }
        providers = [available[name]() for name in settings.provider_order if name in available]
        return cls(providers=providers, download_timeout=settings.timeout)

    @property
    def has_real_provider(self) -> bool:
        return any(p.is_available and not isinstance(p, PlaceholderImageBackend) for p in self.providers)

    async def placeholder_image(self, section: str, prompt: str = "", **options: Any) -> GeneratedImage:
        options["section"] = section
        return await self.placeholder.generate_image(prompt, options)

    async def generate(self, section: str, prompt: str, **options: Any) -> GeneratedImage:
        """Produce an image for one page section."""
        options["section"] = section
        errors = []

        async with self._semaphore:
            for provider in self.providers:
                if not provider.is_available:
                    continue
                try:
                    image = await provider.generate_image(prompt, options)
                    image.section = section
                    if errors:
                        image.metadata["errors"] = errors
                    logger.info(f"Generated {section} image with {provider.name}")
                    return image
                except Exception as e:
                    logger.warning(f"Image provider {provider.name} failed for {section}: {e}")
                    errors.append(f"{provider.name}: {e}")

        # Only reachable when the placeholder itself raised
        raise RuntimeError(f"All image providers failed for {section}: {'; '.join(errors)}")

    async def generate_section_images(self, requests: List[Dict[str, Any]]) -> List[GeneratedImage]:
        """Generate images for several sections concurrently, preserving order."""
        tasks = []
        for request in requests:
            options = {k: v for k, v in request.items() if k not in ("section", "prompt")}
            tasks.append(self.generate(request["section"], request.get("prompt", ""), **options))
        return list(await asyncio.gather(*tasks))

    async def download_image(self, image: GeneratedImage, directory: Path) -> GeneratedImage:
        """Stream an image into ``directory`` and record its local path.

        Raises:
            RuntimeError: If the download fails.
        """
        directory.mkdir(parents=True, exist_ok=True)
        try:
            async with httpx.AsyncClient(timeout=self.download_timeout, follow_redirects=True) as client:
                async with client.stream("GET", image.url) as response:
                    response.raise_for_status()
                    content_type = response.headers.get("content-type", "").split(";")[0].strip()
                    target = directory / f"{image.section or 'image'}{_CONTENT_TYPE_SUFFIXES.get(content_type, '.png')}"
                    with open(target, "wb") as f:
                        async for chunk in response.aiter_bytes():
                            f.write(chunk)
        except httpx.HTTPError as e:
            raise RuntimeError(f"Failed to download {image.section} image: {e}") from e

        return image.model_copy(update={"local_path": str(target)})

    async def close(self) -> None:
        for provider in self.providers:
            close = getattr(provider, "close", None)
            if close is not None:
                await close()
