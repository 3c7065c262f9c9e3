"""Image providers: DALL-E generation, Unsplash stock search and placeholders."""

import os
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx
import openai
from openai import AsyncOpenAI

from ..core.interfaces import ImageBackendInterface
from ..core.types import GeneratedImage


class OpenAIImageBackend(ImageBackendInterface):
    """DALL-E image generation through the OpenAI SDK."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "dall-e-3",
        size: str = "1792x1024",
        quality: str = "standard",
        timeout: int = 60,
    ):
        self.api_key = api_key or os.getenv("OPENAI_API_KEY")
        self.model = model
        self.size = size
        self.quality = quality
        self.timeout = timeout
        self._client: Optional[AsyncOpenAI] = None

    @property
    def name(self) -> str:
        return "openai"

    @property
    def is_available(self) -> bool:
        return self.api_key is not None

    async def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.api_key, timeout=self.timeout)
        return self._client

    async def generate_image(
        self,
        prompt: str,
        options: Optional[Dict[str, Any]] = None
    ) -> GeneratedImage:
        if not self.is_available:
            raise RuntimeError("OpenAI image backend is not configured. Set OPENAI_API_KEY environment variable.")

        options = options or {}
        client = await self._get_client()
        try:
            response = await client.images.generate(
                model=options.get("model", self.model),
                prompt=prompt,
                size=options.get("size", self.size),
                quality=options.get("quality", self.quality),
                n=1,
            )
        except openai.APIError as e:
            raise RuntimeError(f"OpenAI image API error: {e}") from e

        if not response.data or not response.data[0].url:
            raise RuntimeError("OpenAI image API returned no image URL")

        image = response.data[0]
        return GeneratedImage(
            section=options.get("section", ""),
            url=image.url,
            prompt=prompt,
            alt=options.get("alt", ""),
            provider=self.name,
            metadata={"revised_prompt": getattr(image, "revised_prompt", None)},
        )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None


class UnsplashImageBackend(ImageBackendInterface):
    """Stock photography search via the Unsplash API."""

    def __init__(
        self,
        access_key: Optional[str] = None,
        base_url: str = "https://api.unsplash.com",
        timeout: int = 30,
    ):
        self.access_key = access_key or os.getenv("UNSPLASH_ACCESS_KEY")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def name(self) -> str:
        return "unsplash"

    @property
    def is_available(self) -> bool:
        return bool(self.access_key)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def generate_image(
        self,
        prompt: str,
        options: Optional[Dict[str, Any]] = None
    ) -> GeneratedImage:
        if not self.is_available:
            raise RuntimeError("Unsplash backend is not configured. Set UNSPLASH_ACCESS_KEY environment variable.")

        options = options or {}
        # Long generation prompts make poor search queries
        query = options.get("query") or " ".join(prompt.split(",")[0].split()[:6])
        client = await self._get_client()

        try:
            response = await client.get(
                f"{self.base_url}/search/photos",
                params={"query": query, "per_page": 1, "orientation": "landscape"},
                headers={"Authorization": f"Client-ID {self.access_key}", "Accept-Version": "v1"},
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise RuntimeError(f"Unsplash API error: {e}") from e

        results = data.get("results") or []
        if not results:
            raise RuntimeError(f"Unsplash returned no photos for '{query}'")

        photo = results[0]
        return GeneratedImage(
            section=options.get("section", ""),
            url=photo["urls"]["regular"],
            prompt=prompt,
            alt=options.get("alt") or photo.get("alt_description") or "",
            provider=self.name,
            metadata={
                "photographer": photo.get("user", {}).get("name"),
                "photo_id": photo.get("id"),
                "query": query,
            },
        )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


class PlaceholderImageBackend(ImageBackendInterface):
    """Deterministic placeholder images; always available."""

    def __init__(self, base_url: str = "https://placehold.co", width: int = 1600, height: int = 900):
        self.base_url = base_url.rstrip("/")
        self.width = width
        self.height = height

    @property
    def name(self) -> str:
        return "placeholder"

    @property
    def is_available(self) -> bool:
        return True

    def build_url(self, label: str, background: str = "1F2937", foreground: str = "FFFFFF") -> str:
        background = background.lstrip("#")
        foreground = foreground.lstrip("#")
        return (
            f"{self.base_url}/{self.width}x{self.height}/{background}/{foreground}"
            f"?text={quote(label)}"
        )

    async def generate_image(
        self,
        prompt: str,
        options: Optional[Dict[str, Any]] = None
    ) -> GeneratedImage:
        options = options or {}
        section = options.get("section", "")
        label = options.get("label") or section.title() or "Image"
        return GeneratedImage(
            section=section,
            url=self.build_url(label, options.get("background", "1F2937"), options.get("foreground", "FFFFFF")),
            prompt=prompt,
            alt=options.get("alt", ""),
            provider=self.name,
            placeholder=True,
        )
