"""Image generation for StargatePortal.

Section images come from DALL-E, fall back to Unsplash stock photography
and finally to colored placeholders.
"""

from .providers import OpenAIImageBackend, UnsplashImageBackend, PlaceholderImageBackend
from .service import ImageService

__all__ = [
    "OpenAIImageBackend",
    "UnsplashImageBackend",
    "PlaceholderImageBackend",
    "ImageService",
]
