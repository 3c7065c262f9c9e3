"""REST API for StargatePortal."""

from .app import app, lifespan

__all__ = [
    "app",
    "lifespan",
]
