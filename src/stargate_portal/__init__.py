"""StargatePortal: AI website generation with quality feedback.

The Merlin pipeline turns a business brief into a complete website, reviews
it against quality thresholds and regenerates the weak parts. Around it sit
design competitions between agents, third-party integrations and a small
store, email and analytics back office for the generated sites.
"""

__version__ = "0.1.0"

from .core.types import BusinessBrief, GenerationRun
from .pipeline import MerlinOrchestrator

__all__ = [
    "__version__",
    "BusinessBrief",
    "GenerationRun",
    "MerlinOrchestrator",
]
