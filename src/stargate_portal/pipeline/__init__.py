"""Merlin website generation pipeline.

The engine runs the design phases and the quality feedback loop; the
orchestrator wires it to storage, the output directory and metrics.
"""

from .engine import PipelineEngine, GenerationCancelled, PROGRESS_STEPS, TOTAL_PHASES
from .orchestrator import MerlinOrchestrator, slugify
from .renderer import SiteRenderer

__all__ = [
    "PipelineEngine",
    "GenerationCancelled",
    "PROGRESS_STEPS",
    "TOTAL_PHASES",
    "MerlinOrchestrator",
    "slugify",
    "SiteRenderer",
]
