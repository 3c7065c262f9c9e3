"""Phases of the Merlin design pipeline."""

from .base_phase import BasePhase, extract_json
from .layout_phase import LayoutPhase
from .style_phase import StylePhase
from .content_phase import ContentPhase
from .image_phase import ImagePhase
from .code_phase import CodePhase
from .quality_phase import QualityPhase

__all__ = [
    "BasePhase",
    "extract_json",
    "LayoutPhase",
    "StylePhase",
    "ContentPhase",
    "ImagePhase",
    "CodePhase",
    "QualityPhase",
]
