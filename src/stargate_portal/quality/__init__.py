"""Quality scoring for generated websites."""

from .analyzer import PageFacts, StyleFacts, parse_page, parse_styles
from .assessor import QualityAssessor, determine_verdict
from .report import generate_quality_report, write_quality_report

__all__ = [
    "PageFacts",
    "StyleFacts",
    "parse_page",
    "parse_styles",
    "QualityAssessor",
    "determine_verdict",
    "generate_quality_report",
    "write_quality_report",
]
