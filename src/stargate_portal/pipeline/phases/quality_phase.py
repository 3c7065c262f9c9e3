"""Quality review of the rendered site."""

import logging
from typing import Any, Dict, Optional

from ...core.types import GenerationContext, GenerationPhase
from ...quality.assessor import QualityAssessor
from .base_phase import BasePhase

logger = logging.getLogger(__name__)


class QualityPhase(BasePhase):
    """Scores the current site, falling back to the basic assessment."""

    phase = GenerationPhase.QUALITY

    def __init__(self, assessor: Optional[QualityAssessor] = None):
        super().__init__(name="quality_phase", description="Scores the generated site")
        self.assessor = assessor or QualityAssessor()

    async def run(self, context: GenerationContext) -> Dict[str, Any]:
        if context.site is None:
            raise RuntimeError("Quality review requires a rendered site")

        try:
            assessment = self.assessor.assess(
                context.site.html,
                context.site.css,
                industry=context.industry,
                iteration=context.iteration,
            )
        except Exception as e:
            logger.warning(f"{self.name}: detailed analysis failed, using basic assessment: {e}")
            assessment = self.assessor.basic_assessment(context.site.html, context.site.css, context.iteration)

        context.assessment = assessment
        return {
            "source": assessment.metadata.get("method", "heuristic"),
            "average_score": assessment.average_score,
            "verdict": assessment.verdict.value,
            "issues": len(assessment.issues),
        }

    def artifact(self, context: GenerationContext) -> Any:
        return context.assessment
