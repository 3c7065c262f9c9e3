"""Pipeline engine: runs the design phases and the quality feedback loop."""

import inspect
import logging
import time
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Union

from ..core.interfaces import LLMBackendInterface
from ..core.types import (
    GeneratedImage,
    GeneratedSite,
    GenerationContext,
    GenerationPhase,
    GenerationProgress,
    GenerationRun,
    PhaseResult,
    PhaseStatus,
    PipelineStatus,
    QualityAssessment,
    QualityCategory,
    QualityIssue,
    StopReason,
)
from ..design.industries import resolve_industry
from ..images.service import ImageService
from ..observability.metrics_collector import MetricsCollector, get_metrics_collector
from ..quality.assessor import QualityAssessor
from .phases import CodePhase, ContentPhase, ImagePhase, LayoutPhase, QualityPhase, StylePhase
from .renderer import SiteRenderer

logger = logging.getLogger(__name__)

PROGRESS_STEPS = [
    ("Initialization", 5),
    ("Industry Analysis", 10),
    ("Layout Planning", 20),
    ("Style System", 30),
    ("Content Generation", 45),
    ("Image Generation", 60),
    ("Building Website", 75),
    ("Quality Review", 85),
    ("Saving Files", 95),
]
TOTAL_PHASES = len(PROGRESS_STEPS)

# Progress step index of each phase
PHASE_STEPS = {
    GenerationPhase.LAYOUT: 3,
    GenerationPhase.STYLE: 4,
    GenerationPhase.CONTENT: 5,
    GenerationPhase.IMAGES: 6,
    GenerationPhase.CODE: 7,
    GenerationPhase.QUALITY: 8,
}

BUILD_ORDER = [
    GenerationPhase.LAYOUT,
    GenerationPhase.STYLE,
    GenerationPhase.CONTENT,
    GenerationPhase.IMAGES,
    GenerationPhase.CODE,
]

# Phases whose failure does not stop the run
OPTIONAL_PHASES = {GenerationPhase.IMAGES}

ISSUE_ROUTES = {
    # layout
    "missing_testimonials": GenerationPhase.LAYOUT,
    "missing_contact_section": GenerationPhase.LAYOUT,
    "too_few_sections": GenerationPhase.LAYOUT,
    "missing_navigation": GenerationPhase.LAYOUT,
    "missing_trust_signals": GenerationPhase.LAYOUT,
    # style
    "low_contrast": GenerationPhase.STYLE,
    "low_primary_contrast": GenerationPhase.STYLE,
    "flat_palette": GenerationPhase.STYLE,
    # content
    "duplicate_headings": GenerationPhase.CONTENT,
    "thin_content": GenerationPhase.CONTENT,
    "placeholder_text": GenerationPhase.CONTENT,
    "avoid_words": GenerationPhase.CONTENT,
    "no_power_words": GenerationPhase.CONTENT,
    "few_power_words": GenerationPhase.CONTENT,
    "missing_title": GenerationPhase.CONTENT,
    "title_length": GenerationPhase.CONTENT,
    "missing_meta_description": GenerationPhase.CONTENT,
    "meta_description_length": GenerationPhase.CONTENT,
    "few_ctas": GenerationPhase.CONTENT,
    # images
    "missing_alt_text": GenerationPhase.IMAGES,
    "no_images": GenerationPhase.IMAGES,
    # code
    "missing_css": GenerationPhase.CODE,
    "no_design_tokens": GenerationPhase.CODE,
    "no_responsive_rules": GenerationPhase.CODE,
    "no_typography": GenerationPhase.CODE,
    "default_fonts": GenerationPhase.CODE,
    "no_motion": GenerationPhase.CODE,
    "missing_structured_data": GenerationPhase.CODE,
    "missing_viewport": GenerationPhase.CODE,
    "missing_lang": GenerationPhase.CODE,
    "missing_open_graph": GenerationPhase.CODE,
    "broken_anchor": GenerationPhase.CODE,
    "missing_footer": GenerationPhase.CODE,
    "missing_h1": GenerationPhase.CODE,
    "multiple_h1": GenerationPhase.CODE,
    "heading_hierarchy": GenerationPhase.CODE,
}

CATEGORY_ROUTES = {
    QualityCategory.VISUAL_DESIGN: GenerationPhase.STYLE,
    QualityCategory.UX_STRUCTURE: GenerationPhase.LAYOUT,
    QualityCategory.CONTENT_QUALITY: GenerationPhase.CONTENT,
    QualityCategory.CONVERSION_TRUST: GenerationPhase.CONTENT,
    QualityCategory.SEO_FOUNDATIONS: GenerationPhase.CONTENT,
    QualityCategory.CREATIVITY: GenerationPhase.CODE,
}

# Issues no phase can fix (the brief has to supply the data)
NON_ACTIONABLE = {"missing_contact_info"}

ProgressCallback = Callable[[GenerationProgress], Union[None, Awaitable[None]]]


class GenerationCancelled(Exception):
    """Raised inside a run when cancellation was requested."""


class PipelineEngine:
    """Runs the Merlin design phases for one brief and iterates on quality.

    The first pass runs every phase. After each quality review the issues
    are routed back to the phases able to fix them, only those phases are
    regenerated (plus the phases downstream of them) and the site is scored
    again. The best-scoring iteration is the one kept.
    """

    def __init__(
        self,
        llm_backend: Optional[LLMBackendInterface] = None,
        image_service: Optional[ImageService] = None,
        assessor: Optional[QualityAssessor] = None,
        renderer: Optional[SiteRenderer] = None,
        quality_threshold: float = 7.5,
        max_iterations: int = 3,
        max_prompt_length: int = 12000,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.llm_backend = llm_backend
        self.quality_threshold = quality_threshold
        self.max_iterations = max(1, max_iterations)
        self.assessor = assessor or QualityAssessor(threshold=quality_threshold)
        self.metrics = metrics or get_metrics_collector()

        self.phases = {
            GenerationPhase.LAYOUT: LayoutPhase(llm_backend, max_prompt_length),
            GenerationPhase.STYLE: StylePhase(llm_backend, max_prompt_length),
            GenerationPhase.CONTENT: ContentPhase(llm_backend, max_prompt_length),
            GenerationPhase.IMAGES: ImagePhase(image_service, max_prompt_length),
            GenerationPhase.CODE: CodePhase(llm_backend, renderer, max_prompt_length),
            GenerationPhase.QUALITY: QualityPhase(self.assessor),
        }

        self._active_runs: Dict[str, GenerationRun] = {}
        self._cancel_requested: set = set()

    # -- progress & cancellation ---------------------------------------------

    async def report_progress(
        self,
        on_progress: Optional[ProgressCallback],
        step: int,
        message: str,
        progress: Optional[int] = None,
    ) -> None:
        """Send a progress event; callback errors are logged, never raised."""
        if on_progress is None:
            return
        name, default_progress = PROGRESS_STEPS[min(step, TOTAL_PHASES) - 1]
        event = GenerationProgress(
            phase=step,
            total_phases=TOTAL_PHASES,
            phase_name=name,
            message=message,
            progress=default_progress if progress is None else progress,
        )
        try:
            result = on_progress(event)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.warning(f"Progress callback failed: {e}")

    def register(self, run: GenerationRun) -> None:
        """Track a run as active before it starts, so a queued run can be cancelled."""
        self._active_runs[run.id] = run
        self.metrics.set_gauge("pipeline.active_runs", len(self._active_runs))

    def release(self, run_id: str) -> None:
        self._active_runs.pop(run_id, None)
        self._cancel_requested.discard(run_id)
        self.metrics.set_gauge("pipeline.active_runs", len(self._active_runs))

    def cancel(self, run_id: str) -> bool:
        """Request cooperative cancellation of an active run."""
        if run_id not in self._active_runs:
            return False
        self._cancel_requested.add(run_id)
        logger.info(f"Cancellation requested for run {run_id}")
        return True

    def is_cancelled(self, run_id: str) -> bool:
        return run_id in self._cancel_requested

    def _check_cancelled(self, run_id: str) -> None:
        if run_id in self._cancel_requested:
            raise GenerationCancelled(f"Run {run_id} was cancelled")

    def list_active_runs(self) -> List[GenerationRun]:
        return list(self._active_runs.values())

    def get_active_run(self, run_id: str) -> Optional[GenerationRun]:
        return self._active_runs.get(run_id)

    # -- diagnosis -------------------------------------------------------------

    def diagnose(self, assessment: QualityAssessment) -> Dict[GenerationPhase, List[QualityIssue]]:
        """Route issues to the phases that can fix them (by code, then category)."""
        routed: Dict[GenerationPhase, List[QualityIssue]] = {}
        for issue in assessment.issues:
            if issue.code in NON_ACTIONABLE:
                continue
            phase = ISSUE_ROUTES.get(issue.code or "") or CATEGORY_ROUTES.get(issue.category)
            if phase is None:
                continue
            routed.setdefault(phase, []).append(issue)
        return routed

    @staticmethod
    def merge_revisions(
        applied: Dict[GenerationPhase, List[QualityIssue]],
        diagnosis: Dict[GenerationPhase, List[QualityIssue]],
    ) -> Dict[GenerationPhase, List[QualityIssue]]:
        """Add newly diagnosed issues to the ones each phase already fixed.

        A phase that re-runs re-applies every fix it was asked for so far,
        so a later iteration cannot undo an earlier one.
        """
        merged = {phase: list(issues) for phase, issues in applied.items()}
        for phase, issues in diagnosis.items():
            known = {issue.code or issue.description for issue in merged.get(phase, [])}
            for issue in issues:
                key = issue.code or issue.description
                if key in known:
                    continue
                known.add(key)
                merged.setdefault(phase, []).append(issue)
        return merged

    @staticmethod
    def plan_regeneration(targets: Iterable[GenerationPhase]) -> List[GenerationPhase]:
        """Phases to re-run, in build order.

        A new layout needs new copy. It also re-runs images, since sections
        added by the layout (about, team, services) get their own image and
        existing images are kept. The code phase re-renders after any
        upstream change.
        """
        targets = set(targets)
        if GenerationPhase.LAYOUT in targets:
            targets.update({GenerationPhase.CONTENT, GenerationPhase.IMAGES})
        if targets:
            targets.add(GenerationPhase.CODE)
        return [phase for phase in BUILD_ORDER if phase in targets]

    # -- execution -----------------------------------------------------------------

    async def _run_phase(
        self,
        phase: GenerationPhase,
        context: GenerationContext,
        run: GenerationRun,
        on_progress: Optional[ProgressCallback],
        message: str,
    ) -> PhaseResult:
        self._check_cancelled(run.id)
        await self.report_progress(on_progress, PHASE_STEPS[phase], message)

        start = time.perf_counter()
        result = await self.phases[phase].execute(context)
        self.metrics.record_timing("pipeline.phase", time.perf_counter() - start, {"phase": phase.value})
        self.metrics.increment_counter(f"pipeline.phase.{result.status.value}", tags={"phase": phase.value})
        if result.metadata.get("used_backend"):
            self.metrics.increment_counter("llm.requests", tags={"backend": result.metadata["used_backend"]})
        run.phase_results.append(result)

        if result.status == PhaseStatus.FAILED:
            if phase in OPTIONAL_PHASES:
                context.errors.append(f"{phase.value} phase failed: {result.error}")
            else:
                raise RuntimeError(f"{phase.value} phase failed: {result.error}")
        return result

    async def run(self, run: GenerationRun, on_progress: Optional[ProgressCallback] = None) -> GenerationContext:
        """Execute the pipeline for a run, updating it in place.

        Raises:
            GenerationCancelled: If the run was cancelled between phases.
            RuntimeError: If a required phase fails.
        """
        run.status = PipelineStatus.RUNNING
        run.started_at = run.started_at or datetime.now()
        self.register(run)

        try:
            return await self._execute(run, on_progress)
        finally:
            self.release(run.id)

    async def _execute(self, run: GenerationRun, on_progress: Optional[ProgressCallback]) -> GenerationContext:
        brief = run.brief
        await self.report_progress(on_progress, 1, f"Starting generation for {brief.business_name}")
        self._check_cancelled(run.id)

        await self.report_progress(on_progress, 2, "Analyzing industry...")
        industry = resolve_industry(brief.business_name, brief.description, brief.industry_id)
        run.industry_id, run.industry_name = industry.id, industry.name
        logger.info(f"Run {run.id}: industry {industry.id} for {brief.business_name}")

        context = GenerationContext(run_id=run.id, brief=brief, industry=industry)

        messages = {
            GenerationPhase.LAYOUT: "Planning page layout...",
            GenerationPhase.STYLE: "Building the style system...",
            GenerationPhase.CONTENT: "Writing content...",
            GenerationPhase.IMAGES: "Generating images...",
            GenerationPhase.CODE: "Building website...",
        }
        for phase in BUILD_ORDER:
            await self._run_phase(phase, context, run, on_progress, messages[phase])

        best_rank = None
        best_site: Optional[GeneratedSite] = None
        best_images: List[GeneratedImage] = []
        previous_output = None

        while True:
            await self._run_phase(
                GenerationPhase.QUALITY, context, run, on_progress,
                f"Reviewing quality (iteration {context.iteration})...",
            )
            assessment = context.assessment
            run.assessments.append(assessment)
            run.iterations = context.iteration
            self.metrics.record_histogram("quality.average_score", assessment.average_score)

            rank = (assessment.meets_thresholds, assessment.average_score)
            if best_rank is None or rank > best_rank:
                best_rank = rank
                best_site, best_images = context.site, list(context.images)
                run.best_iteration = context.iteration

            if assessment.meets_thresholds:
                run.stop_reason = StopReason.THRESHOLD_MET
                break
            if context.iteration >= self.max_iterations:
                run.stop_reason = StopReason.MAX_ITERATIONS
                break

            diagnosis = self.diagnose(assessment)
            if not diagnosis:
                run.stop_reason = StopReason.NO_ACTIONABLE_ISSUES
                break

            if self.is_cancelled(run.id):
                run.stop_reason = StopReason.CANCELLED
                raise GenerationCancelled(f"Run {run.id} was cancelled")

            previous_output = (context.site.html, context.site.css)
            context.iteration += 1
            context.revisions = self.merge_revisions(context.revisions, diagnosis)
            plan = self.plan_regeneration(diagnosis)
            logger.info(
                f"Run {run.id}: iteration {context.iteration} regenerates {', '.join(p.value for p in plan)} "
                f"for {sum(len(issues) for issues in diagnosis.values())} issues"
            )
            for phase in plan:
                await self._run_phase(
                    phase, context, run, on_progress,
                    f"Revising {phase.value} (iteration {context.iteration})...",
                )

            if (context.site.html, context.site.css) == previous_output:
                logger.info(f"Run {run.id}: revision produced an identical site, stopping")
                run.stop_reason = StopReason.NO_CHANGE
                break

        context.revisions = {}
        context.site, context.images = best_site, best_images
        context.assessment = run.best_assessment
        run.site, run.images = best_site, best_images
        run.errors.extend(error for error in context.errors if error not in run.errors)

        logger.info(
            f"Run {run.id}: stopped after {run.iterations} iteration(s) ({run.stop_reason.value}), "
            f"best iteration {run.best_iteration} scored {context.assessment.average_score:.2f}"
        )
        return context

    async def get_metrics(self) -> Dict[str, Any]:
        """Engine counters for status reporting."""
        return {
            "active_runs": len(self._active_runs),
            "cancel_requested": len(self._cancel_requested),
            "phase_duration": self.metrics.get_histogram_stats("pipeline.phase.duration"),
            "quality_scores": self.metrics.get_histogram_stats("quality.average_score"),
        }
