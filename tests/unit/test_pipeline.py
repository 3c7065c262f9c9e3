"""Unit tests for the pipeline phases, renderer and engine."""

import json

import pytest
from unittest.mock import AsyncMock, MagicMock

from stargate_portal.core.types import (
    GeneratedImage,
    GenerationPhase,
    GenerationRun,
    LayoutPlan,
    LLMResponse,
    PhaseStatus,
    PipelineStatus,
    QualityAssessment,
    QualityCategory,
    QualityIssue,
    QualityScores,
    SectionPlan,
    Severity,
    StopReason,
    Verdict,
)
from stargate_portal.design import build_style_system, contrast_ratio, get_industry
from stargate_portal.images import ImageService
from stargate_portal.observability import MetricsCollector
from stargate_portal.pipeline import (
    PROGRESS_STEPS,
    TOTAL_PHASES,
    GenerationCancelled,
    PipelineEngine,
    SiteRenderer,
)
from stargate_portal.pipeline.phases import (
    CodePhase,
    ContentPhase,
    ImagePhase,
    LayoutPhase,
    QualityPhase,
    StylePhase,
    extract_json,
)


def json_llm(payload, backend="openai"):
    llm = MagicMock()
    llm.generate = AsyncMock(
        return_value=LLMResponse(content=json.dumps(payload), metadata={"used_backend": backend})
    )
    return llm


def issue(code, category=QualityCategory.UX_STRUCTURE, severity=Severity.MEDIUM):
    return QualityIssue(category=category, severity=severity, description=code, code=code)


def assessment_with(*issues):
    return QualityAssessment(
        scores=QualityScores(), average_score=5.0, verdict=Verdict.OK, issues=list(issues)
    )


def scored(average, *issues, meets=False):
    return QualityAssessment(
        scores=QualityScores(),
        average_score=average,
        verdict=Verdict.OK,
        issues=list(issues),
        meets_thresholds=meets,
    )


class ScriptedAssessor:
    """Hands out prepared assessments in order, repeating the last one."""

    def __init__(self, *assessments):
        self.queue = list(assessments)
        self.pages = []

    def assess(self, html, css="", industry=None, iteration=1):
        self.pages.append(html)
        assessment = self.queue.pop(0) if len(self.queue) > 1 else self.queue[0]
        return assessment.model_copy(update={"iteration": iteration})


async def build_context(context, llm=None):
    """Run the build phases with template output."""
    for phase in (LayoutPhase(llm), StylePhase(llm), ContentPhase(llm), ImagePhase(ImageService()), CodePhase(llm)):
        result = await phase.execute(context)
        assert result.status == PhaseStatus.COMPLETED
    return context


class TestExtractJson:
    """Test JSON extraction from LLM replies."""

    def test_plain_json(self):
        """Test a bare JSON object."""
        assert extract_json('{"a": 1}') == {"a": 1}

    def test_fenced_json(self):
        """Test JSON inside a Markdown fence."""
        assert extract_json('Here you go:\n```json\n{"a": 2}\n```') == {"a": 2}

    def test_json_in_prose(self):
        """Test JSON surrounded by prose."""
        assert extract_json('Sure! {"a": 3} Hope that helps.') == {"a": 3}

    def test_no_json(self):
        """Test replies without an object raise."""
        with pytest.raises(ValueError):
            extract_json("no json here")
        with pytest.raises(ValueError):
            extract_json("[1, 2, 3]")


class TestLayoutPhase:
    """Test layout planning."""

    @pytest.mark.asyncio
    async def test_template_layout(self, generation_context):
        """Test the blueprint is used without an LLM."""
        result = await LayoutPhase().execute(generation_context)

        kinds = generation_context.layout.kinds()
        assert result.status == PhaseStatus.COMPLETED
        assert result.metadata["source"] == "template"
        assert result.metadata["blueprint"] == "hospitality"
        assert kinds[0] == "hero"
        assert kinds[-1] == "footer"

    @pytest.mark.asyncio
    async def test_llm_layout(self, generation_context):
        """Test an LLM plan is validated and normalized."""
        llm = json_llm({
            "hero_style": "centered",
            "sections": [
                {"kind": "hero", "heading": "Welcome"},
                {"kind": "menu-preview", "heading": "Our Menu"},
                "about",
                {"kind": "testimonials", "heading": "Guests Love Us"},
                {"kind": "reservation", "heading": "Book a Table"},
                {"kind": "footer"},
            ],
        })
        result = await LayoutPhase(llm).execute(generation_context)

        plan = generation_context.layout
        assert result.metadata["source"] == "llm"
        assert result.metadata["used_backend"] == "openai"
        assert plan.hero_style == "centered"
        assert plan.kinds() == ["hero", "services", "about", "testimonials", "contact", "footer"]
        assert llm.generate.call_args.kwargs["options"]["task_type"] == "layout"

    @pytest.mark.asyncio
    async def test_llm_failure_uses_template(self, generation_context):
        """Test a failing LLM degrades to the blueprint."""
        llm = MagicMock()
        llm.generate = AsyncMock(side_effect=RuntimeError("No LLM backends are available"))

        result = await LayoutPhase(llm).execute(generation_context)
        assert result.status == PhaseStatus.COMPLETED
        assert result.metadata["source"] == "template"

    def test_apply_revisions(self):
        """Test structural fixes for reviewer codes."""
        plan = LayoutPlan(
            blueprint_id="x",
            sections=[SectionPlan(kind="hero"), SectionPlan(kind="services"), SectionPlan(kind="footer")],
        )
        revised = LayoutPhase.apply_revisions(plan, ["missing_testimonials", "missing_contact_section"])
        assert revised.has_section("testimonials")
        assert revised.kinds()[-3:] == ["cta", "contact", "footer"]

        expanded = LayoutPhase.apply_revisions(plan, ["too_few_sections"])
        content_sections = [kind for kind in expanded.kinds() if kind not in ("hero", "footer")]
        assert len(content_sections) >= 5
        assert "contact" in content_sections

    def test_trust_signals_revision(self):
        """Test missing trust signals add a stats section once."""
        plan = LayoutPlan(
            blueprint_id="x",
            sections=[SectionPlan(kind="hero"), SectionPlan(kind="about"), SectionPlan(kind="footer")],
        )
        revised = LayoutPhase.apply_revisions(plan, ["missing_trust_signals"])
        assert revised.kinds() == ["hero", "about", "stats", "footer"]
        assert LayoutPhase.apply_revisions(revised, ["missing_trust_signals"]).kinds() == revised.kinds()


class TestStylePhase:
    """Test the style system phase."""

    def test_apply_proposal(self):
        """Test only valid hex colors are taken."""
        style = build_style_system(get_industry("restaurant"))
        updated = StylePhase._apply_proposal(style, {"primary": "#aa3300", "text": "red", "typography": "nope"})
        assert updated.primary == "#AA3300"
        assert updated.text == style.text
        assert updated.palette_id == "custom"

    def test_apply_proposal_without_tokens(self):
        """Test a proposal with nothing usable raises."""
        style = build_style_system(get_industry("restaurant"))
        with pytest.raises(ValueError):
            StylePhase._apply_proposal(style, {"primary": "blue"})

    def test_low_contrast_revision(self, generation_context):
        """Test low contrast text is fixed."""
        style = build_style_system(get_industry("restaurant")).model_copy(
            update={"text": "#EEEEEE", "background": "#FFFFFF"}
        )

        fixed = StylePhase.apply_revisions(generation_context, style, ["low_contrast"])
        assert contrast_ratio(fixed.text, fixed.background) >= 4.5

    @pytest.mark.asyncio
    async def test_llm_style(self, generation_context):
        """Test an LLM palette is applied."""
        llm = json_llm({"primary": "#123456", "secondary": "#654321"}, backend="gemini")
        result = await StylePhase(llm).execute(generation_context)
        assert generation_context.style.primary == "#123456"
        assert result.metadata["used_backend"] == "gemini"


class TestContentAndImages:
    """Test content and image phases."""

    @pytest.mark.asyncio
    async def test_content_requires_layout(self, generation_context):
        """Test content without a layout fails the phase."""
        result = await ContentPhase().execute(generation_context)
        assert result.status == PhaseStatus.FAILED
        assert "layout" in result.error

    @pytest.mark.asyncio
    async def test_template_content(self, generation_context):
        """Test template copy covers every planned section."""
        await LayoutPhase().execute(generation_context)
        await ContentPhase().execute(generation_context)

        content = generation_context.content
        assert content.business_name == "Bella Cucina"
        assert [s.name for s in content.services] == ["Dine In", "Catering"]
        planned = [kind for kind in generation_context.layout.kinds() if kind != "footer"]
        assert [section.kind for section in content.sections] == planned
        assert content.seo_title
        assert content.meta_description

    @pytest.mark.asyncio
    async def test_images_are_placeholders(self, generation_context):
        """Test images fall back to placeholders with alt text."""
        await LayoutPhase().execute(generation_context)
        await StylePhase().execute(generation_context)
        await ContentPhase().execute(generation_context)
        await ImagePhase(ImageService()).execute(generation_context)

        images = generation_context.images
        assert images[0].section == "hero"
        assert all(image.placeholder for image in images)
        assert all(image.alt for image in images)

    def test_image_sections(self, generation_context):
        """Test hero always gets an image."""
        assert ImagePhase.image_sections(generation_context) == ["hero"]
        generation_context.layout = LayoutPlan(
            blueprint_id="x", sections=[SectionPlan(kind="hero"), SectionPlan(kind="about")]
        )
        assert ImagePhase.image_sections(generation_context) == ["hero", "about"]

    def test_fill_alt_text(self, generation_context):
        """Test empty alt text is filled and existing alt text kept."""
        images = ImagePhase.fill_alt_text(generation_context, [
            GeneratedImage(section="services", url="u1"),
            GeneratedImage(section="about", url="u2", alt="Chef at work"),
        ])
        assert images[0].alt == "Services offered by Bella Cucina"
        assert images[1].alt == "Chef at work"

    @pytest.mark.asyncio
    async def test_alt_text_revision_fills_new_sections(self, generation_context):
        """Test an alt text fix still adds images for sections added since."""
        await build_context(generation_context)
        generation_context.images = [generation_context.image_for("hero")]
        generation_context.revisions = {GenerationPhase.IMAGES: [issue("missing_alt_text")]}

        result = await ImagePhase(ImageService()).execute(generation_context)

        assert result.metadata["source"] != "revision"
        sections = [image.section for image in generation_context.images]
        assert sections == ImagePhase.image_sections(generation_context)
        assert "about" in sections


class TestCodePhaseAndRenderer:
    """Test site rendering."""

    def test_validate_custom_css(self):
        """Test custom CSS checks."""
        assert CodePhase.validate_custom_css(" .card:hover { transform: translateY(-2px); } ") == (
            ".card:hover { transform: translateY(-2px); }"
        )
        for bad in ("", "@import url(x.css);", ".a { b: c;", "</style><script>", 42):
            with pytest.raises(ValueError):
                CodePhase.validate_custom_css(bad)

    @pytest.mark.asyncio
    async def test_code_requires_artifacts(self, generation_context):
        """Test rendering needs layout, style and content."""
        result = await CodePhase().execute(generation_context)
        assert result.status == PhaseStatus.FAILED

    @pytest.mark.asyncio
    async def test_rendered_site(self, generation_context):
        """Test the rendered page structure."""
        context = await build_context(generation_context)
        html, css = context.site.html, context.site.css

        assert html.startswith("<!DOCTYPE html>")
        assert '<nav class="nav container"' in html
        assert html.count("<h1>") == 1
        assert 'id="hero"' in html
        assert "application/ld+json" in html
        assert "Bella Cucina" in html
        assert css.startswith(":root {")

    @pytest.mark.asyncio
    async def test_integrations_injected(self, generation_context):
        """Test brief integrations end up in the page."""
        generation_context.brief.integrations = [{"id": "plausible", "config": {"domain": "bellacucina.example"}}]
        context = await build_context(generation_context)
        assert 'data-domain="bellacucina.example"' in context.site.html

    @pytest.mark.asyncio
    async def test_custom_css_appended(self, generation_context):
        """Test LLM CSS is appended to the stylesheet."""
        llm = json_llm({"css": ".card:hover { transform: scale(1.02); }"})
        await LayoutPhase().execute(generation_context)
        await StylePhase().execute(generation_context)
        await ContentPhase().execute(generation_context)
        result = await CodePhase(llm).execute(generation_context)

        assert result.metadata["source"] == "llm"
        assert ".card:hover { transform: scale(1.02); }" in generation_context.site.css

    def test_renderer_fonts_url(self):
        """Test the Google Fonts link."""
        style = build_style_system(get_industry("legal"))
        url = SiteRenderer.fonts_url(style)
        assert url is None or url.startswith("https://fonts.googleapis.com/css2?")

    @pytest.mark.asyncio
    async def test_quality_phase(self, generation_context):
        """Test the quality phase scores the rendered site."""
        context = await build_context(generation_context)
        result = await QualityPhase().execute(context)

        assert result.status == PhaseStatus.COMPLETED
        codes = {issue.code for issue in context.assessment.issues}
        assert "missing_navigation" not in codes
        assert "missing_h1" not in codes
        assert "missing_viewport" not in codes

    @pytest.mark.asyncio
    async def test_quality_requires_site(self, generation_context):
        """Test the quality phase fails without a site."""
        result = await QualityPhase().execute(generation_context)
        assert result.status == PhaseStatus.FAILED


class TestPipelineEngine:
    """Test the engine and its feedback loop."""

    def test_progress_steps(self):
        """Test the progress table."""
        assert TOTAL_PHASES == 9
        assert PROGRESS_STEPS[0] == ("Initialization", 5)
        assert PROGRESS_STEPS[-1] == ("Saving Files", 95)

    def test_diagnose_routes_issues(self):
        """Test issues route by code, then category."""
        engine = PipelineEngine(metrics=MetricsCollector())
        diagnosis = engine.diagnose(assessment_with(
            issue("missing_testimonials"),
            issue("low_contrast", QualityCategory.VISUAL_DESIGN),
            issue("missing_contact_info", QualityCategory.CONVERSION_TRUST),
            issue("low_creativity", QualityCategory.CREATIVITY),
        ))

        assert [i.code for i in diagnosis[GenerationPhase.LAYOUT]] == ["missing_testimonials"]
        assert [i.code for i in diagnosis[GenerationPhase.STYLE]] == ["low_contrast"]
        assert [i.code for i in diagnosis[GenerationPhase.CODE]] == ["low_creativity"]
        assert GenerationPhase.CONTENT not in diagnosis

    def test_plan_regeneration(self):
        """Test downstream phases are added in build order."""
        assert PipelineEngine.plan_regeneration([GenerationPhase.LAYOUT]) == [
            GenerationPhase.LAYOUT, GenerationPhase.CONTENT, GenerationPhase.IMAGES, GenerationPhase.CODE,
        ]
        assert PipelineEngine.plan_regeneration([GenerationPhase.STYLE]) == [
            GenerationPhase.STYLE, GenerationPhase.CODE,
        ]
        assert PipelineEngine.plan_regeneration([]) == []

    def test_cancel_unknown_run(self):
        """Test cancelling a run that is not active."""
        assert PipelineEngine(metrics=MetricsCollector()).cancel("missing") is False

    @pytest.mark.asyncio
    async def test_full_run(self, sample_brief, mock_llm_backend):
        """Test a template-only run through the feedback loop."""
        engine = PipelineEngine(
            llm_backend=mock_llm_backend,
            image_service=ImageService(),
            max_iterations=3,
            metrics=MetricsCollector(),
        )
        run = GenerationRun(id="run-1", project_slug="bella-cucina", brief=sample_brief)
        events = []

        context = await engine.run(run, on_progress=events.append)

        assert run.industry_id == "restaurant"
        assert 1 <= run.iterations <= 3
        assert run.stop_reason in set(StopReason)
        assert run.stop_reason != StopReason.CANCELLED
        assert run.best_assessment is not None
        assert run.site is context.site
        assert run.site.html
        assert events[0].phase == 1
        assert all(event.total_phases == TOTAL_PHASES for event in events)
        assert engine.list_active_runs() == []

    @pytest.mark.asyncio
    async def test_best_iteration_kept(self, sample_brief, mock_llm_backend):
        """Test the best-scoring iteration is the one returned."""
        engine = PipelineEngine(llm_backend=mock_llm_backend, max_iterations=3, metrics=MetricsCollector())
        run = GenerationRun(id="run-2", project_slug="bella-cucina", brief=sample_brief)

        await engine.run(run)

        best = max(a.average_score for a in run.assessments if a.meets_thresholds == run.best_assessment.meets_thresholds)
        assert run.best_assessment.average_score == best

    @pytest.mark.asyncio
    async def test_progress_callback_errors_swallowed(self, sample_brief, mock_llm_backend):
        """Test a failing progress callback does not fail the run."""
        engine = PipelineEngine(llm_backend=mock_llm_backend, max_iterations=1, metrics=MetricsCollector())
        run = GenerationRun(id="run-3", project_slug="bella-cucina", brief=sample_brief)

        def broken(event):
            raise RuntimeError("socket closed")

        await engine.run(run, on_progress=broken)
        assert run.stop_reason in (StopReason.THRESHOLD_MET, StopReason.MAX_ITERATIONS)
        assert run.status == PipelineStatus.RUNNING


class TestFeedbackLoop:
    """Test the quality feedback loop with prepared assessments."""

    @staticmethod
    def make_engine(assessor, max_iterations=5):
        return PipelineEngine(
            llm_backend=None,
            image_service=ImageService(),
            assessor=assessor,
            max_iterations=max_iterations,
            metrics=MetricsCollector(),
        )

    @staticmethod
    def results_for(run, phase):
        return [result for result in run.phase_results if result.phase == phase]

    def test_merge_revisions(self):
        """Test newly diagnosed issues add to the ones already applied."""
        applied = {GenerationPhase.LAYOUT: [issue("missing_trust_signals")]}
        diagnosis = {
            GenerationPhase.LAYOUT: [issue("missing_trust_signals"), issue("too_few_sections")],
            GenerationPhase.STYLE: [issue("flat_palette", QualityCategory.VISUAL_DESIGN)],
        }

        merged = PipelineEngine.merge_revisions(applied, diagnosis)

        assert [i.code for i in merged[GenerationPhase.LAYOUT]] == ["missing_trust_signals", "too_few_sections"]
        assert [i.code for i in merged[GenerationPhase.STYLE]] == ["flat_palette"]
        assert [i.code for i in applied[GenerationPhase.LAYOUT]] == ["missing_trust_signals"]

    @pytest.mark.asyncio
    async def test_threshold_met_on_revision(self, sample_brief):
        """Test the loop stops once a revised site meets the thresholds."""
        assessor = ScriptedAssessor(
            scored(6.0, issue("missing_trust_signals")),
            scored(8.5, meets=True),
        )
        engine = self.make_engine(assessor)
        run = GenerationRun(id="loop-1", project_slug="bella-cucina", brief=sample_brief)

        context = await engine.run(run)

        assert run.stop_reason == StopReason.THRESHOLD_MET
        assert run.iterations == 2
        assert run.best_iteration == 2
        assert 'id="stats"' in context.site.html
        assert 'id="stats"' not in assessor.pages[0]
        assert context.revisions == {}

    @pytest.mark.asyncio
    async def test_targeted_phases_rerun_with_codes(self, sample_brief):
        """Test only the diagnosed phase and its downstream phases re-run."""
        assessor = ScriptedAssessor(
            scored(6.0, issue("missing_trust_signals")),
            scored(8.5, meets=True),
        )
        engine = self.make_engine(assessor)
        run = GenerationRun(id="loop-2", project_slug="bella-cucina", brief=sample_brief)

        await engine.run(run)

        second_pass = [result.phase for result in run.phase_results if result.iteration == 2]
        assert second_pass == [
            GenerationPhase.LAYOUT, GenerationPhase.CONTENT, GenerationPhase.IMAGES,
            GenerationPhase.CODE, GenerationPhase.QUALITY,
        ]
        assert len(self.results_for(run, GenerationPhase.STYLE)) == 1
        assert self.results_for(run, GenerationPhase.LAYOUT)[-1].metadata["revisions"] == ["missing_trust_signals"]

    @pytest.mark.asyncio
    async def test_earlier_fixes_kept_and_no_change(self, sample_brief):
        """Test a re-run phase keeps earlier fixes and an unchanged site stops the loop."""
        assessor = ScriptedAssessor(
            scored(6.0, issue("missing_trust_signals")),
            scored(7.0, issue("too_few_sections")),
        )
        engine = self.make_engine(assessor)
        run = GenerationRun(id="loop-3", project_slug="bella-cucina", brief=sample_brief)

        context = await engine.run(run)

        assert run.stop_reason == StopReason.NO_CHANGE
        assert len(run.assessments) == 2
        last_layout = self.results_for(run, GenerationPhase.LAYOUT)[-1]
        assert last_layout.iteration == 3
        assert last_layout.metadata["revisions"] == ["missing_trust_signals", "too_few_sections"]
        assert "stats" in last_layout.metadata["sections"]
        assert run.best_iteration == 2
        assert 'id="stats"' in context.site.html

    @pytest.mark.asyncio
    async def test_no_actionable_issues(self, sample_brief):
        """Test issues only the brief can fix stop the loop without re-running phases."""
        assessor = ScriptedAssessor(
            scored(6.0, issue("missing_contact_info", QualityCategory.CONVERSION_TRUST)),
        )
        engine = self.make_engine(assessor)
        run = GenerationRun(id="loop-4", project_slug="bella-cucina", brief=sample_brief)

        await engine.run(run)

        assert run.stop_reason == StopReason.NO_ACTIONABLE_ISSUES
        assert run.iterations == 1
        assert len(run.phase_results) == 6
        assert len(assessor.pages) == 1

    @pytest.mark.asyncio
    async def test_max_iterations_restores_best(self, sample_brief):
        """Test the better earlier iteration is kept when a revision scores worse."""
        assessor = ScriptedAssessor(
            scored(7.0, issue("missing_trust_signals")),
            scored(5.0, issue("missing_testimonials")),
        )
        engine = self.make_engine(assessor, max_iterations=2)
        run = GenerationRun(id="loop-5", project_slug="bella-cucina", brief=sample_brief)

        context = await engine.run(run)

        assert run.stop_reason == StopReason.MAX_ITERATIONS
        assert [a.average_score for a in run.assessments] == [7.0, 5.0]
        assert run.best_iteration == 1
        assert run.best_assessment.average_score == 7.0
        assert context.assessment.average_score == 7.0
        assert run.site.html == assessor.pages[0]
        assert 'id="stats"' not in run.site.html
        assert 'id="stats"' in assessor.pages[1]

    @pytest.mark.asyncio
    async def test_cancel_during_review(self, sample_brief):
        """Test a cancel requested during the review stops before revising."""
        assessor = ScriptedAssessor(scored(6.0, issue("missing_trust_signals")))
        engine = self.make_engine(assessor)
        run = GenerationRun(id="loop-6", project_slug="bella-cucina", brief=sample_brief)

        def cancel_on_review(event):
            if event.message.startswith("Reviewing quality"):
                engine.cancel(run.id)

        with pytest.raises(GenerationCancelled):
            await engine.run(run, on_progress=cancel_on_review)

        assert run.stop_reason == StopReason.CANCELLED
        assert len(assessor.pages) == 1
        assert not [result for result in run.phase_results if result.iteration == 2]
        assert engine.list_active_runs() == []
        assert engine.is_cancelled(run.id) is False

    @pytest.mark.asyncio
    async def test_cancel_between_phases(self, sample_brief):
        """Test a cancel requested while writing content stops before images."""
        assessor = ScriptedAssessor(scored(6.0))
        engine = self.make_engine(assessor)
        run = GenerationRun(id="loop-7", project_slug="bella-cucina", brief=sample_brief)

        def cancel_on_content(event):
            if event.message == "Writing content...":
                engine.cancel(run.id)

        with pytest.raises(GenerationCancelled):
            await engine.run(run, on_progress=cancel_on_content)

        assert [result.phase for result in run.phase_results] == [
            GenerationPhase.LAYOUT, GenerationPhase.STYLE, GenerationPhase.CONTENT,
        ]
        assert assessor.pages == []
