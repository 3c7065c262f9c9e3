"""Unit tests for core types."""

from datetime import datetime, timedelta

import pytest
from pydantic import ValidationError

from stargate_portal.core.types import (
    BusinessBrief,
    Campaign,
    Competition,
    AgentDesign,
    DesignPhilosophy,
    DesignRequest,
    GenerationContext,
    GenerationPhase,
    GenerationRun,
    GeneratedImage,
    PhaseResult,
    PhaseStatus,
    PipelineStatus,
    Product,
    Project,
    ProjectStatus,
    QualityAssessment,
    QualityCategory,
    QualityIssue,
    QualityScores,
    Severity,
    StopReason,
    Verdict,
)


class TestEnums:
    """Test enumeration types."""

    def test_pipeline_status_values(self):
        """Test PipelineStatus enum values."""
        assert PipelineStatus.PENDING.value == "pending"
        assert PipelineStatus.RUNNING.value == "running"
        assert PipelineStatus.COMPLETED.value == "completed"
        assert PipelineStatus.FAILED.value == "failed"
        assert PipelineStatus.CANCELLED.value == "cancelled"

    def test_generation_phase_order(self):
        """Test the phases are declared in pipeline order."""
        assert [phase.value for phase in GenerationPhase] == [
            "layout", "style", "content", "images", "code", "quality",
        ]

    def test_quality_category_labels(self):
        """Test every category has a display label."""
        assert len(list(QualityCategory)) == 6
        assert QualityCategory.CONVERSION_TRUST.label == "Conversion & Trust"
        assert all(category.label for category in QualityCategory)

    def test_verdict_values(self):
        """Test verdict display values."""
        assert Verdict.WORLD_CLASS.value == "World-Class"
        assert Verdict.POOR.value == "Poor"


class TestBusinessBrief:
    """Test BusinessBrief model."""

    def test_brief_defaults(self):
        """Test brief creation with defaults."""
        brief = BusinessBrief(business_name="Acme", description="Widgets")
        assert brief.services == []
        assert brief.generate_images is True
        assert brief.download_images is False
        assert brief.industry_id is None

    def test_brief_requires_name(self):
        """Test that an empty business name is rejected."""
        with pytest.raises(ValidationError):
            BusinessBrief(business_name="", description="Widgets")

    def test_brief_requires_description(self):
        """Test that description is required."""
        with pytest.raises(ValidationError):
            BusinessBrief(business_name="Acme")


class TestQualityModels:
    """Test quality scoring models."""

    def test_scores_average(self):
        """Test average over the six categories."""
        scores = QualityScores(
            visual_design=6, ux_structure=6, content_quality=9,
            conversion_trust=9, seo_foundations=6, creativity=9,
        )
        assert scores.average == 7.5
        assert set(scores.as_dict()) == {category.value for category in QualityCategory}

    def test_scores_all_at_least(self):
        """Test per-category threshold check."""
        scores = QualityScores(
            visual_design=8, ux_structure=8, content_quality=8,
            conversion_trust=8, seo_foundations=8, creativity=7,
        )
        assert scores.all_at_least(7.0) is True
        assert scores.all_at_least(7.5) is False

    def test_assessment_defaults(self):
        """Test assessment default fields."""
        assessment = QualityAssessment(
            scores=QualityScores(), average_score=0.0, verdict=Verdict.POOR
        )
        assert assessment.issues == []
        assert assessment.meets_thresholds is False
        assert assessment.iteration == 1
        assert isinstance(assessment.assessed_at, datetime)

    def test_issue_enums_coerced(self):
        """Test issue fields accept raw enum values."""
        issue = QualityIssue(
            category="seo_foundations", severity="high", description="Missing title"
        )
        assert issue.category == QualityCategory.SEO_FOUNDATIONS
        assert issue.severity == Severity.HIGH
        assert issue.code is None


class TestGenerationContext:
    """Test GenerationContext helpers."""

    def test_revision_codes(self, generation_context):
        """Test collecting issue codes routed to one phase."""
        generation_context.revisions[GenerationPhase.CONTENT] = [
            QualityIssue(
                category=QualityCategory.CONTENT_QUALITY,
                severity=Severity.MEDIUM,
                description="Thin copy",
                code="thin_content",
            ),
            QualityIssue(
                category=QualityCategory.CONTENT_QUALITY,
                severity=Severity.LOW,
                description="No code",
            ),
        ]
        assert generation_context.revision_codes(GenerationPhase.CONTENT) == ["thin_content"]
        assert generation_context.revision_codes(GenerationPhase.LAYOUT) == []

    def test_image_for(self, generation_context):
        """Test image lookup by section."""
        generation_context.images = [
            GeneratedImage(section="hero", url="https://img.example/hero.png"),
        ]
        assert generation_context.image_for("hero").url == "https://img.example/hero.png"
        assert generation_context.image_for("about") is None


class TestGenerationRun:
    """Test GenerationRun model."""

    def _run(self, sample_brief, **kwargs):
        return GenerationRun(id="run-1", project_slug="bella-cucina", brief=sample_brief, **kwargs)

    def test_run_defaults(self, sample_brief):
        """Test run creation with defaults."""
        run = self._run(sample_brief)
        assert run.status == PipelineStatus.PENDING
        assert run.iterations == 0
        assert run.success is False
        assert run.best_assessment is None
        assert run.duration_seconds is None

    def test_run_success(self, sample_brief):
        """Test success requires completion without errors."""
        run = self._run(sample_brief, status=PipelineStatus.COMPLETED)
        assert run.success is True

        run.errors.append("image provider failed")
        assert run.success is False

    def test_best_assessment(self, sample_brief):
        """Test best assessment follows best_iteration."""
        first = QualityAssessment(
            scores=QualityScores(), average_score=5.0, verdict=Verdict.OK, iteration=1
        )
        second = QualityAssessment(
            scores=QualityScores(), average_score=7.0, verdict=Verdict.GOOD, iteration=2
        )
        run = self._run(sample_brief, assessments=[first, second], best_iteration=2)
        assert run.best_assessment is second

    def test_duration(self, sample_brief):
        """Test duration from start and completion times."""
        started = datetime(2024, 1, 1, 12, 0, 0)
        run = self._run(
            sample_brief, started_at=started, completed_at=started + timedelta(seconds=42)
        )
        assert run.duration_seconds == 42.0

    def test_summary(self, sample_brief):
        """Test the compact summary view."""
        run = self._run(
            sample_brief,
            status=PipelineStatus.COMPLETED,
            stop_reason=StopReason.THRESHOLD_MET,
            iterations=2,
        )
        summary = run.summary()
        assert summary["id"] == "run-1"
        assert summary["business_name"] == "Bella Cucina"
        assert summary["status"] == "completed"
        assert summary["stop_reason"] == "threshold_met"
        assert summary["average_score"] is None
        assert summary["completed_at"] is None

    def test_phase_results(self, sample_brief):
        """Test phase results are kept on the run."""
        result = PhaseResult(phase=GenerationPhase.LAYOUT, status=PhaseStatus.COMPLETED)
        run = self._run(sample_brief, phase_results=[result])
        assert run.phase_results[0].phase == GenerationPhase.LAYOUT
        assert run.phase_results[0].iteration == 1


class TestDomainModels:
    """Test project, competition and store models."""

    def test_project_defaults(self):
        """Test project defaults."""
        project = Project(id="p1", name="Bella Cucina", slug="bella-cucina")
        assert project.status == ProjectStatus.DRAFT
        assert project.latest_run_id is None
        assert project.settings == {}

    def test_design_request_defaults(self):
        """Test design request defaults."""
        request = DesignRequest(project_id="p1")
        assert request.component_type == "hero section"
        assert request.philosophies is None

    def test_competition_design_for(self):
        """Test design lookup by philosophy."""
        design = AgentDesign(
            agent_id="agent-bold", agent_name="Bold Innovator", philosophy=DesignPhilosophy.BOLD
        )
        competition = Competition(
            id="c1", project_id="p1", request=DesignRequest(project_id="p1"), designs=[design]
        )
        assert competition.design_for(DesignPhilosophy.BOLD) is design
        assert competition.design_for(DesignPhilosophy.ELEGANT) is None

    def test_product_price_validation(self):
        """Test negative prices are rejected."""
        with pytest.raises(ValidationError):
            Product(id="x", project_id="p1", name="Mug", price=-1)

        product = Product(id="x", project_id="p1", name="Mug", price=12.5)
        assert product.inventory is None

    def test_campaign_default_stats(self):
        """Test campaign stats start at zero."""
        campaign = Campaign(id="c1", project_id="p1", name="Launch")
        assert campaign.stats == {"recipients": 0, "opens": 0, "clicks": 0}
