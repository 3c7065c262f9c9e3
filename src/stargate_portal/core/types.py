"""Core types and enumerations for StargatePortal."""

from enum import Enum
from typing import Any, Dict, List, Optional
from datetime import datetime
from pydantic import BaseModel, Field
from dataclasses import dataclass, field


class PipelineStatus(str, Enum):
    """Enumeration of possible generation run statuses."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class PhaseStatus(str, Enum):
    """Enumeration of possible pipeline phase statuses."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class GenerationPhase(str, Enum):
    """Phases of the Merlin design pipeline, in canonical order."""
    LAYOUT = "layout"
    STYLE = "style"
    CONTENT = "content"
    IMAGES = "images"
    CODE = "code"
    QUALITY = "quality"


class LLMBackendType(str, Enum):
    """Enumeration of supported LLM backend types."""
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GEMINI = "gemini"


class LLMTaskType(str, Enum):
    """Kinds of LLM work, used to route prompts to a preferred backend."""
    COPYWRITING = "copywriting"
    LAYOUT = "layout"
    DESIGN = "design"
    CODE = "code"
    ANALYSIS = "analysis"


class Severity(str, Enum):
    """Severity of a quality issue."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Verdict(str, Enum):
    """Overall verdict of a quality assessment."""
    POOR = "Poor"
    OK = "OK"
    GOOD = "Good"
    EXCELLENT = "Excellent"
    WORLD_CLASS = "World-Class"


class QualityCategory(str, Enum):
    """Scored quality categories."""
    VISUAL_DESIGN = "visual_design"
    UX_STRUCTURE = "ux_structure"
    CONTENT_QUALITY = "content_quality"
    CONVERSION_TRUST = "conversion_trust"
    SEO_FOUNDATIONS = "seo_foundations"
    CREATIVITY = "creativity"

    @property
    def label(self) -> str:
        return CATEGORY_LABELS[self]


CATEGORY_LABELS = {
    QualityCategory.VISUAL_DESIGN: "Visual Design",
    QualityCategory.UX_STRUCTURE: "UX Structure",
    QualityCategory.CONTENT_QUALITY: "Content Quality",
    QualityCategory.CONVERSION_TRUST: "Conversion & Trust",
    QualityCategory.SEO_FOUNDATIONS: "SEO Foundations",
    QualityCategory.CREATIVITY: "Creativity",
}


class StopReason(str, Enum):
    """Why the quality feedback loop stopped."""
    THRESHOLD_MET = "threshold_met"
    MAX_ITERATIONS = "max_iterations"
    NO_ACTIONABLE_ISSUES = "no_actionable_issues"
    NO_CHANGE = "no_change"
    CANCELLED = "cancelled"


class ServiceItem(BaseModel):
    """A service offered by the business."""
    name: str
    description: str = ""


class BusinessBrief(BaseModel):
    """Intake information for a website generation request."""
    business_name: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    industry_id: Optional[str] = None
    tagline: Optional[str] = None
    services: List[ServiceItem] = Field(default_factory=list)
    location: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    generate_images: bool = True
    download_images: bool = False
    integrations: List[Dict[str, Any]] = Field(default_factory=list)


class FontPairing(BaseModel):
    heading: str
    body: str
    accent: Optional[str] = None


class IndustryDesign(BaseModel):
    color_scheme: str
    primary_color: str
    secondary_color: str
    accent_color: str
    background_color: str
    text_color: str
    fonts: FontPairing
    aesthetic: str
    hero_style: str
    border_radius: str
    shadows: str


class ImagePrompts(BaseModel):
    hero: str
    services: str
    about: str
    team: str
    background: Optional[str] = None
    style: str


class CopyGuidelines(BaseModel):
    tone: str
    power_words: List[str] = Field(default_factory=list)
    avoid_words: List[str] = Field(default_factory=list)
    cta_text: List[str] = Field(default_factory=list)
    tagline_style: str = ""


class IndustryProfile(BaseModel):
    """Industry "DNA": design, imagery and copy guidance for one industry."""
    id: str
    name: str
    keywords: List[str] = Field(default_factory=list)
    design: IndustryDesign
    images: ImagePrompts
    copy_guidelines: CopyGuidelines = Field(..., alias="copy")
    sections: List[str] = Field(default_factory=list)
    special_features: List[str] = Field(default_factory=list)
    taglines: List[str] = Field(default_factory=list)
    default_services: List[ServiceItem] = Field(default_factory=list)

    model_config = {"populate_by_name": True}


class SectionPlan(BaseModel):
    """One section of a planned page."""
    kind: str
    heading: str = ""


class LayoutPlan(BaseModel):
    """Ordered page sections produced by the layout phase."""
    blueprint_id: str
    hero_style: str = "split"
    sections: List[SectionPlan] = Field(default_factory=list)

    def kinds(self) -> List[str]:
        return [section.kind for section in self.sections]

    def has_section(self, kind: str) -> bool:
        return kind in self.kinds()


class StyleSystem(BaseModel):
    """Resolved palette and typography for a site."""
    palette_id: str = "industry"
    color_scheme: str = "light"
    primary: str
    secondary: str
    accent: str
    background: str
    text: str
    heading_font: str
    body_font: str
    accent_font: Optional[str] = None
    border_radius: str = "medium"
    shadows: str = "subtle"
    hero_style: str = "split"


class SectionContent(BaseModel):
    """Copy for a single page section."""
    kind: str
    heading: str
    subheading: str = ""
    body: str = ""
    items: List[Dict[str, str]] = Field(default_factory=list)
    cta_text: Optional[str] = None


class SiteContent(BaseModel):
    """All copy for a generated site."""
    business_name: str
    tagline: str
    description: str
    services: List[ServiceItem] = Field(default_factory=list)
    sections: List[SectionContent] = Field(default_factory=list)
    cta_primary: str = "Get Started"
    cta_secondary: str = "Learn More"
    seo_title: str = ""
    meta_description: str = ""
    keywords: List[str] = Field(default_factory=list)

    def section(self, kind: str) -> Optional[SectionContent]:
        for section in self.sections:
            if section.kind == kind:
                return section
        return None


class GeneratedImage(BaseModel):
    """An image produced (or substituted) for a page section."""
    section: str
    url: str
    prompt: str = ""
    alt: str = ""
    provider: str = "placeholder"
    placeholder: bool = False
    local_path: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class GeneratedSite(BaseModel):
    """Rendered website output."""
    html: str
    css: str
    pages: List[str] = Field(default_factory=lambda: ["index.html"])


class QualityScores(BaseModel):
    """Scores (0-10) for each quality category."""
    visual_design: float = 0.0
    ux_structure: float = 0.0
    content_quality: float = 0.0
    conversion_trust: float = 0.0
    seo_foundations: float = 0.0
    creativity: float = 0.0

    def as_dict(self) -> Dict[str, float]:
        return {category.value: getattr(self, category.value) for category in QualityCategory}

    @property
    def average(self) -> float:
        values = list(self.as_dict().values())
        return sum(values) / len(values)

    def all_at_least(self, threshold: float) -> bool:
        return all(value >= threshold for value in self.as_dict().values())


class QualityIssue(BaseModel):
    """A problem found while assessing a generated site."""
    category: QualityCategory
    severity: Severity
    description: str
    suggestion: str = ""
    location: Optional[str] = None
    code: Optional[str] = None


class QualityAssessment(BaseModel):
    """Result of scoring a generated site."""
    scores: QualityScores
    average_score: float
    verdict: Verdict
    issues: List[QualityIssue] = Field(default_factory=list)
    meets_thresholds: bool = False
    iteration: int = 1
    assessed_at: datetime = Field(default_factory=datetime.now)
    metadata: Dict[str, Any] = Field(default_factory=dict)


@dataclass
class PhaseResult:
    """Result of a single pipeline phase execution."""
    phase: GenerationPhase
    status: PhaseStatus
    iteration: int = 1
    output: Any = None
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class GenerationProgress:
    """Progress notification emitted while a run executes."""
    phase: int
    total_phases: int
    phase_name: str
    message: str
    progress: int


class GenerationContext(BaseModel):
    """Mutable state shared between phases during one generation run."""
    run_id: str
    brief: BusinessBrief
    industry: IndustryProfile
    iteration: int = 1
    layout: Optional[LayoutPlan] = None
    style: Optional[StyleSystem] = None
    content: Optional[SiteContent] = None
    images: List[GeneratedImage] = Field(default_factory=list)
    site: Optional[GeneratedSite] = None
    assessment: Optional[QualityAssessment] = None
    revisions: Dict[GenerationPhase, List[QualityIssue]] = Field(default_factory=dict)
    errors: List[str] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def revision_codes(self, phase: GenerationPhase) -> List[str]:
        """Issue codes the given phase has been asked to fix."""
        return [issue.code for issue in self.revisions.get(phase, []) if issue.code]

    def image_for(self, section: str) -> Optional[GeneratedImage]:
        for image in self.images:
            if image.section == section:
                return image
        return None


class GenerationRun(BaseModel):
    """A single website generation run."""
    id: str
    project_slug: str
    brief: BusinessBrief
    project_id: Optional[str] = None
    status: PipelineStatus = PipelineStatus.PENDING
    industry_id: Optional[str] = None
    industry_name: Optional[str] = None
    site: Optional[GeneratedSite] = None
    images: List[GeneratedImage] = Field(default_factory=list)
    assessments: List[QualityAssessment] = Field(default_factory=list)
    phase_results: List[PhaseResult] = Field(default_factory=list)
    iterations: int = 0
    best_iteration: Optional[int] = None
    stop_reason: Optional[StopReason] = None
    errors: List[str] = Field(default_factory=list)
    output_path: Optional[str] = None
    preview_url: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.now)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    model_config = {"arbitrary_types_allowed": True}

    @property
    def success(self) -> bool:
        return self.status == PipelineStatus.COMPLETED and not self.errors

    @property
    def best_assessment(self) -> Optional[QualityAssessment]:
        if self.best_iteration is None:
            return None
        for assessment in self.assessments:
            if assessment.iteration == self.best_iteration:
                return assessment
        return None

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def summary(self) -> Dict[str, Any]:
        """Compact JSON-ready view without the site source."""
        assessment = self.best_assessment
        return {
            "id": self.id,
            "project_id": self.project_id,
            "project_slug": self.project_slug,
            "business_name": self.brief.business_name,
            "status": self.status.value,
            "industry_id": self.industry_id,
            "iterations": self.iterations,
            "best_iteration": self.best_iteration,
            "stop_reason": self.stop_reason.value if self.stop_reason else None,
            "average_score": assessment.average_score if assessment else None,
            "verdict": assessment.verdict.value if assessment else None,
            "output_path": self.output_path,
            "preview_url": self.preview_url,
            "errors": list(self.errors),
            "created_at": self.created_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


class LLMResponse(BaseModel):
    """Standardized response from LLM backends."""
    content: str
    usage: Dict[str, Any] = Field(default_factory=dict)
    finish_reason: Optional[str] = None
    model: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class LLMMessage(BaseModel):
    """Represents a message in an LLM conversation."""
    role: str  # "system", "user", "assistant"
    content: str
    name: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ProjectStatus(str, Enum):
    """Lifecycle of a website project."""
    DRAFT = "draft"
    GENERATING = "generating"
    GENERATED = "generated"
    FAILED = "failed"


class Project(BaseModel):
    """A website project owned by a user."""
    id: str
    name: str
    slug: str
    user_id: Optional[str] = None
    business_name: Optional[str] = None
    description: Optional[str] = None
    industry_id: Optional[str] = None
    status: ProjectStatus = ProjectStatus.DRAFT
    latest_run_id: Optional[str] = None
    output_path: Optional[str] = None
    preview_url: Optional[str] = None
    settings: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)


class DesignPhilosophy(str, Enum):
    """Design philosophies of the competing agents."""
    MINIMALIST = "minimalist"
    BOLD = "bold"
    ELEGANT = "elegant"


class CompetitionStatus(str, Enum):
    """Status of a design competition."""
    GENERATING = "generating"
    COMPLETED = "completed"
    ERROR = "error"


class DesignRequest(BaseModel):
    """Input shared by every agent in a design competition."""
    project_id: str
    user_id: Optional[str] = None
    component_type: str = Field("hero section", min_length=1)
    business_name: Optional[str] = None
    industry: Optional[str] = None
    page_type: Optional[str] = None
    target_audience: Optional[str] = None
    brand_personality: Optional[str] = None
    requirements: List[str] = Field(default_factory=list)
    philosophies: Optional[List[DesignPhilosophy]] = None


class AgentDesign(BaseModel):
    """One agent's entry in a design competition."""
    agent_id: str
    agent_name: str
    philosophy: DesignPhilosophy
    html: str = ""
    css: str = ""
    reasoning: str = "No reasoning provided"
    design_choices: Dict[str, Any] = Field(default_factory=dict)
    confidence: float = 0.5
    generation_time: float = 0.0
    backend: Optional[str] = None


class Competition(BaseModel):
    """A design competition between the agent profiles."""
    id: str
    project_id: str
    user_id: Optional[str] = None
    request: DesignRequest
    status: CompetitionStatus = CompetitionStatus.GENERATING
    designs: List[AgentDesign] = Field(default_factory=list)
    winner: Optional[DesignPhilosophy] = None
    errors: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None

    def design_for(self, philosophy: DesignPhilosophy) -> Optional[AgentDesign]:
        for design in self.designs:
            if design.philosophy == philosophy:
                return design
        return None


class Product(BaseModel):
    """A catalog product; ``inventory`` of None means stock is not tracked."""
    id: str
    project_id: str
    name: str = Field(..., min_length=1)
    description: str = ""
    price: float = Field(..., ge=0)
    currency: str = "usd"
    category: Optional[str] = None
    sku: Optional[str] = None
    images: List[str] = Field(default_factory=list)
    inventory: Optional[int] = None
    created_at: datetime = Field(default_factory=datetime.now)


class OrderStatus(str, Enum):
    """Order lifecycle."""
    PENDING = "pending"
    PAID = "paid"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class OrderItem(BaseModel):
    """A line item; amounts are integer cents."""
    product_id: str
    name: str
    quantity: int = Field(..., gt=0)
    unit_amount: int
    total_amount: int


class Order(BaseModel):
    """A store order with amounts in cents."""
    id: str
    project_id: str
    user_id: Optional[str] = None
    customer_email: Optional[str] = None
    items: List[OrderItem] = Field(default_factory=list)
    currency: str = "usd"
    shipping_country: str = "US"
    subtotal: int = 0
    shipping: int = 0
    total: int = 0
    status: OrderStatus = OrderStatus.PENDING
    shipping_address: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)


class CampaignStatus(str, Enum):
    """Email campaign lifecycle."""
    DRAFT = "draft"
    SCHEDULED = "scheduled"
    SENT = "sent"


class Campaign(BaseModel):
    """An email marketing campaign."""
    id: str
    project_id: str
    name: str = Field(..., min_length=1)
    subject: str = ""
    content: str = ""
    audience: Optional[str] = None
    status: CampaignStatus = CampaignStatus.DRAFT
    scheduled_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    stats: Dict[str, int] = Field(default_factory=lambda: {"recipients": 0, "opens": 0, "clicks": 0})
    created_at: datetime = Field(default_factory=datetime.now)


class SiteTemplate(BaseModel):
    """A reusable site template in the template library."""
    id: str
    name: str = Field(..., min_length=1)
    industry_id: Optional[str] = None
    blueprint_id: Optional[str] = None
    description: str = ""
    html: str = ""
    css: str = ""
    tags: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.now)


class IntegrationConfig(BaseModel):
    """A third-party integration configured for a project."""
    id: str
    project_id: str
    integration_id: str
    config: Dict[str, Any] = Field(default_factory=dict)
    enabled: bool = True
    created_at: datetime = Field(default_factory=datetime.now)


class AnalyticsEvent(BaseModel):
    """A tracked visitor event on a generated site."""
    id: Optional[int] = None
    project_id: str
    event_type: str
    page: Optional[str] = None
    session_id: Optional[str] = None
    properties: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=datetime.now)
