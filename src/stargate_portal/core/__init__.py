"""Core module for StargatePortal.

This module contains the fundamental building blocks of the system including
the pipeline value types and the interfaces for phases, backends and storage.
"""

from .types import (
    PipelineStatus,
    PhaseStatus,
    GenerationPhase,
    LLMBackendType,
    LLMTaskType,
    Severity,
    Verdict,
    QualityCategory,
    StopReason,
    ServiceItem,
    BusinessBrief,
    IndustryProfile,
    SectionPlan,
    LayoutPlan,
    StyleSystem,
    SectionContent,
    SiteContent,
    GeneratedImage,
    GeneratedSite,
    QualityScores,
    QualityIssue,
    QualityAssessment,
    PhaseResult,
    GenerationProgress,
    GenerationContext,
    GenerationRun,
    LLMResponse,
    LLMMessage,
    ProjectStatus,
    Project,
    DesignPhilosophy,
    CompetitionStatus,
    DesignRequest,
    AgentDesign,
    Competition,
    Product,
    OrderStatus,
    OrderItem,
    Order,
    CampaignStatus,
    Campaign,
    SiteTemplate,
    IntegrationConfig,
    AnalyticsEvent,
)

from .interfaces import (
    PhaseInterface,
    LLMBackendInterface,
    ImageBackendInterface,
    StorageBackendInterface,
    ConfigInterface,
    GeneratorInterface,
)

__all__ = [
    # Types
    "PipelineStatus",
    "PhaseStatus",
    "GenerationPhase",
    "LLMBackendType",
    "LLMTaskType",
    "Severity",
    "Verdict",
    "QualityCategory",
    "StopReason",
    "ServiceItem",
    "BusinessBrief",
    "IndustryProfile",
    "SectionPlan",
    "LayoutPlan",
    "StyleSystem",
    "SectionContent",
    "SiteContent",
    "GeneratedImage",
    "GeneratedSite",
    "QualityScores",
    "QualityIssue",
    "QualityAssessment",
    "PhaseResult",
    "GenerationProgress",
    "GenerationContext",
    "GenerationRun",
    "LLMResponse",
    "LLMMessage",
    "ProjectStatus",
    "Project",
    "DesignPhilosophy",
    "CompetitionStatus",
    "DesignRequest",
    "AgentDesign",
    "Competition",
    "Product",
    "OrderStatus",
    "OrderItem",
    "Order",
    "CampaignStatus",
    "Campaign",
    "SiteTemplate",
    "IntegrationConfig",
    "AnalyticsEvent",

    # Interfaces
    "PhaseInterface",
    "LLMBackendInterface",
    "ImageBackendInterface",
    "StorageBackendInterface",
    "ConfigInterface",
    "GeneratorInterface",
]
