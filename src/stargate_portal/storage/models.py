"""SQLAlchemy models for the storage layer."""

from datetime import datetime
from typing import Any, Dict

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
    inspect,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class RecordMixin:
    """Dictionary conversion shared by the row models.

    Columns named ``metadata_`` are exposed as ``metadata`` and datetimes are
    returned as datetime objects so pydantic can validate them directly.
    """

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        data = {}
        for attr in inspect(type(self)).column_attrs:
            key = attr.key
            data["metadata" if key == "metadata_" else key] = getattr(self, key)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        """Create model from dictionary, ignoring unknown keys."""
        data = dict(data)
        if "metadata" in data:
            data["metadata_"] = data.pop("metadata")

        for field in ("created_at", "updated_at", "started_at", "completed_at", "scheduled_at", "sent_at", "timestamp"):
            if isinstance(data.get(field), str):
                data[field] = datetime.fromisoformat(data[field])

        columns = {attr.key for attr in inspect(cls).column_attrs}
        return cls(**{key: value for key, value in data.items() if key in columns})


class ProjectModel(RecordMixin, Base):
    """SQLAlchemy model for website projects."""

    __tablename__ = "projects"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=True, index=True)
    name = Column(String, nullable=False)
    slug = Column(String, nullable=False, index=True)
    business_name = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    industry_id = Column(String, nullable=True)
    status = Column(String, nullable=False, default="draft")
    latest_run_id = Column(String, nullable=True)
    output_path = Column(String, nullable=True)
    preview_url = Column(String, nullable=True)
    settings = Column(JSON, default=dict)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)


class GenerationRunModel(RecordMixin, Base):
    """SQLAlchemy model for generation runs."""

    __tablename__ = "generation_runs"

    id = Column(String, primary_key=True)
    project_id = Column(String, ForeignKey("projects.id"), nullable=True, index=True)
    project_slug = Column(String, nullable=False)
    status = Column(String, nullable=False)
    industry_id = Column(String, nullable=True)
    industry_name = Column(String, nullable=True)
    iterations = Column(Integer, default=0)
    best_iteration = Column(Integer, nullable=True)
    stop_reason = Column(String, nullable=True)
    average_score = Column(Float, nullable=True)
    output_path = Column(String, nullable=True)
    preview_url = Column(String, nullable=True)
    brief = Column(JSON, nullable=False)
    assessments = Column(JSON, default=list)
    images = Column(JSON, default=list)
    errors = Column(JSON, default=list)
    created_at = Column(DateTime, default=datetime.now)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    metadata_ = Column("metadata", JSON, default=dict)

    # Relationships
    phase_results = relationship(
        "PhaseResultModel",
        back_populates="run",
        cascade="all, delete-orphan",
        order_by="PhaseResultModel.id",
    )


class PhaseResultModel(RecordMixin, Base):
    """SQLAlchemy model for phase results."""

    __tablename__ = "phase_results"

    id = Column(Integer, primary_key=True, autoincrement=True)
    run_id = Column(String, ForeignKey("generation_runs.id"), nullable=False)
    phase = Column(String, nullable=False)
    status = Column(String, nullable=False)
    iteration = Column(Integer, default=1)
    error = Column(Text, nullable=True)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    metadata_ = Column("metadata", JSON, default=dict)

    # Relationships
    run = relationship("GenerationRunModel", back_populates="phase_results")


class CompetitionModel(RecordMixin, Base):
    """SQLAlchemy model for design competitions."""

    __tablename__ = "competitions"

    id = Column(String, primary_key=True)
    project_id = Column(String, nullable=False, index=True)
    user_id = Column(String, nullable=True, index=True)
    status = Column(String, nullable=False)
    request = Column(JSON, nullable=False)
    designs = Column(JSON, default=list)
    winner = Column(String, nullable=True)
    errors = Column(JSON, default=list)
    created_at = Column(DateTime, default=datetime.now)
    completed_at = Column(DateTime, nullable=True)


class ProductModel(RecordMixin, Base):
    """SQLAlchemy model for store products."""

    __tablename__ = "products"

    id = Column(String, primary_key=True)
    project_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, default="")
    price = Column(Float, nullable=False)
    currency = Column(String, default="usd")
    category = Column(String, nullable=True)
    sku = Column(String, nullable=True)
    images = Column(JSON, default=list)
    inventory = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.now)


class OrderModel(RecordMixin, Base):
    """SQLAlchemy model for store orders."""

    __tablename__ = "orders"

    id = Column(String, primary_key=True)
    project_id = Column(String, nullable=False, index=True)
    user_id = Column(String, nullable=True)
    customer_email = Column(String, nullable=True)
    items = Column(JSON, default=list)
    currency = Column(String, default="usd")
    shipping_country = Column(String, default="US")
    subtotal = Column(Integer, default=0)
    shipping = Column(Integer, default=0)
    total = Column(Integer, default=0)
    status = Column(String, nullable=False, index=True)
    shipping_address = Column(JSON, default=dict)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now)


class CampaignModel(RecordMixin, Base):
    """SQLAlchemy model for email campaigns."""

    __tablename__ = "campaigns"

    id = Column(String, primary_key=True)
    project_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    subject = Column(String, default="")
    content = Column(Text, default="")
    audience = Column(String, nullable=True)
    status = Column(String, nullable=False)
    scheduled_at = Column(DateTime, nullable=True)
    sent_at = Column(DateTime, nullable=True)
    stats = Column(JSON, default=dict)
    created_at = Column(DateTime, default=datetime.now)


class TemplateModel(RecordMixin, Base):
    """SQLAlchemy model for the template library."""

    __tablename__ = "templates"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    industry_id = Column(String, nullable=True, index=True)
    blueprint_id = Column(String, nullable=True)
    description = Column(Text, default="")
    html = Column(Text, default="")
    css = Column(Text, default="")
    tags = Column(JSON, default=list)
    created_at = Column(DateTime, default=datetime.now)


class IntegrationModel(RecordMixin, Base):
    """SQLAlchemy model for per-project integrations."""

    __tablename__ = "integrations"

    id = Column(String, primary_key=True)
    project_id = Column(String, nullable=False, index=True)
    integration_id = Column(String, nullable=False)
    config = Column(JSON, default=dict)
    enabled = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.now)


class AnalyticsEventModel(RecordMixin, Base):
    """SQLAlchemy model for analytics events."""

    __tablename__ = "analytics_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(String, nullable=False, index=True)
    event_type = Column(String, nullable=False, index=True)
    page = Column(String, nullable=True)
    session_id = Column(String, nullable=True)
    properties = Column(JSON, default=dict)
    created_at = Column(DateTime, default=datetime.now, index=True)


class MetricModel(RecordMixin, Base):
    """SQLAlchemy model for metrics."""

    __tablename__ = "metrics"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False, index=True)
    value = Column(Float, nullable=False)
    timestamp = Column(DateTime, default=datetime.now)
    tags = Column(JSON, default=dict)
    metadata_ = Column("metadata", JSON, default=dict)
