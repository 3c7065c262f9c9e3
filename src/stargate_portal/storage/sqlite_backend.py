"""SQLite storage backend implementation using SQLAlchemy."""

import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional, Type

from sqlalchemy import delete, desc, func
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload, sessionmaker

from ..core.interfaces import StorageBackendInterface
from ..core.types import (
    AnalyticsEvent,
    Campaign,
    Competition,
    GenerationPhase,
    GenerationRun,
    IntegrationConfig,
    Order,
    PhaseResult,
    PhaseStatus,
    Product,
    Project,
    SiteTemplate,
)
from .models import (
    AnalyticsEventModel,
    Base,
    CampaignModel,
    CompetitionModel,
    GenerationRunModel,
    IntegrationModel,
    MetricModel,
    OrderModel,
    PhaseResultModel,
    ProductModel,
    ProjectModel,
    TemplateModel,
)

logger = logging.getLogger(__name__)


def _run_to_model(run: GenerationRun) -> GenerationRunModel:
    data = run.model_dump(mode="json", exclude={"site", "phase_results"})
    best = run.best_assessment
    data["average_score"] = best.average_score if best else None
    model = GenerationRunModel.from_dict(data)
    model.phase_results = [
        PhaseResultModel(
            run_id=run.id,
            phase=result.phase.value,
            status=result.status.value,
            iteration=result.iteration,
            error=result.error,
            started_at=result.started_at,
            completed_at=result.completed_at,
            metadata_=result.metadata,
        )
        for result in run.phase_results
    ]
    return model


def _model_to_run(model: GenerationRunModel) -> GenerationRun:
    data = model.to_dict()
    data.pop("average_score", None)
    data["phase_results"] = [
        PhaseResult(
            phase=GenerationPhase(row.phase),
            status=PhaseStatus(row.status),
            iteration=row.iteration,
            error=row.error,
            started_at=row.started_at,
            completed_at=row.completed_at,
            metadata=row.metadata_ or {},
        )
        for row in model.phase_results
    ]
    return GenerationRun(**data)


class SQLiteStorageBackend(StorageBackendInterface):
    """SQLite storage backend implementation with SQLAlchemy ORM."""

    def __init__(
        self,
        database_url: Optional[str] = None,
        database_path: Optional[str] = None,
        echo: bool = False,
    ):
        """Initialize the SQLite storage backend.

        Args:
            database_url: Full database URL. If provided, overrides database_path.
            database_path: Path to SQLite database file. Defaults to user data directory.
            echo: Whether to echo SQL statements for debugging.
        """
        if database_url:
            self.database_url = database_url
        else:
            if database_path:
                self.database_path = Path(database_path)
            else:
                # Default to user data directory
                self.database_path = Path.home() / ".stargate_portal" / "stargate.db"
            self.database_path.parent.mkdir(parents=True, exist_ok=True)
            self.database_url = f"sqlite:///{self.database_path.absolute()}"

        self.echo = echo
        self._engine = None
        self._async_session = None
        self._initialized = False

    async def initialize(self) -> None:
        """Initialize the storage backend and create tables."""
        if self._initialized:
            return

        db_url = self.database_url.replace("sqlite:///", "sqlite+aiosqlite:///")

        # Create async engine for SQLite
        self._engine = create_async_engine(
            db_url,
            echo=self.echo,
            connect_args={"check_same_thread": False},
        )

        # Create tables
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        # Create async session factory
        self._async_session = sessionmaker(
            self._engine, class_=AsyncSession, expire_on_commit=False
        )

        self._initialized = True
        logger.info(f"Storage initialized at {self.database_url}")

    async def close(self) -> None:
        """Close the storage backend connection."""
        if self._engine:
            await self._engine.dispose()
        self._initialized = False

    async def _ensure_initialized(self) -> None:
        """Ensure the backend is initialized."""
        if not self._initialized:
            await self.initialize()

    # Generic helpers for the flat record tables

    async def _merge(self, model) -> None:
        await self._ensure_initialized()
        async with self._async_session() as session:
            await session.merge(model)
            await session.commit()

    async def _get(self, model_class: Type, record_id: Any) -> Optional[Dict[str, Any]]:
        await self._ensure_initialized()
        async with self._async_session() as session:
            model = await session.get(model_class, record_id)
            return model.to_dict() if model else None

    async def _list(self, query) -> List[Dict[str, Any]]:
        await self._ensure_initialized()
        async with self._async_session() as session:
            result = await session.execute(query)
            return [model.to_dict() for model in result.scalars().all()]

    async def _delete(self, model_class: Type, record_id: Any) -> bool:
        await self._ensure_initialized()
        async with self._async_session() as session:
            model = await session.get(model_class, record_id)
            if model is None:
                return False
            await session.delete(model)
            await session.commit()
            return True

    # Generation runs

    async def save_run(self, run: GenerationRun) -> None:
        """Save a generation run together with its phase results.

        Args:
            run: The generation run to save.
        """
        await self._ensure_initialized()

        async with self._async_session() as session:
            existing = await session.get(
                GenerationRunModel, run.id, options=[selectinload(GenerationRunModel.phase_results)]
            )
            if existing:
                # Phase results are rewritten wholesale
                await session.delete(existing)
                await session.flush()

            session.add(_run_to_model(run))
            await session.commit()

    async def load_run(self, run_id: str) -> Optional[GenerationRun]:
        """Load a generation run by ID.

        Args:
            run_id: The ID of the run to load.

        Returns:
            The run if found, None otherwise.
        """
        await self._ensure_initialized()

        async with self._async_session() as session:
            result = await session.execute(
                select(GenerationRunModel)
                .options(selectinload(GenerationRunModel.phase_results))
                .where(GenerationRunModel.id == run_id)
            )
            model = result.scalar_one_or_none()
            return _model_to_run(model) if model else None

    async def list_runs(
        self,
        project_id: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 50,
        offset: int = 0
    ) -> List[GenerationRun]:
        """List generation runs, newest first.

        Args:
            project_id: Filter by project.
            status: Filter by run status.
            limit: Maximum number of runs to return.
            offset: Number of runs to skip.
        """
        await self._ensure_initialized()

        async with self._async_session() as session:
            query = select(GenerationRunModel).options(selectinload(GenerationRunModel.phase_results))

            if project_id:
                query = query.where(GenerationRunModel.project_id == project_id)
            if status:
                query = query.where(GenerationRunModel.status == status)

            query = query.order_by(desc(GenerationRunModel.created_at)).limit(limit).offset(offset)

            result = await session.execute(query)
            return [_model_to_run(model) for model in result.scalars().all()]

    async def delete_run(self, run_id: str) -> bool:
        await self._ensure_initialized()
        async with self._async_session() as session:
            model = await session.get(
                GenerationRunModel, run_id, options=[selectinload(GenerationRunModel.phase_results)]
            )
            if model is None:
                return False
            await session.delete(model)
            await session.commit()
            return True

    # Projects

    async def save_project(self, project: Project) -> None:
        await self._merge(ProjectModel.from_dict(project.model_dump(mode="json")))

    async def get_project(self, project_id: str) -> Optional[Project]:
        data = await self._get(ProjectModel, project_id)
        return Project(**data) if data else None

    async def get_project_by_slug(self, slug: str) -> Optional[Project]:
        rows = await self._list(select(ProjectModel).where(ProjectModel.slug == slug).limit(1))
        return Project(**rows[0]) if rows else None

    async def list_projects(self, user_id: Optional[str] = None, limit: int = 50, offset: int = 0) -> List[Project]:
        query = select(ProjectModel)
        if user_id:
            query = query.where(ProjectModel.user_id == user_id)
        query = query.order_by(desc(ProjectModel.updated_at)).limit(limit).offset(offset)
        return [Project(**row) for row in await self._list(query)]

    async def delete_project(self, project_id: str) -> bool:
        return await self._delete(ProjectModel, project_id)

    # Competitions

    async def save_competition(self, competition: Competition) -> None:
        await self._merge(CompetitionModel.from_dict(competition.model_dump(mode="json")))

    async def get_competition(self, competition_id: str) -> Optional[Competition]:
        data = await self._get(CompetitionModel, competition_id)
        return Competition(**data) if data else None

    async def list_competitions(
        self,
        project_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> List[Competition]:
        """List competitions, newest first."""
        query = select(CompetitionModel)
        if project_id:
            query = query.where(CompetitionModel.project_id == project_id)
        if user_id:
            query = query.where(CompetitionModel.user_id == user_id)
        query = query.order_by(desc(CompetitionModel.created_at))
        return [Competition(**row) for row in await self._list(query)]

    # Products and orders

    async def save_product(self, product: Product) -> None:
        await self._merge(ProductModel.from_dict(product.model_dump(mode="json")))

    async def get_product(self, product_id: str) -> Optional[Product]:
        data = await self._get(ProductModel, product_id)
        return Product(**data) if data else None

    async def list_products(self, project_id: Optional[str] = None) -> List[Product]:
        query = select(ProductModel)
        if project_id:
            query = query.where(ProductModel.project_id == project_id)
        return [Product(**row) for row in await self._list(query.order_by(ProductModel.created_at))]

    async def delete_product(self, product_id: str) -> bool:
        return await self._delete(ProductModel, product_id)

    async def save_order(self, order: Order) -> None:
        await self._merge(OrderModel.from_dict(order.model_dump(mode="json")))

    async def get_order(self, order_id: str) -> Optional[Order]:
        data = await self._get(OrderModel, order_id)
        return Order(**data) if data else None

    async def list_orders(
        self,
        project_id: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 100,
    ) -> List[Order]:
        """List orders, newest first."""
        query = select(OrderModel)
        if project_id:
            query = query.where(OrderModel.project_id == project_id)
        if status:
            query = query.where(OrderModel.status == status)
        query = query.order_by(desc(OrderModel.created_at)).limit(limit)
        return [Order(**row) for row in await self._list(query)]

    # Campaigns

    async def save_campaign(self, campaign: Campaign) -> None:
        await self._merge(CampaignModel.from_dict(campaign.model_dump(mode="json")))

    async def get_campaign(self, campaign_id: str) -> Optional[Campaign]:
        data = await self._get(CampaignModel, campaign_id)
        return Campaign(**data) if data else None

    async def list_campaigns(self, project_id: Optional[str] = None) -> List[Campaign]:
        query = select(CampaignModel)
        if project_id:
            query = query.where(CampaignModel.project_id == project_id)
        return [Campaign(**row) for row in await self._list(query.order_by(desc(CampaignModel.created_at)))]

    # Templates

    async def save_template(self, template: SiteTemplate) -> None:
        await self._merge(TemplateModel.from_dict(template.model_dump(mode="json")))

    async def get_template(self, template_id: str) -> Optional[SiteTemplate]:
        data = await self._get(TemplateModel, template_id)
        return SiteTemplate(**data) if data else None

    async def list_templates(self, industry_id: Optional[str] = None) -> List[SiteTemplate]:
        query = select(TemplateModel)
        if industry_id:
            query = query.where(TemplateModel.industry_id == industry_id)
        return [SiteTemplate(**row) for row in await self._list(query.order_by(TemplateModel.name))]

    async def delete_template(self, template_id: str) -> bool:
        return await self._delete(TemplateModel, template_id)

    # Integrations

    async def save_integration(self, integration: IntegrationConfig) -> None:
        await self._merge(IntegrationModel.from_dict(integration.model_dump(mode="json")))

    async def list_integrations(self, project_id: str, enabled_only: bool = False) -> List[IntegrationConfig]:
        query = select(IntegrationModel).where(IntegrationModel.project_id == project_id)
        if enabled_only:
            query = query.where(IntegrationModel.enabled.is_(True))
        return [IntegrationConfig(**row) for row in await self._list(query.order_by(IntegrationModel.created_at))]

    async def delete_integration(self, integration_config_id: str) -> bool:
        return await self._delete(IntegrationModel, integration_config_id)

    # Analytics events

    async def save_event(self, event: AnalyticsEvent) -> AnalyticsEvent:
        """Insert an analytics event and return it with its row ID."""
        await self._ensure_initialized()

        model = AnalyticsEventModel.from_dict(event.model_dump(mode="json", exclude={"id"}))
        async with self._async_session() as session:
            session.add(model)
            await session.commit()
            return AnalyticsEvent(**model.to_dict())

    async def list_events(
        self,
        project_id: str,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
        event_type: Optional[str] = None,
    ) -> List[AnalyticsEvent]:
        """List a project's events in chronological order."""
        query = select(AnalyticsEventModel).where(AnalyticsEventModel.project_id == project_id)
        if start_time:
            query = query.where(AnalyticsEventModel.created_at >= start_time)
        if end_time:
            query = query.where(AnalyticsEventModel.created_at <= end_time)
        if event_type:
            query = query.where(AnalyticsEventModel.event_type == event_type)
        query = query.order_by(AnalyticsEventModel.created_at)
        return [AnalyticsEvent(**row) for row in await self._list(query)]

    # Metrics

    async def save_metric(self, metric_name: str, value: Any, metadata: Dict[str, Any]) -> None:
        """Save a metric measurement.

        Args:
            metric_name: Name of the metric.
            value: Metric value.
            metadata: Additional metadata; ``timestamp`` and ``tags`` get their own columns.
        """
        await self._ensure_initialized()

        timestamp = metadata.get("timestamp", datetime.now())
        tags = metadata.get("tags", {})

        # Remove extracted fields from metadata
        clean_metadata = {k: v for k, v in metadata.items() if k not in ["timestamp", "tags"]}

        metric_model = MetricModel(
            name=metric_name,
            value=float(value),
            timestamp=timestamp,
            tags=tags,
            metadata_=clean_metadata,
        )

        async with self._async_session() as session:
            session.add(metric_model)
            await session.commit()

    async def get_metrics(
        self,
        metric_name: Optional[str] = None,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
        limit: int = 100
    ) -> List[Dict[str, Any]]:
        """Retrieve metrics with optional filtering, newest first."""
        query = select(MetricModel)

        if metric_name:
            query = query.where(MetricModel.name == metric_name)
        if start_time:
            query = query.where(MetricModel.timestamp >= start_time)
        if end_time:
            query = query.where(MetricModel.timestamp <= end_time)

        query = query.order_by(desc(MetricModel.timestamp)).limit(limit)
        metrics = await self._list(query)
        for metric in metrics:
            metric["timestamp"] = metric["timestamp"].isoformat() if metric["timestamp"] else None
        return metrics

    # Maintenance

    async def get_run_stats(self) -> Dict[str, Any]:
        """Get generation run statistics.

        Returns:
            Dictionary with status counts, totals, recent runs and average score.
        """
        await self._ensure_initialized()

        async with self._async_session() as session:
            # Count runs by status
            status_counts = await session.execute(
                select(GenerationRunModel.status, func.count(GenerationRunModel.id))
                .group_by(GenerationRunModel.status)
            )

            stats = {"status_counts": dict(status_counts.all())}

            total_count = await session.execute(select(func.count(GenerationRunModel.id)))
            stats["total_runs"] = total_count.scalar()

            # Runs in the last 24 hours
            recent_count = await session.execute(
                select(func.count(GenerationRunModel.id))
                .where(GenerationRunModel.created_at >= datetime.now() - timedelta(days=1))
            )
            stats["recent_runs"] = recent_count.scalar()

            average_score = await session.execute(select(func.avg(GenerationRunModel.average_score)))
            value = average_score.scalar()
            stats["average_score"] = round(value, 2) if value is not None else None

            project_count = await session.execute(select(func.count(ProjectModel.id)))
            stats["total_projects"] = project_count.scalar()

            return stats

    async def cleanup_old_data(self, days_to_keep: int = 30) -> int:
        """Delete runs, analytics events and metrics older than the cutoff.

        Args:
            days_to_keep: Number of days of data to keep.

        Returns:
            Number of records deleted.
        """
        await self._ensure_initialized()

        cutoff_date = datetime.now() - timedelta(days=days_to_keep)
        deleted_count = 0

        async with self._async_session() as session:
            # Delete old runs (and their phase results via cascade)
            run_result = await session.execute(
                select(GenerationRunModel)
                .options(selectinload(GenerationRunModel.phase_results))
                .where(GenerationRunModel.created_at < cutoff_date)
            )
            for run in run_result.scalars().all():
                await session.delete(run)
                deleted_count += 1

            event_result = await session.execute(
                delete(AnalyticsEventModel).where(AnalyticsEventModel.created_at < cutoff_date)
            )
            deleted_count += event_result.rowcount or 0

            metric_result = await session.execute(
                delete(MetricModel).where(MetricModel.timestamp < cutoff_date)
            )
            deleted_count += metric_result.rowcount or 0

            await session.commit()

        return deleted_count
