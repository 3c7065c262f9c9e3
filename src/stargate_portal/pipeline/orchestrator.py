"""Main orchestrator that coordinates website generation and persistence."""

import asyncio
import json
import logging
import re
import time
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from markupsafe import escape

from ..config import ConfigManager
from ..core.interfaces import GeneratorInterface, LLMBackendInterface
from ..core.types import (
    BusinessBrief,
    GenerationContext,
    GenerationRun,
    PipelineStatus,
    Project,
    ProjectStatus,
    StopReason,
)
from ..images.service import ImageService
from ..llm import create_llm_backend
from ..observability.metrics_collector import MetricsCollector
from ..quality.assessor import QualityAssessor
from ..quality.report import generate_quality_report, write_quality_report
from ..storage import SQLiteStorageBackend
from .engine import TOTAL_PHASES, GenerationCancelled, PipelineEngine, ProgressCallback

logger = logging.getLogger(__name__)


def slugify(name: str) -> str:
    """Lowercase, collapse non-alphanumerics to ``-`` and trim dashes."""
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug or "website"


class MerlinOrchestrator(GeneratorInterface):
    """Coordinates the pipeline engine, storage, output files and metrics."""

    def __init__(
        self,
        config: Optional[ConfigManager] = None,
        storage: Optional[SQLiteStorageBackend] = None,
        llm_backend: Optional[LLMBackendInterface] = None,
        image_service: Optional[ImageService] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        """Initialize the orchestrator.

        Args:
            config: Configuration manager. If None, creates default.
            storage: Storage backend. If None, creates SQLite backend.
            llm_backend: LLM backend. If None, creates fallback manager.
            image_service: Image service. If None, builds one from settings.
            metrics: Metrics collector. If None, creates one persisting to storage.
        """
        self.config = config or ConfigManager()
        settings = self.config.settings

        self.storage = storage or SQLiteStorageBackend(
            database_url=settings.database.url,
            database_path=str(settings.get_database_path()),
            echo=settings.database.echo,
        )
        self.llm_backend = llm_backend or create_llm_backend(settings.llm)
        self.image_service = image_service or ImageService.from_settings(
            settings.images, openai_api_key=settings.llm.openai_api_key
        )
        self.metrics = metrics or MetricsCollector(
            storage=self.storage if settings.metrics.persist else None,
            enabled=settings.metrics.enabled,
        )

        pipeline = settings.pipeline
        self.pipeline_settings = pipeline
        self.assessor = QualityAssessor(
            threshold=pipeline.quality_threshold,
            world_class_threshold=pipeline.world_class_threshold,
        )
        self.engine = PipelineEngine(
            llm_backend=self.llm_backend,
            image_service=self.image_service,
            assessor=self.assessor,
            quality_threshold=pipeline.quality_threshold,
            max_iterations=pipeline.max_iterations,
            max_prompt_length=pipeline.max_prompt_length,
            metrics=self.metrics,
        )
        self.output_root = settings.get_output_directory()
        self._run_slots = asyncio.Semaphore(max(1, pipeline.max_concurrent_runs))

        self._initialized = False

    async def initialize(self) -> None:
        """Initialize all orchestrator components."""
        if self._initialized:
            return

        logger.info("Initializing Merlin orchestrator...")

        await self.storage.initialize()
        self.output_root.mkdir(parents=True, exist_ok=True)

        if not self.llm_backend.is_available:
            logger.warning("No LLM backends are configured. Template fallbacks will be used.")

        self._initialized = True
        logger.info("Merlin orchestrator initialized successfully")

    async def shutdown(self) -> None:
        """Shutdown all orchestrator components."""
        if not self._initialized:
            return

        logger.info("Shutting down Merlin orchestrator...")

        await self.metrics.flush()
        close = getattr(self.llm_backend, "close", None)
        if close is not None:
            await close()
        await self.image_service.close()
        await self.storage.close()

        self._initialized = False
        logger.info("Merlin orchestrator shutdown complete")

    async def _ensure_initialized(self) -> None:
        """Ensure the orchestrator is initialized."""
        if not self._initialized:
            await self.initialize()

    # Projects

    async def create_project(
        self,
        name: str,
        user_id: Optional[str] = None,
        business_name: Optional[str] = None,
        description: Optional[str] = None,
        industry_id: Optional[str] = None,
        settings: Optional[Dict[str, Any]] = None,
    ) -> Project:
        """Create a project; the slug gets a suffix when already taken."""
        await self._ensure_initialized()

        slug = slugify(name)
        if await self.storage.get_project_by_slug(slug):
            slug = f"{slug}-{uuid.uuid4().hex[:6]}"

        project = Project(
            id=str(uuid.uuid4()),
            name=name,
            slug=slug,
            user_id=user_id,
            business_name=business_name or name,
            description=description,
            industry_id=industry_id,
            settings=settings or {},
        )
        await self.storage.save_project(project)
        logger.info(f"Created project {project.id} ({slug})")
        return project

    async def get_project(self, project_id: str) -> Optional[Project]:
        await self._ensure_initialized()
        return await self.storage.get_project(project_id)

    async def list_projects(self, user_id: Optional[str] = None, limit: int = 50, offset: int = 0) -> List[Project]:
        await self._ensure_initialized()
        return await self.storage.list_projects(user_id=user_id, limit=limit, offset=offset)

    async def _project_for_brief(self, brief: BusinessBrief, project_id: Optional[str]) -> Project:
        if project_id:
            project = await self.storage.get_project(project_id)
            if project is None:
                raise ValueError(f"Project {project_id} not found")
            return project

        project = await self.storage.get_project_by_slug(slugify(brief.business_name))
        if project is not None:
            return project
        return await self.create_project(
            brief.business_name,
            business_name=brief.business_name,
            description=brief.description,
            industry_id=brief.industry_id,
        )

    # Generation

    async def generate_website(
        self,
        brief: BusinessBrief,
        project_id: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> GenerationRun:
        """Generate a website for the brief and write it to disk.

        Args:
            brief: Business details to generate from.
            project_id: Existing project to attach the run to. When omitted the
                project is looked up by slug, or created.
            on_progress: Optional sync or async callback for progress events.

        Returns:
            The finished run; ``status`` tells whether it completed, failed
            or was cancelled.

        Raises:
            ValueError: If ``project_id`` does not exist.
        """
        await self._ensure_initialized()

        project = await self._project_for_brief(brief, project_id)
        if not brief.integrations:
            stored = await self.storage.list_integrations(project.id, enabled_only=True)
            if stored:
                brief = brief.model_copy(update={
                    "integrations": [{"id": item.integration_id, "config": item.config} for item in stored]
                })

        run = GenerationRun(
            id=str(uuid.uuid4()),
            project_slug=project.slug,
            brief=brief,
            project_id=project.id,
        )
        project.status = ProjectStatus.GENERATING
        project.latest_run_id = run.id
        project.updated_at = datetime.now()
        await self.storage.save_project(project)
        await self.storage.save_run(run)

        start = time.perf_counter()
        # Registered while queued for a slot so cancel_run can reach it
        self.engine.register(run)
        try:
            async with self._run_slots:
                context = await self.engine.run(run, on_progress)

                await self.engine.report_progress(on_progress, TOTAL_PHASES, "Saving files...")
                await self._write_output(run, context)

                run.status = PipelineStatus.COMPLETED
                await self.engine.report_progress(
                    on_progress, TOTAL_PHASES, "Website generated successfully!", progress=100
                )
        except GenerationCancelled:
            run.status = PipelineStatus.CANCELLED
            run.stop_reason = StopReason.CANCELLED
            logger.info(f"Run {run.id} cancelled")
        except Exception as e:
            run.status = PipelineStatus.FAILED
            run.errors.append(str(e))
            logger.error(f"Run {run.id} failed: {e}")
        finally:
            self.engine.release(run.id)
            run.completed_at = datetime.now()

        self.metrics.record_timing("pipeline.run", time.perf_counter() - start)
        self.metrics.increment_counter(f"pipeline.runs.{run.status.value}")

        if run.status == PipelineStatus.COMPLETED:
            project.status = ProjectStatus.GENERATED
            project.industry_id = run.industry_id
            project.output_path = run.output_path
            project.preview_url = run.preview_url
        elif run.status == PipelineStatus.FAILED:
            project.status = ProjectStatus.FAILED
        else:
            # A cancelled run leaves the previous site in place
            project.status = ProjectStatus.GENERATED if project.output_path else ProjectStatus.DRAFT
        project.updated_at = datetime.now()

        await self.storage.save_run(run)
        await self.storage.save_project(project)

        logger.info(f"Run {run.id} finished with status {run.status.value}")
        return run

    async def _write_output(self, run: GenerationRun, context: GenerationContext) -> Path:
        """Write index.html, styles.css, metadata.json and quality-report.md."""
        subdirectory = self.pipeline_settings.output_subdirectory
        output_dir = self.output_root / run.project_slug / subdirectory
        output_dir.mkdir(parents=True, exist_ok=True)

        html = run.site.html
        if run.brief.download_images:
            html = await self._download_images(run, output_dir, html)

        (output_dir / "index.html").write_text(html, encoding="utf-8")
        (output_dir / "styles.css").write_text(run.site.css, encoding="utf-8")

        assessment = run.best_assessment
        metadata = {
            "businessName": run.brief.business_name,
            "industry": run.industry_id,
            "industryName": run.industry_name,
            "generatedAt": datetime.now().isoformat(),
            "version": self.pipeline_settings.generator_version,
            "images": [{"section": image.section, "url": image.local_path or image.url} for image in run.images],
            "quality": {
                "averageScore": assessment.average_score,
                "verdict": assessment.verdict.value,
                "scores": assessment.scores.as_dict(),
                "meetsThresholds": assessment.meets_thresholds,
                "iterations": run.iterations,
                "bestIteration": run.best_iteration,
                "stopReason": run.stop_reason.value if run.stop_reason else None,
            },
        }
        with open(output_dir / "metadata.json", "w", encoding="utf-8") as f:
            json.dump(metadata, f, indent=2)

        write_quality_report(
            output_dir / "quality-report.md",
            assessment,
            threshold=self.assessor.threshold,
            history=run.assessments,
            business_name=run.brief.business_name,
        )

        run.output_path = str(output_dir)
        base_url = self.pipeline_settings.preview_base_url.rstrip("/")
        run.preview_url = f"{base_url}/{run.project_slug}/{subdirectory}/index.html"
        logger.info(f"Wrote website for {run.brief.business_name} to {output_dir}")
        return output_dir

    async def _download_images(self, run: GenerationRun, output_dir: Path, html: str) -> str:
        """Download provider images next to the site and point the HTML at them."""
        images = []
        for image in run.images:
            if image.placeholder:
                images.append(image)
                continue
            try:
                downloaded = await self.image_service.download_image(image, output_dir / "images")
            except RuntimeError as e:
                logger.warning(f"Keeping remote URL for {image.section}: {e}")
                run.errors.append(str(e))
                images.append(image)
                continue
            relative = f"images/{Path(downloaded.local_path).name}"
            # The page was rendered with autoescape, so attributes hold the escaped URL
            html = html.replace(str(escape(image.url)), relative)
            images.append(downloaded.model_copy(update={"local_path": relative}))
        run.images = images
        return html

    # Runs

    async def get_run(self, run_id: str) -> Optional[GenerationRun]:
        """Get an active run, or a finished one from storage."""
        await self._ensure_initialized()
        return self.engine.get_active_run(run_id) or await self.storage.load_run(run_id)

    async def list_runs(
        self,
        project_id: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[GenerationRun]:
        await self._ensure_initialized()
        return await self.storage.list_runs(project_id=project_id, status=status, limit=limit, offset=offset)

    async def cancel_run(self, run_id: str) -> bool:
        """Request cancellation of an active run.

        Returns:
            True if the run was active and will stop at the next phase boundary.
        """
        await self._ensure_initialized()

        cancelled = self.engine.cancel(run_id)
        if cancelled:
            logger.info(f"Cancelled run: {run_id}")
        else:
            logger.warning(f"Failed to cancel run: {run_id}")
        return cancelled

    async def list_active_runs(self) -> List[GenerationRun]:
        await self._ensure_initialized()
        return self.engine.list_active_runs()

    async def get_quality_report(self, run_id: str) -> Optional[str]:
        """Markdown quality report of a run, or None when it has no assessment."""
        run = await self.get_run(run_id)
        if run is None:
            return None

        if run.output_path:
            report_path = Path(run.output_path) / "quality-report.md"
            if report_path.exists():
                return report_path.read_text(encoding="utf-8")

        assessment = run.best_assessment
        if assessment is None:
            return None
        return generate_quality_report(
            assessment,
            threshold=self.assessor.threshold,
            history=run.assessments,
            business_name=run.brief.business_name,
        )

    async def get_latest_site_html(self, project_id: str) -> Optional[str]:
        """HTML of the project's latest generated site."""
        project = await self.get_project(project_id)
        if project is None or not project.output_path:
            return None
        index = Path(project.output_path) / "index.html"
        if not index.exists():
            return None
        return index.read_text(encoding="utf-8")

    # System

    async def get_system_status(self) -> Dict[str, Any]:
        """Get the overall system status.

        Returns:
            Dictionary containing system status information.
        """
        await self._ensure_initialized()

        backend_status = getattr(self.llm_backend, "get_backend_status", None)
        status = {
            "initialized": self._initialized,
            "timestamp": datetime.now().isoformat(),
            "components": {
                "storage": {
                    "available": True,
                    "type": type(self.storage).__name__,
                },
                "llm_backend": {
                    "available": self.llm_backend.is_available,
                    "type": type(self.llm_backend).__name__,
                    "backends": backend_status() if backend_status else {},
                },
                "images": {
                    "real_provider": self.image_service.has_real_provider,
                    "providers": [provider.name for provider in self.image_service.providers],
                },
                "pipeline": {
                    "active_runs": len(self.engine.list_active_runs()),
                    "quality_threshold": self.pipeline_settings.quality_threshold,
                    "max_iterations": self.pipeline_settings.max_iterations,
                    "output_directory": str(self.output_root),
                },
            },
        }

        try:
            status["run_stats"] = await self.storage.get_run_stats()
        except Exception as e:
            logger.error(f"Failed to get run stats: {e}")
            status["run_stats"] = {"error": str(e)}

        status["engine_metrics"] = await self.engine.get_metrics()
        status["metrics"] = self.metrics.get_all_metrics_summary()
        return status

    async def cleanup_old_data(self, days_to_keep: int = 30) -> Dict[str, Any]:
        """Clean up old runs, events and metrics.

        Args:
            days_to_keep: Number of days of data to keep.

        Returns:
            Dictionary with cleanup statistics.
        """
        await self._ensure_initialized()

        cleanup_stats = {
            "storage_cleaned": 0,
            "metrics_cleared": False,
            "errors": [],
        }

        try:
            cleanup_stats["storage_cleaned"] = await self.storage.cleanup_old_data(days_to_keep)
        except Exception as e:
            cleanup_stats["errors"].append(f"Storage cleanup failed: {e}")

        if days_to_keep <= 0:
            self.metrics.clear_metrics()
            cleanup_stats["metrics_cleared"] = True

        logger.info(f"Data cleanup completed: {cleanup_stats}")
        return cleanup_stats
