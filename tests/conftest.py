"""Shared test configuration and fixtures."""

import pytest
import pytest_asyncio

from stargate_portal.config import ConfigManager, PipelineSettings, Settings
from stargate_portal.config.settings import DatabaseSettings
from stargate_portal.core.types import BusinessBrief, GenerationContext, ServiceItem
from stargate_portal.design import get_industry
from stargate_portal.images import ImageService
from stargate_portal.llm import LLMFallbackManager
from stargate_portal.observability import MetricsCollector
from stargate_portal.pipeline import MerlinOrchestrator
from stargate_portal.storage.sqlite_backend import SQLiteStorageBackend

PROVIDER_KEYS = (
    "OPENAI_API_KEY",
    "ANTHROPIC_API_KEY",
    "GEMINI_API_KEY",
    "UNSPLASH_ACCESS_KEY",
)


@pytest.fixture(autouse=True)
def no_provider_keys(monkeypatch):
    """Keep real provider credentials out of the tests."""
    for key in PROVIDER_KEYS:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def test_settings(tmp_path):
    """Settings pointing the database and output directory at tmp_path."""
    return Settings(
        database=DatabaseSettings(path=str(tmp_path / "test.db")),
        pipeline=PipelineSettings(output_directory=str(tmp_path / "sites")),
    )


@pytest.fixture
def mock_config(test_settings):
    """Create configuration manager."""
    return ConfigManager(test_settings)


@pytest.fixture
def mock_llm_backend():
    """Fallback manager without backends: every phase uses its templates."""
    return LLMFallbackManager()


@pytest.fixture
def image_service():
    """Image service that only produces placeholders."""
    return ImageService()


@pytest.fixture
def sample_brief():
    """A brief for a small restaurant."""
    return BusinessBrief(
        business_name="Bella Cucina",
        description="Family restaurant serving handmade pasta and wood-fired pizza in the old town",
        location="Portland",
        phone="555-0100",
        email="hello@bellacucina.example",
        services=[
            ServiceItem(name="Dine In", description="Seasonal menu in a cozy dining room"),
            ServiceItem(name="Catering", description="Family-style catering for events"),
        ],
    )


@pytest.fixture
def generation_context(sample_brief):
    """Empty generation context for the sample brief."""
    return GenerationContext(
        run_id="run-test",
        brief=sample_brief,
        industry=get_industry("restaurant"),
    )


@pytest_asyncio.fixture
async def test_storage_backend(tmp_path):
    """Create storage backend for testing."""
    backend = SQLiteStorageBackend(database_path=str(tmp_path / "storage.db"))
    await backend.initialize()
    try:
        yield backend
    finally:
        await backend.close()


@pytest_asyncio.fixture
async def test_orchestrator(mock_config, mock_llm_backend, image_service):
    """Create test orchestrator instance."""
    orch = MerlinOrchestrator(
        config=mock_config,
        llm_backend=mock_llm_backend,
        image_service=image_service,
        metrics=MetricsCollector(),
    )
    await orch.initialize()
    try:
        yield orch
    finally:
        await orch.shutdown()
