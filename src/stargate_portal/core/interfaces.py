"""Core interfaces for the StargatePortal system."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Protocol
from datetime import datetime

from .types import (
    BusinessBrief,
    GeneratedImage,
    GenerationContext,
    GenerationPhase,
    GenerationRun,
    LLMResponse,
    LLMMessage,
    PhaseResult,
)


class PhaseInterface(Protocol):
    """Protocol for pipeline phase implementations."""

    @property
    def name(self) -> str:
        """Return the phase name."""
        ...

    @property
    def phase(self) -> GenerationPhase:
        """Return the pipeline phase this implementation covers."""
        ...

    async def execute(self, context: GenerationContext) -> PhaseResult:
        """Run the phase, updating the context in place."""
        ...


class LLMBackendInterface(ABC):
    """Abstract base class for LLM backend implementations."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the backend name."""
        pass

    @property
    @abstractmethod
    def is_available(self) -> bool:
        """Check if the backend is available and configured."""
        pass

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        options: Optional[Dict[str, Any]] = None
    ) -> LLMResponse:
        """Generate text from a prompt."""
        pass

    @abstractmethod
    async def chat(
        self,
        messages: List[LLMMessage],
        options: Optional[Dict[str, Any]] = None
    ) -> LLMResponse:
        """Conduct a chat conversation."""
        pass

    @abstractmethod
    async def validate_connection(self) -> bool:
        """Validate that the backend connection is working."""
        pass


class ImageBackendInterface(ABC):
    """Abstract base class for image generation/search providers."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the provider name."""
        pass

    @property
    @abstractmethod
    def is_available(self) -> bool:
        """Check if the provider is configured."""
        pass

    @abstractmethod
    async def generate_image(
        self,
        prompt: str,
        options: Optional[Dict[str, Any]] = None
    ) -> GeneratedImage:
        """Produce an image for the prompt."""
        pass


class StorageBackendInterface(ABC):
    """Abstract base class for storage backend implementations."""

    @abstractmethod
    async def save_run(self, run: GenerationRun) -> None:
        """Save a generation run."""
        pass

    @abstractmethod
    async def load_run(self, run_id: str) -> Optional[GenerationRun]:
        """Load a generation run by ID."""
        pass

    @abstractmethod
    async def list_runs(
        self,
        project_id: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 50,
        offset: int = 0
    ) -> List[GenerationRun]:
        """List generation runs with optional filtering."""
        pass

    @abstractmethod
    async def save_metric(self, metric_name: str, value: Any, metadata: Dict[str, Any]) -> None:
        """Save a metric measurement."""
        pass

    @abstractmethod
    async def get_metrics(
        self,
        metric_name: Optional[str] = None,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
        limit: int = 100
    ) -> List[Dict[str, Any]]:
        """Retrieve metrics with optional filtering."""
        pass

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize the storage backend."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the storage backend connection."""
        pass


class ConfigInterface(ABC):
    """Abstract base class for configuration management."""

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value."""
        pass

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Set a configuration value."""
        pass

    @abstractmethod
    def has(self, key: str) -> bool:
        """Check if a configuration key exists."""
        pass

    @abstractmethod
    def load_from_file(self, file_path: str) -> None:
        """Load configuration from a file."""
        pass

    @abstractmethod
    def save_to_file(self, file_path: str) -> None:
        """Save configuration to a file."""
        pass


class GeneratorInterface(ABC):
    """Abstract base class for website generators."""

    @abstractmethod
    async def generate_website(
        self,
        brief: BusinessBrief,
        project_id: Optional[str] = None,
    ) -> GenerationRun:
        """Generate a website for the brief."""
        pass

    @abstractmethod
    async def get_run(self, run_id: str) -> Optional[GenerationRun]:
        """Get a generation run by ID."""
        pass

    @abstractmethod
    async def cancel_run(self, run_id: str) -> bool:
        """Request cancellation of an active run."""
        pass

    @abstractmethod
    async def list_active_runs(self) -> List[GenerationRun]:
        """List runs that are still executing."""
        pass
