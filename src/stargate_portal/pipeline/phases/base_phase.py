"""Base phase class with the LLM plumbing shared by all pipeline phases."""

import json
import logging
import re
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from ...core.interfaces import LLMBackendInterface
from ...core.types import GenerationContext, GenerationPhase, LLMTaskType, PhaseResult, PhaseStatus

logger = logging.getLogger(__name__)

_JSON_FENCE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)


class BasePhase(ABC):
    """Base class for pipeline phases.

    A phase reads the shared :class:`GenerationContext`, writes its own
    artifact back into it and reports a :class:`PhaseResult`. Phases that
    talk to an LLM always have a template fallback, so an unavailable or
    misbehaving backend degrades the output instead of failing the run.
    """

    phase: GenerationPhase
    task_type: Optional[LLMTaskType] = None

    def __init__(
        self,
        name: str,
        description: str,
        llm_backend: Optional[LLMBackendInterface] = None,
        max_prompt_length: int = 12000,
    ):
        """Initialize the phase.

        Args:
            name: Phase name identifier
            description: Human-readable description
            llm_backend: LLM backend (usually the fallback manager)
            max_prompt_length: Prompts longer than this are truncated
        """
        self._name = name
        self._description = description
        self.llm_backend = llm_backend
        self.max_prompt_length = max_prompt_length

    @property
    def name(self) -> str:
        """Return the phase name."""
        return self._name

    @property
    def description(self) -> str:
        """Return the phase description."""
        return self._description

    @abstractmethod
    async def run(self, context: GenerationContext) -> Dict[str, Any]:
        """Produce this phase's artifact and store it on the context.

        Returns:
            Metadata describing how the artifact was produced.
        """
        pass

    async def execute(self, context: GenerationContext) -> PhaseResult:
        """Run the phase and wrap the outcome in a :class:`PhaseResult`."""
        started_at = datetime.now()
        logger.info(f"{self.name}: starting (iteration {context.iteration})")

        try:
            metadata = await self.run(context)
        except Exception as e:
            logger.error(f"{self.name}: failed: {e}")
            return PhaseResult(
                phase=self.phase,
                status=PhaseStatus.FAILED,
                iteration=context.iteration,
                error=str(e),
                started_at=started_at,
                completed_at=datetime.now(),
            )

        revisions = context.revision_codes(self.phase)
        if revisions:
            metadata.setdefault("revisions", revisions)
        logger.info(f"{self.name}: completed via {metadata.get('source', 'template')}")
        return PhaseResult(
            phase=self.phase,
            status=PhaseStatus.COMPLETED,
            iteration=context.iteration,
            output=self.artifact(context),
            started_at=started_at,
            completed_at=datetime.now(),
            metadata=metadata,
        )

    def artifact(self, context: GenerationContext) -> Any:
        """The context attribute this phase produced, for the phase result."""
        return getattr(context, self.phase.value, None)

    def _truncate(self, prompt: str) -> str:
        if len(prompt) <= self.max_prompt_length:
            return prompt
        logger.warning(f"{self.name}: prompt truncated from {len(prompt)} to {self.max_prompt_length} characters")
        return prompt[:self.max_prompt_length]

    async def _generate_with_llm(
        self,
        prompt: str,
        context: Optional[Dict[str, Any]] = None,
        temperature: float = 0.7,
        max_tokens: int = 2000,
        system: Optional[str] = None,
        json_mode: bool = True,
    ):
        """Generate a completion using the LLM backend.

        Args:
            prompt: The prompt to send to the LLM
            context: Additional context data, prepended as a bullet list
            temperature: LLM temperature setting
            max_tokens: Maximum tokens to generate
            system: Optional system instruction
            json_mode: Ask the backend for a JSON object

        Returns:
            The backend's :class:`LLMResponse`
        """
        if not self.llm_backend:
            raise RuntimeError(f"LLM backend not available for phase {self.name}")

        enhanced_prompt = prompt
        if context:
            context_str = "\n".join(f"- {k}: {v}" for k, v in context.items())
            enhanced_prompt = f"Context:\n{context_str}\n\n{prompt}"

        options: Dict[str, Any] = {
            "temperature": temperature,
            "max_tokens": max_tokens,
            "json_mode": json_mode,
        }
        if self.task_type is not None:
            options["task_type"] = self.task_type.value
        if system:
            options["system"] = system

        try:
            return await self.llm_backend.generate(prompt=self._truncate(enhanced_prompt), options=options)
        except Exception as e:
            logger.error(f"LLM generation failed for phase {self.name}: {e}")
            raise

    async def _generate_json(self, prompt: str, **kwargs) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        """Ask the LLM for a JSON object.

        Returns:
            The parsed object and the response metadata.

        Raises:
            ValueError: If no JSON object can be parsed from the reply.
        """
        response = await self._generate_with_llm(prompt, **kwargs)
        return extract_json(response.content), dict(response.metadata or {})

    @staticmethod
    def revision_notes(context: GenerationContext, phase: GenerationPhase) -> str:
        """Render the reviewer feedback for a phase as prompt text."""
        issues = context.revisions.get(phase, [])
        if not issues:
            return ""
        lines = ["A reviewer found these problems in the previous version. Fix every one of them:"]
        for issue in issues:
            lines.append(f"- {issue.description}. {issue.suggestion}".rstrip())
        return "\n".join(lines)


def extract_json(text: str) -> Dict[str, Any]:
    """Parse the first JSON object in an LLM reply.

    Handles replies wrapped in Markdown fences or surrounded by prose.

    Raises:
        ValueError: If the reply holds no JSON object.
    """
    text = (text or "").strip()
    fenced = _JSON_FENCE.search(text)
    if fenced:
        text = fenced.group(1).strip()

    try:
        parsed = json.loads(text)
    except ValueError:
        start, end = text.find("{"), text.rfind("}")
        if start == -1 or end <= start:
            raise ValueError("No JSON object found in response")
        parsed = json.loads(text[start:end + 1])

    if not isinstance(parsed, dict):
        raise ValueError("Expected a JSON object")
    return parsed
