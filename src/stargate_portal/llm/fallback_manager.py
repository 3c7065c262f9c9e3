"""LLM fallback manager with task-type routing."""

import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..core.interfaces import LLMBackendInterface
from ..core.types import LLMResponse, LLMMessage

logger = logging.getLogger(__name__)


class LLMFallbackManager(LLMBackendInterface):
    """Routes prompts to a preferred backend and falls back to the others.

    Options passed to :meth:`generate` or :meth:`chat` may carry a
    ``task_type`` (see :class:`~stargate_portal.core.types.LLMTaskType`).
    When ``task_routing`` maps it to a backend, that backend is tried
    first, followed by the remaining ``fallback_order``.
    """

    def __init__(
        self,
        backends: Optional[List[LLMBackendInterface]] = None,
        fallback_order: Optional[List[str]] = None,
        task_routing: Optional[Dict[str, str]] = None,
        validation_ttl: float = 300.0,
    ):
        self.backends = list(backends or [])
        self.backend_map = {backend.name: backend for backend in self.backends}
        self.fallback_order = list(fallback_order or [backend.name for backend in self.backends])
        self.task_routing = dict(task_routing or {})
        self.validation_ttl = validation_ttl
        self._validated: Dict[str, float] = {}

        for backend_name in self.fallback_order:
            if backend_name not in self.backend_map:
                raise ValueError(f"Backend '{backend_name}' specified in fallback_order but not found in backends")

    @property
    def name(self) -> str:
        return "fallback_manager"

    @property
    def is_available(self) -> bool:
        """Check if at least one backend is configured."""
        return any(backend.is_available for backend in self.backends)

    def _ordered_backends(self, task_type: Optional[str]) -> List[LLMBackendInterface]:
        order = list(self.fallback_order)
        preferred = self.task_routing.get(task_type) if task_type else None
        if preferred in order:
            order.remove(preferred)
            order.insert(0, preferred)
        return [self.backend_map[name] for name in order if self.backend_map[name].is_available]

    async def _is_reachable(self, backend: LLMBackendInterface) -> bool:
        """Connection check, cached for ``validation_ttl`` seconds."""
        validated_at = self._validated.get(backend.name)
        if validated_at is not None and time.monotonic() - validated_at < self.validation_ttl:
            return True

        try:
            ok = await backend.validate_connection()
        except Exception as e:
            logger.warning(f"Backend {backend.name} failed connection validation: {e}")
            ok = False

        if ok:
            self._validated[backend.name] = time.monotonic()
        else:
            self._validated.pop(backend.name, None)
        return ok

    async def _get_available_backend(self, task_type: Optional[str] = None) -> Optional[LLMBackendInterface]:
        """Get the first reachable backend for a task type."""
        for backend in self._ordered_backends(task_type):
            if await self._is_reachable(backend):
                return backend
        return None

    async def _call_with_fallback(
        self,
        call: Callable[[LLMBackendInterface], Awaitable[LLMResponse]],
        options: Optional[Dict[str, Any]],
    ) -> LLMResponse:
        task_type = (options or {}).get("task_type")
        first = await self._get_available_backend(task_type)
        if first is None:
            raise RuntimeError("No LLM backends are available. Please check your configuration.")

        candidates = [first] + [b for b in self._ordered_backends(task_type) if b.name != first.name]
        last_error: Optional[Exception] = None

        for index, backend in enumerate(candidates):
            try:
                if index == 0:
                    logger.info(f"Using backend: {backend.name} (task: {task_type or 'default'})")
                else:
                    logger.info(f"Falling back to backend: {backend.name}")

                response = await call(backend)
                response.metadata["used_backend"] = backend.name
                if index > 0:
                    response.metadata["fallback_used"] = True
                return response

            except Exception as e:
                logger.error(f"Backend {backend.name} failed: {e}")
                self._validated.pop(backend.name, None)
                last_error = e

        raise RuntimeError(f"All LLM backends failed. Last error: {last_error}") from last_error

    def _backend_options(self, options: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        return {key: value for key, value in (options or {}).items() if key != "task_type"}

    async def generate(
        self,
        prompt: str,
        options: Optional[Dict[str, Any]] = None
    ) -> LLMResponse:
        """Generate text using the routed backend, falling back on failure.

        Raises:
            RuntimeError: If no backend is available or all of them fail.
        """
        backend_options = self._backend_options(options)
        return await self._call_with_fallback(
            lambda backend: backend.generate(prompt, backend_options), options
        )

    async def chat(
        self,
        messages: List[LLMMessage],
        options: Optional[Dict[str, Any]] = None
    ) -> LLMResponse:
        backend_options = self._backend_options(options)
        return await self._call_with_fallback(
            lambda backend: backend.chat(messages, backend_options), options
        )

    async def validate_connection(self) -> bool:
        return await self._get_available_backend() is not None

    def get_backend(self, backend_name: str) -> Optional[LLMBackendInterface]:
        return self.backend_map.get(backend_name)

    def get_backend_status(self) -> Dict[str, Dict[str, Any]]:
        """Get status information for all backends."""
        status = {}
        for backend in self.backends:
            status[backend.name] = {
                "name": backend.name,
                "is_available": backend.is_available,
                "validated": backend.name in self._validated,
                "routed_tasks": sorted(
                    task for task, target in self.task_routing.items() if target == backend.name
                ),
            }
        return status

    def add_backend(self, backend: LLMBackendInterface) -> None:
        if backend.name in self.backend_map:
            raise ValueError(f"Backend with name '{backend.name}' already exists")

        self.backends.append(backend)
        self.backend_map[backend.name] = backend
        self.fallback_order.append(backend.name)

    def remove_backend(self, backend_name: str) -> None:
        if backend_name not in self.backend_map:
            raise ValueError(f"Backend with name '{backend_name}' not found")

        backend = self.backend_map.pop(backend_name)
        self.backends.remove(backend)
        self._validated.pop(backend_name, None)
        if backend_name in self.fallback_order:
            self.fallback_order.remove(backend_name)

    async def close(self) -> None:
        for backend in self.backends:
            close = getattr(backend, "close", None)
            if close is not None:
                await close()
