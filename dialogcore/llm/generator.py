"""TextGenerator interface.

Contract for anything that turns a prompt into text: a deterministic keyword
matcher for tests and demos, or a real inference engine. Implementations must
not allocate heavy resources on import; call initialize() explicitly.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass
from threading import Lock
from typing import Any, Dict

from .exceptions import GeneratorTimeout


@dataclass(frozen=True)
class GeneratorInfo:
    model: str
    context_size: int
    backend: str = "cpu"
    initialized: bool = False
    metadata: Dict[str, Any] | None = None


class TextGenerator(ABC):
    """Abstract text generator.

    Subclasses call ``super().__init__()``; it sets up the per-instance
    timeout worker state.

    ``predict_with_timeout`` has a default implementation that runs
    ``predict`` on a private worker thread and gives up after ``timeout_s``.
    The worker is not interrupted; its late result is discarded.
    """

    def __init__(self) -> None:
        self._executor: ThreadPoolExecutor | None = None
        self._executor_lock = Lock()

    @abstractmethod
    def initialize(self) -> None:
        """Load underlying resources (idempotent)."""

    @abstractmethod
    def predict(self, prompt: str) -> str:
        """Return generated text for prompt."""

    @abstractmethod
    def info(self) -> GeneratorInfo:
        """Return static generator information."""

    def predict_with_timeout(self, prompt: str, timeout_s: float | None) -> str:
        if timeout_s is None or timeout_s <= 0:
            return self.predict(prompt)
        fut = self._get_executor().submit(self.predict, prompt)
        try:
            return fut.result(timeout=timeout_s)
        except FutureTimeout as e:
            fut.cancel()
            raise GeneratorTimeout(
                f"prediction timed out after {timeout_s:.3f}s"
            ) from e

    def estimate_tokens(self, text: str) -> int:
        # Rough approximation: 4 characters per token for English text.
        return len(text) // 4

    def release(self) -> None:
        """Release resources (default: stop the timeout worker)."""
        with self._executor_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=False, cancel_futures=True)

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=2,
                    thread_name_prefix=f"gen-{type(self).__name__}",
                )
            return self._executor
