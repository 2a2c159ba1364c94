"""Request dependencies shared by the API routes."""
from __future__ import annotations

import threading

from fastapi import Request

from dialogcore.runtime import DialogRuntime


class RuntimeHolder:
    """Lazily builds (or wraps) the runtime; closes it once."""

    def __init__(self, runtime: DialogRuntime | None = None) -> None:
        self._runtime = runtime
        self._lock = threading.Lock()

    def get(self) -> DialogRuntime:
        with self._lock:
            if self._runtime is None or self._runtime.closed:
                self._runtime = DialogRuntime.from_config()
            return self._runtime

    def close(self) -> None:
        with self._lock:
            runtime, self._runtime = self._runtime, None
        if runtime is not None:
            runtime.close()


def get_runtime(request: Request) -> DialogRuntime:
    return request.app.state.runtime_holder.get()
