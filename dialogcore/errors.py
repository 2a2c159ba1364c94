"""Central error taxonomy + dialog exception hierarchy.

Error codes are short kebab-case strings attached to events and metrics.
Exceptions split into two groups:

* surfaced to callers: ConfigError (config layer), NotRegisteredError,
  NoFallbackError
* internal to Orchestrator.generate: AttemptTimeout, GenerationFailure
  (caught and converted into fallback progression)
"""
from __future__ import annotations

_ALLOWED_ERROR_TYPES = {
    # setup
    "config-invalid",
    "config-out-of-range",
    "not-registered",
    # generation.runtime
    "timeout",
    "generation-failed",
    "low-confidence",
    "backend-busy",
    "no-fallback",
    "provider-error",
    # infra
    "event-handler-error",
}


class DialogError(Exception):
    """Base class for dialog subsystem errors."""

    code = "provider-error"


class NotRegisteredError(DialogError, KeyError):
    """Backend name referenced before registration."""

    code = "not-registered"

    def __init__(self, name: str) -> None:
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:  # KeyError quotes its arg otherwise
        return f"backend '{self.name}' is not registered"


class NoFallbackError(DialogError):
    """No backend succeeded and the context carries no static fallback text."""

    code = "no-fallback"


class GenerationFailure(DialogError):
    """A backend invocation failed (caught by the orchestrator)."""

    code = "generation-failed"


class AttemptTimeout(GenerationFailure):
    """A backend invocation exceeded its per-attempt deadline."""

    code = "timeout"


def validate_error_type(code: str) -> str:
    assert (
        code in _ALLOWED_ERROR_TYPES
    ), f"Unknown error_type '{code}' (not in taxonomy)"
    return code


def map_exception(e: BaseException) -> str:
    """Map an arbitrary exception raised by a backend to a taxonomy code."""
    code = getattr(e, "code", None)
    if isinstance(code, str) and code in _ALLOWED_ERROR_TYPES:
        return code
    name = e.__class__.__name__.lower()
    msg = str(e).lower()
    if isinstance(e, TimeoutError) or "timeout" in name or "timed out" in msg:
        return "timeout"
    return "generation-failed"


__all__ = [
    "DialogError",
    "NotRegisteredError",
    "NoFallbackError",
    "GenerationFailure",
    "AttemptTimeout",
    "validate_error_type",
    "map_exception",
]
