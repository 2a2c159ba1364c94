"""Dialog config schema.

Covers the conversation store limits, prompt budget, orchestration gates and
the LLM backend wiring. No side effects / globals.
"""
from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field, field_validator, ConfigDict


class DialogConfig(BaseModel):
    enabled: bool = True
    # Opaque model reference handed to the text generator (not interpreted).
    model: str | None = None
    max_response_tokens: int = 50
    prompt_max_tokens: int = 1500
    history_window: int = 10
    prompt_history: int = 5
    attempt_timeout_ms: int = 2000
    # share of the attempt timeout granted to the text generator itself; the
    # rest covers prompt assembly and post-processing
    generator_timeout_ratio: float = 0.8
    fallback_enabled: bool = True
    confidence_threshold: float = 0.5
    max_sessions: int = 0
    sweep_interval_s: float = 3600.0
    retention_s: float = 86400.0
    default_backend: str | None = None
    fallback_chain: List[str] = Field(default_factory=list)
    persona: str = ""
    training_examples: List[str] = Field(default_factory=list)
    memory_enabled: bool = True
    debug: bool = False

    model_config = ConfigDict(extra="forbid")

    @field_validator("confidence_threshold")
    @classmethod
    def _threshold_range(cls, v: float) -> float:  # noqa: D401
        if not (0.0 <= v <= 1.0):
            raise ValueError("confidence_threshold out of range 0..1")
        return v

    @field_validator("generator_timeout_ratio")
    @classmethod
    def _ratio_range(cls, v: float) -> float:  # noqa: D401
        if not (0.0 < v <= 1.0):
            raise ValueError("generator_timeout_ratio out of range (0, 1]")
        return v

    @field_validator("max_sessions")
    @classmethod
    def _max_sessions_non_negative(cls, v: int) -> int:  # noqa: D401
        if v < 0:
            raise ValueError("max_sessions must be >=0 (0 = unlimited)")
        return v

    @field_validator("prompt_history")
    @classmethod
    def _prompt_history_positive(cls, v: int) -> int:  # noqa: D401
        if v <= 0:
            raise ValueError("prompt_history must be >0")
        return v

    @property
    def attempt_timeout_s(self) -> float:
        return self.attempt_timeout_ms / 1000.0

    @property
    def generator_timeout_s(self) -> float:
        """Inner deadline for the generator (0 = none, like the attempt)."""
        return self.attempt_timeout_s * self.generator_timeout_ratio
