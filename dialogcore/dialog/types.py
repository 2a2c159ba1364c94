"""Dialog data model + backend contract.

Plain dataclasses shared by the conversation store, the prompt assembler and
the orchestrator. Only `Exchange` carries behaviour: its feedback fields are
settable once after creation.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, asdict
from time import time
from typing import Any, Dict, List, Tuple


def clamp01(value: float) -> float:
    if value != value:  # NaN
        return 0.0
    return max(0.0, min(1.0, float(value)))


@dataclass(slots=True)
class Exchange:
    """One trigger/response pair recorded for a session."""

    timestamp: float
    trigger: str
    response_text: str
    topics: Tuple[str, ...] = ()
    _feedback_positive: bool = field(default=False, init=False, repr=False)
    _engagement_score: float = field(default=0.0, init=False, repr=False)
    _feedback_set: bool = field(default=False, init=False, repr=False)

    @property
    def feedback_positive(self) -> bool:
        return self._feedback_positive

    @property
    def engagement_score(self) -> float:
        return self._engagement_score

    @property
    def has_feedback(self) -> bool:
        return self._feedback_set

    def set_feedback(self, positive: bool, engagement: float) -> None:
        if self._feedback_set:
            raise ValueError("exchange feedback already recorded")
        self._feedback_positive = bool(positive)
        self._engagement_score = clamp01(engagement)
        self._feedback_set = True

    def copy(self) -> "Exchange":
        dup = Exchange(
            timestamp=self.timestamp,
            trigger=self.trigger,
            response_text=self.response_text,
            topics=self.topics,
        )
        dup._feedback_positive = self._feedback_positive
        dup._engagement_score = self._engagement_score
        dup._feedback_set = self._feedback_set
        return dup

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "trigger": self.trigger,
            "response_text": self.response_text,
            "topics": list(self.topics),
            "feedback_positive": self._feedback_positive,
            "engagement_score": self._engagement_score,
        }


@dataclass(slots=True)
class SessionSummary:
    exchange_count: int = 0
    average_engagement: float = 0.0
    positive_feedback_count: int = 0
    last_interaction: float | None = None
    dominant_triggers: List[str] = field(default_factory=list)
    recent_topics: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class DialogContext:
    """Everything a backend may look at when producing a response.

    current_mood is 0..100; personality_traits / current_stats are opaque
    name -> float mappings supplied by the host application.
    """

    trigger: str
    session_id: str
    timestamp: float = field(default_factory=time)
    current_mood: float = 50.0
    current_animation: str = "idle"
    time_of_day: str = ""
    relationship_level: str = ""
    personality_traits: Dict[str, float] = field(default_factory=dict)
    current_stats: Dict[str, float] = field(default_factory=dict)
    conversation_turn: int = 0
    last_response: str = ""
    fallback_responses: List[str] = field(default_factory=list)
    fallback_animation: str = ""


@dataclass(slots=True)
class GeneratedResponse:
    text: str
    animation: str = "talking"
    confidence: float = 0.0
    response_type: str = "casual"
    emotional_tone: str = "neutral"
    topics: List[str] = field(default_factory=list)
    memory_importance: float = 0.0
    learning_value: float = 0.0
    backend: str | None = None

    def __post_init__(self) -> None:
        self.confidence = clamp01(self.confidence)
        self.memory_importance = clamp01(self.memory_importance)
        self.learning_value = clamp01(self.learning_value)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class UserFeedback:
    positive: bool
    engagement: float = 0.0
    response_time_s: float | None = None
    follow_up_type: str | None = None


@dataclass(slots=True)
class BackendInfo:
    name: str
    version: str = "0.0.0"
    description: str = ""
    capabilities: List[str] = field(default_factory=list)
    author: str = ""
    license: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class DialogBackend(ABC):
    """Pluggable response generator.

    Backends are invoked by the orchestrator from a worker thread; they must
    not assume the caller's thread and must not hold locks shared with the
    orchestrator.
    """

    @abstractmethod
    def can_handle(self, ctx: DialogContext) -> bool:  # noqa: D401
        ...

    @abstractmethod
    def generate(self, ctx: DialogContext) -> GeneratedResponse:
        """Produce a response or raise (any exception counts as failure)."""

    @abstractmethod
    def info(self) -> BackendInfo:  # noqa: D401
        ...

    def update_memory(
        self,
        ctx: DialogContext,
        response: GeneratedResponse,
        feedback: UserFeedback,
    ) -> None:
        """Receive feedback for a previously generated response (optional)."""

    def close(self) -> None:
        """Release backend resources (optional)."""


__all__ = [
    "clamp01",
    "Exchange",
    "SessionSummary",
    "DialogContext",
    "GeneratedResponse",
    "UserFeedback",
    "BackendInfo",
    "DialogBackend",
]
