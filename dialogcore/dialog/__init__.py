"""Conversation cache, prompt assembly and response orchestration."""

from .types import (  # noqa: F401
    BackendInfo,
    DialogBackend,
    DialogContext,
    Exchange,
    GeneratedResponse,
    SessionSummary,
    UserFeedback,
)
from .store import ConversationStore  # noqa: F401
from .prompt import (  # noqa: F401
    PromptAssembler,
    describe_mood,
    describe_trigger,
    format_relative_time,
    truncate_text,
)
from .orchestrator import Orchestrator  # noqa: F401
from .llm_backend import LLMBackend  # noqa: F401
from .rule_backend import RuleBackend  # noqa: F401

__all__ = [
    "BackendInfo",
    "DialogBackend",
    "DialogContext",
    "Exchange",
    "GeneratedResponse",
    "SessionSummary",
    "UserFeedback",
    "ConversationStore",
    "PromptAssembler",
    "describe_mood",
    "describe_trigger",
    "format_relative_time",
    "truncate_text",
    "Orchestrator",
    "LLMBackend",
    "RuleBackend",
]
