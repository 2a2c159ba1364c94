"""Dialog backend driven by a TextGenerator.

Builds a prompt from the configured persona, the session's recent history
(from the shared ConversationStore) and the current context, runs the
generator under its share of the attempt timeout and cleans + classifies the
output. The orchestrator records the exchange once a response is accepted;
the store is used here for prompt history and feedback.
"""
from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from dialogcore.config.loader import ConfigError
from dialogcore.config.schemas.dialog import DialogConfig
from dialogcore.errors import AttemptTimeout, GenerationFailure
from dialogcore.llm import GeneratorError, GeneratorTimeout, TextGenerator

from . import classify
from .prompt import PromptAssembler, personality_from_examples
from .store import ConversationStore
from .types import (
    BackendInfo,
    DialogBackend,
    DialogContext,
    GeneratedResponse,
    UserFeedback,
)

LLM_CONFIDENCE = 0.8
LLM_MEMORY_IMPORTANCE = 0.7
LLM_LEARNING_VALUE = 0.6
CANNED_CONFIDENCE = 0.3

# trigger -> canned reply used when fallback_enabled and the generator fails
CANNED_REPLIES = {
    "click": "Hi there! 👋",
    "feed": "Thanks! *nom nom*",
    "rightclick": "What's up?",
}
CANNED_ROTATION = (
    "Hi there! 👋",
    "What's up?",
    "How are you doing?",
    "Nice to see you!",
    "*waves*",
)

GeneratorFactory = Callable[[str], TextGenerator]

_log = logging.getLogger("dialog.llm_backend")


class LLMBackend(DialogBackend):
    def __init__(
        self,
        cfg: DialogConfig,
        store: ConversationStore,
        generator_factory: GeneratorFactory,
    ) -> None:
        self.cfg = cfg
        self.store = store
        self._factory = generator_factory
        self._generator: Optional[TextGenerator] = None
        self._lock = threading.RLock()
        self._canned_idx = 0
        self.persona = cfg.persona or personality_from_examples(
            cfg.training_examples
        )

    def initialize(self) -> None:
        """Create and initialize the generator (idempotent)."""
        if not self.cfg.model:
            raise ConfigError("dialog.model is required for the llm backend")
        with self._lock:
            if self._generator is not None:
                return
            gen = self._factory(self.cfg.model)
            gen.initialize()
            self._generator = gen
        _log.info("llm backend initialized model=%s", self.cfg.model)

    @property
    def initialized(self) -> bool:
        return self._generator is not None

    def can_handle(self, ctx: DialogContext) -> bool:
        return self._generator is not None

    def build_prompt(self, ctx: DialogContext) -> str:
        assembler = PromptAssembler(
            persona=self.persona,
            history=self.store.history(ctx.session_id, self.cfg.prompt_history),
            context=ctx,
            max_tokens=self.cfg.prompt_max_tokens,
            history_limit=self.cfg.prompt_history,
        )
        prompt = assembler.build()
        if self.cfg.debug:
            _log.debug(
                "prompt built sid=%s chars=%d truncation=%s",
                ctx.session_id,
                len(prompt),
                assembler.last_strategy or "none",
            )
        return prompt

    def generate(self, ctx: DialogContext) -> GeneratedResponse:
        with self._lock:
            gen = self._generator
        if gen is None:
            raise GenerationFailure("llm backend not initialized")
        prompt = self.build_prompt(ctx)
        try:
            raw = gen.predict_with_timeout(prompt, self.cfg.generator_timeout_s)
        except GeneratorTimeout as e:
            if self.cfg.fallback_enabled:
                return self._canned(ctx)
            raise AttemptTimeout(str(e)) from e
        except GeneratorError as e:
            if self.cfg.fallback_enabled:
                return self._canned(ctx)
            raise GenerationFailure(f"failed to generate response: {e}") from e

        text = classify.clean_response(raw)
        topics = classify.extract_topics(text)
        return GeneratedResponse(
            text=text,
            animation=classify.select_animation(text),
            confidence=LLM_CONFIDENCE,
            response_type=classify.classify_response(text),
            emotional_tone=classify.detect_emotional_tone(text),
            topics=topics,
            memory_importance=LLM_MEMORY_IMPORTANCE,
            learning_value=LLM_LEARNING_VALUE,
        )

    def _canned(self, ctx: DialogContext) -> GeneratedResponse:
        text = CANNED_REPLIES.get(ctx.trigger)
        if text is None:
            with self._lock:
                text = CANNED_ROTATION[self._canned_idx % len(CANNED_ROTATION)]
                self._canned_idx += 1
        _log.info("llm generation failed; canned reply sid=%s", ctx.session_id)
        return GeneratedResponse(
            text=text,
            animation="talking",
            confidence=CANNED_CONFIDENCE,
            response_type="fallback",
            emotional_tone="neutral",
        )

    def info(self) -> BackendInfo:
        return BackendInfo(
            name="llm",
            version="1.0.0",
            description="Text-generator backed dialog with conversation memory",
            capabilities=[
                "context_aware",
                "personality_driven",
                "learning_enabled",
            ],
            license="MIT",
        )

    def update_memory(
        self,
        ctx: DialogContext,
        response: GeneratedResponse,
        feedback: UserFeedback,
    ) -> None:
        if feedback is None or not self.cfg.memory_enabled:
            return
        self.store.record_feedback(
            ctx.session_id, feedback.positive, feedback.engagement
        )

    def close(self) -> None:
        with self._lock:
            gen, self._generator = self._generator, None
        if gen is not None:
            gen.release()


__all__ = ["LLMBackend", "LLM_CONFIDENCE", "CANNED_CONFIDENCE"]
