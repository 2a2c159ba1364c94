import time

import pytest

from dialogcore.config import ConfigError, DialogConfig
from dialogcore.dialog.llm_backend import (
    CANNED_CONFIDENCE,
    LLM_CONFIDENCE,
    LLMBackend,
)
from dialogcore.dialog.store import ConversationStore
from dialogcore.dialog.types import DialogContext, UserFeedback
from dialogcore.errors import AttemptTimeout, GenerationFailure
from dialogcore.llm import GeneratorError, GeneratorInfo, TextGenerator


class ScriptedGenerator(TextGenerator):
    def __init__(self, model, replies=("Hello! I love food.",), fail=False):
        super().__init__()
        self.model = model
        self.replies = list(replies)
        self.fail = fail
        self.prompts = []
        self.released = False

    def initialize(self):
        pass

    def predict(self, prompt):
        self.prompts.append(prompt)
        if self.fail:
            raise GeneratorError("engine crashed")
        return self.replies[(len(self.prompts) - 1) % len(self.replies)]

    def info(self):
        return GeneratorInfo(model=self.model, context_size=2048)

    def release(self):
        self.released = True
        super().release()


class SlowGenerator(ScriptedGenerator):
    def predict(self, prompt):
        time.sleep(0.3)
        return super().predict(prompt)


@pytest.fixture
def store():
    s = ConversationStore(start_sweeper=False)
    yield s
    s.close()


def _backend(store, gen_cls=ScriptedGenerator, **cfg_kw):
    cfg_kw.setdefault("model", "scripted")
    cfg = DialogConfig(**cfg_kw)
    created = {}

    def factory(model):
        created["gen"] = gen_cls(model)
        return created["gen"]

    backend = LLMBackend(cfg, store, factory)
    return backend, created


def _ctx(trigger="click"):
    return DialogContext(trigger=trigger, session_id="s1")


def test_missing_model_is_config_error(store):
    backend, _ = _backend(store, model=None)
    with pytest.raises(ConfigError):
        backend.initialize()
    assert backend.can_handle(_ctx()) is False


def test_generate_classifies_and_leaves_history_to_caller(store):
    backend, created = _backend(store)
    backend.initialize()
    assert backend.can_handle(_ctx())
    resp = backend.generate(_ctx())
    assert resp.text == "Hello! I love food."
    assert resp.confidence == pytest.approx(LLM_CONFIDENCE)
    assert resp.response_type == "romantic"
    assert resp.emotional_tone == "excited"
    assert resp.topics == ["food", "romance"]
    assert store.history("s1") == []
    assert created["gen"].model == "scripted"


def test_prompt_includes_history_and_persona(store):
    backend, created = _backend(
        store, training_examples=["Purr purr!", "Meow?"]
    )
    backend.initialize()
    store.add_exchange("s1", "feed", "Yum!")
    backend.generate(_ctx("click"))
    last_prompt = created["gen"].prompts[-1]
    assert "Based on these example responses" in last_prompt
    assert "- Purr purr!" in last_prompt
    assert "Recent conversation:" in last_prompt
    assert "User fed you" in last_prompt


def test_generator_failure_with_fallback_enabled_returns_canned(store):
    backend, _ = _backend(store)
    backend.initialize()
    backend._generator.fail = True
    resp = backend.generate(_ctx("feed"))
    assert resp.text == "Thanks! *nom nom*"
    assert resp.confidence == pytest.approx(CANNED_CONFIDENCE)
    assert resp.response_type == "fallback"
    assert store.history("s1") == []


def test_generator_failure_without_fallback_raises(store):
    backend, _ = _backend(store, fallback_enabled=False)
    backend.initialize()
    backend._generator.fail = True
    with pytest.raises(GenerationFailure):
        backend.generate(_ctx())


def test_generator_timeout_without_fallback_raises(store):
    backend, _ = _backend(
        store, SlowGenerator, fallback_enabled=False, attempt_timeout_ms=20
    )
    backend.initialize()
    try:
        with pytest.raises(AttemptTimeout):
            backend.generate(_ctx())
    finally:
        backend.close()


def test_generate_before_initialize_fails(store):
    backend, _ = _backend(store)
    with pytest.raises(GenerationFailure):
        backend.generate(_ctx())


def test_update_memory_forwards_feedback(store):
    backend, _ = _backend(store)
    backend.initialize()
    store.add_exchange("s1", "click", "hi")
    resp = backend.generate(_ctx())
    backend.update_memory(_ctx(), resp, UserFeedback(True, 0.75))
    latest = store.history("s1")[-1]
    assert latest.feedback_positive is True
    assert latest.engagement_score == pytest.approx(0.75)


def test_update_memory_disabled(store):
    backend, _ = _backend(store, memory_enabled=False)
    backend.initialize()
    store.add_exchange("s1", "click", "hi")
    resp = backend.generate(_ctx())
    backend.update_memory(_ctx(), resp, UserFeedback(True, 0.75))
    assert store.history("s1")[-1].has_feedback is False


def test_close_releases_generator(store):
    backend, created = _backend(store)
    backend.initialize()
    backend.close()
    assert created["gen"].released
    assert backend.can_handle(_ctx()) is False
    assert backend.info().name == "llm"
