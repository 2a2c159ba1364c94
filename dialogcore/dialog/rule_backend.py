"""Table-driven backend answering known triggers with canned lines."""
from __future__ import annotations

from itertools import count
from threading import Lock
from typing import Dict, Mapping, Sequence, Tuple

from . import classify
from .types import BackendInfo, DialogBackend, DialogContext, GeneratedResponse

RULE_CONFIDENCE = 0.4

DEFAULT_RULES: Dict[str, Tuple[str, ...]] = {
    "click": ("Hi there! 👋", "Nice to see you!"),
    "rightclick": ("What's up?",),
    "feed": ("Thanks! *nom nom*", "Yum, I was so hungry!"),
    "pet": ("That feels nice... *purr*",),
    "play": ("Yay, let's play a game!",),
    "talk": ("How are you doing?",),
    "gift": ("A gift for me? I love it!",),
    "compliment": ("Aww, you're making me blush!",),
}


class RuleBackend(DialogBackend):
    """Canned replies keyed by trigger, rotating per trigger.

    Handles only triggers present in its table.
    """

    def __init__(
        self,
        rules: Mapping[str, Sequence[str]] | None = None,
        confidence: float = RULE_CONFIDENCE,
    ) -> None:
        source = DEFAULT_RULES if rules is None else rules
        self._rules = {k: tuple(v) for k, v in source.items() if v}
        self._confidence = confidence
        self._counters: Dict[str, count] = {}
        self._lock = Lock()

    def can_handle(self, ctx: DialogContext) -> bool:
        return ctx.trigger in self._rules

    def generate(self, ctx: DialogContext) -> GeneratedResponse:
        replies = self._rules.get(ctx.trigger)
        if not replies:
            raise LookupError(f"no rule for trigger '{ctx.trigger}'")
        with self._lock:
            idx = next(self._counters.setdefault(ctx.trigger, count()))
        text = replies[idx % len(replies)]
        topics = classify.extract_topics(text)
        return GeneratedResponse(
            text=text,
            animation=classify.select_animation(text),
            confidence=self._confidence,
            response_type=classify.classify_response(text),
            emotional_tone=classify.detect_emotional_tone(text),
            topics=topics,
        )

    def info(self) -> BackendInfo:
        return BackendInfo(
            name="rules",
            version="1.0.0",
            description="Trigger keyed canned responses",
            capabilities=["deterministic", "offline"],
            license="MIT",
        )


__all__ = ["RuleBackend", "DEFAULT_RULES", "RULE_CONFIDENCE"]
