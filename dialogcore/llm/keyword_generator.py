"""Deterministic keyword-matching text generator.

Stands in for a real inference engine in tests, demos and on machines without
model weights. Replies are picked from an ordered rule table by matching whole
words in the *current situation* section of the prompt (falling back to the
whole prompt), rotating through each rule's replies in order.
"""
from __future__ import annotations

import re
import time
from itertools import count
from threading import Lock
from typing import Dict, Iterator, Sequence, Tuple

from .exceptions import GeneratorError, GeneratorNotInitialized
from .generator import GeneratorInfo, TextGenerator

Rule = Tuple[Tuple[str, ...], Tuple[str, ...]]

DEFAULT_RULES: Tuple[Rule, ...] = (
    (
        ("fed", "feed", "food", "meal"),
        (
            "Thank you for the delicious meal! *nom nom*",
            "Mmm, that was tasty! I feel much better now!",
            "You always know what I like to eat!",
        ),
    ),
    (
        ("sad", "down", "ignored"),
        (
            "I understand feeling down sometimes... *gentle hug*",
            "It's okay to feel sad. I'm here for you.",
        ),
    ),
    (
        ("play", "game"),
        ("Let's play! What would you like to do?",),
    ),
    (
        ("love", "romantic", "gift", "complimented"),
        (
            "You make my heart flutter with joy!",
            "I treasure our special connection!",
        ),
    ),
    (
        ("talk", "conversation"),
        (
            "What would you like to chat about? I'm all ears!",
            "I love our conversations! They mean so much to me.",
        ),
    ),
    (
        ("clicked", "click", "hello", "petted"),
        (
            "Hello there! Great to see you again!",
            "Hi! How has your day been treating you?",
            "Welcome back! I've been thinking about you!",
        ),
    ),
)

DEFAULT_REPLIES: Tuple[str, ...] = (
    "That's interesting! Tell me more about it!",
    "I appreciate you sharing that with me!",
    "Hmm, let me think about that for a moment...",
)

_SITUATION_MARKER = "current situation:"
_WORD_RE = re.compile(r"[a-z']+")


class KeywordGenerator(TextGenerator):
    def __init__(
        self,
        model: str = "keyword-stub",
        *,
        rules: Sequence[Rule] = DEFAULT_RULES,
        default_replies: Sequence[str] = DEFAULT_REPLIES,
        delay_s: float = 0.0,
        context_size: int = 2048,
    ) -> None:
        if not default_replies:
            raise ValueError("default_replies must not be empty")
        super().__init__()
        self._model = model
        self._rules = tuple(rules)
        self._default = tuple(default_replies)
        self._delay_s = max(0.0, delay_s)
        self._context_size = context_size
        self._initialized = False
        self._counters: Dict[int, Iterator[int]] = {}
        self._lock = Lock()

    def initialize(self) -> None:
        with self._lock:
            self._initialized = True

    def predict(self, prompt: str) -> str:
        with self._lock:
            if not self._initialized:
                raise GeneratorNotInitialized("generator not initialized")
        if not prompt:
            raise GeneratorError("prompt cannot be empty")
        if self.estimate_tokens(prompt) > self._context_size:
            raise GeneratorError("prompt too long for context window")
        if self._delay_s:
            time.sleep(self._delay_s)
        words = set(_WORD_RE.findall(self._focus(prompt)))
        for idx, (keywords, replies) in enumerate(self._rules):
            if replies and words.intersection(keywords):
                return replies[self._next(idx) % len(replies)]
        return self._default[self._next(-1) % len(self._default)]

    def info(self) -> GeneratorInfo:
        return GeneratorInfo(
            model=self._model,
            context_size=self._context_size,
            backend="keyword",
            initialized=self._initialized,
            metadata={"rules": len(self._rules), "stub": True},
        )

    def release(self) -> None:
        with self._lock:
            self._initialized = False
        super().release()

    # helpers --------------------------------------------------------------
    def _focus(self, prompt: str) -> str:
        lowered = prompt.lower()
        pos = lowered.rfind(_SITUATION_MARKER)
        if pos < 0:
            return lowered
        return lowered[pos + len(_SITUATION_MARKER):]

    def _next(self, key: int) -> int:
        with self._lock:
            counter = self._counters.setdefault(key, count())
            return next(counter)


__all__ = ["KeywordGenerator", "DEFAULT_RULES", "DEFAULT_REPLIES"]
