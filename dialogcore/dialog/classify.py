"""Response classification as ordered (predicate, tag) tables.

Every classifier is a pure function evaluating its table top-to-bottom on the
lower-cased response text. First match wins, except `extract_topics` which
collects every matching tag (deduplicated, table order). Extending a
classifier means adding a row, not a branch.
"""
from __future__ import annotations

from typing import Callable, List, Sequence, Tuple

Predicate = Callable[[str], bool]
Table = Sequence[Tuple[Predicate, str]]

MAX_DISPLAY_CHARS = 150
EMPTY_RESPONSE_TEXT = "Hello! 👋"


def contains_any(*needles: str) -> Predicate:
    """Predicate: lower-cased text contains at least one needle."""

    def _pred(text: str) -> bool:
        return any(n in text for n in needles)

    _pred.__name__ = "contains_any(" + ",".join(needles) + ")"
    return _pred


ANIMATION_TABLE: Table = (
    (contains_any("happy", "joy", "😊"), "happy"),
    (contains_any("sad", "sorry", "😢"), "sad"),
    (contains_any("eat", "food", "hungry"), "eating"),
)

RESPONSE_TYPE_TABLE: Table = (
    (contains_any("love", "heart"), "romantic"),
    (contains_any("help", "support"), "helpful"),
    (contains_any("?"), "inquisitive"),
)

TONE_TABLE: Table = (
    (contains_any("!", "exciting"), "excited"),
    (contains_any("happy", "😊"), "happy"),
    (contains_any("shy", "blush"), "shy"),
)

TOPIC_TABLE: Table = (
    (contains_any("food", "eat", "hungry"), "food"),
    (contains_any("game", "play"), "gaming"),
    (contains_any("love", "heart"), "romance"),
    (contains_any("work"), "work"),
    (contains_any("study", "learn"), "study"),
)


def first_match(table: Table, text: str, default: str) -> str:
    lowered = text.lower()
    for pred, tag in table:
        if pred(lowered):
            return tag
    return default


def all_matches(table: Table, text: str) -> List[str]:
    lowered = text.lower()
    tags: List[str] = []
    for pred, tag in table:
        if tag not in tags and pred(lowered):
            tags.append(tag)
    return tags


def select_animation(text: str, default: str = "talking") -> str:
    return first_match(ANIMATION_TABLE, text, default)


def classify_response(text: str) -> str:
    return first_match(RESPONSE_TYPE_TABLE, text, "casual")


def detect_emotional_tone(text: str) -> str:
    return first_match(TONE_TABLE, text, "neutral")


def extract_topics(text: str) -> List[str]:
    return all_matches(TOPIC_TABLE, text)


def clean_response(raw: str) -> str:
    """Normalize raw generator output for display.

    Strips whitespace and one pair of matching surrounding quotes, keeps at
    most two sentences of long output and never returns an empty string.
    """
    cleaned = (raw or "").strip()
    if len(cleaned) >= 2 and cleaned[0] == cleaned[-1] and cleaned[0] in "\"'":
        cleaned = cleaned[1:-1].strip()
    if len(cleaned) > MAX_DISPLAY_CHARS:
        sentences = cleaned.split(". ")
        if len(sentences) > 2:
            cleaned = ". ".join(sentences[:2]) + "."
    if not cleaned:
        cleaned = EMPTY_RESPONSE_TEXT
    return cleaned


__all__ = [
    "contains_any",
    "ANIMATION_TABLE",
    "RESPONSE_TYPE_TABLE",
    "TONE_TABLE",
    "TOPIC_TABLE",
    "first_match",
    "all_matches",
    "select_animation",
    "classify_response",
    "detect_emotional_tone",
    "extract_topics",
    "clean_response",
]
