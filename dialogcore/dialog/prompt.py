"""Prompt assembly with a hard length budget.

`PromptAssembler.build()` concatenates fixed blocks in order:

    [system prompt] -> persona -> character state -> recent conversation
    (only when non-empty) -> current situation -> response guidelines

and then enforces ``max_tokens * CHARS_PER_TOKEN`` characters with
`truncate_text`, which tries (in order) a sentence boundary inside the last
20% of the budget, the last whitespace before the budget and finally a hard
cut followed by TRUNCATION_MARKER. Lengths are counted in code points, so a
cut never splits a character; combining marks stay with their base.

The describe_* / format_* helpers are pure and total.
"""
from __future__ import annotations

import math
import re
import unicodedata
from time import time
from typing import Dict, List, Mapping, Sequence, Tuple

from dialogcore import metrics

from .types import DialogContext, Exchange

CHARS_PER_TOKEN = 4
DEFAULT_MAX_TOKENS = 1500
DEFAULT_HISTORY_LIMIT = 5
SENTENCE_WINDOW = 0.2
TRUNCATION_MARKER = "…[truncated]"

DEFAULT_PERSONA = "You are a friendly desktop pet character."
PERSONA_TEMPLATE = (
    "You are a desktop pet character with the following personality: {}"
)

TRAIT_THRESHOLD = 0.6
MAX_TRAITS = 3

RESPONSE_INSTRUCTIONS = (
    "Response guidelines:\n"
    "- Keep responses short and natural (1-2 sentences maximum)\n"
    "- Match your personality and current mood\n"
    "- Respond appropriately to the user's action\n"
    "- Use simple, conversational language\n"
    "- Include an emoji if it fits naturally\n"
    "- Stay in character as a desktop pet\n"
    "\n"
    "Your response:"
)

TRIGGER_DESCRIPTIONS: Dict[str, str] = {
    "click": "clicked on you",
    "rightclick": "right-clicked on you",
    "hover": "hovered over you",
    "feed": "fed you",
    "pet": "petted you",
    "play": "wants to play",
    "talk": "wants to talk",
    "gift": "gave you a gift",
    "compliment": "complimented you",
    "ignore": "ignored you",
    "idle": "you've been idle",
    "timer": "time passed",
}

# (lower bound inclusive, label), evaluated top-to-bottom
MOOD_LEVELS: Tuple[Tuple[float, str], ...] = (
    (80.0, "very happy"),
    (60.0, "happy"),
    (40.0, "neutral"),
    (20.0, "sad"),
)
LOWEST_MOOD = "very sad"

_PLACEHOLDER_RE = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")
_SENTENCE_END = ".!?"


# ---------------------------------------------------------------------------
# pure helpers
# ---------------------------------------------------------------------------

def describe_mood(value: float) -> str:
    """Map a 0..100 mood value to a label (non-finite values pass through)."""
    try:
        mood = float(value)
    except (TypeError, ValueError):
        return str(value)
    if not math.isfinite(mood):
        return str(value)
    for bound, label in MOOD_LEVELS:
        if mood >= bound:
            return label
    return LOWEST_MOOD


def describe_trigger(trigger: str) -> str:
    return TRIGGER_DESCRIPTIONS.get(trigger, trigger)


def _plural(n: int, unit: str) -> str:
    return f"1 {unit} ago" if n == 1 else f"{n} {unit}s ago"


def format_relative_time(ts: float, now: float | None = None) -> str:
    """Describe how long ago ``ts`` was; future timestamps read "just now"."""
    now = time() if now is None else now
    delta = now - ts
    if delta < 60:
        return "just now"
    if delta < 3600:
        return _plural(int(delta // 60), "minute")
    if delta < 86400:
        return _plural(int(delta // 3600), "hour")
    return _plural(int(delta // 86400), "day")


def estimate_tokens(text: str) -> int:
    return len(text) // CHARS_PER_TOKEN


def personality_from_examples(examples: Sequence[str], limit: int = 3) -> str:
    """Persona text derived from a character's example lines ("" if none)."""
    picked = [e.strip() for e in examples if e and e.strip()][: max(0, limit)]
    if not picked:
        return ""
    lines = [
        "Based on these example responses, respond in a similar tone and style:"
    ]
    lines.extend(f"- {e}" for e in picked)
    return "\n".join(lines) + "\n"


def _safe_cut(text: str, limit: int) -> str:
    """Cut to at most ``limit`` code points without orphaning combining marks."""
    if limit <= 0:
        return ""
    if len(text) <= limit:
        return text
    cut = limit
    while cut > 0 and unicodedata.combining(text[cut]):
        cut -= 1
    return text[:cut]


def truncate_text(text: str, max_chars: int) -> Tuple[str, str]:
    """Fit ``text`` into ``max_chars`` code points.

    Returns (result, strategy) where strategy is "" (no truncation needed),
    "sentence", "word" or "hard".
    """
    if len(text) <= max_chars:
        return text, ""
    if max_chars <= 0:
        return "", "hard"

    head = text[:max_chars]
    window_start = int(max_chars * (1 - SENTENCE_WINDOW))
    idx = max(head.rfind(p, window_start) for p in _SENTENCE_END)
    if idx >= 0:
        cut = _safe_cut(text, idx + 1)
        if cut:
            return cut, "sentence"

    # text[max_chars] may itself be the boundary, the whole head then fits
    span = text[: max_chars + 1]
    for pos in range(len(span) - 1, 0, -1):
        if span[pos].isspace():
            cut = span[:pos].rstrip()
            if cut:
                return _safe_cut(cut, max_chars), "word"
            break

    room = max_chars - len(TRUNCATION_MARKER)
    if room <= 0:
        return _safe_cut(text, max_chars), "hard"
    return _safe_cut(text, room) + TRUNCATION_MARKER, "hard"


def fit_utf8(text: str, max_bytes: int) -> str:
    """Trim ``text`` so its UTF-8 encoding fits ``max_bytes`` bytes.

    Never leaves a partial multi-byte sequence and never orphans a trailing
    combining mark from its base.
    """
    raw = text.encode("utf-8")
    if len(raw) <= max_bytes:
        return text
    if max_bytes <= 0:
        return ""
    trimmed = raw[:max_bytes].decode("utf-8", errors="ignore")
    return _safe_cut(text, len(trimmed))


# ---------------------------------------------------------------------------
# assembler
# ---------------------------------------------------------------------------

class PromptAssembler:
    """Build a bounded prompt for one turn.

    history is oldest -> newest; only the most recent ``history_limit``
    entries are rendered. ``last_strategy`` records the truncation strategy
    used by the most recent build ("" when the prompt fit).
    """

    def __init__(
        self,
        persona: str = "",
        history: Sequence[Exchange] | None = None,
        context: DialogContext | None = None,
        *,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        system_prompt: str = "",
        clock=time,
    ) -> None:
        self.persona = persona or ""
        self.history: List[Exchange] = list(history or [])
        self.context = context or DialogContext(trigger="", session_id="")
        self.max_tokens = max_tokens if max_tokens > 0 else DEFAULT_MAX_TOKENS
        self.history_limit = (
            history_limit if history_limit > 0 else DEFAULT_HISTORY_LIMIT
        )
        self.system_prompt = system_prompt or ""
        self._clock = clock
        self.last_strategy = ""

    @property
    def max_chars(self) -> int:
        return self.max_tokens * CHARS_PER_TOKEN

    # blocks ---------------------------------------------------------------
    def persona_block(self) -> str:
        if self.persona.strip():
            return PERSONA_TEMPLATE.format(self.persona) + "\n"
        return DEFAULT_PERSONA + "\n"

    def character_state_block(self) -> str:
        ctx = self.context
        lines = ["Current character state:"]
        if ctx.current_mood and ctx.current_mood > 0:
            lines.append(
                f"- Mood: {describe_mood(ctx.current_mood)} "
                f"({ctx.current_mood:.1f}/100)"
            )
        if ctx.time_of_day:
            lines.append(f"- Time of day: {ctx.time_of_day}")
        if ctx.relationship_level:
            lines.append(f"- Relationship level: {ctx.relationship_level}")
        traits = self.top_traits()
        if traits:
            lines.append("- Key traits: " + ", ".join(traits))
        if ctx.current_animation:
            lines.append(f"- Current animation: {ctx.current_animation}")
        return "\n".join(lines) + "\n\n"

    def top_traits(self) -> List[str]:
        strong = [
            (name, value)
            for name, value in self.context.personality_traits.items()
            if value > TRAIT_THRESHOLD
        ]
        strong.sort(key=lambda kv: (-kv[1], kv[0]))
        return [f"{name} ({value:.1f})" for name, value in strong[:MAX_TRAITS]]

    def history_block(self) -> str:
        recent = self.history[-self.history_limit:]
        if not recent:
            return ""
        now = self._clock()
        lines = ["Recent conversation:"]
        for ex in recent:
            lines.append(
                f"- {format_relative_time(ex.timestamp, now)} ({ex.trigger}): "
                f"User {describe_trigger(ex.trigger)} → "
                f'You said: "{ex.response_text}"'
            )
        return "\n".join(lines) + "\n\n"

    def situation_block(self) -> str:
        ctx = self.context
        lines = [
            "Current situation:",
            f"- The user just performed: {describe_trigger(ctx.trigger)}",
        ]
        if ctx.conversation_turn > 1:
            lines.append(
                f"- This is turn {ctx.conversation_turn} "
                "of the current conversation"
            )
        if ctx.last_response:
            lines.append(f'- Your last response was: "{ctx.last_response}"')
        return "\n".join(lines) + "\n\n"

    # build ----------------------------------------------------------------
    def build(self) -> str:
        parts = []
        if self.system_prompt:
            parts.append(self.system_prompt + "\n\n")
        parts.append(self.persona_block())
        parts.append(self.character_state_block())
        parts.append(self.history_block())
        parts.append(self.situation_block())
        parts.append(RESPONSE_INSTRUCTIONS)
        return self._fit("".join(parts))

    def build_from_template(
        self,
        template: str,
        substitutions: Mapping[str, str] | None = None,
    ) -> str:
        """Render ``template`` replacing ``{name}`` placeholders.

        Built-in names cover every block plus trigger, mood, time_of_day and
        relationship_level; ``substitutions`` override them. Unknown names
        become "". Substitution is single pass, so replacement values are
        never expanded again.
        """
        values = self.template_values()
        if substitutions:
            values.update({k: str(v) for k, v in substitutions.items()})

        def _sub(m: re.Match) -> str:
            return values.get(m.group(1), "")

        return self._fit(_PLACEHOLDER_RE.sub(_sub, template))

    def template_values(self) -> Dict[str, str]:
        ctx = self.context
        return {
            "personality": self.persona,
            "system_prompt": self.system_prompt,
            "character_state": self.character_state_block(),
            "conversation_history": self.history_block(),
            "current_situation": self.situation_block(),
            "response_instructions": RESPONSE_INSTRUCTIONS,
            "trigger": ctx.trigger,
            "mood": f"{ctx.current_mood:.1f}",
            "time_of_day": ctx.time_of_day,
            "relationship_level": ctx.relationship_level,
        }

    def _fit(self, text: str) -> str:
        result, strategy = truncate_text(text, self.max_chars)
        self.last_strategy = strategy
        metrics.inc_prompt_truncation(strategy)
        return result


__all__ = [
    "CHARS_PER_TOKEN",
    "DEFAULT_PERSONA",
    "TRUNCATION_MARKER",
    "TRIGGER_DESCRIPTIONS",
    "RESPONSE_INSTRUCTIONS",
    "describe_mood",
    "describe_trigger",
    "format_relative_time",
    "estimate_tokens",
    "personality_from_examples",
    "truncate_text",
    "fit_utf8",
    "PromptAssembler",
]
