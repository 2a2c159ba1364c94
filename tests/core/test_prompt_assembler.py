import unicodedata

import pytest

from dialogcore import metrics
from dialogcore.dialog.prompt import (
    DEFAULT_PERSONA,
    TRUNCATION_MARKER,
    PromptAssembler,
    describe_mood,
    describe_trigger,
    estimate_tokens,
    fit_utf8,
    format_relative_time,
    personality_from_examples,
    truncate_text,
)
from dialogcore.dialog.types import DialogContext, Exchange

NOW = 1_700_000_000.0


def _ctx(**kw):
    base = dict(trigger="click", session_id="s1", current_mood=72.0)
    base.update(kw)
    return DialogContext(**base)


def test_empty_persona_no_history_click():
    text = PromptAssembler(context=_ctx()).build()
    assert text
    assert DEFAULT_PERSONA in text
    assert "Recent conversation:" not in text
    assert "- The user just performed: clicked on you" in text


def test_block_order_and_content():
    history = [
        Exchange(timestamp=NOW - 120, trigger="feed", response_text="Yum!"),
        Exchange(timestamp=NOW - 10, trigger="click", response_text="Hi!"),
    ]
    ctx = _ctx(
        time_of_day="evening",
        relationship_level="friend",
        personality_traits={"shy": 0.3, "playful": 0.9, "kind": 0.7},
        current_animation="idle",
        conversation_turn=3,
        last_response="Hi!",
    )
    text = PromptAssembler(
        persona="cheerful and curious",
        history=history,
        context=ctx,
        system_prompt="SYSTEM",
        clock=lambda: NOW,
    ).build()
    order = [
        "SYSTEM",
        "with the following personality: cheerful and curious",
        "Current character state:",
        "Recent conversation:",
        "Current situation:",
        "Response guidelines:",
    ]
    positions = [text.index(marker) for marker in order]
    assert positions == sorted(positions)
    assert "- Mood: happy (72.0/100)" in text
    assert "- Time of day: evening" in text
    assert "- Key traits: playful (0.9), kind (0.7)" in text
    assert "shy" not in text
    assert '- 2 minutes ago (feed): User fed you → You said: "Yum!"' in text
    assert '- just now (click): User clicked on you → You said: "Hi!"' in text
    assert "This is turn 3 of the current conversation" in text
    assert text.endswith("Your response:")


def test_history_limited_to_most_recent():
    history = [
        Exchange(timestamp=NOW, trigger="click", response_text=f"r{i}")
        for i in range(8)
    ]
    text = PromptAssembler(
        history=history, context=_ctx(), history_limit=5, clock=lambda: NOW
    ).build()
    assert '"r2"' not in text
    assert all(f'"r{i}"' in text for i in range(3, 8))


def test_top_traits_capped_at_three():
    traits = {"a": 0.93, "b": 0.9, "c": 0.8, "d": 0.7}
    asm = PromptAssembler(context=_ctx(personality_traits=traits))
    assert asm.top_traits() == ["a (0.9)", "b (0.9)", "c (0.8)"]


@pytest.mark.parametrize("max_tokens", [10, 50, 200, 1500])
def test_build_respects_budget_for_huge_inputs(max_tokens):
    persona = "Ünïcødé persona with émojis 😺🐾 and more words. " * 400
    history = [
        Exchange(
            timestamp=NOW, trigger="talk", response_text="日本語のテキスト" * 50
        )
        for _ in range(10)
    ]
    asm = PromptAssembler(
        persona=persona,
        history=history,
        context=_ctx(last_response="é" * 1000),
        max_tokens=max_tokens,
        clock=lambda: NOW,
    )
    text = asm.build()
    assert len(text) <= max_tokens * 4
    assert asm.last_strategy in {"sentence", "word", "hard"}
    # valid text: round trips through utf-8 without surrogates
    assert text.encode("utf-8").decode("utf-8") == text


def test_truncate_prefers_sentence_boundary():
    text = "word " * 15 + "End of thought. trailing words keep going on and on"
    result, strategy = truncate_text(text, 100)
    assert strategy == "sentence"
    assert result.endswith("End of thought.")
    assert len(result) <= 100


def test_truncate_sentence_outside_window_falls_back_to_word():
    text = "Short. " + "word " * 40
    result, strategy = truncate_text(text, 100)
    assert strategy == "word"
    assert len(result) <= 100
    assert not result.endswith(" ")
    assert result.endswith("word")


def test_truncate_hard_cut_with_marker():
    text = "x" * 500
    result, strategy = truncate_text(text, 100)
    assert strategy == "hard"
    assert result.endswith(TRUNCATION_MARKER)
    assert len(result) == 100


def test_truncate_hard_cut_never_splits_characters():
    text = "😺" * 300
    result, strategy = truncate_text(text, 50)
    assert strategy == "hard"
    assert len(result) <= 50
    body = result.replace(TRUNCATION_MARKER, "")
    assert body == "😺" * (50 - len(TRUNCATION_MARKER))


def test_truncate_keeps_combining_marks_with_base():
    text = "e\u0301" * 100  # e + combining acute
    result, _ = truncate_text(text, 25)
    body = result.replace(TRUNCATION_MARKER, "")
    assert not unicodedata.combining(body[-1]) or body[-2] == "e"
    assert body[-1] == "\u0301"
    assert len(result) <= 25


def test_truncate_noop_and_tiny_budget():
    assert truncate_text("short", 100) == ("short", "")
    result, strategy = truncate_text("abcdefgh" * 10, 5)
    assert len(result) <= 5 and strategy == "hard"
    assert truncate_text("abc", 0) == ("", "hard")


def test_truncation_metric_recorded():
    PromptAssembler(persona="x" * 10_000, context=_ctx(), max_tokens=20).build()
    snap = metrics.snapshot()["counters"]
    assert any(k.startswith("prompt_truncations_total") for k in snap)


def test_fit_utf8_never_leaves_partial_sequence():
    text = "aé😺" * 20
    for limit in range(0, 40):
        out = fit_utf8(text, limit)
        assert len(out.encode("utf-8")) <= limit
        assert text.startswith(out)


def test_template_placeholders():
    asm = PromptAssembler(
        persona="grumpy cat",
        context=_ctx(trigger="feed", time_of_day="night", current_mood=10),
    )
    out = asm.build_from_template(
        "[{personality}] {trigger}@{time_of_day} mood={mood} {nope} {custom}",
        {"custom": "X"},
    )
    assert out == "[grumpy cat] feed@night mood=10.0  X"


def test_template_unresolved_placeholders_become_empty():
    out = PromptAssembler(context=_ctx()).build_from_template(
        "a{missing}b{another_one}c"
    )
    assert out == "abc"


def test_template_blocks_and_budget():
    asm = PromptAssembler(context=_ctx(), max_tokens=30)
    out = asm.build_from_template(
        "{current_situation}{response_instructions}" * 10
    )
    assert "{" not in out
    assert len(out) <= 120


def test_template_values_not_expanded_twice():
    out = PromptAssembler(context=_ctx()).build_from_template(
        "{x}", {"x": "{trigger}"}
    )
    assert out == "{trigger}"


@pytest.mark.parametrize(
    "value,label",
    [
        (100, "very happy"),
        (80, "very happy"),
        (79.9, "happy"),
        (60, "happy"),
        (40, "neutral"),
        (20, "sad"),
        (19.9, "very sad"),
        (-5, "very sad"),
    ],
)
def test_describe_mood(value, label):
    assert describe_mood(value) == label


def test_describe_mood_non_finite_passthrough():
    assert describe_mood(float("nan")) == "nan"


def test_describe_trigger_mapping_and_passthrough():
    assert describe_trigger("rightclick") == "right-clicked on you"
    assert describe_trigger("idle") == "you've been idle"
    assert describe_trigger("dance") == "dance"


@pytest.mark.parametrize(
    "delta,expected",
    [
        (-30, "just now"),
        (0, "just now"),
        (59, "just now"),
        (60, "1 minute ago"),
        (150, "2 minutes ago"),
        (3600, "1 hour ago"),
        (7300, "2 hours ago"),
        (86400, "1 day ago"),
        (3 * 86400 + 5, "3 days ago"),
    ],
)
def test_format_relative_time(delta, expected):
    assert format_relative_time(NOW - delta, NOW) == expected


def test_estimate_tokens():
    assert estimate_tokens("") == 0
    assert estimate_tokens("abcdefgh") == 2


def test_personality_from_examples():
    text = personality_from_examples(["one", "  ", "two", "three", "four"])
    assert text.startswith("Based on these example responses")
    assert "- one\n- two\n- three\n" in text
    assert "four" not in text
    assert personality_from_examples([]) == ""
