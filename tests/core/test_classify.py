import pytest

from dialogcore.dialog import classify


@pytest.mark.parametrize(
    "text,animation",
    [
        ("I'm so happy to see you", "happy"),
        ("Sorry, I'm a bit down", "sad"),
        ("Time to eat something", "eating"),
        ("Happy to eat!", "happy"),  # table order wins
        ("Nothing special", "talking"),
    ],
)
def test_select_animation(text, animation):
    assert classify.select_animation(text) == animation


def test_select_animation_custom_default():
    assert classify.select_animation("meh", default="idle") == "idle"


@pytest.mark.parametrize(
    "text,kind",
    [
        ("I love you", "romantic"),
        ("Can I help?", "helpful"),
        ("What are you doing?", "inquisitive"),
        ("Okay.", "casual"),
    ],
)
def test_classify_response(text, kind):
    assert classify.classify_response(text) == kind


@pytest.mark.parametrize(
    "text,tone",
    [
        ("Wow!", "excited"),
        ("This is exciting", "excited"),
        ("I feel happy", "happy"),
        ("*blush*", "shy"),
        ("ok", "neutral"),
    ],
)
def test_detect_emotional_tone(text, tone):
    assert classify.detect_emotional_tone(text) == tone


def test_extract_topics_all_matches_in_table_order():
    text = "Let's play a game after we eat, I love food and want to learn"
    assert classify.extract_topics(text) == [
        "food",
        "gaming",
        "romance",
        "study",
    ]
    assert classify.extract_topics("nothing here") == []


def test_tables_are_extensible():
    table = classify.TONE_TABLE + ((classify.contains_any("zzz"), "sleepy"),)
    assert classify.first_match(table, "zzz...", "neutral") == "sleepy"


@pytest.mark.parametrize(
    "raw,clean",
    [
        ('  "Hello there"  ', "Hello there"),
        ("'quoted'", "quoted"),
        ("\"mismatched'", "\"mismatched'"),
        ("", "Hello! 👋"),
        ("   ", "Hello! 👋"),
        ('""', "Hello! 👋"),
    ],
)
def test_clean_response(raw, clean):
    assert classify.clean_response(raw) == clean


def test_clean_response_limits_long_text_to_two_sentences():
    raw = ". ".join(["This is a fairly long sentence number %d" % i for i in range(6)])
    out = classify.clean_response(raw)
    assert out == (
        "This is a fairly long sentence number 0. "
        "This is a fairly long sentence number 1."
    )
