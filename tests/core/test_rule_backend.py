import pytest

from dialogcore.dialog.rule_backend import RULE_CONFIDENCE, RuleBackend
from dialogcore.dialog.types import DialogContext


def _ctx(trigger):
    return DialogContext(trigger=trigger, session_id="s1")


def test_handles_only_known_triggers():
    backend = RuleBackend()
    assert backend.can_handle(_ctx("click"))
    assert not backend.can_handle(_ctx("dance"))
    with pytest.raises(LookupError):
        backend.generate(_ctx("dance"))


def test_rotates_per_trigger_and_classifies():
    backend = RuleBackend({"click": ["a", "b"], "feed": ["yum food"]})
    texts = [backend.generate(_ctx("click")).text for _ in range(3)]
    assert texts == ["a", "b", "a"]
    resp = backend.generate(_ctx("feed"))
    assert resp.confidence == pytest.approx(RULE_CONFIDENCE)
    assert resp.topics == ["food"]


def test_empty_rule_lists_are_ignored():
    backend = RuleBackend({"click": []})
    assert not backend.can_handle(_ctx("click"))
