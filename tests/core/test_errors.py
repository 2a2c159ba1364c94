import pytest

from dialogcore.errors import (
    AttemptTimeout,
    DialogError,
    GenerationFailure,
    NoFallbackError,
    NotRegisteredError,
    map_exception,
    validate_error_type,
)


def test_known_codes_pass():
    for code in ("timeout", "generation-failed", "no-fallback", "not-registered"):
        assert validate_error_type(code) == code


def test_unknown_code_rejected():
    with pytest.raises(AssertionError):
        validate_error_type("totally-new")


def test_not_registered_is_key_error():
    err = NotRegisteredError("ghost")
    assert isinstance(err, KeyError)
    assert isinstance(err, DialogError)
    assert err.name == "ghost"
    assert str(err) == "backend 'ghost' is not registered"
    assert err.code == "not-registered"


def test_hierarchy_codes():
    assert issubclass(AttemptTimeout, GenerationFailure)
    assert AttemptTimeout().code == "timeout"
    assert NoFallbackError().code == "no-fallback"


@pytest.mark.parametrize(
    "exc, expected",
    [
        (AttemptTimeout("slow"), "timeout"),
        (TimeoutError(), "timeout"),
        (RuntimeError("request timed out"), "timeout"),
        (GenerationFailure("boom"), "generation-failed"),
        (ValueError("bad"), "generation-failed"),
    ],
)
def test_map_exception(exc, expected):
    assert map_exception(exc) == expected
