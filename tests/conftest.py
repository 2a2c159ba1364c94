"""Pytest configuration ensuring project root is importable.

Adds repository root to sys.path explicitly to avoid interpreter/path quirks.
"""
from __future__ import annotations

import sys
from pathlib import Path
import os
import pytest

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
SRC = ROOT / "src"
if SRC.exists() and str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


@pytest.fixture(autouse=True)
def _isolate_config_env():  # noqa: D401
    """Ensure global config/env/metrics side effects do not leak.

    - Clear aggregated config cache between tests
    - Restore DIALOG_CONFIG_DIR to original value
    - Reset metrics + event listeners
    """
    from dialogcore.config import clear_config_cache  # local import
    from dialogcore import metrics
    from dialogcore.eventbus import reset_for_tests
    from dialogcore.events import reset_listeners_for_tests

    prev = os.environ.get("DIALOG_CONFIG_DIR")
    clear_config_cache()
    metrics.reset_for_tests()
    reset_for_tests()
    reset_listeners_for_tests()
    try:
        yield
    finally:
        clear_config_cache()
        if prev is None:
            os.environ.pop("DIALOG_CONFIG_DIR", None)
        else:
            os.environ["DIALOG_CONFIG_DIR"] = prev


class FakeClock:
    """Manually advanced epoch clock."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
