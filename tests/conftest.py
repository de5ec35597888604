"""Pytest hooks and fixtures."""

import os

import pytest

from relaygate.config.loader import LEGACY_ENV_VARS


def pytest_configure(config):
    """Register custom markers (also in pyproject.toml)."""
    config.addinivalue_line(
        "markers",
        "requires_upstream: talks to the real cloud control plane (skipped in CI)",
    )


def pytest_collection_modifyitems(config, items):
    """Skip requires_upstream tests when running in CI (no cloud credential)."""
    if os.environ.get("CI") != "true":
        return
    skip = pytest.mark.skip(reason="Requires cloud credential (skipped in CI)")
    for item in items:
        if "requires_upstream" in item.keywords:
            item.add_marker(skip)


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    """Keep host SHELLY_*/TOKEN_SECRET/PORT and RELAYGATE_* settings out of config tests."""
    for name in LEGACY_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    for name in list(os.environ):
        if name.startswith("RELAYGATE_"):
            monkeypatch.delenv(name, raising=False)


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start_ms: int = 1_700_000_000_000):
        self.value = start_ms

    def __call__(self) -> int:
        return self.value

    def advance(self, ms: int) -> None:
        self.value += ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
