"""Shared fixtures for unit and feature tests."""

from __future__ import annotations

import pytest

from ghpulse.github import errors, observability
from tests.support.fake_github import FakeGitHub
from tests.support.fake_logger import FakeLogger

_ENV_VARS = (
    "GHPULSE_BATCH_SIZE",
    "GHPULSE_SCOPE_REQUIREMENT",
    "GHPULSE_ORG_SCOPE",
    "GHPULSE_LOW_QUOTA_THRESHOLD",
    "GHPULSE_PER_PAGE",
    "GHPULSE_GITHUB_TOKEN",
    "GHPULSE_GITHUB_API_URL",
    "GHPULSE_GITHUB_TIMEOUT_S",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove engine environment variables so defaults apply."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def event_log(monkeypatch: pytest.MonkeyPatch) -> FakeLogger:
    """Capture structured engine events."""
    fake = FakeLogger()
    monkeypatch.setattr(observability, "logger", fake)
    return fake


@pytest.fixture
def error_log(monkeypatch: pytest.MonkeyPatch) -> FakeLogger:
    """Capture classification log lines."""
    fake = FakeLogger()
    monkeypatch.setattr(errors, "logger", fake)
    return fake


@pytest.fixture
def github() -> FakeGitHub:
    """Return an empty fake GitHub API for a token with full scopes."""
    return FakeGitHub()
