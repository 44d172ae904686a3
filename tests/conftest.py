"""Shared pytest configuration for the propcalc test-suite."""

from __future__ import annotations

import os
import sys
from collections.abc import Iterable
from pathlib import Path

import pytest


def _insert_repo_root() -> None:
    """Make sure the repository root is importable without an install."""

    repo_root = Path(__file__).resolve().parents[1]
    if str(repo_root) not in sys.path:
        sys.path.insert(0, str(repo_root))


_insert_repo_root()


def pytest_report_header(config: pytest.Config) -> Iterable[str]:  # pragma: no cover - pytest hook
    """Show diagnostic context for the test run."""

    root = Path.cwd()
    log_level = os.environ.get("PROPCALC_LOG_LEVEL", "INFO")
    return [f"propcalc repo: {root}", f"PROPCALC_LOG_LEVEL={log_level}"]


@pytest.fixture(autouse=True)
def _set_verbose_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the default log level at INFO for readable failures."""

    monkeypatch.setenv("PROPCALC_LOG_LEVEL", "INFO")
    monkeypatch.delenv("PROPCALC_JSON_LOGS", raising=False)
