"""Filesystem defaults for artefacts, reports and audit logs."""

from __future__ import annotations

from pathlib import Path
from typing import Final

DEFAULT_ARTIFACT_ROOT: Final[Path] = Path("artifacts")
DEFAULT_REPORT_ROOT: Final[Path] = DEFAULT_ARTIFACT_ROOT / "reports"
DEFAULT_LOG_ROOT: Final[Path] = DEFAULT_ARTIFACT_ROOT / "logs"

__all__ = ["DEFAULT_ARTIFACT_ROOT", "DEFAULT_LOG_ROOT", "DEFAULT_REPORT_ROOT"]
