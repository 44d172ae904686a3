"""Infrastructure helpers shared by the CLI and logging layers."""

from .paths import DEFAULT_ARTIFACT_ROOT, DEFAULT_LOG_ROOT, DEFAULT_REPORT_ROOT

__all__ = ["DEFAULT_ARTIFACT_ROOT", "DEFAULT_LOG_ROOT", "DEFAULT_REPORT_ROOT"]
