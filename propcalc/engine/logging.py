"""Structured logging and metric helpers for the propcalc engine.

Every propcalc module obtains its logger from :func:`setup_logger`. Console
output is always on; a JSON-lines audit file under ``artifacts/logs`` is added
when requested by flag or by the ``PROPCALC_JSON_LOGS`` environment variable.
Projection runs attach their diagnostics through ``extra=`` and the audit
formatter lifts the fields listed in :data:`RUN_NUMERIC_FIELDS` and
:data:`RUN_TEXT_FIELDS` into the payload.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterator, Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import Final

from propcalc.engine.infra.paths import DEFAULT_LOG_ROOT

LOGGER_PREFIX: Final[str] = "propcalc"
CONSOLE_FORMAT: Final[str] = "[%(levelname)s] %(name)s: %(message)s"
DEFAULT_LEVEL: Final[str] = "INFO"
LOG_PATH: Final[Path] = DEFAULT_LOG_ROOT / "propcalc.log"
METRICS_PATH: Final[Path] = DEFAULT_LOG_ROOT / "metrics.jsonl"
JSON_ENV_FLAG: Final[str] = "PROPCALC_JSON_LOGS"
LEVEL_ENV_FLAG: Final[str] = "PROPCALC_LOG_LEVEL"

RUN_NUMERIC_FIELDS: Final[tuple[str, ...]] = (
    "process_time_ms",
    "paths",
    "years",
    "adjusted_paths",
)
RUN_TEXT_FIELDS: Final[tuple[str, ...]] = ("risk_profile",)

_CONSOLE_MARKER = "_propcalc_console"
_JSON_MARKER = "_propcalc_json"
_TRUTHY = frozenset({"1", "true", "yes", "on"})


class JsonAuditFormatter(logging.Formatter):
    """Format log records as single-line JSON payloads."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "source": record.name,
            "message": record.getMessage(),
        }
        for name in RUN_NUMERIC_FIELDS:
            payload[name] = _coerce_number(getattr(record, name, None))
        for name in RUN_TEXT_FIELDS:
            value = getattr(record, name, None)
            payload[name] = None if value is None else str(value)
        return json.dumps(payload, ensure_ascii=False)


def _coerce_number(value: object) -> float | None:
    if value is None:
        return None
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None


def _resolve_level(level: str | int | None) -> int:
    """Pick the level: environment first, then the caller, then INFO."""

    env_level = os.environ.get(LEVEL_ENV_FLAG, "").strip()
    if not env_level and isinstance(level, int):
        return level
    candidate = env_level or (level if isinstance(level, str) else DEFAULT_LEVEL)
    resolved = logging.getLevelName(candidate.strip().upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def _json_logging_enabled(explicit: bool) -> bool:
    return explicit or os.environ.get(JSON_ENV_FLAG, "").strip().lower() in _TRUTHY


def _find_handler(logger: logging.Logger, marker: str) -> logging.Handler | None:
    for handler in logger.handlers:
        if getattr(handler, marker, False):
            return handler
    return None


def _attach(logger: logging.Logger, handler: logging.Handler, marker: str, level: int) -> None:
    handler.setLevel(level)
    setattr(handler, marker, True)
    logger.addHandler(handler)


def _ensure_console_handler(logger: logging.Logger, level: int) -> None:
    existing = _find_handler(logger, _CONSOLE_MARKER)
    if existing is not None:
        existing.setLevel(level)
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    _attach(logger, handler, _CONSOLE_MARKER, level)


def _ensure_json_handler(logger: logging.Logger, level: int) -> None:
    existing = _find_handler(logger, _JSON_MARKER)
    if existing is not None:
        existing.setLevel(level)
        return
    LOG_PATH.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(LOG_PATH, encoding="utf-8")
    handler.setFormatter(JsonAuditFormatter())
    _attach(logger, handler, _JSON_MARKER, level)


def setup_logger(
    name: str,
    json_format: bool = False,
    level: str | int | None = None,
) -> logging.Logger:
    """Configure and return a structured logger for propcalc modules.

    Args:
      name: Logger name, usually ``__name__``.
      json_format: Mirror records to the JSON audit file.
      level: Fallback level when ``PROPCALC_LOG_LEVEL`` is unset.

    Returns:
      The configured logger. Repeated calls never duplicate handlers.
    """

    resolved_level = _resolve_level(level)
    logger = logging.getLogger(name)
    logger.setLevel(resolved_level)
    # Capture handlers such as pytest's ``caplog`` live on the root logger.
    logger.propagate = True
    _ensure_console_handler(logger, resolved_level)
    if _json_logging_enabled(json_format):
        _ensure_json_handler(logger, resolved_level)
    return logger


def record_metrics(
    metric_name: str,
    value: float,
    tags: Mapping[str, str] | None = None,
    *,
    path: Path | str = METRICS_PATH,
) -> Path:
    """Append one metric observation as a JSON line and return the file path."""

    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        "timestamp": datetime.now(tz=UTC).isoformat(),
        "metric": metric_name,
        "value": float(value),
        "tags": dict(tags or {}),
    }
    with target.open("a", encoding="utf-8") as handle:
        handle.write(json.dumps(payload, ensure_ascii=False) + "\n")
    return target


def _propcalc_logger_names() -> Iterator[str]:
    for name, logger in list(logging.Logger.manager.loggerDict.items()):
        if isinstance(logger, logging.Logger) and name.startswith(LOGGER_PREFIX):
            yield name


def configure_cli_logging(json_logs: bool, level: str | int | None = None) -> None:
    """Reconfigure every existing propcalc logger for a CLI run."""

    if json_logs:
        os.environ[JSON_ENV_FLAG] = "1"
    else:
        os.environ.pop(JSON_ENV_FLAG, None)
    for name in _propcalc_logger_names():
        setup_logger(name, json_format=json_logs, level=level)
    setup_logger(LOGGER_PREFIX, json_format=json_logs, level=level)


__all__ = ["setup_logger", "record_metrics", "configure_cli_logging", "JsonAuditFormatter"]
