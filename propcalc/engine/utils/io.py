"""File helpers shared by the projection loaders and artefact writers."""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import pandas as pd
import yaml

__all__ = [
    "ensure_dir",
    "safe_path_segment",
    "read_yaml",
    "read_yaml_section",
    "write_yaml",
    "write_json",
    "write_frame_csv",
]

_UNSAFE_SEGMENT = re.compile(r'[<>:"/\\|?*\x00-\x1F]')


def ensure_dir(path: Path | str) -> Path:
    """Create ``path`` with its parents and return it."""

    directory = Path(path)
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def _prepare_target(path: Path | str) -> Path:
    target = Path(path)
    ensure_dir(target.parent)
    return target


def safe_path_segment(name: str) -> str:
    """Turn a profile name or label into a filename-safe prefix."""

    return _UNSAFE_SEGMENT.sub("-", str(name)).rstrip(" .")


def read_yaml(path: Path | str) -> Any:
    with Path(path).open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle)


def read_yaml_section(path: Path | str, section: str) -> Mapping[str, Any] | None:
    """Return the ``section`` mapping of a YAML document.

    Documents without the named key are treated as the section itself, so
    ``configs/market.yml`` may be written with or without a ``market:`` root.

    Args:
      path: YAML file to read.
      section: Top-level key to extract.

    Returns:
      The section mapping, or ``None`` when the document is empty.

    Raises:
      TypeError: If the document or the section is not a mapping.
    """

    data = read_yaml(path)
    if data is None:
        return None
    if not isinstance(data, Mapping):
        raise TypeError(f"{path} must contain a mapping")
    body = data.get(section, data)
    if not isinstance(body, Mapping):
        raise TypeError(f"{path}: {section} section must be a mapping")
    return body


def write_yaml(data: object, path: Path | str) -> Path:
    target = _prepare_target(path)
    with target.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(data, handle, sort_keys=True)
    return target


def write_json(data: object, path: Path | str, *, indent: int = 2) -> Path:
    """Write sorted JSON with a trailing newline."""

    target = _prepare_target(path)
    target.write_text(json.dumps(data, indent=indent, sort_keys=True) + "\n", encoding="utf-8")
    return target


def write_frame_csv(
    frame: pd.DataFrame,
    path: Path | str,
    *,
    float_format: str | None = None,
) -> Path:
    """Write a percentile or fan-chart frame as CSV, index included."""

    target = _prepare_target(path)
    frame.to_csv(target, float_format=float_format)
    return target
