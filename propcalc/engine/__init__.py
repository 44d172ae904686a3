"""Main namespace of the propcalc engine."""

from __future__ import annotations

from . import infra, projection

__all__ = ["infra", "projection"]
