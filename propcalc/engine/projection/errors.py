"""Exceptions raised by the projection engine."""

from __future__ import annotations

__all__ = ["InvalidConfiguration", "SimulationCancelled"]


class InvalidConfiguration(ValueError):
    """Raised before any path runs when a configuration cannot be simulated."""


class SimulationCancelled(RuntimeError):
    """Raised when a batch is cancelled; completed paths are discarded."""
