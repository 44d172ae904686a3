"""Random variate generation for the projection engine.

Every random draw in the engine flows through a :class:`UniformSource`, so the
whole simulation can be replayed from a seed or from a fixed sequence of
uniforms. Normal variates are built from uniforms with the Box–Muller
transform and coupled to one another through a target correlation.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from typing import Protocol, runtime_checkable

import numpy as np

from propcalc.engine.utils.rand import generator_from_seed

__all__ = [
    "UniformSource",
    "GeneratorUniformSource",
    "SequenceUniformSource",
    "standard_normal",
    "correlated_normal",
    "uniform_between",
]


@runtime_checkable
class UniformSource(Protocol):
    """Source of independent uniform draws in ``[0, 1)``."""

    def uniform(self) -> float:
        """Return the next uniform draw."""
        ...


class GeneratorUniformSource:
    """:class:`UniformSource` backed by a :class:`numpy.random.Generator`."""

    __slots__ = ("_rng",)

    def __init__(self, rng: np.random.Generator) -> None:
        self._rng = rng

    @classmethod
    def from_seed(cls, seed: int | np.random.Generator | None = None) -> GeneratorUniformSource:
        """Build a source from an integer seed or an existing generator."""

        return cls(generator_from_seed(seed))

    def uniform(self) -> float:
        return float(self._rng.random())


class SequenceUniformSource:
    """Replay a fixed sequence of uniforms, cycling when exhausted.

    Useful to pin every branch of the return model in tests.
    """

    __slots__ = ("_values", "_position")

    def __init__(self, values: Iterable[float]) -> None:
        self._values = tuple(float(value) for value in values)
        if not self._values:
            raise ValueError("SequenceUniformSource requires at least one value")
        for value in self._values:
            if not 0.0 <= value < 1.0:
                raise ValueError(f"uniform values must lie in [0, 1), got {value}")
        if not any(self._values):
            raise ValueError("SequenceUniformSource needs at least one non-zero value")
        self._position = 0

    @property
    def consumed(self) -> int:
        """Number of draws served so far."""

        return self._position

    def uniform(self) -> float:
        value = self._values[self._position % len(self._values)]
        self._position += 1
        return value


def _nonzero_uniform(source: UniformSource) -> float:
    value = source.uniform()
    # Redraw exact zeros, log(0) is undefined.
    while value == 0.0:
        value = source.uniform()
    return value


def standard_normal(source: UniformSource) -> float:
    """Draw one standard-normal variate with the Box–Muller transform.

    Args:
      source: Uniform source consumed for exactly two non-zero draws.

    Returns:
      A draw from ``N(0, 1)``.
    """

    u1 = _nonzero_uniform(source)
    u2 = _nonzero_uniform(source)
    return math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)


def correlated_normal(z_a: float, rho: float, z_independent: float) -> float:
    """Return a variate with correlation ``rho`` to ``z_a``.

    Raises:
      ValueError: If ``rho`` lies outside ``[-1, 1]``.
    """

    if not -1.0 <= rho <= 1.0:
        raise ValueError(f"correlation must lie in [-1, 1], got {rho}")
    return rho * z_a + math.sqrt(1.0 - rho * rho) * z_independent


def uniform_between(source: UniformSource, low: float, high: float) -> float:
    """Return a uniform draw scaled to ``[low, high)``."""

    return low + (high - low) * source.uniform()
