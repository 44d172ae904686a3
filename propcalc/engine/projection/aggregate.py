"""Reduce a batch of simulated paths into percentile and risk statistics."""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import numpy as np
import pandas as pd

from propcalc.engine.logging import setup_logger

from .config import SimulationConfig
from .path import SimulationPath

__all__ = [
    "PERCENTILES",
    "PercentileCase",
    "DrawdownSummary",
    "AggregateResult",
    "aggregate_paths",
    "percentile_index",
    "sample_indices",
]

LOG = setup_logger(__name__)

PERCENTILES: tuple[int, ...] = (1, 10, 25, 50, 75, 90, 99)


def percentile_index(count: int, percentile: float) -> int:
    """Return ``floor(count * percentile / 100)`` clamped to ``[0, count - 1]``."""

    index = math.floor(count * percentile / 100.0)
    return min(max(index, 0), count - 1)


def sample_indices(count: int, cap: int) -> list[int]:
    """Evenly spaced indices covering ``count`` items, at most ``cap`` of them."""

    limit = min(cap, count)
    return [position * count // limit for position in range(limit)]


@dataclass(frozen=True)
class PercentileCase:
    """The path ranked at a given percentile of final nominal value.

    Attributes:
      percentile: Requested percentile (1-99).
      index: Rank of the path in the value-sorted batch.
      nominal_values: Nominal trajectory for years ``0..N``.
      real_values: Real trajectory for years ``0..N``.
      yearly_returns: Portfolio return of each simulated year.
      final_nominal_value: Nominal value at the horizon.
      final_real_value: Real value at the horizon.
      nominal_cagr: Unadjusted nominal CAGR of the path.
      real_cagr: Reported real CAGR of the path.
    """

    percentile: int
    index: int
    nominal_values: np.ndarray
    real_values: np.ndarray
    yearly_returns: np.ndarray
    final_nominal_value: float
    final_real_value: float
    nominal_cagr: float
    real_cagr: float

    @property
    def key(self) -> str:
        return f"p{self.percentile}"

    @classmethod
    def from_path(cls, percentile: int, index: int, path: SimulationPath) -> PercentileCase:
        return cls(
            percentile=percentile,
            index=index,
            nominal_values=path.nominal_values,
            real_values=path.real_values,
            yearly_returns=path.portfolio_returns,
            final_nominal_value=path.final_nominal_value,
            final_real_value=path.final_real_value,
            nominal_cagr=path.nominal_cagr,
            real_cagr=path.real_cagr,
        )


@dataclass(frozen=True)
class DrawdownSummary:
    """Batch drawdown statistics.

    Attributes:
      average: Mean of the per-path maximum drawdowns.
      worst: Worst per-path maximum drawdown.
      worst_path: Nominal trajectory of the worst-drawdown path.
    """

    average: float
    worst: float
    worst_path: np.ndarray


@dataclass(frozen=True)
class AggregateResult:
    """Aggregated outcome of a Monte Carlo batch.

    Attributes:
      risk_profile: Name of the simulated allocation.
      years: Projection horizon.
      number_of_simulations: Paths aggregated.
      cases: Percentile cases keyed ``p1`` … ``p99``.
      percentiles: Final nominal value of each percentile case; ordered by
        construction.
      real_percentiles: Final real value of the same cases.
      average_annual_return: Mean over paths of each path's mean return.
      drawdowns: Average and worst drawdown with the worst path.
      sample_paths: Evenly spaced real trajectories, at most the sample cap.
      average_final_nominal_value: Mean final nominal value.
      average_final_real_value: Mean final real value.
      average_nominal_cagr: Mean unadjusted nominal CAGR.
      average_real_cagr: Mean reported real CAGR.
      average_negative_years: Mean count of years with a negative return.
      adjusted_paths: Paths rescaled by the long-horizon guardrail.
    """

    risk_profile: str
    years: int
    number_of_simulations: int
    cases: dict[str, PercentileCase]
    percentiles: dict[str, float]
    real_percentiles: dict[str, float]
    average_annual_return: float
    drawdowns: DrawdownSummary
    sample_paths: tuple[np.ndarray, ...]
    average_final_nominal_value: float
    average_final_real_value: float
    average_nominal_cagr: float
    average_real_cagr: float
    average_negative_years: float
    adjusted_paths: int

    @property
    def median(self) -> PercentileCase:
        return self.cases["p50"]

    @property
    def median_cagr(self) -> float:
        return self.median.real_cagr

    @property
    def nominal_median_cagr(self) -> float:
        return self.median.nominal_cagr

    def fan_chart(self, kind: str = "real") -> pd.DataFrame:
        """Return percentile trajectories indexed by year, one column per percentile."""

        if kind not in {"real", "nominal"}:
            raise ValueError("kind must be 'real' or 'nominal'")
        columns = {
            key: (case.real_values if kind == "real" else case.nominal_values)
            for key, case in self.cases.items()
        }
        return pd.DataFrame(columns, index=pd.RangeIndex(self.years + 1, name="year"))

    def summary_frame(self) -> pd.DataFrame:
        """Return the percentile table with final values and CAGRs."""

        rows = [
            {
                "percentile": case.percentile,
                "final_nominal_value": case.final_nominal_value,
                "final_real_value": case.final_real_value,
                "nominal_cagr": case.nominal_cagr,
                "real_cagr": case.real_cagr,
            }
            for case in self.cases.values()
        ]
        return pd.DataFrame(rows).set_index("percentile")

    def to_payload(self) -> dict[str, Any]:
        """Return a JSON-serialisable mapping for API consumers."""

        return {
            "risk_profile": self.risk_profile,
            "years": self.years,
            "number_of_simulations": self.number_of_simulations,
            "paths": {key: case.real_values.tolist() for key, case in self.cases.items()},
            "nominal_paths": {
                key: case.nominal_values.tolist() for key, case in self.cases.items()
            },
            "yearly_returns": {
                key: case.yearly_returns.tolist() for key, case in self.cases.items()
            },
            "percentiles": dict(self.percentiles),
            "real_percentiles": dict(self.real_percentiles),
            "final_values": {
                "average": self.average_final_real_value,
                "nominal_average": self.average_final_nominal_value,
            },
            "drawdowns": {
                "average": self.drawdowns.average,
                "worst": self.drawdowns.worst,
                "worst_path": self.drawdowns.worst_path.tolist(),
            },
            "all_paths": [path.tolist() for path in self.sample_paths],
            "avg_annual_return": self.average_annual_return,
            "average_nominal_cagr": self.average_nominal_cagr,
            "average_real_cagr": self.average_real_cagr,
            "median_cagr": self.median_cagr,
            "nominal_median_cagr": self.nominal_median_cagr,
            "average_negative_years": self.average_negative_years,
            "adjusted_paths": self.adjusted_paths,
        }


def aggregate_paths(
    paths: Sequence[SimulationPath],
    config: SimulationConfig,
) -> AggregateResult:
    """Reduce completed paths into an :class:`AggregateResult`.

    Args:
      paths: Every path of the batch; percentiles need the full set.
      config: Configuration the batch was run with.

    Returns:
      The aggregated statistics.

    Raises:
      ValueError: If ``paths`` is empty.
    """

    if not paths:
        raise ValueError("cannot aggregate an empty batch of paths")

    count = len(paths)
    by_value = sorted(paths, key=lambda path: path.final_nominal_value)
    cases: dict[str, PercentileCase] = {}
    for percentile in PERCENTILES:
        index = percentile_index(count, percentile)
        case = PercentileCase.from_path(percentile, index, by_value[index])
        cases[case.key] = case

    worst_drawdown_path = min(paths, key=lambda path: path.max_drawdown)
    max_drawdowns = np.fromiter((path.max_drawdown for path in paths), dtype="float64")
    drawdowns = DrawdownSummary(
        average=float(np.mean(max_drawdowns)),
        worst=worst_drawdown_path.max_drawdown,
        worst_path=worst_drawdown_path.nominal_values,
    )

    sample = tuple(by_value[idx].real_values for idx in sample_indices(count, config.sample_cap))

    result = AggregateResult(
        risk_profile=config.risk_profile,
        years=config.years,
        number_of_simulations=count,
        cases=cases,
        percentiles={key: case.final_nominal_value for key, case in cases.items()},
        real_percentiles={key: case.final_real_value for key, case in cases.items()},
        average_annual_return=float(np.mean([path.average_return for path in paths])),
        drawdowns=drawdowns,
        sample_paths=sample,
        average_final_nominal_value=float(np.mean([p.final_nominal_value for p in paths])),
        average_final_real_value=float(np.mean([p.final_real_value for p in paths])),
        average_nominal_cagr=float(np.mean([p.nominal_cagr for p in paths])),
        average_real_cagr=float(np.mean([p.real_cagr for p in paths])),
        average_negative_years=float(np.mean([p.negative_years for p in paths])),
        adjusted_paths=sum(1 for path in paths if path.adjusted),
    )
    LOG.debug(
        "aggregate profile=%s years=%d paths=%d avg_return=%.4f avg_real_cagr=%.4f "
        "avg_drawdown=%.4f worst_drawdown=%.4f adjusted=%d",
        result.risk_profile,
        result.years,
        count,
        result.average_annual_return,
        result.average_real_cagr,
        drawdowns.average,
        drawdowns.worst,
        result.adjusted_paths,
    )
    return result
