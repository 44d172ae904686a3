"""Single-path simulation with nominal/real accounting and the long-horizon guardrail."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .assumptions import GuardrailParameters, MarketAssumptions, RiskProfile
from .config import SimulationConfig
from .returns import AnnualReturnModel, PreviousYear, RegimeState, YearRecord
from .variates import UniformSource

__all__ = ["SimulationPath", "simulate_path", "compound_annual_growth"]


def compound_annual_growth(final_value: float, initial_value: float, years: int) -> float:
    """Return the CAGR turning ``initial_value`` into ``final_value``.

    A non-positive final value maps to ``-1.0`` (total loss).
    """

    if final_value <= 0.0:
        return -1.0
    return (final_value / initial_value) ** (1.0 / years) - 1.0


def _frozen(values: list[float] | np.ndarray) -> np.ndarray:
    array = np.asarray(values, dtype="float64")
    array.flags.writeable = False
    return array


@dataclass(frozen=True)
class SimulationPath:
    """Complete trajectory of one simulated lifetime.

    Attributes:
      nominal_values: Portfolio value for years ``0..N``.
      real_values: Inflation-deflated portfolio value for years ``0..N``.
      records: One :class:`YearRecord` per simulated year.
      nominal_cagr: Nominal CAGR before any guardrail rescale.
      real_cagr: Reported real CAGR (the floor when the guardrail fired).
      raw_real_cagr: Real CAGR before the guardrail.
      max_drawdown: Reported maximum drawdown, never worse than the cap.
      raw_max_drawdown: Worst peak-to-value decline actually simulated.
      adjusted: Whether the guardrail rescaled the path.
    """

    nominal_values: np.ndarray
    real_values: np.ndarray
    records: tuple[YearRecord, ...]
    nominal_cagr: float
    real_cagr: float
    raw_real_cagr: float
    max_drawdown: float
    raw_max_drawdown: float
    adjusted: bool = False

    @property
    def years(self) -> int:
        return len(self.records)

    @property
    def final_nominal_value(self) -> float:
        return float(self.nominal_values[-1])

    @property
    def final_real_value(self) -> float:
        return float(self.real_values[-1])

    @property
    def portfolio_returns(self) -> np.ndarray:
        return np.fromiter((r.portfolio_return for r in self.records), dtype="float64")

    @property
    def stock_returns(self) -> np.ndarray:
        return np.fromiter((r.stock_return for r in self.records), dtype="float64")

    @property
    def average_return(self) -> float:
        """Arithmetic mean of the yearly portfolio returns."""

        return float(np.mean(self.portfolio_returns))

    @property
    def negative_years(self) -> int:
        return int(np.count_nonzero(self.portfolio_returns < 0.0))


def _apply_guardrail(
    nominal: list[float],
    real: list[float],
    initial: float,
    years: int,
    raw_real_cagr: float,
    price_level: float,
    guardrail: GuardrailParameters,
) -> tuple[np.ndarray, np.ndarray, float, bool]:
    """Lift long-horizon paths whose real CAGR sits below the floor.

    Both value series are multiplied by one factor, so every year keeps its
    ratio to the final value and the reported real CAGR equals the floor.
    """

    nominal_arr = np.asarray(nominal, dtype="float64")
    real_arr = np.asarray(real, dtype="float64")
    floor = guardrail.real_cagr_floor
    if years < guardrail.min_years or raw_real_cagr >= floor:
        return nominal_arr, real_arr, raw_real_cagr, False

    target_real = initial * (1.0 + floor) ** years
    if real_arr[-1] > 0.0:
        factor = target_real / real_arr[-1]
        nominal_arr = nominal_arr * factor
        real_arr = real_arr * factor
    else:
        # Wiped-out paths cannot be rescaled; pin the end point instead.
        real_arr[-1] = target_real
        nominal_arr[-1] = target_real * price_level
    return nominal_arr, real_arr, floor, True


def simulate_path(
    config: SimulationConfig,
    assumptions: MarketAssumptions,
    source: UniformSource,
    *,
    profile: RiskProfile | None = None,
    model: AnnualReturnModel | None = None,
) -> SimulationPath:
    """Simulate one path year by year.

    Args:
      config: Validated simulation configuration.
      assumptions: Market tables shared read-only across paths.
      source: Uniform source owned exclusively by this path.
      profile: Resolved risk profile; looked up from ``config`` when omitted.
      model: Pre-built return model to reuse across paths.

    Returns:
      The completed :class:`SimulationPath`.
    """

    profile = profile or assumptions.profile(config.risk_profile)
    model = model or AnnualReturnModel(assumptions, profile)
    initial = float(config.initial_investment)
    years = int(config.years)

    state = RegimeState.fresh(source, assumptions.behaviour)
    previous = PreviousYear.initial(assumptions.inflation)

    value = initial
    peak = initial
    drawdown = 0.0
    nominal = [initial]
    real = [initial]
    records: list[YearRecord] = []

    for year in range(1, years + 1):
        value += config.contribution_for_year(year)
        record = model.next_year(year, previous, state, source)
        value *= 1.0 + record.portfolio_return
        state.cumulative_inflation *= 1.0 + record.inflation
        real_value = value / state.cumulative_inflation
        peak = max(peak, value)
        drawdown = min(drawdown, (value - peak) / peak)

        records.append(record)
        nominal.append(value)
        real.append(real_value)
        previous = record.as_previous()

    nominal_cagr = compound_annual_growth(nominal[-1], initial, years)
    raw_real_cagr = compound_annual_growth(real[-1], initial, years)
    guardrail = assumptions.guardrail
    nominal_arr, real_arr, real_cagr, adjusted = _apply_guardrail(
        nominal, real, initial, years, raw_real_cagr, state.cumulative_inflation, guardrail
    )

    return SimulationPath(
        nominal_values=_frozen(nominal_arr),
        real_values=_frozen(real_arr),
        records=tuple(records),
        nominal_cagr=nominal_cagr,
        real_cagr=real_cagr,
        raw_real_cagr=raw_real_cagr,
        max_drawdown=max(drawdown, guardrail.drawdown_cap),
        raw_max_drawdown=drawdown,
        adjusted=adjusted,
    )
