"""Annual return model with a behavioural bull/bear overlay.

Each call to :meth:`AnnualReturnModel.next_year` produces one year of stock,
bond and inflation outcomes. The equity return starts from a log-normal draw
and is then reshaped by regime drift, post-crash recovery bias, forced
long-run recoveries, rare tail crashes, a circuit breaker on loss streaks and
a hard floor, in that order.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from .assumptions import (
    BehaviouralParameters,
    InflationParameters,
    MarketAssumptions,
    RiskProfile,
)
from .variates import UniformSource, correlated_normal, standard_normal, uniform_between

__all__ = ["BULL", "BEAR", "RegimeState", "PreviousYear", "YearRecord", "AnnualReturnModel"]

BULL = "bull"
BEAR = "bear"


def _draw_length(source: UniformSource, low: int, high: int) -> int:
    """Draw an integer uniformly from ``[low, high]``."""

    return min(high, low + int(source.uniform() * (high - low + 1)))


@dataclass
class RegimeState:
    """Behavioural state owned by a single simulated path.

    Attributes:
      bull_length: Bull regime length drawn once for the path.
      bear_length: Bear regime length drawn once for the path.
      in_bull: Whether the path is currently in a bull regime.
      years_in_regime: Years elapsed in the current regime.
      severe_loss_streak: Consecutive years with a severe equity loss.
      years_since_strong_year: Years since the last strong equity year.
      cumulative_inflation: Running price-level multiplier since year 0.
    """

    bull_length: int
    bear_length: int
    in_bull: bool = True
    years_in_regime: int = 0
    severe_loss_streak: int = 0
    years_since_strong_year: int = 0
    cumulative_inflation: float = 1.0

    @classmethod
    def fresh(cls, source: UniformSource, behaviour: BehaviouralParameters) -> RegimeState:
        """Start a path in a bull regime with newly drawn regime lengths."""

        bull_length = _draw_length(source, behaviour.bull_min_years, behaviour.bull_max_years)
        bear_length = _draw_length(source, behaviour.bear_min_years, behaviour.bear_max_years)
        return cls(bull_length=bull_length, bear_length=bear_length)

    @property
    def regime(self) -> str:
        return BULL if self.in_bull else BEAR

    def advance_regime(self) -> None:
        """Count one more year and flip the regime once its length is exceeded."""

        self.years_in_regime += 1
        limit = self.bull_length if self.in_bull else self.bear_length
        if self.years_in_regime > limit:
            self.in_bull = not self.in_bull
            self.years_in_regime = 1


@dataclass(frozen=True)
class PreviousYear:
    """Outcomes of the prior year carried into the next draw."""

    stock_return: float
    inflation: float

    @classmethod
    def initial(cls, inflation: InflationParameters) -> PreviousYear:
        """Context for year 1: no prior equity return, inflation at its mean."""

        return cls(stock_return=0.0, inflation=inflation.mean)


@dataclass(frozen=True)
class YearRecord:
    """One simulated year.

    Attributes:
      year: 1-based year index.
      portfolio_return: Allocation-weighted return.
      stock_return: Realised equity return.
      bond_return: Realised bond return.
      inflation: Realised inflation rate.
      regime: ``"bull"`` or ``"bear"`` during the year.
      forced_recovery: The equity return was a forced recovery draw.
      tail_crash: The equity return was overridden by a tail crash.
      circuit_breaker: A loss streak was broken by a small positive return.
    """

    year: int
    portfolio_return: float
    stock_return: float
    bond_return: float
    inflation: float
    regime: str
    forced_recovery: bool = False
    tail_crash: bool = False
    circuit_breaker: bool = False

    def as_previous(self) -> PreviousYear:
        return PreviousYear(stock_return=self.stock_return, inflation=self.inflation)


class AnnualReturnModel:
    """Generate yearly stock, bond and inflation outcomes for one allocation.

    The model reads only immutable assumption tables; all mutable context
    lives in the caller's :class:`RegimeState`, so one instance can serve any
    number of paths concurrently.
    """

    def __init__(self, assumptions: MarketAssumptions, profile: RiskProfile) -> None:
        self.assumptions = assumptions
        self.profile = profile
        stocks = assumptions.stocks
        # ``mean_return`` is the geometric target, so the location carries +sigma^2/2.
        self.equity_drift = math.log1p(stocks.mean_return) + 0.5 * stocks.volatility**2

    def _inflation(self, previous: PreviousYear, source: UniformSource) -> float:
        params = self.assumptions.inflation
        anchor = previous.inflation + params.mean_reversion * (params.mean - previous.inflation)
        return anchor + params.volatility * standard_normal(source)

    def _bond_return(self, inflation: float, shock: float) -> float:
        bonds = self.assumptions.bonds
        nominal_mean = max(bonds.mean_real_return + inflation, -0.99)
        drift = math.log1p(nominal_mean) - 0.5 * bonds.volatility**2
        surprise = inflation - self.assumptions.inflation.mean
        return math.expm1(drift + bonds.volatility * shock) + surprise * bonds.inflation_sensitivity

    def next_year(
        self,
        year: int,
        previous: PreviousYear,
        state: RegimeState,
        source: UniformSource,
    ) -> YearRecord:
        """Draw the outcomes of ``year`` and update ``state`` in place.

        Args:
          year: 1-based index of the simulated year.
          previous: Outcomes of the prior year, or :meth:`PreviousYear.initial`.
          state: Behavioural state of the path; mutated.
          source: Uniform source owned by the path.

        Returns:
          The immutable :class:`YearRecord` for ``year``.
        """

        behaviour = self.assumptions.behaviour
        stocks = self.assumptions.stocks

        inflation = self._inflation(previous, source)

        state.advance_regime()

        z_stock = standard_normal(source)
        z_bond = correlated_normal(
            z_stock,
            self.assumptions.correlations.stock_bond,
            standard_normal(source),
        )

        drift = self.equity_drift
        drift += behaviour.regime_drift_shift if state.in_bull else -behaviour.regime_drift_shift
        if previous.stock_return < behaviour.crash_threshold:
            drift += behaviour.recovery_bias

        forced_recovery = False
        state.years_since_strong_year += 1
        if (
            state.years_since_strong_year > behaviour.recovery_window_years
            and source.uniform() < behaviour.forced_recovery_probability
        ):
            stock_return = uniform_between(
                source, behaviour.forced_recovery_low, behaviour.forced_recovery_high
            )
            state.years_since_strong_year = 0
            forced_recovery = True
        else:
            stock_return = math.expm1(drift + stocks.volatility * z_stock)

        crash_probability = behaviour.tail_crash_probability
        if previous.stock_return < behaviour.tail_crash_repeat_threshold:
            crash_probability = behaviour.tail_crash_probability_after_crash
        tail_crash = source.uniform() < crash_probability
        if tail_crash:
            stock_return = uniform_between(source, behaviour.tail_crash_low, behaviour.tail_crash_high)

        circuit_breaker = False
        if stock_return < behaviour.severe_loss_threshold:
            state.severe_loss_streak += 1
        else:
            state.severe_loss_streak = 0
        if state.severe_loss_streak > behaviour.max_severe_loss_streak and stock_return < 0.0:
            stock_return = uniform_between(source, behaviour.rebound_low, behaviour.rebound_high)
            state.severe_loss_streak = 0
            circuit_breaker = True

        stock_return = max(stock_return, behaviour.equity_floor)
        if stock_return > behaviour.strong_year_threshold:
            state.years_since_strong_year = 0

        bond_return = self._bond_return(inflation, z_bond)
        portfolio_return = self.profile.stocks * stock_return + self.profile.bonds * bond_return

        return YearRecord(
            year=year,
            portfolio_return=portfolio_return,
            stock_return=stock_return,
            bond_return=bond_return,
            inflation=inflation,
            regime=state.regime,
            forced_recovery=forced_recovery,
            tail_crash=tail_crash,
            circuit_breaker=circuit_breaker,
        )
