"""Market assumption tables consumed by the projection engine.

The tables are immutable and passed explicitly to every engine entry point.
:meth:`MarketAssumptions.default` returns the built-in calibration; YAML files
can override any section through :func:`load_market_assumptions`.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from pathlib import Path
from types import MappingProxyType
from typing import Any, TypeVar

from propcalc.engine.utils.io import read_yaml_section

from .errors import InvalidConfiguration

__all__ = [
    "ALLOCATION_TOLERANCE",
    "AssetClassParameters",
    "BondParameters",
    "InflationParameters",
    "CorrelationParameters",
    "BehaviouralParameters",
    "GuardrailParameters",
    "RiskProfile",
    "MarketAssumptions",
    "DEFAULT_RISK_PROFILES",
    "load_market_assumptions",
]

ALLOCATION_TOLERANCE = 1e-9

_T = TypeVar("_T")


def _check_volatility(name: str, value: float) -> None:
    if not math.isfinite(value) or value < 0.0:
        raise InvalidConfiguration(f"{name} volatility must be >= 0, got {value}")


def _check_correlation(name: str, value: float) -> None:
    if not math.isfinite(value) or not -1.0 <= value <= 1.0:
        raise InvalidConfiguration(f"{name} correlation must lie in [-1, 1], got {value}")


@dataclass(frozen=True)
class AssetClassParameters:
    """Long-run return assumptions for a growth asset class.

    Attributes:
      mean_return: Arithmetic mean annual return.
      volatility: Standard deviation of annual returns.
    """

    mean_return: float
    volatility: float

    def __post_init__(self) -> None:
        _check_volatility("asset", self.volatility)
        if self.mean_return <= -1.0:
            raise InvalidConfiguration("mean_return must be greater than -1")


@dataclass(frozen=True)
class BondParameters:
    """Bond return assumptions.

    Attributes:
      mean_real_return: Mean return in excess of realised inflation.
      volatility: Standard deviation of annual bond returns.
      inflation_sensitivity: Linear effect of an inflation surprise on the
        realised bond return.
    """

    mean_real_return: float
    volatility: float
    inflation_sensitivity: float

    def __post_init__(self) -> None:
        _check_volatility("bond", self.volatility)


@dataclass(frozen=True)
class InflationParameters:
    """Inflation process: mean-reverting noise around a long-run mean."""

    mean: float
    volatility: float
    mean_reversion: float = 0.25

    def __post_init__(self) -> None:
        _check_volatility("inflation", self.volatility)
        if not 0.0 <= self.mean_reversion <= 1.0:
            raise InvalidConfiguration("inflation mean_reversion must lie in [0, 1]")


@dataclass(frozen=True)
class CorrelationParameters:
    """Pairwise correlation coefficients between asset shocks."""

    stock_bond: float

    def __post_init__(self) -> None:
        _check_correlation("stock_bond", self.stock_bond)


@dataclass(frozen=True)
class BehaviouralParameters:
    """Constants of the behavioural regime overlay on equity returns.

    Attributes:
      regime_drift_shift: Drift added in bull regimes and removed in bear ones.
      bull_min_years: Shortest bull regime, in years.
      bull_max_years: Longest bull regime, in years.
      bear_min_years: Shortest bear regime, in years.
      bear_max_years: Longest bear regime, in years.
      crash_threshold: Prior-year equity return below which the recovery
        bias applies.
      recovery_bias: Drift added after a crash year.
      strong_year_threshold: Equity return that counts as a strong year.
      recovery_window_years: Years without a strong year before a forced
        recovery may trigger.
      forced_recovery_probability: Probability of forcing a recovery year.
      forced_recovery_low: Lower bound of a forced recovery return.
      forced_recovery_high: Upper bound of a forced recovery return.
      tail_crash_probability: Yearly probability of a tail crash.
      tail_crash_probability_after_crash: Tail crash probability after a
        year below ``tail_crash_repeat_threshold``.
      tail_crash_repeat_threshold: Prior-year return that dampens crashes.
      tail_crash_low: Worst tail crash return.
      tail_crash_high: Mildest tail crash return.
      severe_loss_threshold: Equity return counted as a severe loss.
      max_severe_loss_streak: Streak length the circuit breaker tolerates.
      rebound_low: Lower bound of the circuit-breaker replacement return.
      rebound_high: Upper bound of the circuit-breaker replacement return.
      equity_floor: Hard floor on any annual equity return.
    """

    regime_drift_shift: float = 0.02
    bull_min_years: int = 4
    bull_max_years: int = 7
    bear_min_years: int = 1
    bear_max_years: int = 2
    crash_threshold: float = -0.20
    recovery_bias: float = 0.05
    strong_year_threshold: float = 0.20
    recovery_window_years: int = 6
    forced_recovery_probability: float = 0.70
    forced_recovery_low: float = 0.15
    forced_recovery_high: float = 0.35
    tail_crash_probability: float = 0.015
    tail_crash_probability_after_crash: float = 0.005
    tail_crash_repeat_threshold: float = -0.25
    tail_crash_low: float = -0.50
    tail_crash_high: float = -0.30
    severe_loss_threshold: float = -0.15
    max_severe_loss_streak: int = 2
    rebound_low: float = 0.0
    rebound_high: float = 0.05
    equity_floor: float = -0.50

    def __post_init__(self) -> None:
        if not 1 <= self.bull_min_years <= self.bull_max_years:
            raise InvalidConfiguration("bull regime length bounds are inconsistent")
        if not 1 <= self.bear_min_years <= self.bear_max_years:
            raise InvalidConfiguration("bear regime length bounds are inconsistent")
        for name in (
            "forced_recovery_probability",
            "tail_crash_probability",
            "tail_crash_probability_after_crash",
        ):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise InvalidConfiguration(f"{name} must lie in [0, 1], got {value}")
        for low, high in (
            ("forced_recovery_low", "forced_recovery_high"),
            ("tail_crash_low", "tail_crash_high"),
            ("rebound_low", "rebound_high"),
        ):
            if getattr(self, low) > getattr(self, high):
                raise InvalidConfiguration(f"{low} must not exceed {high}")
        if self.equity_floor <= -1.0:
            raise InvalidConfiguration("equity_floor must be greater than -1")


@dataclass(frozen=True)
class GuardrailParameters:
    """Long-horizon clamp applied to implausible compounded outcomes.

    Attributes:
      real_cagr_floor: Lowest real CAGR reported for long horizons.
      drawdown_cap: Worst maximum drawdown reported for any path.
      min_years: Horizon from which the real CAGR floor applies.
    """

    real_cagr_floor: float = -0.01
    drawdown_cap: float = -0.60
    min_years: int = 20

    def __post_init__(self) -> None:
        if self.real_cagr_floor <= -1.0:
            raise InvalidConfiguration("real_cagr_floor must be greater than -1")
        if not -1.0 <= self.drawdown_cap <= 0.0:
            raise InvalidConfiguration("drawdown_cap must lie in [-1, 0]")
        if self.min_years < 1:
            raise InvalidConfiguration("guardrail min_years must be >= 1")


@dataclass(frozen=True)
class RiskProfile:
    """Named stock/bond allocation.

    The historical figures are display metadata for the surrounding
    application; the engine only uses the allocation.
    """

    name: str
    stocks: float
    bonds: float
    description: str = ""
    worst_year: float | None = None
    best_year: float | None = None
    historical_max_drawdown: float | None = None

    def __post_init__(self) -> None:
        if self.stocks < 0.0 or self.bonds < 0.0:
            raise InvalidConfiguration(f"risk profile {self.name!r} has negative fractions")
        if abs(self.stocks + self.bonds - 1.0) > ALLOCATION_TOLERANCE:
            raise InvalidConfiguration(
                f"risk profile {self.name!r} allocation sums to {self.stocks + self.bonds}"
            )

    @classmethod
    def from_stock_share(cls, name: str, stocks: float, **metadata: Any) -> RiskProfile:
        """Build a two-asset profile holding ``stocks`` in equities."""

        return cls(name=name, stocks=float(stocks), bonds=1.0 - float(stocks), **metadata)

    def allocation(self) -> dict[str, float]:
        return {"stocks": self.stocks, "bonds": self.bonds}


DEFAULT_RISK_PROFILES: Mapping[str, RiskProfile] = MappingProxyType(
    {
        "conservative": RiskProfile.from_stock_share(
            "conservative",
            0.40,
            description="40% stocks / 60% bonds - Lower risk, lower expected returns",
            worst_year=-0.152,
            best_year=0.248,
            historical_max_drawdown=-0.203,
        ),
        "balanced": RiskProfile.from_stock_share(
            "balanced",
            0.60,
            description="60% stocks / 40% bonds - Moderate risk and returns",
            worst_year=-0.266,
            best_year=0.323,
            historical_max_drawdown=-0.325,
        ),
        "growth": RiskProfile.from_stock_share(
            "growth",
            0.80,
            description="80% stocks / 20% bonds - Higher risk, higher expected returns",
            worst_year=-0.370,
            best_year=0.385,
            historical_max_drawdown=-0.438,
        ),
        "aggressive": RiskProfile(
            name="aggressive",
            stocks=1.0,
            bonds=0.0,
            description="100% stocks - Highest risk and potential returns",
            worst_year=-0.431,
            best_year=0.536,
            historical_max_drawdown=-0.519,
        ),
    }
)


@dataclass(frozen=True)
class MarketAssumptions:
    """Immutable bundle of every table the engine reads.

    Attributes:
      stocks: Equity return assumptions.
      bonds: Bond return assumptions.
      inflation: Inflation process assumptions.
      correlations: Shock correlations between asset classes.
      behaviour: Regime and crash overlay constants.
      guardrail: Long-horizon clamp settings.
      risk_profiles: Read-only mapping of profile name to allocation.
    """

    stocks: AssetClassParameters
    bonds: BondParameters
    inflation: InflationParameters
    correlations: CorrelationParameters
    behaviour: BehaviouralParameters
    guardrail: GuardrailParameters
    risk_profiles: Mapping[str, RiskProfile]

    def __post_init__(self) -> None:
        if not self.risk_profiles:
            raise InvalidConfiguration("at least one risk profile is required")
        object.__setattr__(self, "risk_profiles", MappingProxyType(dict(self.risk_profiles)))

    @classmethod
    def default(cls) -> MarketAssumptions:
        """Return the built-in calibration."""

        return cls(
            stocks=AssetClassParameters(mean_return=0.10, volatility=0.17),
            bonds=BondParameters(
                mean_real_return=0.02,
                volatility=0.06,
                inflation_sensitivity=-0.8,
            ),
            inflation=InflationParameters(mean=0.025, volatility=0.012),
            correlations=CorrelationParameters(stock_bond=0.10),
            behaviour=BehaviouralParameters(),
            guardrail=GuardrailParameters(),
            risk_profiles=DEFAULT_RISK_PROFILES,
        )

    def profile(self, name: str) -> RiskProfile:
        """Look up a risk profile by name.

        Raises:
          InvalidConfiguration: If ``name`` is not a known profile.
        """

        try:
            return self.risk_profiles[name]
        except KeyError:
            known = ", ".join(sorted(self.risk_profiles))
            raise InvalidConfiguration(
                f"unknown risk profile {name!r}; expected one of: {known}"
            ) from None

    @classmethod
    def from_mapping(
        cls,
        payload: Mapping[str, object],
        *,
        base: MarketAssumptions | None = None,
    ) -> MarketAssumptions:
        """Override sections of ``base`` (defaults) with a YAML mapping.

        Args:
          payload: Mapping with optional ``stocks``, ``bonds``, ``inflation``,
            ``correlations``, ``behaviour``, ``guardrail`` and
            ``risk_profiles`` sections.
          base: Assumptions to start from; the built-in table when omitted.

        Returns:
          A new :class:`MarketAssumptions` instance.

        Raises:
          InvalidConfiguration: On unknown keys, non-numeric values or values
            violating a table invariant.
        """

        current = base or cls.default()
        profiles = current.risk_profiles
        raw_profiles = payload.get("risk_profiles")
        if raw_profiles is not None:
            profiles = _profiles_from_mapping(raw_profiles)
        return cls(
            stocks=_override(current.stocks, payload.get("stocks"), "stocks"),
            bonds=_override(current.bonds, payload.get("bonds"), "bonds"),
            inflation=_override(current.inflation, payload.get("inflation"), "inflation"),
            correlations=_override(
                current.correlations, payload.get("correlations"), "correlations"
            ),
            behaviour=_override(current.behaviour, payload.get("behaviour"), "behaviour"),
            guardrail=_override(current.guardrail, payload.get("guardrail"), "guardrail"),
            risk_profiles=profiles,
        )


def _override(current: _T, section: object, label: str) -> _T:
    """Return ``current`` with the numeric fields listed in ``section`` replaced."""

    if section is None:
        return current
    if not isinstance(section, Mapping):
        raise InvalidConfiguration(f"{label} must be a mapping")
    allowed = {field.name: field.type for field in fields(current)}  # type: ignore[arg-type]
    unknown = set(section) - set(allowed)
    if unknown:
        raise InvalidConfiguration(f"{label} has unknown keys: {sorted(unknown)}")
    updates: dict[str, float | int] = {}
    for key, value in section.items():
        if isinstance(value, bool) or not isinstance(value, int | float):
            raise InvalidConfiguration(f"{label}.{key} must be a number")
        updates[key] = int(value) if allowed[key] in (int, "int") else float(value)
    return replace(current, **updates)  # type: ignore[type-var]


def _profiles_from_mapping(raw: object) -> dict[str, RiskProfile]:
    if not isinstance(raw, Mapping) or not raw:
        raise InvalidConfiguration("risk_profiles must be a non-empty mapping")
    profiles: dict[str, RiskProfile] = {}
    for name, entry in raw.items():
        if not isinstance(entry, Mapping):
            raise InvalidConfiguration(f"risk_profiles.{name} must be a mapping")
        stocks = entry.get("stocks")
        if isinstance(stocks, bool) or not isinstance(stocks, int | float):
            raise InvalidConfiguration(f"risk_profiles.{name}.stocks must be a number")
        bonds = entry.get("bonds", 1.0 - float(stocks))
        if isinstance(bonds, bool) or not isinstance(bonds, int | float):
            raise InvalidConfiguration(f"risk_profiles.{name}.bonds must be a number")
        profiles[str(name)] = RiskProfile(
            name=str(name),
            stocks=float(stocks),
            bonds=float(bonds),
            description=str(entry.get("description", "")),
        )
    return profiles


def load_market_assumptions(path: Path | str | None = None) -> MarketAssumptions:
    """Load market assumptions from YAML, defaulting to the built-in table.

    Args:
      path: YAML file path. ``None`` or an empty document yields
        :meth:`MarketAssumptions.default`.

    Returns:
      The resulting :class:`MarketAssumptions`.
    """

    if path is None:
        return MarketAssumptions.default()
    try:
        section = read_yaml_section(path, "market")
    except TypeError as exc:
        raise InvalidConfiguration(str(exc)) from exc
    if section is None:
        return MarketAssumptions.default()
    return MarketAssumptions.from_mapping(section)
