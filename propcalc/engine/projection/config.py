"""Simulation configuration and its validation."""

from __future__ import annotations

import math
import numbers
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from propcalc.engine.utils.io import read_yaml_section

from .assumptions import MarketAssumptions
from .errors import InvalidConfiguration

__all__ = [
    "DEFAULT_SAMPLE_CAP",
    "SimulationConfig",
    "validate_config",
    "load_simulation_config",
]

DEFAULT_SAMPLE_CAP = 500


@dataclass(frozen=True)
class SimulationConfig:
    """Inputs of one Monte Carlo projection.

    Attributes:
      initial_investment: Starting capital at year 0.
      years: Projection horizon in years.
      annual_contribution: Either a scalar added every year after the first,
        or one amount per year (``len == years``). The year-1 entry of a
        sequence is never applied because the initial investment already
        represents the starting capital.
      risk_profile: Name of the allocation in the market assumptions.
      number_of_simulations: Number of independent paths to run.
      sample_cap: Maximum number of raw paths returned for display.
    """

    initial_investment: float
    years: int
    annual_contribution: float | tuple[float, ...] = 0.0
    risk_profile: str = "balanced"
    number_of_simulations: int = 1000
    sample_cap: int = DEFAULT_SAMPLE_CAP

    def __post_init__(self) -> None:
        # Freeze caller-supplied sequences so the config stays immutable.
        contribution = self.annual_contribution
        if isinstance(contribution, Iterable) and not isinstance(contribution, str):
            object.__setattr__(self, "annual_contribution", tuple(contribution))

    @property
    def has_contribution_schedule(self) -> bool:
        return isinstance(self.annual_contribution, tuple)

    def contribution_for_year(self, year: int) -> float:
        """Return the contribution added at the start of ``year`` (1-based)."""

        if year <= 1:
            return 0.0
        if isinstance(self.annual_contribution, tuple):
            return float(self.annual_contribution[year - 1])
        return float(self.annual_contribution)

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> SimulationConfig:
        """Build a configuration from a YAML or JSON mapping.

        Args:
          payload: Mapping with ``initial_investment``, ``years`` and optional
            ``annual_contribution`` (scalar), ``contributions`` (per-year
            list), ``risk_profile``, ``number_of_simulations`` and
            ``sample_cap``.

        Returns:
          A :class:`SimulationConfig`; semantic checks happen in
          :func:`validate_config`.

        Raises:
          InvalidConfiguration: If required keys are missing or values cannot
            be coerced.
        """

        try:
            initial_investment = float(payload["initial_investment"])  # type: ignore[arg-type]
            years = int(payload["years"])  # type: ignore[call-overload]
        except KeyError as exc:
            raise InvalidConfiguration(f"missing simulation key: {exc.args[0]}") from None
        except (TypeError, ValueError) as exc:
            raise InvalidConfiguration(f"invalid simulation value: {exc}") from None

        contribution: float | tuple[float, ...]
        schedule = payload.get("contributions")
        if schedule is not None:
            if not isinstance(schedule, Sequence) or isinstance(schedule, str):
                raise InvalidConfiguration("contributions must be a list of amounts")
            try:
                contribution = tuple(float(item) for item in schedule)
            except (TypeError, ValueError):
                raise InvalidConfiguration("contributions must contain numbers") from None
        else:
            try:
                contribution = float(payload.get("annual_contribution", 0.0))  # type: ignore[arg-type]
            except (TypeError, ValueError):
                raise InvalidConfiguration("annual_contribution must be a number") from None

        try:
            number_of_simulations = int(payload.get("number_of_simulations", 1000))  # type: ignore[call-overload]
            sample_cap = int(payload.get("sample_cap", DEFAULT_SAMPLE_CAP))  # type: ignore[call-overload]
        except (TypeError, ValueError) as exc:
            raise InvalidConfiguration(f"invalid simulation value: {exc}") from None

        return cls(
            initial_investment=initial_investment,
            years=years,
            annual_contribution=contribution,
            risk_profile=str(payload.get("risk_profile", "balanced")),
            number_of_simulations=number_of_simulations,
            sample_cap=sample_cap,
        )

    def to_mapping(self) -> dict[str, object]:
        """Return the configuration as a YAML/JSON friendly mapping."""

        payload: dict[str, object] = {
            "initial_investment": float(self.initial_investment),
            "years": int(self.years),
            "risk_profile": self.risk_profile,
            "number_of_simulations": self.number_of_simulations,
            "sample_cap": self.sample_cap,
        }
        if isinstance(self.annual_contribution, tuple):
            payload["contributions"] = [float(amount) for amount in self.annual_contribution]
        else:
            payload["annual_contribution"] = float(self.annual_contribution)
        return payload


def validate_config(config: SimulationConfig, assumptions: MarketAssumptions) -> None:
    """Fail fast on configurations the engine cannot simulate.

    Raises:
      InvalidConfiguration: On an unknown risk profile, a non-positive
        investment, horizon, path count or sample cap, or a malformed
        contribution schedule.
    """

    assumptions.profile(config.risk_profile)
    if not math.isfinite(config.initial_investment) or config.initial_investment <= 0.0:
        raise InvalidConfiguration(
            f"initial_investment must be > 0, got {config.initial_investment}"
        )
    if config.years < 1:
        raise InvalidConfiguration(f"years must be >= 1, got {config.years}")
    if config.number_of_simulations < 1:
        raise InvalidConfiguration(
            f"number_of_simulations must be >= 1, got {config.number_of_simulations}"
        )
    if config.sample_cap < 1:
        raise InvalidConfiguration(f"sample_cap must be >= 1, got {config.sample_cap}")

    contribution = config.annual_contribution
    if isinstance(contribution, tuple):
        if len(contribution) != config.years:
            raise InvalidConfiguration(
                f"contribution schedule has {len(contribution)} entries, "
                f"expected {config.years}"
            )
        amounts: Sequence[float] = contribution
    else:
        amounts = (contribution,)
    if not all(
        isinstance(amount, numbers.Real) and math.isfinite(amount) for amount in amounts
    ):
        raise InvalidConfiguration("contributions must be finite numbers")


def load_simulation_config(path: Path | str) -> SimulationConfig:
    """Load a :class:`SimulationConfig` from the ``simulation`` section of a YAML file."""

    try:
        section = read_yaml_section(path, "simulation")
    except TypeError as exc:
        raise InvalidConfiguration(str(exc)) from exc
    if section is None:
        raise InvalidConfiguration(f"{path} is empty")
    return SimulationConfig.from_mapping(section)
