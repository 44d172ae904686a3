"""Validation utilities for projection configuration files.

The validator checks the ``simulation`` section of ``configs/projection.yml``
and the market overrides in ``configs/market.yml`` without running the
engine. Whenever an entry is missing or invalid, it records human readable
diagnostics while returning the subset of sections that passed validation.
"""

from __future__ import annotations

# ruff: noqa: ANN401
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from propcalc.engine.projection.assumptions import MarketAssumptions
from propcalc.engine.projection.errors import InvalidConfiguration
from propcalc.engine.utils.io import read_yaml

__all__ = ["ValidationSummary", "validate_configs"]

LARGE_SIMULATION_COUNT = 100_000


@dataclass(slots=True)
class ValidationSummary:
    """Aggregate structure returning validation diagnostics and parsed configs.

    Attributes:
      errors: Collection of error messages detected during schema validation.
      warnings: Soft diagnostics that highlight potential configuration issues.
      configs: Mapping between config label and the normalised payload obtained
        after validation.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    configs: dict[str, dict[str, Any]] = field(default_factory=dict)


def _is_number(value: Any) -> bool:
    """Return ``True`` if ``value`` is a real number (excluding booleans)."""

    return isinstance(value, int | float) and not isinstance(value, bool)


def _as_float(
    value: Any,
    *,
    path: str,
    errors: list[str],
    minimum: float | None = None,
    exclusive_minimum: bool = False,
) -> float | None:
    """Validate ``value`` as float returning the coerced number when valid."""

    if not _is_number(value):
        errors.append(f"{path} must be a number")
        return None
    number = float(value)
    if minimum is not None:
        if exclusive_minimum and number <= minimum:
            errors.append(f"{path} must be > {minimum}")
            return None
        if number < minimum:
            errors.append(f"{path} must be >= {minimum}")
            return None
    return number


def _as_int(
    value: Any,
    *,
    path: str,
    errors: list[str],
    minimum: int | None = None,
) -> int | None:
    """Validate ``value`` as integer returning the coerced number when valid."""

    if not isinstance(value, int) or isinstance(value, bool):
        errors.append(f"{path} must be an integer")
        return None
    if minimum is not None and value < minimum:
        errors.append(f"{path} must be >= {minimum}")
        return None
    return value


def _as_string(value: Any, *, path: str, errors: list[str]) -> str | None:
    if not isinstance(value, str) or not value.strip():
        errors.append(f"{path} must be a non-empty string")
        return None
    return value.strip()


def _validate_simulation_config(
    payload: dict[str, Any],
    *,
    profiles: set[str],
    summary: ValidationSummary,
) -> dict[str, Any] | None:
    """Validate the ``simulation`` section of the projection config."""

    errors = summary.errors
    section = payload.get("simulation", payload)
    if not isinstance(section, dict):
        errors.append("simulation must be a mapping")
        return None

    result: dict[str, Any] = {}
    if "initial_investment" not in section:
        errors.append("simulation.initial_investment is required")
    else:
        investment = _as_float(
            section["initial_investment"],
            path="simulation.initial_investment",
            errors=errors,
            minimum=0.0,
            exclusive_minimum=True,
        )
        if investment is not None:
            result["initial_investment"] = investment

    years: int | None = None
    if "years" not in section:
        errors.append("simulation.years is required")
    else:
        years = _as_int(section["years"], path="simulation.years", errors=errors, minimum=1)
        if years is not None:
            result["years"] = years

    profile = _as_string(
        section.get("risk_profile", "balanced"), path="simulation.risk_profile", errors=errors
    )
    if profile is not None:
        if profiles and profile not in profiles:
            errors.append(
                f"simulation.risk_profile {profile!r} is not one of: {', '.join(sorted(profiles))}"
            )
        else:
            result["risk_profile"] = profile

    simulations = _as_int(
        section.get("number_of_simulations", 1000),
        path="simulation.number_of_simulations",
        errors=errors,
        minimum=1,
    )
    if simulations is not None:
        result["number_of_simulations"] = simulations

    sample_cap = _as_int(
        section.get("sample_cap", 500), path="simulation.sample_cap", errors=errors, minimum=1
    )
    if sample_cap is not None:
        result["sample_cap"] = sample_cap

    schedule = section.get("contributions")
    if schedule is not None:
        if not isinstance(schedule, list):
            errors.append("simulation.contributions must be a list")
        else:
            amounts = [
                _as_float(item, path=f"simulation.contributions[{idx}]", errors=errors)
                for idx, item in enumerate(schedule)
            ]
            if years is not None and len(schedule) != years:
                errors.append(
                    f"simulation.contributions has {len(schedule)} entries, expected {years}"
                )
            if all(amount is not None for amount in amounts):
                result["contributions"] = amounts
    else:
        contribution = _as_float(
            section.get("annual_contribution", 0.0),
            path="simulation.annual_contribution",
            errors=errors,
        )
        if contribution is not None:
            result["annual_contribution"] = contribution
    return result


def _validate_market_config(
    payload: dict[str, Any],
    *,
    summary: ValidationSummary,
) -> MarketAssumptions | None:
    section = payload.get("market", payload)
    if not isinstance(section, dict):
        summary.errors.append("market must be a mapping")
        return None
    try:
        return MarketAssumptions.from_mapping(section)
    except InvalidConfiguration as exc:
        summary.errors.append(f"market: {exc}")
        return None


def _load_payload(
    label: str,
    path: Path,
    *,
    summary: ValidationSummary,
) -> dict[str, Any] | None:
    """Load YAML payload handling missing files and empty documents."""

    if not path.exists():
        summary.errors.append(f"{label}: missing file at {path}")
        return None
    payload = read_yaml(path)
    if payload is None:
        summary.errors.append(f"{label}: file at {path} is empty")
        return None
    if not isinstance(payload, dict):
        summary.errors.append(f"{label}: expected a mapping at {path}")
        return None
    return payload


def validate_configs(
    *,
    projection_path: Path | str = Path("configs") / "projection.yml",
    market_path: Path | str = Path("configs") / "market.yml",
) -> ValidationSummary:
    """Validate projection YAML configuration files and return diagnostics.

    The market file is checked first so the simulation's risk profile can be
    resolved against the profiles it defines.
    """

    summary = ValidationSummary()

    market: MarketAssumptions | None = None
    market_payload = _load_payload("market", Path(market_path), summary=summary)
    if market_payload is not None:
        error_count = len(summary.errors)
        market = _validate_market_config(market_payload, summary=summary)
        if market is not None and len(summary.errors) == error_count:
            summary.configs["market"] = market_payload.get("market", market_payload)

    profiles = set(market.risk_profiles) if market is not None else set()
    projection_payload = _load_payload("projection", Path(projection_path), summary=summary)
    if projection_payload is not None:
        error_count = len(summary.errors)
        simulation = _validate_simulation_config(
            projection_payload, profiles=profiles, summary=summary
        )
        if simulation is not None and len(summary.errors) == error_count:
            summary.configs["projection"] = simulation

    simulation_config = summary.configs.get("projection")
    if simulation_config:
        count = simulation_config.get("number_of_simulations", 0)
        if count > LARGE_SIMULATION_COUNT:
            summary.warnings.append(
                f"simulation.number_of_simulations: {count} paths may take a long time"
            )
        years = simulation_config.get("years", 0)
        if market is not None and years >= market.guardrail.min_years:
            summary.warnings.append(
                f"simulation.years: horizons of {market.guardrail.min_years}+ years apply the "
                f"real CAGR floor of {market.guardrail.real_cagr_floor:.2%}"
            )
        sample_cap = simulation_config.get("sample_cap", 0)
        if sample_cap > count > 0:
            summary.warnings.append(
                "simulation.sample_cap exceeds number_of_simulations; every path is returned"
            )

    return summary
