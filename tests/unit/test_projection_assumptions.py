"""Unit tests for the market assumption tables."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from propcalc.engine.projection.assumptions import (
    ALLOCATION_TOLERANCE,
    DEFAULT_RISK_PROFILES,
    BehaviouralParameters,
    InflationParameters,
    MarketAssumptions,
    RiskProfile,
    load_market_assumptions,
)
from propcalc.engine.projection.errors import InvalidConfiguration


def test_default_profiles_sum_to_one() -> None:
    assert set(DEFAULT_RISK_PROFILES) == {"conservative", "balanced", "growth", "aggressive"}
    for profile in DEFAULT_RISK_PROFILES.values():
        assert abs(profile.stocks + profile.bonds - 1.0) <= ALLOCATION_TOLERANCE


def test_default_profile_allocations() -> None:
    assumptions = MarketAssumptions.default()
    assert assumptions.profile("conservative").allocation() == pytest.approx(
        {"stocks": 0.40, "bonds": 0.60}
    )
    assert assumptions.profile("aggressive").bonds == 0.0


def test_unknown_profile_lists_known_names() -> None:
    assumptions = MarketAssumptions.default()
    with pytest.raises(InvalidConfiguration, match="balanced"):
        assumptions.profile("yolo")


def test_risk_profile_rejects_unbalanced_allocation() -> None:
    with pytest.raises(InvalidConfiguration):
        RiskProfile(name="broken", stocks=0.7, bonds=0.2)


def test_risk_profile_table_is_read_only() -> None:
    assumptions = MarketAssumptions.default()
    with pytest.raises(TypeError):
        assumptions.risk_profiles["new"] = RiskProfile.from_stock_share("new", 0.5)  # type: ignore[index]


def test_behaviour_defaults_cover_return_model_constants() -> None:
    behaviour = BehaviouralParameters()
    assert (behaviour.bull_min_years, behaviour.bull_max_years) == (4, 7)
    assert (behaviour.bear_min_years, behaviour.bear_max_years) == (1, 2)
    assert behaviour.equity_floor == -0.50
    assert behaviour.tail_crash_probability == pytest.approx(0.015)
    assert behaviour.tail_crash_probability_after_crash == pytest.approx(0.005)


def test_behaviour_rejects_inverted_ranges() -> None:
    with pytest.raises(InvalidConfiguration):
        BehaviouralParameters(tail_crash_low=-0.2, tail_crash_high=-0.4)
    with pytest.raises(InvalidConfiguration):
        BehaviouralParameters(bull_min_years=5, bull_max_years=3)


def test_inflation_rejects_bad_mean_reversion() -> None:
    with pytest.raises(InvalidConfiguration):
        InflationParameters(mean=0.02, volatility=0.01, mean_reversion=1.5)


def test_from_mapping_overrides_selected_sections() -> None:
    assumptions = MarketAssumptions.from_mapping(
        {
            "stocks": {"mean_return": 0.08},
            "behaviour": {"bull_max_years": 9},
            "correlations": {"stock_bond": -0.2},
        }
    )
    assert assumptions.stocks.mean_return == pytest.approx(0.08)
    assert assumptions.stocks.volatility == pytest.approx(0.17)
    assert assumptions.behaviour.bull_max_years == 9
    assert isinstance(assumptions.behaviour.bull_max_years, int)
    assert assumptions.correlations.stock_bond == pytest.approx(-0.2)
    assert set(assumptions.risk_profiles) == set(DEFAULT_RISK_PROFILES)


@pytest.mark.parametrize(
    "payload",
    [
        {"stocks": {"drift": 0.1}},
        {"stocks": {"mean_return": "high"}},
        {"bonds": [0.1]},
        {"correlations": {"stock_bond": 2.0}},
        {"risk_profiles": {"odd": {"stocks": 0.5, "bonds": 0.6}}},
    ],
)
def test_from_mapping_rejects_invalid_payloads(payload: dict[str, object]) -> None:
    with pytest.raises(InvalidConfiguration):
        MarketAssumptions.from_mapping(payload)


def test_from_mapping_replaces_profiles() -> None:
    assumptions = MarketAssumptions.from_mapping(
        {"risk_profiles": {"income": {"stocks": 0.2, "description": "mostly bonds"}}}
    )
    assert list(assumptions.risk_profiles) == ["income"]
    income = assumptions.profile("income")
    assert income.bonds == pytest.approx(0.8)
    assert income.description == "mostly bonds"


def test_load_market_assumptions_reads_market_section(tmp_path: Path) -> None:
    path = tmp_path / "market.yml"
    path.write_text(
        yaml.safe_dump({"market": {"inflation": {"mean": 0.03, "volatility": 0.01}}}),
        encoding="utf-8",
    )

    assumptions = load_market_assumptions(path)

    assert assumptions.inflation.mean == pytest.approx(0.03)
    assert assumptions.inflation.mean_reversion == pytest.approx(0.25)


def test_load_market_assumptions_defaults() -> None:
    default = MarketAssumptions.default()
    loaded = load_market_assumptions(None)
    assert loaded.stocks == default.stocks
    assert loaded.guardrail == default.guardrail


def test_repository_market_config_loads() -> None:
    assumptions = load_market_assumptions("configs/market.yml")
    assert assumptions.guardrail.min_years == 20
