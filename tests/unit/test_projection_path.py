"""Unit tests for single-path accounting and the long-horizon guardrail."""

from __future__ import annotations

from dataclasses import replace

import numpy as np
import pytest

from propcalc.engine.projection.assumptions import (
    AssetClassParameters,
    GuardrailParameters,
    MarketAssumptions,
)
from propcalc.engine.projection.config import SimulationConfig
from propcalc.engine.projection.path import (
    _apply_guardrail,
    compound_annual_growth,
    simulate_path,
)
from propcalc.engine.projection.variates import GeneratorUniformSource


def _source(seed: int = 11) -> GeneratorUniformSource:
    return GeneratorUniformSource.from_seed(seed)


def test_single_year_aggressive_path() -> None:
    config = SimulationConfig(
        initial_investment=100_000.0,
        years=1,
        risk_profile="aggressive",
        number_of_simulations=1,
    )
    path = simulate_path(config, MarketAssumptions.default(), _source())

    assert len(path.nominal_values) == 2
    assert len(path.real_values) == 2
    assert path.nominal_values[0] == 100_000.0
    equity_return = path.records[0].stock_return
    assert path.final_nominal_value == pytest.approx(100_000.0 * (1.0 + equity_return))


def test_values_compound_contributions_and_returns() -> None:
    config = SimulationConfig(initial_investment=50_000.0, years=12, annual_contribution=1_200.0)
    path = simulate_path(config, MarketAssumptions.default(), _source(3))

    assert path.years == 12
    value = 50_000.0
    for year, record in enumerate(path.records, start=1):
        value = (value + config.contribution_for_year(year)) * (1.0 + record.portfolio_return)
        assert path.nominal_values[year] == pytest.approx(value)


def test_real_values_deflate_by_cumulative_inflation() -> None:
    config = SimulationConfig(initial_investment=10_000.0, years=8)
    path = simulate_path(config, MarketAssumptions.default(), _source(5))

    price_level = np.cumprod([1.0 + record.inflation for record in path.records])
    np.testing.assert_allclose(path.real_values[1:], path.nominal_values[1:] / price_level)
    assert not path.adjusted


def test_schedule_first_entry_is_not_applied() -> None:
    assumptions = MarketAssumptions.default()
    with_gift = SimulationConfig(
        initial_investment=1_000.0, years=3, annual_contribution=(1_000_000.0, 100.0, 100.0)
    )
    without_gift = replace(with_gift, annual_contribution=(0.0, 100.0, 100.0))

    first = simulate_path(with_gift, assumptions, _source(9))
    second = simulate_path(without_gift, assumptions, _source(9))

    np.testing.assert_array_equal(first.nominal_values, second.nominal_values)


def test_path_scalars_and_immutability() -> None:
    config = SimulationConfig(initial_investment=10_000.0, years=15)
    path = simulate_path(config, MarketAssumptions.default(), _source(21))

    assert -0.60 <= path.max_drawdown <= 0.0
    assert path.raw_max_drawdown <= path.max_drawdown
    assert path.nominal_cagr == pytest.approx(
        compound_annual_growth(path.final_nominal_value, 10_000.0, 15)
    )
    assert path.negative_years == int(np.sum(path.portfolio_returns < 0.0))
    assert np.all(path.stock_returns >= -0.5)
    with pytest.raises(ValueError):
        path.nominal_values[0] = 0.0


def test_compound_annual_growth() -> None:
    assert compound_annual_growth(200.0, 100.0, 1) == pytest.approx(1.0)
    assert compound_annual_growth(121.0, 100.0, 2) == pytest.approx(0.1)
    assert compound_annual_growth(0.0, 100.0, 10) == -1.0


def test_guardrail_rescales_every_year_by_one_factor() -> None:
    guardrail = GuardrailParameters(min_years=2)
    nominal, real, cagr, adjusted = _apply_guardrail(
        [100.0, 90.0, 80.0],
        [100.0, 85.0, 70.0],
        100.0,
        2,
        compound_annual_growth(70.0, 100.0, 2),
        80.0 / 70.0,
        guardrail,
    )

    target = 100.0 * 0.99**2
    factor = target / 70.0
    assert adjusted
    assert cagr == -0.01
    np.testing.assert_allclose(real, np.array([100.0, 85.0, 70.0]) * factor)
    np.testing.assert_allclose(nominal, np.array([100.0, 90.0, 80.0]) * factor)
    assert real[1] / 85.0 == pytest.approx(real[-1] / 70.0)
    assert real[-1] == pytest.approx(target)
    assert nominal[-1] == pytest.approx(80.0 * factor)


def test_guardrail_ignores_short_horizons_and_healthy_paths() -> None:
    guardrail = GuardrailParameters()
    nominal, real, cagr, adjusted = _apply_guardrail(
        [100.0, 50.0], [100.0, 45.0], 100.0, 1, -0.55, 1.1, guardrail
    )
    assert not adjusted
    assert cagr == -0.55
    assert real[-1] == 45.0

    _, _, cagr, adjusted = _apply_guardrail(
        [100.0] * 21, [100.0] * 21, 100.0, 20, 0.0, 1.0, guardrail
    )
    assert not adjusted
    assert cagr == 0.0


def test_guardrail_pins_wiped_out_path() -> None:
    guardrail = GuardrailParameters(min_years=2)
    nominal, real, cagr, adjusted = _apply_guardrail(
        [100.0, 10.0, 0.0], [100.0, 9.0, 0.0], 100.0, 2, -1.0, 1.2, guardrail
    )
    assert adjusted
    assert cagr == -0.01
    assert real[-1] == pytest.approx(98.01)
    assert nominal[-1] == pytest.approx(98.01 * 1.2)


def test_guardrail_lifts_long_horizon_losers() -> None:
    assumptions = replace(
        MarketAssumptions.default(),
        stocks=AssetClassParameters(mean_return=-0.15, volatility=0.05),
    )
    config = SimulationConfig(initial_investment=100_000.0, years=25, risk_profile="aggressive")

    paths = [simulate_path(config, assumptions, _source(seed)) for seed in range(10)]

    assert any(path.adjusted for path in paths)
    for path in paths:
        assert path.real_cagr >= -0.01
        if path.adjusted:
            assert path.raw_real_cagr < -0.01
            assert path.real_cagr == -0.01
            assert path.final_real_value == pytest.approx(100_000.0 * 0.99**25)
            assert path.real_values[0] > 100_000.0
            factor = path.final_real_value / (100_000.0 * (1.0 + path.raw_real_cagr) ** 25)
            raw_final = path.final_nominal_value / factor
            assert path.nominal_cagr == pytest.approx(
                compound_annual_growth(raw_final, 100_000.0, 25)
            )
