"""Unit tests for the annual return model and its regime state."""

from __future__ import annotations

import math
from dataclasses import replace

import pytest

from propcalc.engine.projection.assumptions import BehaviouralParameters, MarketAssumptions
from propcalc.engine.projection.returns import (
    BEAR,
    BULL,
    AnnualReturnModel,
    PreviousYear,
    RegimeState,
)
from propcalc.engine.projection.variates import SequenceUniformSource

# Two uniforms of 0.5 yield z = -sqrt(2 ln 2) through Box-Muller.
Z_HALF = -math.sqrt(2.0 * math.log(2.0))
NORMALS = [0.5] * 6  # inflation, equity shock, independent bond shock
NO_CRASH = 0.9


def _model(profile: str = "aggressive", **behaviour: float) -> AnnualReturnModel:
    assumptions = MarketAssumptions.default()
    if behaviour:
        assumptions = replace(assumptions, behaviour=BehaviouralParameters(**behaviour))
    return AnnualReturnModel(assumptions, assumptions.profile(profile))


def _previous(stock_return: float = 0.0, inflation: float = 0.025) -> PreviousYear:
    return PreviousYear(stock_return=stock_return, inflation=inflation)


def test_fresh_state_draws_regime_lengths() -> None:
    source = SequenceUniformSource([0.0, 0.99])
    state = RegimeState.fresh(source, BehaviouralParameters())

    assert (state.bull_length, state.bear_length) == (4, 2)
    assert state.in_bull
    assert state.regime == BULL
    assert source.consumed == 2


def test_regime_flips_after_length_is_exceeded() -> None:
    state = RegimeState(bull_length=4, bear_length=1)
    regimes = []
    for _ in range(7):
        state.advance_regime()
        regimes.append(state.regime)

    assert regimes == [BULL, BULL, BULL, BULL, BEAR, BULL, BULL]
    assert state.years_in_regime == 2


def test_initial_previous_year_uses_mean_inflation() -> None:
    assumptions = MarketAssumptions.default()
    previous = PreviousYear.initial(assumptions.inflation)
    assert previous.stock_return == 0.0
    assert previous.inflation == assumptions.inflation.mean


def test_equity_drift_targets_geometric_mean() -> None:
    model = _model()
    assert model.equity_drift == pytest.approx(math.log(1.10) + 0.5 * 0.17**2)
    assert model.equity_drift == pytest.approx(0.10976, abs=1e-5)


def test_plain_year_follows_lognormal_draw() -> None:
    model = _model()
    state = RegimeState(bull_length=5, bear_length=1)
    source = SequenceUniformSource([*NORMALS, NO_CRASH])

    record = model.next_year(1, _previous(inflation=0.05), state, source)

    stocks = model.assumptions.stocks
    drift = math.log1p(stocks.mean_return) + 0.5 * stocks.volatility**2 + 0.02
    assert record.stock_return == pytest.approx(math.expm1(drift + stocks.volatility * Z_HALF))
    expected_inflation = 0.05 + 0.25 * (0.025 - 0.05) + 0.012 * Z_HALF
    assert record.inflation == pytest.approx(expected_inflation)
    assert record.portfolio_return == pytest.approx(record.stock_return)
    assert record.regime == BULL
    assert not (record.forced_recovery or record.tail_crash or record.circuit_breaker)
    assert source.consumed == 7


def test_bond_return_tracks_inflation_surprise() -> None:
    model = _model("balanced")
    state = RegimeState(bull_length=5, bear_length=1)

    record = model.next_year(1, _previous(), state, SequenceUniformSource([*NORMALS, NO_CRASH]))

    bonds = model.assumptions.bonds
    rho = model.assumptions.correlations.stock_bond
    z_bond = rho * Z_HALF + math.sqrt(1.0 - rho * rho) * Z_HALF
    drift = math.log1p(bonds.mean_real_return + record.inflation) - 0.5 * bonds.volatility**2
    surprise = record.inflation - model.assumptions.inflation.mean
    expected = math.expm1(drift + bonds.volatility * z_bond) + surprise * bonds.inflation_sensitivity
    assert record.bond_return == pytest.approx(expected)
    assert record.portfolio_return == pytest.approx(
        0.6 * record.stock_return + 0.4 * record.bond_return
    )


def test_bear_regime_lowers_drift() -> None:
    model = _model()
    bull = model.next_year(
        1,
        _previous(),
        RegimeState(bull_length=5, bear_length=1),
        SequenceUniformSource([*NORMALS, NO_CRASH]),
    )
    bear = model.next_year(
        1,
        _previous(),
        RegimeState(bull_length=5, bear_length=2, in_bull=False, years_in_regime=0),
        SequenceUniformSource([*NORMALS, NO_CRASH]),
    )
    assert bear.regime == BEAR
    assert math.log1p(bull.stock_return) - math.log1p(bear.stock_return) == pytest.approx(0.04)


def test_recovery_bias_after_crash_year() -> None:
    model = _model()
    calm = model.next_year(
        2,
        _previous(stock_return=0.0),
        RegimeState(bull_length=5, bear_length=1),
        SequenceUniformSource([*NORMALS, NO_CRASH]),
    )
    rebound = model.next_year(
        2,
        _previous(stock_return=-0.22),
        RegimeState(bull_length=5, bear_length=1),
        SequenceUniformSource([*NORMALS, NO_CRASH]),
    )
    assert math.log1p(rebound.stock_return) - math.log1p(calm.stock_return) == pytest.approx(0.05)


def test_forced_recovery_after_long_drought() -> None:
    model = _model()
    state = RegimeState(bull_length=5, bear_length=1, years_since_strong_year=6)
    source = SequenceUniformSource([*NORMALS, 0.1, 0.5, NO_CRASH])

    record = model.next_year(7, _previous(), state, source)

    assert record.forced_recovery
    assert record.stock_return == pytest.approx(0.25)
    assert state.years_since_strong_year == 0
    assert source.consumed == 9


def test_forced_recovery_can_be_skipped() -> None:
    model = _model()
    state = RegimeState(bull_length=5, bear_length=1, years_since_strong_year=6)
    source = SequenceUniformSource([*NORMALS, 0.95, NO_CRASH])

    record = model.next_year(7, _previous(), state, source)

    assert not record.forced_recovery
    assert state.years_since_strong_year == 7
    assert source.consumed == 8


def test_tail_crash_overrides_equity_return() -> None:
    model = _model()
    state = RegimeState(bull_length=5, bear_length=1)
    source = SequenceUniformSource([*NORMALS, 0.001, 0.5])

    record = model.next_year(1, _previous(), state, source)

    assert record.tail_crash
    assert record.stock_return == pytest.approx(-0.40)
    assert state.severe_loss_streak == 1


def test_tail_crash_probability_drops_after_deep_loss() -> None:
    model = _model()
    state = RegimeState(bull_length=5, bear_length=1)
    source = SequenceUniformSource([*NORMALS, 0.01])

    record = model.next_year(2, _previous(stock_return=-0.30), state, source)

    assert not record.tail_crash
    assert source.consumed == 7


def test_circuit_breaker_ends_loss_streak() -> None:
    model = _model()
    state = RegimeState(bull_length=5, bear_length=1, severe_loss_streak=2)
    source = SequenceUniformSource([*NORMALS, 0.001, 0.5, 0.5])

    record = model.next_year(4, _previous(), state, source)

    assert record.tail_crash
    assert record.circuit_breaker
    assert record.stock_return == pytest.approx(0.025)
    assert state.severe_loss_streak == 0


def test_equity_floor_caps_losses() -> None:
    model = _model(tail_crash_low=-0.9, tail_crash_high=-0.7)
    state = RegimeState(bull_length=5, bear_length=1)
    source = SequenceUniformSource([*NORMALS, 0.001, 0.5])

    record = model.next_year(1, _previous(), state, source)

    assert record.stock_return == -0.5


def test_strong_year_resets_drought_counter() -> None:
    model = _model(regime_drift_shift=0.5)
    state = RegimeState(bull_length=5, bear_length=1, years_since_strong_year=3)

    record = model.next_year(1, _previous(), state, SequenceUniformSource([*NORMALS, NO_CRASH]))

    assert record.stock_return > 0.20
    assert state.years_since_strong_year == 0
