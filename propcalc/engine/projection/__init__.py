"""Multi-asset Monte Carlo projection engine."""

from .aggregate import (
    PERCENTILES,
    AggregateResult,
    DrawdownSummary,
    PercentileCase,
    aggregate_paths,
)
from .assumptions import (
    AssetClassParameters,
    BehaviouralParameters,
    BondParameters,
    CorrelationParameters,
    GuardrailParameters,
    InflationParameters,
    MarketAssumptions,
    RiskProfile,
    load_market_assumptions,
)
from .config import SimulationConfig, load_simulation_config, validate_config
from .errors import InvalidConfiguration, SimulationCancelled
from .export import ProjectionArtifacts, write_projection_artifacts
from .orchestrator import run_paths, run_simulation
from .path import SimulationPath, simulate_path
from .returns import AnnualReturnModel, PreviousYear, RegimeState, YearRecord
from .variates import (
    GeneratorUniformSource,
    SequenceUniformSource,
    UniformSource,
    correlated_normal,
    standard_normal,
    uniform_between,
)

__all__ = [
    "PERCENTILES",
    "AggregateResult",
    "DrawdownSummary",
    "PercentileCase",
    "aggregate_paths",
    "AssetClassParameters",
    "BehaviouralParameters",
    "BondParameters",
    "CorrelationParameters",
    "GuardrailParameters",
    "InflationParameters",
    "MarketAssumptions",
    "RiskProfile",
    "load_market_assumptions",
    "SimulationConfig",
    "load_simulation_config",
    "validate_config",
    "InvalidConfiguration",
    "SimulationCancelled",
    "ProjectionArtifacts",
    "write_projection_artifacts",
    "run_paths",
    "run_simulation",
    "SimulationPath",
    "simulate_path",
    "AnnualReturnModel",
    "PreviousYear",
    "RegimeState",
    "YearRecord",
    "GeneratorUniformSource",
    "SequenceUniformSource",
    "UniformSource",
    "correlated_normal",
    "standard_normal",
    "uniform_between",
]
