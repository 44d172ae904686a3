"""Command-line interface for the propcalc projection engine."""

from __future__ import annotations

import argparse
from dataclasses import replace
from pathlib import Path

import yaml

from propcalc.engine.logging import configure_cli_logging, record_metrics
from propcalc.engine.projection import (
    InvalidConfiguration,
    SimulationConfig,
    load_market_assumptions,
    load_simulation_config,
    run_simulation,
    write_projection_artifacts,
)
from propcalc.engine.utils.rand import seed_for_stream
from propcalc.engine.validate import validate_configs

DESCRIPTION = "Multi-asset Monte Carlo portfolio projection"
SEED_STREAM = "projection"


def _add_simulate_subparser(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> None:
    simulate = subparsers.add_parser("simulate", help="Run a Monte Carlo projection")
    simulate.add_argument(
        "--config",
        type=Path,
        help="Projection YAML with a 'simulation' section",
    )
    simulate.add_argument(
        "--market",
        type=Path,
        help="Market assumptions YAML overriding the built-in tables",
    )
    simulate.add_argument("--initial-investment", type=float, help="Starting capital")
    simulate.add_argument("--years", type=int, help="Projection horizon in years")
    simulate.add_argument(
        "--annual-contribution",
        type=float,
        help="Amount added at the start of every year after the first",
    )
    simulate.add_argument("--risk-profile", help="Allocation name, e.g. balanced")
    simulate.add_argument("--simulations", type=int, help="Number of Monte Carlo paths")
    simulate.add_argument(
        "--seed",
        type=int,
        help="Root seed; defaults to the 'projection' stream in audit/seeds.yml",
    )
    simulate.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Worker threads used to run paths (default: 1)",
    )
    simulate.add_argument(
        "--output-dir",
        type=Path,
        help="Optional directory for CSV/JSON projection artefacts",
    )


def _add_validate_subparser(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> None:
    """Attach the validate command used for configuration schema checks."""

    validate = subparsers.add_parser("validate", help="Validate YAML configuration files")
    validate.add_argument(
        "--projection",
        type=Path,
        default=Path("configs") / "projection.yml",
        help="Path to projection.yml configuration",
    )
    validate.add_argument(
        "--market",
        type=Path,
        default=Path("configs") / "market.yml",
        help="Path to market.yml configuration",
    )
    validate.add_argument(
        "--verbose",
        action="store_true",
        help="Print the parsed configuration payloads on success",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="propcalc", description=DESCRIPTION)
    parser.add_argument(
        "--json-logs",
        action=argparse.BooleanOptionalAction,
        default=False,
        help="Mirror logs to artifacts/logs/propcalc.log in JSON format",
    )
    sub = parser.add_subparsers(dest="cmd", required=True)
    _add_validate_subparser(sub)
    _add_simulate_subparser(sub)
    return parser


def _resolve_config(args: argparse.Namespace) -> SimulationConfig:
    """Combine the optional YAML config with command-line overrides."""

    if args.config is not None:
        config = load_simulation_config(args.config)
    else:
        if args.initial_investment is None or args.years is None:
            raise SystemExit("--initial-investment and --years are required without --config")
        config = SimulationConfig(
            initial_investment=float(args.initial_investment), years=int(args.years)
        )
    if args.initial_investment is not None:
        config = replace(config, initial_investment=float(args.initial_investment))
    if args.years is not None:
        config = replace(config, years=int(args.years))
    if args.annual_contribution is not None:
        config = replace(config, annual_contribution=float(args.annual_contribution))
    if args.risk_profile is not None:
        config = replace(config, risk_profile=str(args.risk_profile))
    if args.simulations is not None:
        config = replace(config, number_of_simulations=int(args.simulations))
    return config


def _handle_simulate(args: argparse.Namespace) -> None:
    try:
        config = _resolve_config(args)
        assumptions = load_market_assumptions(args.market)
        seed = int(args.seed) if args.seed is not None else seed_for_stream(SEED_STREAM)
        result = run_simulation(
            config,
            assumptions,
            seed=seed,
            max_workers=max(1, int(args.workers)),
        )
    except (InvalidConfiguration, OSError) as exc:
        raise SystemExit(f"[propcalc] simulate error: {exc}") from None

    print(
        f"[propcalc] simulate profile={result.risk_profile} years={result.years} "
        f"paths={result.number_of_simulations} seed={seed} "
        f"p10={result.real_percentiles['p10']:.2f} "
        f"p50={result.real_percentiles['p50']:.2f} "
        f"p90={result.real_percentiles['p90']:.2f} "
        f"median_cagr={result.median_cagr:.4f} "
        f"worst_drawdown={result.drawdowns.worst:.4f} adjusted={result.adjusted_paths}"
    )
    tags = {"risk_profile": result.risk_profile, "years": str(result.years)}
    record_metrics("projection_median_real_value", result.real_percentiles["p50"], tags)
    record_metrics("projection_adjusted_paths", float(result.adjusted_paths), tags)

    if args.output_dir is not None:
        artifacts = write_projection_artifacts(result, config, output_dir=args.output_dir)
        print(
            f"[propcalc] simulate summary={artifacts.summary_csv} "
            f"fan={artifacts.fan_chart_real_csv} json={artifacts.result_json}"
        )


def _handle_validate(args: argparse.Namespace) -> None:
    """Validate configuration files and report diagnostics to stdout."""

    summary = validate_configs(projection_path=args.projection, market_path=args.market)
    if args.verbose and summary.configs:
        for label, payload in summary.configs.items():
            rendered = yaml.safe_dump(payload, sort_keys=True)
            print(f"[propcalc] validate {label}\n{rendered}", end="")
    for warning in summary.warnings:
        print(f"[propcalc] validate warning: {warning}")
    if summary.errors:
        for error in summary.errors:
            print(f"[propcalc] validate error: {error}")
        raise SystemExit(1)
    print("[propcalc] validate status=ok")


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_cli_logging(json_logs=bool(args.json_logs))
    if args.cmd == "simulate":
        _handle_simulate(args)
    elif args.cmd == "validate":
        _handle_validate(args)
    else:
        print(f"[propcalc] command = {args.cmd}")


if __name__ == "__main__":
    main()
