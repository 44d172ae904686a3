"""CSV/JSON artefacts for a projection result.

Used by the CLI only: the engine itself never touches the filesystem.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from propcalc.engine.infra.paths import DEFAULT_REPORT_ROOT
from propcalc.engine.utils.io import (
    ensure_dir,
    safe_path_segment,
    write_frame_csv,
    write_json,
    write_yaml,
)

from .aggregate import AggregateResult
from .config import SimulationConfig

__all__ = ["ProjectionArtifacts", "write_projection_artifacts"]


@dataclass(frozen=True)
class ProjectionArtifacts:
    """Paths to the generated projection artefacts.

    Attributes:
      summary_csv: Percentile table with final values and CAGRs.
      fan_chart_real_csv: Real percentile trajectories by year.
      fan_chart_nominal_csv: Nominal percentile trajectories by year.
      result_json: Full JSON payload of the aggregate.
      config_yaml: Configuration the projection was run with.
    """

    summary_csv: Path
    fan_chart_real_csv: Path
    fan_chart_nominal_csv: Path
    result_json: Path
    config_yaml: Path


def write_projection_artifacts(
    result: AggregateResult,
    config: SimulationConfig,
    *,
    label: str | None = None,
    output_dir: Path | str | None = None,
) -> ProjectionArtifacts:
    """Write the aggregate tables and payload under ``<output_dir>/projection``.

    Args:
      result: Aggregate returned by :func:`run_simulation`.
      config: Configuration used for the run.
      label: Optional filename prefix; defaults to the risk profile.
      output_dir: Destination root, ``artifacts/reports`` by default.

    Returns:
      Paths to the exported artefacts.
    """

    root = Path(output_dir) if output_dir is not None else DEFAULT_REPORT_ROOT
    root = ensure_dir(root / "projection")
    prefix = safe_path_segment(label or result.risk_profile)

    summary_csv = write_frame_csv(result.summary_frame(), root / f"{prefix}_summary.csv")
    fan_real = write_frame_csv(result.fan_chart("real"), root / f"{prefix}_fan_chart_real.csv")
    fan_nominal = write_frame_csv(
        result.fan_chart("nominal"), root / f"{prefix}_fan_chart_nominal.csv"
    )
    result_json = write_json(result.to_payload(), root / f"{prefix}_result.json")
    config_yaml = write_yaml(config.to_mapping(), root / f"{prefix}_config.yml")
    return ProjectionArtifacts(
        summary_csv=summary_csv,
        fan_chart_real_csv=fan_real,
        fan_chart_nominal_csv=fan_nominal,
        result_json=result_json,
        config_yaml=config_yaml,
    )
