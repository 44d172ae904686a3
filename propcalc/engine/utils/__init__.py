"""Utility helpers for propcalc."""

from propcalc.engine.logging import configure_cli_logging, record_metrics, setup_logger

from .io import (
    ensure_dir,
    read_yaml,
    read_yaml_section,
    safe_path_segment,
    write_frame_csv,
    write_json,
    write_yaml,
)
from .rand import (
    DEFAULT_SEED,
    DEFAULT_SEED_PATH,
    DEFAULT_STREAM,
    generator_from_seed,
    load_seeds,
    path_generator_factory,
    save_seeds,
    seed_for_stream,
    spawn_child_rng,
    spawn_path_seeds,
)

__all__ = [
    "ensure_dir",
    "safe_path_segment",
    "read_yaml",
    "read_yaml_section",
    "write_frame_csv",
    "write_json",
    "write_yaml",
    "configure_cli_logging",
    "record_metrics",
    "setup_logger",
    "DEFAULT_SEED",
    "DEFAULT_SEED_PATH",
    "DEFAULT_STREAM",
    "generator_from_seed",
    "load_seeds",
    "save_seeds",
    "seed_for_stream",
    "spawn_child_rng",
    "spawn_path_seeds",
    "path_generator_factory",
]
