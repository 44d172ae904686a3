"""Seed table and per-path random streams for projections.

Seeds live in ``audit/seeds.yml`` under a ``seeds:`` mapping keyed by stream
name. The CLI reads the ``projection`` stream when no ``--seed`` is given and
falls back to the ``global`` entry.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

import numpy as np
import yaml

DEFAULT_STREAM = "global"
DEFAULT_SEED = 42
DEFAULT_SEED_PATH = Path("audit") / "seeds.yml"

__all__ = [
    "DEFAULT_SEED",
    "DEFAULT_SEED_PATH",
    "DEFAULT_STREAM",
    "load_seeds",
    "save_seeds",
    "seed_for_stream",
    "generator_from_seed",
    "spawn_child_rng",
    "spawn_path_seeds",
    "path_generator_factory",
]


def _seed_table(document: Any) -> Mapping[Any, Any]:
    if not isinstance(document, Mapping):
        raise TypeError("Seed file must contain a mapping of stream -> seed")
    nested = document.get("seeds")
    return nested if isinstance(nested, Mapping) else document


def load_seeds(seed_path: Path | str = DEFAULT_SEED_PATH) -> dict[str, int]:
    """Load the ``stream -> seed`` table.

    A missing file gives ``{"global": 42}``. Null entries are skipped and the
    ``global`` stream is always present in the result.
    """

    path = Path(seed_path)
    if not path.exists():
        return {DEFAULT_STREAM: DEFAULT_SEED}
    document = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    seeds = {
        str(stream): int(value)
        for stream, value in _seed_table(document).items()
        if value is not None
    }
    seeds.setdefault(DEFAULT_STREAM, DEFAULT_SEED)
    return seeds


def save_seeds(
    seeds: Mapping[str, int],
    seed_path: Path | str = DEFAULT_SEED_PATH,
) -> Path:
    path = Path(seed_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    table = {str(stream): int(value) for stream, value in seeds.items()}
    path.write_text(yaml.safe_dump({"seeds": table}, sort_keys=True), encoding="utf-8")
    return path


def seed_for_stream(
    stream: str = DEFAULT_STREAM,
    *,
    seeds: Mapping[str, int] | None = None,
    seed_path: Path | str = DEFAULT_SEED_PATH,
) -> int:
    """Return the seed of ``stream``, or the ``global`` seed when it has none."""

    table = seeds if seeds is not None else load_seeds(seed_path)
    if stream in table:
        return int(table[stream])
    return int(table.get(DEFAULT_STREAM, DEFAULT_SEED))


def generator_from_seed(
    seed: int | np.random.Generator | None = None,
    *,
    stream: str = DEFAULT_STREAM,
    seeds: Mapping[str, int] | None = None,
    seed_path: Path | str = DEFAULT_SEED_PATH,
) -> np.random.Generator:
    """Build a generator from ``seed``, or from the seed table when it is ``None``.

    Generators are returned unchanged so callers can thread their own state.
    """

    if isinstance(seed, np.random.Generator):
        return seed
    if seed is None:
        seed = seed_for_stream(stream, seeds=seeds, seed_path=seed_path)
    return np.random.default_rng(int(seed))


def spawn_child_rng(
    parent: np.random.Generator,
    *,
    jumps: int = 1,
) -> np.random.Generator:
    """Return a generator on the parent's bit generator jumped ``jumps`` times.

    The parent's own state is left untouched.
    """

    if jumps < 1:
        raise ValueError("jumps must be >= 1")
    return np.random.Generator(parent.bit_generator.jumped(jumps))


def spawn_path_seeds(
    seed: int | np.random.SeedSequence | None,
    count: int,
) -> list[np.random.SeedSequence]:
    """Return ``count`` independent seed sequences, one per simulated path.

    Args:
      seed: Root seed or :class:`numpy.random.SeedSequence`. ``None`` draws
        fresh OS entropy.
      count: Number of child streams to spawn.

    Returns:
      Child sequences whose streams depend only on ``seed`` and their
      position, so the same path index always replays the same draws
      regardless of which worker executes it.
    """

    if count < 0:
        raise ValueError("count must be >= 0")
    root = seed if isinstance(seed, np.random.SeedSequence) else np.random.SeedSequence(seed)
    return root.spawn(count)


def path_generator_factory(
    seed: int | np.random.SeedSequence | np.random.Generator | None,
    count: int,
) -> Callable[[int], np.random.Generator]:
    """Return ``index -> Generator`` for the ``count`` paths of one run.

    Integer seeds and seed sequences go through :func:`spawn_path_seeds`. An
    existing generator is split with :func:`spawn_child_rng` using
    ``jumps=index + 1``. Asking twice for the same index yields a fresh
    generator on the same stream.
    """

    if isinstance(seed, np.random.Generator):
        parent = seed
        return lambda index: spawn_child_rng(parent, jumps=index + 1)
    children = spawn_path_seeds(seed, count)
    return lambda index: np.random.default_rng(children[index])
