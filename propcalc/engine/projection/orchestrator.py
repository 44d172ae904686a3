"""Monte Carlo orchestration: validate, fan out independent paths, aggregate.

Each path owns its uniform source and regime state and reads only the
immutable assumption tables, so paths can run on a thread pool without
locking. Results are stored by path index, which keeps the output identical
for a given seed whatever the scheduling order.
"""

from __future__ import annotations

import math
import threading
import time
from collections.abc import Callable, Sequence
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait

import numpy as np

from propcalc.engine.logging import setup_logger
from propcalc.engine.utils.rand import path_generator_factory

from .aggregate import AggregateResult, aggregate_paths
from .assumptions import MarketAssumptions
from .config import SimulationConfig, validate_config
from .errors import SimulationCancelled
from .path import SimulationPath, simulate_path
from .returns import AnnualReturnModel
from .variates import GeneratorUniformSource, UniformSource

__all__ = ["SourceFactory", "default_source_factory", "run_paths", "run_simulation"]

LOG = setup_logger(__name__)

SourceFactory = Callable[[int], UniformSource]
SeedLike = int | np.random.SeedSequence | np.random.Generator | None


def default_source_factory(seed: SeedLike, count: int) -> SourceFactory:
    """Return a factory handing path ``i`` its own reproducible uniform stream.

    Integer seeds and seed sequences are split with
    :meth:`numpy.random.SeedSequence.spawn`; an existing generator is split by
    jumping its bit generator ``i + 1`` times.
    """

    generators = path_generator_factory(seed, count)

    def _source(index: int) -> UniformSource:
        return GeneratorUniformSource(generators(index))

    return _source


def _chunks(count: int, workers: int) -> list[range]:
    size = max(1, math.ceil(count / (workers * 4)))
    return [range(start, min(start + size, count)) for start in range(0, count, size)]


def run_paths(
    config: SimulationConfig,
    assumptions: MarketAssumptions | None = None,
    *,
    seed: SeedLike = None,
    source_factory: SourceFactory | None = None,
    max_workers: int | None = None,
    cancel_event: threading.Event | None = None,
) -> list[SimulationPath]:
    """Run ``config.number_of_simulations`` independent paths.

    Args:
      config: Simulation configuration; validated before any path runs.
      assumptions: Market tables. Defaults to :meth:`MarketAssumptions.default`.
      seed: Root seed for the per-path streams. Ignored when
        ``source_factory`` is supplied.
      source_factory: Callable mapping a path index to its uniform source.
      max_workers: Thread count; ``None`` or ``1`` runs sequentially.
      cancel_event: Event checked before each path. Once set, remaining work
        is abandoned and :class:`SimulationCancelled` is raised.

    Returns:
      The completed paths in path-index order.

    Raises:
      InvalidConfiguration: If the configuration fails validation.
      SimulationCancelled: If ``cancel_event`` was set during the run.
    """

    assumptions = assumptions or MarketAssumptions.default()
    validate_config(config, assumptions)
    count = config.number_of_simulations
    factory = source_factory or default_source_factory(seed, count)
    profile = assumptions.profile(config.risk_profile)
    model = AnnualReturnModel(assumptions, profile)
    results: list[SimulationPath | None] = [None] * count

    def _run_chunk(indices: range) -> None:
        for index in indices:
            if cancel_event is not None and cancel_event.is_set():
                raise SimulationCancelled("simulation cancelled")
            results[index] = simulate_path(
                config, assumptions, factory(index), profile=profile, model=model
            )

    workers = max(1, int(max_workers or 1))
    if workers == 1:
        _run_chunk(range(count))
    else:
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="propcalc-path") as pool:
            futures = [pool.submit(_run_chunk, chunk) for chunk in _chunks(count, workers)]
            done, pending = wait(futures, return_when=FIRST_EXCEPTION)
            for future in pending:
                future.cancel()
            for future in done:
                error = future.exception()
                if error is not None:
                    raise error

    return [path for path in results if path is not None]


def run_simulation(
    config: SimulationConfig,
    assumptions: MarketAssumptions | None = None,
    *,
    seed: SeedLike = None,
    source_factory: SourceFactory | None = None,
    max_workers: int | None = None,
    cancel_event: threading.Event | None = None,
) -> AggregateResult:
    """Run a complete projection and return its aggregate.

    This is the single entry point consumed by the surrounding application.
    Arguments match :func:`run_paths`.

    Raises:
      InvalidConfiguration: Before any path runs, on an unknown risk profile,
        non-positive investment, horizon or path count, or a contribution
        schedule whose length differs from the horizon.
      SimulationCancelled: If cancelled; no partial aggregate is produced.
    """

    started = time.perf_counter()
    try:
        paths: Sequence[SimulationPath] = run_paths(
            config,
            assumptions,
            seed=seed,
            source_factory=source_factory,
            max_workers=max_workers,
            cancel_event=cancel_event,
        )
    except SimulationCancelled:
        LOG.warning(
            "projection cancelled profile=%s years=%d requested=%d",
            config.risk_profile,
            config.years,
            config.number_of_simulations,
        )
        raise

    result = aggregate_paths(paths, config)
    elapsed_ms = (time.perf_counter() - started) * 1000.0
    LOG.info(
        "projection profile=%s years=%d paths=%d median_real=%.2f adjusted=%d elapsed_ms=%.1f",
        config.risk_profile,
        config.years,
        result.number_of_simulations,
        result.real_percentiles["p50"],
        result.adjusted_paths,
        elapsed_ms,
        extra={
            "process_time_ms": elapsed_ms,
            "paths": result.number_of_simulations,
            "years": config.years,
            "adjusted_paths": result.adjusted_paths,
            "risk_profile": config.risk_profile,
        },
    )
    return result
