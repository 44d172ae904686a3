"""Tests for seed management in the ``rand`` module."""

from __future__ import annotations

import json
from pathlib import Path

import numpy as np
import pytest
import yaml

from propcalc.engine.utils import rand


def test_load_seeds_defaults_when_file_missing(tmp_path: Path) -> None:
    path = tmp_path / "absent.yml"
    assert rand.load_seeds(path) == {rand.DEFAULT_STREAM: rand.DEFAULT_SEED}


def test_load_seeds_reads_nested_section(tmp_path: Path) -> None:
    path = tmp_path / "seeds.yml"
    path.write_text(json.dumps({"seeds": {"global": 7, "projection": 99}}), encoding="utf-8")

    seeds = rand.load_seeds(path)

    assert seeds["global"] == 7
    assert seeds["projection"] == 99


def test_load_seeds_rejects_non_mapping(tmp_path: Path) -> None:
    path = tmp_path / "seeds.yml"
    path.write_text("- 1\n- 2\n", encoding="utf-8")

    with pytest.raises(TypeError):
        rand.load_seeds(path)


def test_save_seeds_writes_normalised_yaml(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "seeds.yml"
    written = rand.save_seeds({"projection": 11, "global": 2}, seed_path=path)

    assert written == path
    assert yaml.safe_load(path.read_text(encoding="utf-8")) == {
        "seeds": {"global": 2, "projection": 11}
    }


def test_seed_for_stream_falls_back_to_global() -> None:
    seeds = {"global": 1, "projection": 9}
    assert rand.seed_for_stream("projection", seeds=seeds) == 9
    assert rand.seed_for_stream("unknown", seeds=seeds) == 1


def test_generator_from_seed_reuses_generator() -> None:
    generator = np.random.default_rng(123)
    assert rand.generator_from_seed(generator) is generator


def test_generator_from_seed_is_deterministic_per_stream(tmp_path: Path) -> None:
    path = tmp_path / "seeds.yml"
    path.write_text("seeds:\n  global: 123\n  projection: 987\n", encoding="utf-8")

    rng_a = rand.generator_from_seed(stream="projection", seed_path=path)
    rng_b = rand.generator_from_seed(stream="projection", seed_path=path)

    assert np.allclose(rng_a.normal(size=4), rng_b.normal(size=4))


def test_spawn_child_rng_respects_jumps() -> None:
    parent = np.random.default_rng(0)
    child_a = rand.spawn_child_rng(parent, jumps=3)
    child_b = rand.spawn_child_rng(parent, jumps=3)

    assert np.allclose(child_a.random(5), child_b.random(5))

    with pytest.raises(ValueError):
        rand.spawn_child_rng(parent, jumps=0)


def test_spawn_path_seeds_are_independent_and_replayable() -> None:
    first = rand.spawn_path_seeds(2024, 3)
    second = rand.spawn_path_seeds(2024, 3)

    draws = [np.random.default_rng(child).random() for child in first]
    replay = [np.random.default_rng(child).random() for child in second]

    assert draws == replay
    assert len(set(draws)) == 3
    assert rand.spawn_path_seeds(1, 0) == []
    with pytest.raises(ValueError):
        rand.spawn_path_seeds(1, -1)


@pytest.mark.parametrize("make_seed", [lambda: 77, lambda: np.random.default_rng(77)])
def test_path_generator_factory_replays_each_index(make_seed) -> None:
    generators = rand.path_generator_factory(make_seed(), 4)

    first = [generators(index).random() for index in range(4)]
    again = [generators(index).random() for index in range(4)]

    assert first == again
    assert len(set(first)) == 4
