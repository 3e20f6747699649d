"""Shared pytest fixtures for the generator tests."""

from __future__ import annotations

import random
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable, Tuple

import pytest

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from laser_puzzles.config import Difficulty
from laser_puzzles.hints import build_progressive_hints
from laser_puzzles.materials import Material
from laser_puzzles.models import Puzzle
from laser_puzzles.physics import BeamEngine


class FixedRandom(random.Random):
    """Random source whose draws are pinned, for probabilistic materials."""

    def __init__(self, value: float):
        super().__init__(0)
        self.value = value

    def random(self) -> float:
        return self.value

    def choice(self, seq):
        return seq[0]


@pytest.fixture
def engine() -> BeamEngine:
    return BeamEngine(random.Random(0))


@pytest.fixture
def make_puzzle(engine: BeamEngine) -> Callable[..., Puzzle]:
    def factory(
        materials: Iterable[Material],
        entry: Tuple[int, int],
        solution: Tuple[int, int],
        grid_size: int = 5,
        difficulty: Difficulty = Difficulty.EASY,
    ) -> Puzzle:
        materials = tuple(materials)
        path = engine.trace(materials, entry, grid_size)
        return Puzzle(
            id="test_puzzle",
            difficulty=difficulty,
            grid_size=grid_size,
            materials=materials,
            entry=entry,
            solution=solution,
            solution_path=path,
            hints=build_progressive_hints(path, grid_size),
            created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
            material_density=len(materials) / grid_size ** 2,
        )

    return factory


@pytest.fixture
def fixed_random() -> Callable[[float], FixedRandom]:
    return FixedRandom
