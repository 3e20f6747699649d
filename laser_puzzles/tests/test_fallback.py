import json
from pathlib import Path

import pytest

from laser_puzzles.config import Difficulty, GuaranteedGenerationConfig
from laser_puzzles.fallback import FALLBACK_ROOT, FallbackPuzzleLoader
from laser_puzzles.placement import PointPlacementService


def write_fallback(root: Path, name: str, /, **overrides):
    data = {
        "name": "broken",
        "difficulty": "Easy",
        "grid_size": 6,
        "entry": [0, 1],
        "solution": [5, 4],
        "materials": [
            {"type": "mirror", "position": [4, 1], "angle": 45},
            {"type": "mirror", "position": [4, 4], "angle": 45},
        ],
    }
    data.update(overrides)
    (root / f"{name}.json").write_text(json.dumps(data))


@pytest.mark.parametrize("difficulty", list(Difficulty))
def test_bundled_fallbacks_are_consistent(difficulty):
    loader = FallbackPuzzleLoader()
    config = GuaranteedGenerationConfig()
    puzzle = loader.build_puzzle(difficulty, "2026-10-18")

    assert puzzle.id == f"fallback_{difficulty.value.lower()}_2026-10-18"
    assert puzzle.grid_size == config.grid_sizes[difficulty]
    assert puzzle.solution_path.exit == puzzle.solution
    assert len(puzzle.hints) == 4
    assert puzzle.entry not in [material.position for material in puzzle.materials]
    distance = PointPlacementService.calculate_distance(puzzle.entry, puzzle.solution)
    assert distance >= config.spacing[difficulty].min_distance


def test_default_root_ships_with_package():
    assert sorted(path.name for path in FALLBACK_ROOT.glob("*.json")) == ["easy.json", "hard.json", "medium.json"]


def test_valid_custom_directory_loads(tmp_path):
    write_fallback(tmp_path, "easy")
    definition = FallbackPuzzleLoader(tmp_path).load(Difficulty.EASY)

    assert definition.solution == (5, 4)
    assert len(definition.materials) == 2


def test_wrong_solution_is_rejected(tmp_path):
    write_fallback(tmp_path, "easy", solution=[0, 4])

    with pytest.raises(ValueError):
        FallbackPuzzleLoader(tmp_path).load(Difficulty.EASY)


def test_ambiguous_fallback_is_rejected(tmp_path):
    write_fallback(
        tmp_path,
        "easy",
        materials=[
            {"type": "glass", "position": [4, 1], "angle": 45},
            {"type": "mirror", "position": [4, 4], "angle": 45},
        ],
    )

    with pytest.raises(ValueError):
        FallbackPuzzleLoader(tmp_path).load(Difficulty.EASY)


def test_material_on_entry_is_rejected(tmp_path):
    write_fallback(tmp_path, "easy", materials=[{"type": "absorber", "position": [0, 1]}])

    with pytest.raises(ValueError):
        FallbackPuzzleLoader(tmp_path).load(Difficulty.EASY)


def test_mismatched_difficulty_is_rejected(tmp_path):
    write_fallback(tmp_path, "hard")

    with pytest.raises(ValueError):
        FallbackPuzzleLoader(tmp_path).load(Difficulty.HARD)


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        FallbackPuzzleLoader(tmp_path).load(Difficulty.MEDIUM)


def test_sized_file_is_preferred_for_matching_grid(tmp_path):
    write_fallback(tmp_path, "easy")
    write_fallback(
        tmp_path, "easy_7", name="open-7", grid_size=7, entry=[0, 3], solution=[6, 3], materials=[]
    )
    loader = FallbackPuzzleLoader(tmp_path)

    assert loader.load(Difficulty.EASY, 7).grid_size == 7
    assert loader.load(Difficulty.EASY, 6).grid_size == 6
    assert loader.load(Difficulty.EASY).grid_size == 6


def test_missing_sized_file_keeps_the_stored_grid(tmp_path):
    write_fallback(tmp_path, "easy")
    puzzle = FallbackPuzzleLoader(tmp_path).build_puzzle(Difficulty.EASY, "2026-10-18", grid_size=9)

    assert puzzle.grid_size == 6
    assert puzzle.solution == (5, 4)


def test_sized_file_must_match_its_grid(tmp_path):
    write_fallback(tmp_path, "easy_7")

    with pytest.raises(ValueError):
        FallbackPuzzleLoader(tmp_path).load(Difficulty.EASY, 7)
