import itertools
import random

import pytest

from laser_puzzles.config import ComplexityConfig, Difficulty, GuaranteedGenerationConfig
from laser_puzzles.fallback import FallbackPuzzleLoader
from laser_puzzles.generator import PuzzleGenerator, derive_seed
from laser_puzzles.hints import HINT_PERCENTAGES, build_progressive_hints
from laser_puzzles.materials import MaterialType
from laser_puzzles.metrics import GenerationMetrics
from laser_puzzles.models import (
    Algorithm,
    LaserPath,
    MaterialRequirement,
    PathPlan,
    Priority,
    metadata_payload,
    puzzle_payload,
)
from laser_puzzles.physics import BeamEngine, BranchSurvey
from laser_puzzles.placement import PointPlacementService
from laser_puzzles.validator import SolutionValidator


@pytest.fixture(scope="module")
def generator():
    return PuzzleGenerator()


@pytest.mark.parametrize("difficulty", list(Difficulty))
def test_generation_always_succeeds_within_timeout(generator, difficulty):
    config = generator.config
    minimum = config.spacing[difficulty].min_distance
    for index in range(100):
        result = generator.generate_guaranteed_puzzle(difficulty, f"2026-01-01#{index}")
        puzzle = result.puzzle

        assert puzzle is not None
        assert puzzle.difficulty is difficulty
        assert puzzle.grid_size == config.grid_sizes[difficulty]
        assert puzzle.entry != puzzle.solution
        assert PointPlacementService.calculate_distance(puzzle.entry, puzzle.solution) >= minimum
        assert result.metadata.generation_time_ms <= config.timeout_ms
        assert result.metadata.validation_passed


@pytest.mark.parametrize("difficulty", list(Difficulty))
def test_generated_puzzles_have_a_unique_solution(generator, difficulty):
    for index in range(10):
        result = generator.generate_guaranteed_puzzle(difficulty, f"unique-{index}")
        assert result.metadata.algorithm is Algorithm.GUARANTEED
        assert not result.metadata.fallback_used

        validator = SolutionValidator(BeamEngine(random.Random(index)))
        check = validator.verify_unique_solution(result.puzzle)

        assert check.has_unique_solution
        assert check.alternative_count == 0
        assert check.solution_path.exit == result.puzzle.solution
        assert result.metadata.confidence_score >= generator.config.min_confidence_score


def test_generated_layout_keeps_entry_clear(generator):
    puzzle = generator.generate_guaranteed_puzzle(Difficulty.HARD, "2026-03-14").puzzle
    positions = [material.position for material in puzzle.materials]

    assert puzzle.entry not in positions
    assert len(positions) == len(set(positions))
    assert puzzle.material_density == pytest.approx(len(positions) / puzzle.grid_size ** 2, abs=1e-4)


def test_same_date_reproduces_same_puzzle():
    first = PuzzleGenerator().generate_guaranteed_puzzle("Medium", "2026-10-18").puzzle
    second = PuzzleGenerator().generate_guaranteed_puzzle(Difficulty.MEDIUM, "2026-10-18").puzzle

    assert first.id == second.id
    assert first.materials == second.materials
    assert first.entry == second.entry
    assert first.solution == second.solution
    assert first.solution_path == second.solution_path


def test_seed_changes_the_derived_seed():
    assert derive_seed("2026-10-18", Difficulty.EASY) == derive_seed("2026-10-18", Difficulty.EASY)
    assert derive_seed("2026-10-18", Difficulty.EASY) != derive_seed("2026-10-18", Difficulty.HARD)
    assert derive_seed("2026-10-18", Difficulty.EASY, 1) != derive_seed("2026-10-18", Difficulty.EASY)


def test_hints_reveal_growing_prefixes(generator):
    puzzle = generator.generate_guaranteed_puzzle(Difficulty.MEDIUM, "hints").puzzle
    hints = puzzle.hints

    assert len(hints) == 4
    assert [hint.percentage for hint in hints] == [25, 50, 75, 100]
    assert [hint.hint_level for hint in hints] == [1, 2, 3, 4]
    counts = [len(hint.revealed_cells) for hint in hints]
    assert counts == sorted(counts)
    assert hints[-1].segments == puzzle.solution_path.segments
    assert all(1 <= q <= 4 for hint in hints for q in hint.quadrants)


def test_empty_path_still_has_four_hints():
    hints = build_progressive_hints(LaserPath(segments=(), exit=None, terminated=True), 6)

    assert [hint.percentage for hint in hints] == list(HINT_PERCENTAGES)
    assert all(hint.segments == () and hint.revealed_cells == () for hint in hints)


def test_hard_failures_adapt_but_keep_label():
    impossible = ComplexityConfig(min_reflections=200, max_reflections=200, preferred_reflections=200)
    config = GuaranteedGenerationConfig().with_overrides(complexity={Difficulty.HARD: impossible})
    result = PuzzleGenerator(config).generate_guaranteed_puzzle(Difficulty.HARD, "2026-10-18")

    assert result.puzzle is not None
    assert result.puzzle.difficulty is Difficulty.HARD
    assert result.puzzle.grid_size == config.grid_sizes[Difficulty.HARD]
    assert result.metadata.adapted_from_difficulty in (Difficulty.MEDIUM, Difficulty.EASY)
    assert result.metadata.algorithm is Algorithm.GUARANTEED
    assert not result.metadata.fallback_used
    assert "reduce_difficulty" in result.metadata.recovery_actions


def test_wall_clock_timeout_serves_fallback():
    ticks = itertools.count(step=10.0)
    generator = PuzzleGenerator(clock=lambda: next(ticks))
    result = generator.generate_guaranteed_puzzle(Difficulty.EASY, "2026-10-18")

    assert result.puzzle is not None
    assert result.puzzle.id.startswith("fallback_easy_")
    assert result.metadata.fallback_used
    assert result.metadata.algorithm is Algorithm.LEGACY
    assert result.metadata.validation_passed
    assert result.metadata.attempts == 0


def test_fallback_disabled_returns_metadata_only():
    ticks = itertools.count(step=10.0)
    config = GuaranteedGenerationConfig(enable_fallback=False)
    result = PuzzleGenerator(config, clock=lambda: next(ticks)).generate_guaranteed_puzzle("Hard", "x")

    assert result.puzzle is None
    assert not result.succeeded
    assert not result.metadata.validation_passed
    assert result.metadata.fallback_used
    assert result.metadata.puzzle_id is None


def test_critical_validation_issue_skips_remaining_attempts():
    class SplittingEngine(BeamEngine):
        def survey(self, materials, entry, grid_size, direction=None):
            real = super().survey(materials, entry, grid_size, direction)
            return BranchSurvey(real.exits | {entry}, real.absorbed, real.branch_points, real.states_explored)

    generator = PuzzleGenerator(engine_factory=lambda rng: SplittingEngine(rng))
    result = generator.generate_guaranteed_puzzle(Difficulty.EASY, "2026-10-18")

    assert result.metadata.fallback_used
    assert result.metadata.attempts == 1
    assert result.metadata.recovery_actions == ("fallback",)
    assert result.puzzle is not None


@pytest.mark.parametrize("difficulty", ["Impossible", "", "hardest"])
def test_unknown_difficulty_fails_fast(generator, difficulty):
    with pytest.raises(ValueError):
        generator.generate_guaranteed_puzzle(difficulty, "2026-10-18")


def test_metrics_receive_every_result():
    metrics = GenerationMetrics()
    generator = PuzzleGenerator(metrics=metrics)
    for difficulty in Difficulty:
        generator.generate_guaranteed_puzzle(difficulty, "metrics")

    summary = metrics.summary()
    assert summary.total_generated == 3
    assert summary.success_rate == 1.0
    assert summary.by_difficulty["Hard"].generated == 1


def test_payloads_are_plain_data(generator):
    result = generator.generate_guaranteed_puzzle(Difficulty.EASY, "payload")
    puzzle = puzzle_payload(result.puzzle)
    metadata = metadata_payload(result.metadata)

    assert puzzle["difficulty"] == "Easy"
    assert len(puzzle["hints"]) == 4
    assert puzzle["entry"] == list(result.puzzle.entry)
    assert metadata["algorithm"] == "guaranteed"
    assert metadata["puzzle_id"] == result.puzzle.id


def test_attempt_finishing_past_the_deadline_serves_fallback():
    ticks = iter([0.0, 0.0])
    generator = PuzzleGenerator(clock=lambda: next(ticks, 60.0))
    result = generator.generate_guaranteed_puzzle(Difficulty.EASY, "2026-10-18")

    assert result.metadata.fallback_used
    assert result.metadata.algorithm is Algorithm.LEGACY
    assert result.metadata.attempts == 1
    assert result.metadata.recovery_actions == ("fallback",)
    assert result.puzzle.id.startswith("fallback_easy_")


def test_overrun_with_fallback_disabled_aborts():
    ticks = iter([0.0, 0.0])
    config = GuaranteedGenerationConfig(enable_fallback=False)
    result = PuzzleGenerator(config, clock=lambda: next(ticks, 60.0)).generate_guaranteed_puzzle("Easy", "x")

    assert result.puzzle is None
    assert not result.metadata.validation_passed
    assert result.metadata.recovery_actions == ("abort",)


def test_entry_exit_pairs_vary_between_dates():
    generator = PuzzleGenerator()
    pairs = set()
    for index in range(30):
        puzzle = generator.generate_guaranteed_puzzle(Difficulty.MEDIUM, f"2026-11-{index:02d}").puzzle
        pairs.add((puzzle.entry, puzzle.solution))

    assert len(pairs) >= 6


def test_filler_is_recorded_as_decorative_requirements():
    plan = PathPlan(
        entry=(0, 2),
        exit=(2, 0),
        required_reflections=1,
        key_reflection_points=((2, 2),),
        material_requirements=(
            MaterialRequirement((0, 2), MaterialType.EMPTY, Priority.SUPPORTING),
            MaterialRequirement((2, 2), MaterialType.MIRROR, Priority.CRITICAL, 135, 0),
            MaterialRequirement((2, 0), MaterialType.EMPTY, Priority.SUPPORTING),
        ),
        complexity_score=1,
        estimated_difficulty=Difficulty.EASY,
        route=((0, 2), (1, 2), (2, 2), (2, 1), (2, 0)),
    )
    generator = PuzzleGenerator()
    materials_config = generator.config.materials[Difficulty.EASY]
    furnished = generator._furnish(plan, materials_config, 0.5, 6, random.Random(5))
    decorative = furnished.decorative_requirements

    # Eight mirrors and eight absorbers fill the per-type caps before the density target.
    assert len(decorative) == 16
    assert furnished.critical_requirements == plan.critical_requirements
    assert not {req.position for req in decorative} & set(plan.route)
    materials = furnished.placed_materials()
    assert len(materials) == 17
    assert BeamEngine(random.Random(0)).trace(materials, (0, 2), 6).exit == (2, 0)


def test_fallback_prefers_a_file_sized_for_the_configured_grid(tmp_path):
    (tmp_path / "easy_7.json").write_text(
        '{"name": "open-7", "difficulty": "Easy", "grid_size": 7, '
        '"entry": [0, 3], "solution": [6, 3], "materials": []}'
    )
    config = GuaranteedGenerationConfig().with_overrides(grid_sizes={Difficulty.EASY: 7})
    ticks = itertools.count(step=10.0)
    generator = PuzzleGenerator(config, fallbacks=FallbackPuzzleLoader(tmp_path), clock=lambda: next(ticks))
    result = generator.generate_guaranteed_puzzle(Difficulty.EASY, "2026-10-18")

    assert result.metadata.fallback_used
    assert result.puzzle.grid_size == 7
    assert result.puzzle.solution == (6, 3)
