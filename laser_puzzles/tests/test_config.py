import pytest
from pydantic import ValidationError

from laser_puzzles.config import (
    ComplexityConfig,
    Difficulty,
    GuaranteedGenerationConfig,
    MaterialGenerationConfig,
    SpacingConfig,
)
from laser_puzzles.materials import MaterialType


def test_defaults_match_difficulty_tables():
    config = GuaranteedGenerationConfig()

    assert config.max_generation_attempts == 10
    assert config.min_confidence_score == 85
    assert config.timeout_ms == 5000
    assert config.enable_fallback
    assert [config.grid_sizes[d] for d in Difficulty] == [6, 8, 10]
    assert [config.spacing[d].min_distance for d in Difficulty] == [3, 4, 5]
    assert config.materials[Difficulty.EASY].allowed_materials == [MaterialType.MIRROR, MaterialType.ABSORBER]
    assert config.complexity[Difficulty.HARD].preferred_reflections == 6


@pytest.mark.parametrize(
    "overrides",
    [
        {"max_generation_attempts": 0},
        {"max_generation_attempts": -3},
        {"timeout_ms": 0},
        {"timeout_ms": -1},
        {"min_confidence_score": 101},
        {"grid_sizes": {Difficulty.EASY: 2, Difficulty.MEDIUM: 8, Difficulty.HARD: 10}},
        {"spacing": {Difficulty.EASY: SpacingConfig(min_distance=3, preferred_distance=4)}},
    ],
)
def test_invalid_configuration_fails_fast(overrides):
    with pytest.raises(ValueError):
        GuaranteedGenerationConfig(**overrides)


def test_validation_errors_are_value_errors():
    with pytest.raises(ValidationError):
        GuaranteedGenerationConfig(max_generation_attempts=0)
    assert issubclass(ValidationError, ValueError)


def test_nested_models_validate_their_ranges():
    with pytest.raises(ValueError):
        ComplexityConfig(min_reflections=4, max_reflections=2, preferred_reflections=3)
    with pytest.raises(ValueError):
        SpacingConfig(min_distance=5, preferred_distance=3)
    with pytest.raises(ValueError):
        MaterialGenerationConfig(target_density=0.5, weights={MaterialType.MIRROR: -1.0})
    with pytest.raises(ValueError):
        MaterialGenerationConfig(target_density=1.5, weights={MaterialType.MIRROR: 1.0})
    with pytest.raises(ValueError):
        MaterialGenerationConfig(target_density=0.5, weights={MaterialType.EMPTY: 1.0})


def test_with_overrides_merges_difficulty_tables():
    custom = ComplexityConfig(min_reflections=1, max_reflections=2, preferred_reflections=1)
    config = GuaranteedGenerationConfig().with_overrides(complexity={"Hard": custom}, timeout_ms=900)

    assert config.complexity[Difficulty.HARD] == custom
    assert config.complexity[Difficulty.EASY].preferred_reflections == 3
    assert config.timeout_ms == 900
    with pytest.raises(ValueError):
        config.with_overrides(max_generation_attempts=0)


def test_simplified_complexity_never_drops_below_one():
    complexity = ComplexityConfig(min_reflections=2, max_reflections=4, preferred_reflections=3)

    assert complexity.simplified(0) is complexity
    simplified = complexity.simplified(5)
    assert (simplified.min_reflections, simplified.preferred_reflections, simplified.max_reflections) == (1, 1, 1)


def test_difficulty_parsing():
    assert Difficulty.parse("hard") is Difficulty.HARD
    assert Difficulty.parse(" Medium ") is Difficulty.MEDIUM
    assert Difficulty.parse(Difficulty.EASY) is Difficulty.EASY
    with pytest.raises(ValueError):
        Difficulty.parse("expert")
    assert Difficulty.HARD.easier() is Difficulty.MEDIUM
    assert Difficulty.EASY.easier() is None
