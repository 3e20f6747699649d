"""Generation tunables.

Configuration mistakes are programming errors, so every model validates eagerly
and raises ``pydantic.ValidationError`` (a ``ValueError``) on bad input.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .materials import MaterialType


class Difficulty(str, Enum):
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"

    @staticmethod
    def parse(value: Union[str, "Difficulty"]) -> "Difficulty":
        if isinstance(value, Difficulty):
            return value
        for member in Difficulty:
            if member.value.lower() == str(value).strip().lower():
                return member
        raise ValueError(f"Unknown difficulty: {value!r}")

    def easier(self) -> Optional["Difficulty"]:
        order = list(Difficulty)
        index = order.index(self)
        return order[index - 1] if index > 0 else None


class SpacingConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    min_distance: int = Field(ge=1)
    preferred_distance: int = Field(ge=1)
    corner_bonus: float = Field(default=1.0, ge=0)
    edge_bonus: float = Field(default=1.0, ge=0)
    max_search_attempts: int = Field(default=50, ge=1)

    @model_validator(mode="after")
    def _check_preferred(self) -> "SpacingConfig":
        if self.preferred_distance < self.min_distance:
            raise ValueError("preferred_distance must be at least min_distance")
        return self


class MaterialGenerationConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    target_density: float = Field(gt=0, le=1)
    weights: Dict[MaterialType, float]
    max_per_type: int = Field(default=8, ge=1)
    min_critical_materials: int = Field(default=2, ge=0)

    @model_validator(mode="after")
    def _check_weights(self) -> "MaterialGenerationConfig":
        if any(weight < 0 for weight in self.weights.values()):
            raise ValueError("material weights must be non-negative")
        if MaterialType.EMPTY in self.weights:
            raise ValueError("empty is not a placeable material")
        return self

    @property
    def allowed_materials(self) -> List[MaterialType]:
        return [material for material, weight in self.weights.items() if weight > 0]


class ComplexityConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    min_reflections: int = Field(ge=1)
    max_reflections: int = Field(ge=1)
    preferred_reflections: int = Field(ge=1)
    path_length_multiplier: float = Field(default=1.0, gt=0)

    @model_validator(mode="after")
    def _check_range(self) -> "ComplexityConfig":
        if not self.min_reflections <= self.preferred_reflections <= self.max_reflections:
            raise ValueError("reflections must satisfy min <= preferred <= max")
        return self

    def simplified(self, steps: int) -> "ComplexityConfig":
        """Lower every reflection bound by ``steps`` without dropping below one."""
        if steps <= 0:
            return self
        return self.model_copy(
            update={
                "min_reflections": max(1, self.min_reflections - steps),
                "preferred_reflections": max(1, self.preferred_reflections - steps),
                "max_reflections": max(1, self.max_reflections - steps),
            }
        )


DEFAULT_GRID_SIZES: Dict[Difficulty, int] = {
    Difficulty.EASY: 6,
    Difficulty.MEDIUM: 8,
    Difficulty.HARD: 10,
}


def _default_spacing() -> Dict[Difficulty, SpacingConfig]:
    return {
        Difficulty.EASY: SpacingConfig(
            min_distance=3, preferred_distance=4, corner_bonus=1.2, edge_bonus=1.1, max_search_attempts=50
        ),
        Difficulty.MEDIUM: SpacingConfig(
            min_distance=4, preferred_distance=6, corner_bonus=1.3, edge_bonus=1.15, max_search_attempts=75
        ),
        Difficulty.HARD: SpacingConfig(
            min_distance=5, preferred_distance=8, corner_bonus=1.4, edge_bonus=1.2, max_search_attempts=100
        ),
    }


def _default_materials() -> Dict[Difficulty, MaterialGenerationConfig]:
    return {
        Difficulty.EASY: MaterialGenerationConfig(
            target_density=0.7,
            weights={MaterialType.MIRROR: 0.7, MaterialType.ABSORBER: 0.3},
            max_per_type=8,
            min_critical_materials=2,
        ),
        Difficulty.MEDIUM: MaterialGenerationConfig(
            target_density=0.8,
            weights={
                MaterialType.MIRROR: 0.4,
                MaterialType.WATER: 0.2,
                MaterialType.GLASS: 0.2,
                MaterialType.ABSORBER: 0.2,
            },
            max_per_type=10,
            min_critical_materials=3,
        ),
        Difficulty.HARD: MaterialGenerationConfig(
            target_density=0.85,
            weights={
                MaterialType.MIRROR: 0.3,
                MaterialType.WATER: 0.2,
                MaterialType.GLASS: 0.2,
                MaterialType.METAL: 0.15,
                MaterialType.ABSORBER: 0.15,
            },
            max_per_type=12,
            min_critical_materials=4,
        ),
    }


def _default_complexity() -> Dict[Difficulty, ComplexityConfig]:
    return {
        Difficulty.EASY: ComplexityConfig(min_reflections=2, max_reflections=4, preferred_reflections=3),
        Difficulty.MEDIUM: ComplexityConfig(
            min_reflections=3, max_reflections=6, preferred_reflections=4, path_length_multiplier=1.2
        ),
        Difficulty.HARD: ComplexityConfig(
            min_reflections=4, max_reflections=8, preferred_reflections=6, path_length_multiplier=1.5
        ),
    }


class GuaranteedGenerationConfig(BaseModel):
    """Everything the generator needs to know, per difficulty where it matters."""

    model_config = ConfigDict(frozen=True)

    max_generation_attempts: int = Field(default=10, gt=0)
    min_confidence_score: float = Field(default=85, ge=0, le=100)
    timeout_ms: float = Field(default=5000, gt=0)
    enable_fallback: bool = True
    adaptive_difficulty: bool = True
    adaptive_reduction_after: int = Field(default=3, ge=1)
    loop_window: int = Field(default=20, ge=2)
    planner_search_budget: int = Field(default=20000, ge=1)
    grid_sizes: Dict[Difficulty, int] = Field(default_factory=lambda: dict(DEFAULT_GRID_SIZES))
    spacing: Dict[Difficulty, SpacingConfig] = Field(default_factory=_default_spacing)
    materials: Dict[Difficulty, MaterialGenerationConfig] = Field(default_factory=_default_materials)
    complexity: Dict[Difficulty, ComplexityConfig] = Field(default_factory=_default_complexity)

    @model_validator(mode="after")
    def _check_tables(self) -> "GuaranteedGenerationConfig":
        for name in ("grid_sizes", "spacing", "materials", "complexity"):
            missing = [d.value for d in Difficulty if d not in getattr(self, name)]
            if missing:
                raise ValueError(f"{name} is missing entries for {', '.join(missing)}")
        for difficulty, size in self.grid_sizes.items():
            if size < 3:
                raise ValueError(f"grid size for {difficulty.value} must be at least 3")
        return self

    def with_overrides(self, **updates: object) -> "GuaranteedGenerationConfig":
        """Copy with some fields replaced, re-validated.

        Per-difficulty tables are merged, so ``complexity={Difficulty.HARD: ...}``
        only replaces the Hard entry.
        """
        data = self.model_dump()
        for key, value in updates.items():
            if key in _TABLE_FIELDS and isinstance(value, dict):
                merged = dict(data[key])
                merged.update({Difficulty.parse(name): entry for name, entry in value.items()})
                data[key] = merged
            else:
                data[key] = value
        return GuaranteedGenerationConfig.model_validate(data)


_TABLE_FIELDS = frozenset({"grid_sizes", "spacing", "materials", "complexity"})
