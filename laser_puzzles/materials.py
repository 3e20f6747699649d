"""Material catalogue, physical constants and the reflection formula."""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Hashable, Mapping, Optional, Tuple, TypeVar

from .grid import GridPosition


T = TypeVar("T", bound=Hashable)

DEFAULT_MIRROR_ANGLE = 45.0
# Surface line for water placed without an angle; horizontal beams bounce straight back.
WATER_SURFACE_ANGLE = 90.0
MIRROR_ANGLES: Tuple[float, ...] = tuple(index * 22.5 for index in range(8))
MAX_ENERGY_LOSS = 1.0


class MaterialType(str, Enum):
    EMPTY = "empty"
    MIRROR = "mirror"
    WATER = "water"
    GLASS = "glass"
    METAL = "metal"
    ABSORBER = "absorber"

    @staticmethod
    def from_name(name: str) -> "MaterialType":
        try:
            return MaterialType(name.lower())
        except ValueError as exc:
            raise ValueError(f"Unknown material type: {name}") from exc


@dataclass(frozen=True)
class MaterialProperties:
    reflectivity: float
    transparency: float
    diffusion: float
    absorption: bool


MATERIAL_PROPERTIES: Dict[MaterialType, MaterialProperties] = {
    MaterialType.EMPTY: MaterialProperties(0.0, 1.0, 0.0, False),
    MaterialType.MIRROR: MaterialProperties(1.0, 0.0, 0.0, False),
    MaterialType.WATER: MaterialProperties(0.8, 0.0, 0.3, False),
    MaterialType.GLASS: MaterialProperties(0.5, 0.5, 0.0, False),
    MaterialType.METAL: MaterialProperties(1.0, 0.0, 0.0, False),
    MaterialType.ABSORBER: MaterialProperties(0.0, 0.0, 0.0, True),
}

# Loss charged for each segment closed by the material (the exit run counts as empty).
ENERGY_LOSS: Dict[MaterialType, float] = {
    MaterialType.EMPTY: 0.01,
    MaterialType.MIRROR: 0.02,
    MaterialType.WATER: 0.1,
    MaterialType.GLASS: 0.05,
    MaterialType.METAL: 0.03,
    MaterialType.ABSORBER: 1.0,
}


@dataclass(frozen=True)
class Material:
    """A material occupying one grid cell."""

    type: MaterialType
    position: GridPosition
    angle: Optional[float] = None
    properties: MaterialProperties = field(default=None, compare=False)  # type: ignore[assignment]

    def __post_init__(self) -> None:
        if self.properties is None:
            object.__setattr__(self, "properties", MATERIAL_PROPERTIES[self.type])

    @property
    def reflection_angle(self) -> float:
        if self.angle is not None:
            return float(self.angle)
        if self.type is MaterialType.WATER:
            return WATER_SURFACE_ANGLE
        return DEFAULT_MIRROR_ANGLE


def reflect_angle(incident: float, mirror_angle: float) -> float:
    """Outgoing beam angle after bouncing off a mirror line at ``mirror_angle``."""
    return (2 * mirror_angle - incident) % 360


def weighted_choice(rng: random.Random, weights: Mapping[T, float]) -> T:
    options = [(option, weight) for option, weight in weights.items() if weight > 0]
    if not options:
        raise ValueError("weighted_choice needs at least one positive weight")
    population = [option for option, _ in options]
    return rng.choices(population, weights=[weight for _, weight in options], k=1)[0]
