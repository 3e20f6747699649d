"""Plain records produced by the generator, and their JSON payloads."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple

from .config import Difficulty
from .grid import Direction, Edge, GridPosition, cells_between
from .materials import Material, MaterialType


class PlacementType(str, Enum):
    CORNER = "corner"
    EDGE = "edge"
    OPTIMAL = "optimal"


class Priority(str, Enum):
    CRITICAL = "critical"
    SUPPORTING = "supporting"
    DECORATIVE = "decorative"


class IssueType(str, Enum):
    MULTIPLE_SOLUTIONS = "multiple_solutions"
    NO_SOLUTION = "no_solution"
    PHYSICS_VIOLATION = "physics_violation"
    INFINITE_LOOP = "infinite_loop"
    SPACING_VIOLATION = "spacing_violation"


class Severity(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


class Algorithm(str, Enum):
    GUARANTEED = "guaranteed"
    LEGACY = "legacy"


@dataclass(frozen=True)
class PathSegment:
    """One straight run of the beam, closed by ``material`` (empty for the exit run)."""

    start: GridPosition
    end: GridPosition
    direction: Direction
    material: MaterialType = MaterialType.EMPTY

    def cells(self) -> List[GridPosition]:
        return cells_between(self.start, self.end, self.direction)


@dataclass(frozen=True)
class Interaction:
    position: GridPosition
    material: MaterialType
    incoming: Direction
    outgoing: Optional[Direction]
    angle: Optional[float] = None


@dataclass(frozen=True)
class LaserPath:
    segments: Tuple[PathSegment, ...]
    exit: Optional[GridPosition]
    terminated: bool
    exit_edge: Optional[Edge] = None
    loop_detected: bool = False
    energy_loss: float = 0.0
    interactions: Tuple[Interaction, ...] = ()

    @property
    def reflection_count(self) -> int:
        return sum(
            1
            for interaction in self.interactions
            if interaction.outgoing is not None and interaction.outgoing is not interaction.incoming
        )

    def visited_cells(self) -> List[GridPosition]:
        seen: Dict[GridPosition, None] = {}
        for segment in self.segments:
            for cell in segment.cells():
                seen.setdefault(cell, None)
        return list(seen)


@dataclass(frozen=True)
class EntryExitPair:
    entry: GridPosition
    exit: GridPosition
    distance: float
    difficulty: Difficulty
    validation_score: float
    placement_type: PlacementType


@dataclass(frozen=True)
class MaterialRequirement:
    position: GridPosition
    material_type: MaterialType
    priority: Priority
    angle: Optional[float] = None
    reflection_index: Optional[int] = None


@dataclass(frozen=True)
class PathPlan:
    entry: GridPosition
    exit: GridPosition
    required_reflections: int
    key_reflection_points: Tuple[GridPosition, ...]
    material_requirements: Tuple[MaterialRequirement, ...]
    complexity_score: int
    estimated_difficulty: Difficulty
    route: Tuple[GridPosition, ...] = ()
    initial_direction: Optional[Direction] = None

    @property
    def critical_requirements(self) -> List[MaterialRequirement]:
        return [req for req in self.material_requirements if req.priority is Priority.CRITICAL]

    @property
    def decorative_requirements(self) -> List[MaterialRequirement]:
        return [req for req in self.material_requirements if req.priority is Priority.DECORATIVE]

    def placed_materials(self) -> Tuple[Material, ...]:
        """Critical and decorative requirements as materials, in row order.

        Supporting requirements only reserve cells that must stay empty.
        """
        placed = [
            Material(req.material_type, req.position, req.angle)
            for req in self.material_requirements
            if req.priority is not Priority.SUPPORTING
        ]
        return tuple(sorted(placed, key=lambda m: (m.position[1], m.position[0])))


@dataclass(frozen=True)
class ValidationIssue:
    type: IssueType
    description: str
    severity: Severity
    affected_positions: Tuple[GridPosition, ...] = ()


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    has_unique_solution: bool
    alternative_count: int
    physics_compliant: bool
    confidence_score: float
    issues: Tuple[ValidationIssue, ...] = ()
    solution_path: Optional[LaserPath] = None
    validation_time_ms: float = 0.0
    physics_accuracy: float = 1.0
    reachable_exits: Tuple[GridPosition, ...] = ()

    @property
    def has_critical_issue(self) -> bool:
        return any(issue.severity is Severity.CRITICAL for issue in self.issues)


@dataclass(frozen=True)
class HintPath:
    hint_level: int
    percentage: int
    segments: Tuple[PathSegment, ...]
    revealed_cells: Tuple[GridPosition, ...]
    quadrants: Tuple[int, ...] = ()


@dataclass(frozen=True)
class Puzzle:
    id: str
    difficulty: Difficulty
    grid_size: int
    materials: Tuple[Material, ...]
    entry: GridPosition
    solution: GridPosition
    solution_path: LaserPath
    hints: Tuple[HintPath, ...]
    created_at: datetime
    material_density: float

    def material_at(self, position: GridPosition) -> Optional[Material]:
        for material in self.materials:
            if material.position == position:
                return material
        return None

    def to_ascii(self) -> str:
        """Debug dump: E entry, S solution, one glyph per material."""
        rows = [["." for _ in range(self.grid_size)] for _ in range(self.grid_size)]
        for material in self.materials:
            x, y = material.position
            rows[y][x] = _glyph(material)
        rows[self.entry[1]][self.entry[0]] = "E"
        rows[self.solution[1]][self.solution[0]] = "S"
        return "\n".join("".join(row) for row in rows)


_GLYPHS = {
    MaterialType.EMPTY: ".",
    MaterialType.WATER: "~",
    MaterialType.GLASS: "o",
    MaterialType.METAL: "#",
    MaterialType.ABSORBER: "X",
}


def _glyph(material: Material) -> str:
    if material.type is not MaterialType.MIRROR:
        return _GLYPHS[material.type]
    # Screen coordinates: a 45 degree mirror runs top-left to bottom-right.
    slot = int(round((material.reflection_angle % 180) / 45.0)) % 4
    return "-\\|/"[slot]


@dataclass(frozen=True)
class PuzzleGenerationMetadata:
    puzzle_id: Optional[str]
    difficulty: Difficulty
    algorithm: Algorithm
    attempts: int
    generation_time_ms: float
    confidence_score: float
    validation_passed: bool
    spacing_distance: int
    path_complexity: int
    material_density_achieved: float
    fallback_used: bool
    adapted_from_difficulty: Optional[Difficulty] = None
    created_at: Optional[datetime] = None
    recovery_actions: Tuple[str, ...] = ()


@dataclass(frozen=True)
class GenerationResult:
    puzzle: Optional[Puzzle]
    metadata: PuzzleGenerationMetadata

    @property
    def succeeded(self) -> bool:
        return self.puzzle is not None


def _position(value: Optional[GridPosition]) -> Optional[List[int]]:
    return None if value is None else [value[0], value[1]]


def segment_payload(segment: PathSegment) -> Dict[str, object]:
    return {
        "start": _position(segment.start),
        "end": _position(segment.end),
        "direction": segment.direction.name,
        "material": segment.material.value,
    }


def path_payload(path: LaserPath) -> Dict[str, object]:
    return {
        "segments": [segment_payload(segment) for segment in path.segments],
        "exit": _position(path.exit),
        "exit_edge": path.exit_edge.value if path.exit_edge else None,
        "terminated": path.terminated,
        "loop_detected": path.loop_detected,
        "energy_loss": round(path.energy_loss, 4),
    }


def material_payload(material: Material) -> Dict[str, object]:
    payload: Dict[str, object] = {
        "type": material.type.value,
        "position": _position(material.position),
    }
    if material.angle is not None:
        payload["angle"] = material.angle
    return payload


def puzzle_payload(puzzle: Puzzle) -> Dict[str, object]:
    return {
        "id": puzzle.id,
        "difficulty": puzzle.difficulty.value,
        "grid_size": puzzle.grid_size,
        "materials": [material_payload(material) for material in puzzle.materials],
        "entry": _position(puzzle.entry),
        "solution": _position(puzzle.solution),
        "solution_path": path_payload(puzzle.solution_path),
        "hints": [
            {
                "hint_level": hint.hint_level,
                "percentage": hint.percentage,
                "segments": [segment_payload(segment) for segment in hint.segments],
                "revealed_cells": [_position(cell) for cell in hint.revealed_cells],
                "quadrants": list(hint.quadrants),
            }
            for hint in puzzle.hints
        ],
        "created_at": puzzle.created_at.isoformat(),
        "material_density": puzzle.material_density,
    }


def metadata_payload(metadata: PuzzleGenerationMetadata) -> Dict[str, object]:
    return {
        "puzzle_id": metadata.puzzle_id,
        "difficulty": metadata.difficulty.value,
        "algorithm": metadata.algorithm.value,
        "attempts": metadata.attempts,
        "generation_time_ms": round(metadata.generation_time_ms, 3),
        "confidence_score": metadata.confidence_score,
        "validation_passed": metadata.validation_passed,
        "spacing_distance": metadata.spacing_distance,
        "path_complexity": metadata.path_complexity,
        "material_density_achieved": metadata.material_density_achieved,
        "fallback_used": metadata.fallback_used,
        "adapted_from_difficulty": (
            metadata.adapted_from_difficulty.value if metadata.adapted_from_difficulty else None
        ),
        "created_at": metadata.created_at.isoformat() if metadata.created_at else None,
        "recovery_actions": list(metadata.recovery_actions),
    }
