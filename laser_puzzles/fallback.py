"""Hand-verified puzzles substituted when generation cannot succeed."""

from __future__ import annotations

import json
import logging
import random
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional, Tuple

from .config import Difficulty
from .grid import GridPosition, in_bounds, is_boundary
from .hints import build_progressive_hints
from .materials import Material, MaterialType
from .models import Puzzle
from .physics import BeamEngine


logger = logging.getLogger(__name__)

FALLBACK_ROOT = Path(__file__).resolve().parent / "fallbacks"


@dataclass(frozen=True)
class FallbackDefinition:
    name: str
    difficulty: Difficulty
    grid_size: int
    entry: GridPosition
    solution: GridPosition
    materials: Tuple[Material, ...]


class FallbackPuzzleLoader:
    """Load fallback puzzles stored as JSON, one file per difficulty.

    Every file is re-simulated on load; a file whose beam does not leave the
    grid at its recorded solution, or can leave anywhere else, is rejected.
    """

    def __init__(self, root: Optional[Path] = None):
        self.root = Path(root) if root is not None else FALLBACK_ROOT
        self._cache: Dict[Path, FallbackDefinition] = {}

    def _path(self, difficulty: Difficulty, grid_size: Optional[int]) -> Path:
        name = difficulty.value.lower()
        if grid_size is not None:
            sized = self.root / f"{name}_{grid_size}.json"
            if sized.exists():
                return sized
        return self.root / f"{name}.json"

    def load(self, difficulty: Difficulty, grid_size: Optional[int] = None) -> FallbackDefinition:
        """Definition for ``difficulty``, preferring a file made for ``grid_size``.

        ``easy_7.json`` is used for a 7x7 Easy grid when present, otherwise
        ``easy.json`` whatever its size.
        """
        path = self._path(difficulty, grid_size)
        if path in self._cache:
            return self._cache[path]
        if not path.exists():
            raise FileNotFoundError(path)
        definition = self._parse(json.loads(path.read_text()))
        if definition.difficulty is not difficulty:
            raise ValueError(f"{path.name} describes a {definition.difficulty.value} puzzle")
        if path.stem != difficulty.value.lower() and definition.grid_size != grid_size:
            raise ValueError(f"{path.name} describes a {definition.grid_size}x{definition.grid_size} grid")
        self._verify(definition)
        self._cache[path] = definition
        return definition

    def build_puzzle(
        self,
        difficulty: Difficulty,
        date: str,
        created_at: Optional[datetime] = None,
        grid_size: Optional[int] = None,
    ) -> Puzzle:
        definition = self.load(difficulty, grid_size)
        if grid_size is not None and definition.grid_size != grid_size:
            logger.warning(
                "Fallback %s is %dx%d but %s is configured for %dx%d",
                definition.name,
                definition.grid_size,
                definition.grid_size,
                difficulty.value,
                grid_size,
                grid_size,
            )
        path = BeamEngine(random.Random(0)).trace(definition.materials, definition.entry, definition.grid_size)
        logger.warning("Serving fallback puzzle %s for %s", definition.name, difficulty.value)
        return Puzzle(
            id=f"fallback_{difficulty.value.lower()}_{date}",
            difficulty=difficulty,
            grid_size=definition.grid_size,
            materials=definition.materials,
            entry=definition.entry,
            solution=definition.solution,
            solution_path=path,
            hints=build_progressive_hints(path, definition.grid_size),
            created_at=created_at or datetime.now(timezone.utc),
            material_density=len(definition.materials) / definition.grid_size ** 2,
        )

    def _parse(self, data: Dict) -> FallbackDefinition:
        grid_size = int(data["grid_size"])
        entry = tuple(data["entry"])
        solution = tuple(data["solution"])
        materials = []
        for item in data.get("materials", []):
            angle = item.get("angle")
            materials.append(
                Material(
                    type=MaterialType.from_name(item["type"]),
                    position=tuple(item["position"]),
                    angle=float(angle) if angle is not None else None,
                )
            )
        for position in (entry, solution):
            if not is_boundary(position, grid_size):
                raise ValueError(f"{position} is not on the boundary of a {grid_size}x{grid_size} grid")
        positions = [material.position for material in materials]
        if len(set(positions)) != len(positions):
            raise ValueError(f"{data['name']} places two materials on one cell")
        if entry in positions or any(not in_bounds(position, grid_size) for position in positions):
            raise ValueError(f"{data['name']} has a material on the entry or outside the grid")
        return FallbackDefinition(
            name=data["name"],
            difficulty=Difficulty.parse(data["difficulty"]),
            grid_size=grid_size,
            entry=entry,
            solution=solution,
            materials=tuple(sorted(materials, key=lambda m: (m.position[1], m.position[0]))),
        )

    @staticmethod
    def _verify(definition: FallbackDefinition) -> None:
        engine = BeamEngine(random.Random(0))
        path = engine.trace(definition.materials, definition.entry, definition.grid_size)
        if path.exit != definition.solution:
            raise ValueError(
                f"{definition.name}: beam exits at {path.exit}, file says {definition.solution}"
            )
        survey = engine.survey(definition.materials, definition.entry, definition.grid_size)
        if survey.exits != {definition.solution} or survey.absorbed:
            raise ValueError(f"{definition.name}: solution is not unique")
