"""Reverse construction of a mirror route that forces a chosen exit.

The planner searches forward from the entry for a sequence of key points
where a mirror turns the beam, ending on a straight run that leaves the grid
through the planned exit. Every cell the route crosses is reported so the
generator can keep it clear of filler materials.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from .config import ComplexityConfig, Difficulty
from .errors import GenerationTimeout, MaterialPlacementFailure
from .grid import Direction, GridPosition, entry_direction, in_bounds, step
from .materials import MaterialType
from .models import EntryExitPair, MaterialRequirement, PathPlan, Priority


logger = logging.getLogger(__name__)

MAX_COMPLEXITY_SCORE = 10


def mirror_angle(incoming: Direction, outgoing: Direction) -> float:
    """Angle of the mirror line that turns ``incoming`` into ``outgoing``."""
    return ((incoming.angle + outgoing.angle) / 2) % 180


def complexity_score(
    reflections: int, route_length: int, grid_size: int, length_multiplier: float = 1.0
) -> int:
    """1..10 rating; ``length_multiplier`` weights route length more heavily on harder settings."""
    raw = reflections * 2 + route_length * length_multiplier / 3
    ceiling = grid_size * 2 + 4
    return max(1, min(MAX_COMPLEXITY_SCORE, round(raw / ceiling * MAX_COMPLEXITY_SCORE)))


@dataclass
class _Search:
    entry: GridPosition
    exit: GridPosition
    grid_size: int
    rng: random.Random
    budget: int
    points: List[GridPosition] = field(default_factory=list)
    headings: List[Direction] = field(default_factory=list)
    runs: List[List[GridPosition]] = field(default_factory=list)
    crossed: Dict[GridPosition, int] = field(default_factory=dict)

    def occupy(self, cells: List[GridPosition]) -> None:
        for cell in cells:
            self.crossed[cell] = self.crossed.get(cell, 0) + 1

    def release(self, cells: List[GridPosition]) -> None:
        for cell in cells:
            remaining = self.crossed[cell] - 1
            if remaining:
                self.crossed[cell] = remaining
            else:
                del self.crossed[cell]


class PathPlanner:
    def __init__(self, search_budget: int = 20000):
        self.search_budget = search_budget

    def choose_reflection_count(self, complexity: ComplexityConfig, rng: random.Random) -> int:
        counts = list(range(complexity.min_reflections, complexity.max_reflections + 1))
        weights = [1.0 / (1 + abs(count - complexity.preferred_reflections)) for count in counts]
        return rng.choices(counts, weights=weights, k=1)[0]

    def plan(
        self,
        pair: EntryExitPair,
        complexity: ComplexityConfig,
        grid_size: int,
        rng: random.Random,
        *,
        difficulty: Optional[Difficulty] = None,
        allowed_materials: Optional[List[MaterialType]] = None,
        reflections: Optional[int] = None,
    ) -> PathPlan:
        """Build a plan for ``pair``.

        Raises ``MaterialPlacementFailure`` when no mirror route exists (or
        mirrors are not allowed), and ``GenerationTimeout`` when the search
        budget runs out before a verdict.
        """
        if allowed_materials is not None and MaterialType.MIRROR not in allowed_materials:
            raise MaterialPlacementFailure("critical reflections need mirrors, which are not allowed")
        count = reflections if reflections is not None else self.choose_reflection_count(complexity, rng)
        if count > grid_size * grid_size - 2:
            raise MaterialPlacementFailure(
                f"{count} reflections cannot fit on a {grid_size}x{grid_size} grid"
            )

        initial = entry_direction(pair.entry, grid_size)
        search = _Search(pair.entry, pair.exit, grid_size, rng, self.search_budget)
        search.occupy([pair.entry])
        if not self._extend(search, pair.entry, initial, count):
            if search.budget < 0:
                raise GenerationTimeout(
                    f"route search for {pair.entry}->{pair.exit} exhausted its budget"
                )
            raise MaterialPlacementFailure(
                f"no {count}-reflection route from {pair.entry} to {pair.exit}"
            )

        route: Dict[GridPosition, None] = {pair.entry: None}
        for run in search.runs:
            for cell in run:
                route.setdefault(cell, None)

        requirements: List[MaterialRequirement] = [
            MaterialRequirement(pair.entry, MaterialType.EMPTY, Priority.SUPPORTING)
        ]
        incoming = initial
        for index, (point, outgoing) in enumerate(zip(search.points, search.headings)):
            requirements.append(
                MaterialRequirement(
                    position=point,
                    material_type=MaterialType.MIRROR,
                    priority=Priority.CRITICAL,
                    angle=mirror_angle(incoming, outgoing),
                    reflection_index=index,
                )
            )
            incoming = outgoing
        requirements.append(MaterialRequirement(pair.exit, MaterialType.EMPTY, Priority.SUPPORTING))

        plan = PathPlan(
            entry=pair.entry,
            exit=pair.exit,
            required_reflections=count,
            key_reflection_points=tuple(search.points),
            material_requirements=tuple(requirements),
            complexity_score=complexity_score(
                count, len(route), grid_size, complexity.path_length_multiplier
            ),
            estimated_difficulty=difficulty or pair.difficulty,
            route=tuple(route),
            initial_direction=initial,
        )
        logger.debug(
            "Planned %d reflections %s->%s over %d cells",
            count,
            pair.entry,
            pair.exit,
            len(route),
        )
        return plan

    def _ray(
        self, search: _Search, position: GridPosition, heading: Direction
    ) -> Tuple[List[GridPosition], bool]:
        """Cells ahead of ``position`` up to the grid edge or the next mirror."""
        cells: List[GridPosition] = []
        mirrors = set(search.points)
        current = position
        while True:
            nxt = step(current, heading)
            if not in_bounds(nxt, search.grid_size):
                return cells, True
            if nxt in mirrors:
                return cells, False
            cells.append(nxt)
            current = nxt

    def _extend(self, search: _Search, position: GridPosition, heading: Direction, remaining: int) -> bool:
        search.budget -= 1
        if search.budget < 0:
            return False
        ray, reaches_edge = self._ray(search, position, heading)

        if remaining == 0:
            if reaches_edge and ray and ray[-1] == search.exit:
                search.runs.append(ray)
                return True
            return False

        reserved: Set[GridPosition] = {search.entry, search.exit}
        landings = list(range(len(ray)))
        search.rng.shuffle(landings)
        for index in landings:
            landing = ray[index]
            if landing in reserved or landing in search.crossed:
                continue
            run = ray[: index + 1]
            turns = [d for d in Direction if d is not heading and d is not heading.reverse()]
            search.rng.shuffle(turns)
            search.points.append(landing)
            search.runs.append(run)
            search.occupy(run)
            for turn in turns:
                search.headings.append(turn)
                if self._extend(search, landing, turn, remaining - 1):
                    return True
                search.headings.pop()
                if search.budget < 0:
                    break
            search.release(run)
            search.runs.pop()
            search.points.pop()
            if search.budget < 0:
                return False
        return False
