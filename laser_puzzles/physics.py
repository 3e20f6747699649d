"""Forward beam simulation over a grid of materials."""

from __future__ import annotations

import logging
import random
from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Set, Tuple, Union

from .grid import Direction, Edge, GridPosition, crossed_edge, entry_direction, in_bounds, step
from .materials import (
    ENERGY_LOSS,
    MAX_ENERGY_LOSS,
    Material,
    MaterialType,
    reflect_angle,
)
from .models import Interaction, LaserPath, PathSegment


logger = logging.getLogger(__name__)

DEFAULT_LOOP_WINDOW = 20

BeamState = Tuple[GridPosition, Direction]


def energy_loss(materials: Iterable[MaterialType]) -> float:
    """Total loss for a run of segments, each charged by its closing material."""
    total = sum(ENERGY_LOSS[material] for material in materials)
    return min(MAX_ENERGY_LOSS, total)


def material_map(materials: Iterable[Material]) -> Dict[GridPosition, Material]:
    mapping: Dict[GridPosition, Material] = {}
    for material in materials:
        if material.type is MaterialType.EMPTY:
            continue
        mapping[material.position] = material
    return mapping


@dataclass(frozen=True)
class BranchSurvey:
    """Every exit reachable once each probabilistic outcome is taken into account."""

    exits: FrozenSet[GridPosition]
    absorbed: bool
    branch_points: FrozenSet[GridPosition]
    states_explored: int


class BeamEngine:
    """Trace a beam from an entry cell until it leaves the grid or is absorbed."""

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        *,
        loop_window: int = DEFAULT_LOOP_WINDOW,
        max_steps: Optional[int] = None,
    ):
        self.rng = rng or random.Random()
        self.loop_window = loop_window
        self.max_steps = max_steps

    def _default_max_steps(self, grid_size: int) -> int:
        return max(600, grid_size * grid_size * 24)

    def interact(self, material: Material, direction: Direction) -> Optional[Direction]:
        """Outgoing direction after hitting ``material``; ``None`` means absorbed."""
        kind = material.type
        if kind is MaterialType.EMPTY:
            return direction
        if kind is MaterialType.MIRROR:
            return self.mirror_reflection(material, direction)
        if kind is MaterialType.WATER:
            reflected = self.mirror_reflection(material, direction)
            if self.rng.random() < material.properties.diffusion:
                return reflected.rotate(self.rng.choice((-1, 1)))
            return reflected
        if kind is MaterialType.GLASS:
            if self.rng.random() < material.properties.reflectivity:
                return self.mirror_reflection(material, direction)
            return direction
        if kind is MaterialType.METAL:
            return direction.reverse()
        if kind is MaterialType.ABSORBER:
            return None
        raise ValueError(f"Unknown material type: {kind}")

    @staticmethod
    def mirror_reflection(material: Material, direction: Direction) -> Direction:
        return Direction.from_angle(reflect_angle(direction.angle, material.reflection_angle))

    def outcomes(self, material: Material, direction: Direction) -> List[Direction]:
        """Every direction the beam may leave ``material`` with."""
        kind = material.type
        properties = material.properties
        if kind is MaterialType.ABSORBER:
            return []
        if kind is MaterialType.WATER:
            reflected = self.mirror_reflection(material, direction)
            options = [reflected]
            if properties.diffusion > 0:
                options.extend([reflected.rotate(-1), reflected.rotate(1)])
        elif kind is MaterialType.GLASS:
            options = []
            if properties.reflectivity > 0:
                options.append(self.mirror_reflection(material, direction))
            if properties.transparency > 0:
                options.append(direction)
        elif kind is MaterialType.MIRROR:
            options = [self.mirror_reflection(material, direction)]
        elif kind is MaterialType.METAL:
            options = [direction.reverse()]
        else:
            options = [direction]
        unique: List[Direction] = []
        for option in options:
            if option not in unique:
                unique.append(option)
        return unique

    def trace(
        self,
        materials: Union[Iterable[Material], Mapping[GridPosition, Material]],
        entry: GridPosition,
        grid_size: int,
        direction: Optional[Direction] = None,
    ) -> LaserPath:
        """Simulate the beam; loops and the step cap end the path without an exit."""
        if not in_bounds(entry, grid_size):
            raise ValueError(f"Entry {entry} is outside a {grid_size}x{grid_size} grid")
        occupied = dict(materials) if isinstance(materials, Mapping) else material_map(materials)
        heading = direction or entry_direction(entry, grid_size)
        position = entry
        segment_start = entry
        segments: List[PathSegment] = []
        interactions: List[Interaction] = []
        recent: Deque[BeamState] = deque(maxlen=self.loop_window)
        max_steps = self.max_steps or self._default_max_steps(grid_size)

        for _ in range(max_steps):
            nxt = step(position, heading)
            if not in_bounds(nxt, grid_size):
                if position != segment_start:
                    segments.append(PathSegment(segment_start, position, heading))
                return self._finish(
                    segments,
                    interactions,
                    exit=position,
                    exit_edge=crossed_edge(position, heading, grid_size),
                )
            position = nxt
            material = occupied.get(position)
            if material is None:
                continue
            outgoing = self.interact(material, heading)
            segments.append(PathSegment(segment_start, position, heading, material.type))
            interactions.append(
                Interaction(position, material.type, heading, outgoing, material.angle)
            )
            if outgoing is None:
                return self._finish(segments, interactions, terminated=True)
            state = (position, outgoing)
            if state in recent:
                logger.debug("Beam loop detected at %s heading %s", position, outgoing.name)
                return self._finish(segments, interactions, loop_detected=True)
            recent.append(state)
            heading = outgoing
            segment_start = position

        logger.debug("Beam trace hit the %d step cap", max_steps)
        if position != segment_start:
            segments.append(PathSegment(segment_start, position, heading))
        return self._finish(segments, interactions, loop_detected=True)

    @staticmethod
    def _finish(
        segments: Sequence[PathSegment],
        interactions: Sequence[Interaction],
        *,
        exit: Optional[GridPosition] = None,
        exit_edge: Optional[Edge] = None,
        terminated: bool = False,
        loop_detected: bool = False,
    ) -> LaserPath:
        return LaserPath(
            segments=tuple(segments),
            exit=exit,
            terminated=terminated,
            exit_edge=exit_edge,
            loop_detected=loop_detected,
            energy_loss=energy_loss(segment.material for segment in segments),
            interactions=tuple(interactions),
        )

    def survey(
        self,
        materials: Union[Iterable[Material], Mapping[GridPosition, Material]],
        entry: GridPosition,
        grid_size: int,
        direction: Optional[Direction] = None,
    ) -> BranchSurvey:
        """Enumerate all beam states reachable from ``entry`` over every outcome."""
        occupied = dict(materials) if isinstance(materials, Mapping) else material_map(materials)
        start: BeamState = (entry, direction or entry_direction(entry, grid_size))
        seen: Set[BeamState] = {start}
        queue: Deque[BeamState] = deque([start])
        exits: Set[GridPosition] = set()
        branch_points: Set[GridPosition] = set()
        absorbed = False

        while queue:
            position, heading = queue.popleft()
            while True:
                nxt = step(position, heading)
                if not in_bounds(nxt, grid_size):
                    exits.add(position)
                    break
                position = nxt
                material = occupied.get(position)
                if material is None:
                    continue
                options = self.outcomes(material, heading)
                if not options:
                    absorbed = True
                if len(options) > 1:
                    branch_points.add(position)
                for option in options:
                    state = (position, option)
                    if state not in seen:
                        seen.add(state)
                        queue.append(state)
                break

        return BranchSurvey(
            exits=frozenset(exits),
            absorbed=absorbed,
            branch_points=frozenset(branch_points),
            states_explored=len(seen),
        )
