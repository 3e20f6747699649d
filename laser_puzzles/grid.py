"""Grid geometry and compass directions shared by every stage of generation."""

from __future__ import annotations

import math
from enum import Enum
from typing import Iterator, List, Optional, Tuple


GridPosition = Tuple[int, int]


class Direction(Enum):
    """Eight compass directions for the beam.

    Values are step vectors in screen coordinates (``y`` grows downwards), and
    members are declared clockwise starting at east so that ``angle`` is the
    member index times 45 degrees.
    """

    EAST = (1, 0)
    SOUTHEAST = (1, 1)
    SOUTH = (0, 1)
    SOUTHWEST = (-1, 1)
    WEST = (-1, 0)
    NORTHWEST = (-1, -1)
    NORTH = (0, -1)
    NORTHEAST = (1, -1)

    @property
    def vector(self) -> Tuple[int, int]:
        return self.value

    @property
    def angle(self) -> int:
        return _CLOCKWISE.index(self) * 45

    @property
    def is_diagonal(self) -> bool:
        dx, dy = self.value
        return dx != 0 and dy != 0

    @staticmethod
    def from_name(name: str) -> "Direction":
        name = name.upper()
        try:
            return Direction[name]
        except KeyError as exc:
            raise ValueError(f"Unknown direction: {name}") from exc

    @staticmethod
    def from_angle(angle: float) -> "Direction":
        """Snap an angle in degrees to the nearest compass direction."""
        index = int(round((angle % 360) / 45.0)) % 8
        return _CLOCKWISE[index]

    def rotate(self, steps: int) -> "Direction":
        """Rotate clockwise by ``steps`` multiples of 45 degrees."""
        return _CLOCKWISE[(_CLOCKWISE.index(self) + steps) % 8]

    def turn_left(self) -> "Direction":
        return self.rotate(-2)

    def turn_right(self) -> "Direction":
        return self.rotate(2)

    def reverse(self) -> "Direction":
        return self.rotate(4)


_CLOCKWISE: List[Direction] = list(Direction)


class Edge(str, Enum):
    TOP = "top"
    BOTTOM = "bottom"
    LEFT = "left"
    RIGHT = "right"


def step(position: GridPosition, direction: Direction) -> GridPosition:
    dx, dy = direction.vector
    return position[0] + dx, position[1] + dy


def in_bounds(position: GridPosition, grid_size: int) -> bool:
    x, y = position
    return 0 <= x < grid_size and 0 <= y < grid_size


def is_boundary(position: GridPosition, grid_size: int) -> bool:
    if not in_bounds(position, grid_size):
        return False
    x, y = position
    return x == 0 or y == 0 or x == grid_size - 1 or y == grid_size - 1


def is_corner(position: GridPosition, grid_size: int) -> bool:
    x, y = position
    last = grid_size - 1
    return x in (0, last) and y in (0, last)


def exit_side(position: GridPosition, grid_size: int) -> Optional[Edge]:
    """Edge a boundary cell belongs to; top and bottom win at corners."""
    if not is_boundary(position, grid_size):
        return None
    x, y = position
    if y == 0:
        return Edge.TOP
    if y == grid_size - 1:
        return Edge.BOTTOM
    if x == 0:
        return Edge.LEFT
    return Edge.RIGHT


def crossed_edge(position: GridPosition, direction: Direction, grid_size: int) -> Optional[Edge]:
    """Edge crossed when stepping out of the grid from ``position``."""
    x, y = step(position, direction)
    if y < 0:
        return Edge.TOP
    if y >= grid_size:
        return Edge.BOTTOM
    if x < 0:
        return Edge.LEFT
    if x >= grid_size:
        return Edge.RIGHT
    return None


def entry_direction(entry: GridPosition, grid_size: int) -> Direction:
    """Direction a beam takes when it is fired inwards from a boundary cell."""
    side = exit_side(entry, grid_size)
    if side is None:
        raise ValueError(f"Entry {entry} is not on the grid boundary")
    return {
        Edge.TOP: Direction.SOUTH,
        Edge.BOTTOM: Direction.NORTH,
        Edge.LEFT: Direction.EAST,
        Edge.RIGHT: Direction.WEST,
    }[side]


def boundary_positions(grid_size: int) -> List[GridPosition]:
    """Every perimeter cell exactly once: top row, bottom row, then the sides."""
    last = grid_size - 1
    positions: List[GridPosition] = [(x, 0) for x in range(grid_size)]
    if last > 0:
        positions.extend((x, last) for x in range(grid_size))
    for y in range(1, last):
        positions.append((0, y))
        positions.append((last, y))
    return positions


def all_positions(grid_size: int) -> Iterator[GridPosition]:
    for y in range(grid_size):
        for x in range(grid_size):
            yield x, y


def manhattan_distance(a: GridPosition, b: GridPosition) -> int:
    return abs(a[0] - b[0]) + abs(a[1] - b[1])


def euclidean_distance(a: GridPosition, b: GridPosition) -> float:
    return math.hypot(a[0] - b[0], a[1] - b[1])


def spacing_distance(a: GridPosition, b: GridPosition) -> float:
    return max(manhattan_distance(a, b), euclidean_distance(a, b))


def neighbors(position: GridPosition, grid_size: int) -> List[GridPosition]:
    """Orthogonal neighbours inside the grid."""
    candidates = [step(position, d) for d in (Direction.NORTH, Direction.EAST, Direction.SOUTH, Direction.WEST)]
    return [cell for cell in candidates if in_bounds(cell, grid_size)]


def all_neighbors(position: GridPosition, grid_size: int) -> List[GridPosition]:
    candidates = [step(position, d) for d in Direction]
    return [cell for cell in candidates if in_bounds(cell, grid_size)]


def quadrant(position: GridPosition, grid_size: int) -> int:
    """Quadrant 1-4 (top-left, top-right, bottom-left, bottom-right)."""
    mid = grid_size / 2
    x, y = position
    if y < mid:
        return 1 if x < mid else 2
    return 3 if x < mid else 4


def quadrant_positions(number: int, grid_size: int) -> List[GridPosition]:
    if number not in (1, 2, 3, 4):
        raise ValueError(f"Unknown quadrant: {number}")
    return [cell for cell in all_positions(grid_size) if quadrant(cell, grid_size) == number]


def cells_between(start: GridPosition, end: GridPosition, direction: Direction) -> List[GridPosition]:
    """Cells visited walking from ``start`` to ``end`` inclusive along ``direction``."""
    cells = [start]
    current = start
    limit = manhattan_distance(start, end)
    while current != end:
        if len(cells) > limit + 1:
            raise ValueError(f"{end} is not reachable from {start} heading {direction.name}")
        current = step(current, direction)
        cells.append(current)
    return cells
