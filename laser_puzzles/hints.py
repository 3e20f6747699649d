"""Progressive disclosure of a solution path."""

from __future__ import annotations

from typing import Dict, List, Tuple

from .grid import GridPosition, quadrant
from .models import HintPath, LaserPath

HINT_PERCENTAGES: Tuple[int, ...] = (25, 50, 75, 100)


def build_progressive_hints(path: LaserPath, grid_size: int) -> Tuple[HintPath, ...]:
    """Four hints revealing growing prefixes of ``path.segments``.

    A path without segments still yields four (empty) hints.
    """
    segments = path.segments
    hints: List[HintPath] = []
    for level, percentage in enumerate(HINT_PERCENTAGES, start=1):
        count = -(-len(segments) * percentage // 100)
        revealed = segments[:count]
        cells: Dict[GridPosition, None] = {}
        for segment in revealed:
            for cell in segment.cells():
                cells.setdefault(cell, None)
        hints.append(
            HintPath(
                hint_level=level,
                percentage=percentage,
                segments=tuple(revealed),
                revealed_cells=tuple(cells),
                quadrants=tuple(sorted({quadrant(cell, grid_size) for cell in cells})),
            )
        )
    return tuple(hints)
