"""Ranking of entry/exit candidates on the grid perimeter."""

from __future__ import annotations

import logging
import random
from typing import List, Optional, Sequence

from .config import Difficulty, GuaranteedGenerationConfig, SpacingConfig
from .grid import (
    GridPosition,
    boundary_positions,
    euclidean_distance,
    exit_side,
    is_boundary,
    is_corner,
    manhattan_distance,
    spacing_distance,
)
from .materials import weighted_choice
from .models import EntryExitPair, PlacementType


logger = logging.getLogger(__name__)

CORNER_BASE_SCORE = 1.0
EDGE_BASE_SCORE = 0.8
OPPOSITE_SIDES = {frozenset({"top", "bottom"}), frozenset({"left", "right"})}
# Size of the score-weighted draw that picks the first pair to try.
SHORTLIST_SIZE = 12


class PointPlacementService:
    """Enumerate, filter and score perimeter pairs for one difficulty."""

    def __init__(self, config: Optional[GuaranteedGenerationConfig] = None):
        self.config = config or GuaranteedGenerationConfig()

    @staticmethod
    def calculate_distance(a: GridPosition, b: GridPosition) -> int:
        return int(spacing_distance(a, b))

    def validate_spacing(self, entry: GridPosition, exit: GridPosition, min_distance: int) -> bool:
        return entry != exit and self.calculate_distance(entry, exit) >= min_distance

    @staticmethod
    def validate_position(position: GridPosition, grid_size: int) -> bool:
        return is_boundary(position, grid_size)

    @staticmethod
    def placement_type(entry: GridPosition, exit: GridPosition, grid_size: int) -> PlacementType:
        corners = is_corner(entry, grid_size) + is_corner(exit, grid_size)
        if corners == 2:
            return PlacementType.CORNER
        if corners == 1:
            return PlacementType.OPTIMAL
        return PlacementType.EDGE

    def select_entry_exit_pairs(
        self,
        difficulty: Difficulty,
        grid_size: Optional[int] = None,
        *,
        rng: Optional[random.Random] = None,
        limit: Optional[int] = None,
        spacing: Optional[SpacingConfig] = None,
    ) -> List[EntryExitPair]:
        """Best pairs first, capped at ``limit`` (default ``max_search_attempts``).

        Equal scores are ordered by ``rng`` when one is given, otherwise by
        perimeter order.
        """
        spacing = spacing or self.config.spacing[difficulty]
        grid_size = grid_size or self.config.grid_sizes[difficulty]
        perimeter = boundary_positions(grid_size)
        scored = []
        for entry in perimeter:
            for exit in perimeter:
                if not self.validate_spacing(entry, exit, spacing.min_distance):
                    continue
                score = self._score(entry, exit, grid_size, spacing)
                tiebreak = rng.random() if rng is not None else 0.0
                scored.append((score, tiebreak, entry, exit))
        scored.sort(key=lambda item: (-item[0], item[1]))
        cap = limit if limit is not None else spacing.max_search_attempts
        pairs = [
            EntryExitPair(
                entry=entry,
                exit=exit,
                distance=self.calculate_distance(entry, exit),
                difficulty=difficulty,
                validation_score=score,
                placement_type=self.placement_type(entry, exit, grid_size),
            )
            for score, _, entry, exit in scored[:cap]
        ]
        logger.debug(
            "%d of %d perimeter pairs meet %s spacing; keeping %d",
            len(scored),
            len(perimeter) * len(perimeter),
            difficulty.value,
            len(pairs),
        )
        return pairs

    def pick_start(
        self, pairs: Sequence[EntryExitPair], rng: random.Random, shortlist: int = SHORTLIST_SIZE
    ) -> int:
        """Index of the pair to try first, a score-weighted draw from the top ``shortlist``."""
        candidates = pairs[:shortlist]
        if not candidates:
            return 0
        return weighted_choice(rng, {index: pair.validation_score for index, pair in enumerate(candidates)})

    def _score(
        self, entry: GridPosition, exit: GridPosition, grid_size: int, spacing: SpacingConfig
    ) -> float:
        distance = self.calculate_distance(entry, exit)
        max_deviation = max(
            spacing.preferred_distance - spacing.min_distance,
            grid_size * 2 - spacing.preferred_distance,
            1,
        )
        proximity = max(0.0, 1 - abs(distance - spacing.preferred_distance) / max_deviation)

        position_score = self._position_score(entry, grid_size, spacing) + self._position_score(
            exit, grid_size, spacing
        )

        manhattan = manhattan_distance(entry, exit)
        straightness = euclidean_distance(entry, exit) / manhattan if manhattan else 0.0

        sides = {exit_side(entry, grid_size), exit_side(exit, grid_size)}
        names = frozenset(side.value for side in sides if side is not None)
        if names in OPPOSITE_SIDES:
            side_bonus = 1.0
        elif len(names) == 2:
            side_bonus = 0.5
        else:
            side_bonus = 0.0

        score = proximity * 40 + position_score * 20 + straightness * 10 + side_bonus * 10
        return round(score, 2)

    @staticmethod
    def _position_score(position: GridPosition, grid_size: int, spacing: SpacingConfig) -> float:
        if is_corner(position, grid_size):
            return CORNER_BASE_SCORE * spacing.corner_bonus
        return EDGE_BASE_SCORE * spacing.edge_bonus
