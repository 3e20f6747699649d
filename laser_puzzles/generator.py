"""Guaranteed puzzle generation: place, plan, simulate, validate, recover."""

from __future__ import annotations

import hashlib
import logging
import random
import time
from collections import Counter
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence, Tuple, Union

from .config import Difficulty, GuaranteedGenerationConfig, MaterialGenerationConfig
from .errors import (
    GenerationError,
    MaterialPlacementFailure,
    PhysicsViolation,
    SpacingFailure,
    ValidationFailure,
)
from .fallback import FallbackPuzzleLoader
from .grid import GridPosition, all_positions, boundary_positions, manhattan_distance
from .hints import build_progressive_hints
from .materials import MIRROR_ANGLES, MaterialType, weighted_choice
from .metrics import GenerationMetrics
from .models import (
    Algorithm,
    EntryExitPair,
    GenerationResult,
    MaterialRequirement,
    PathPlan,
    Priority,
    Puzzle,
    PuzzleGenerationMetadata,
    ValidationResult,
)
from .physics import BeamEngine
from .placement import PointPlacementService
from .planner import PathPlanner
from .recovery import GenerationContext, RecoveryAction, RecoveryController
from .validator import SolutionValidator


logger = logging.getLogger(__name__)

ANGLED_MATERIALS = frozenset({MaterialType.MIRROR, MaterialType.GLASS})


def derive_seed(date: str, difficulty: Difficulty, salt: Optional[int] = None) -> int:
    """Stable integer seed for a date/difficulty, so every player gets the same puzzle."""
    key = f"{date}:{difficulty.value}:{'' if salt is None else salt}"
    return int(hashlib.sha256(key.encode("utf-8")).hexdigest()[:16], 16)


class PuzzleGenerator:
    """Produce one puzzle per call, falling back to a stored puzzle when needed.

    Collaborators are injected so tests can swap any stage. Unless an ``rng`` is
    given, every call seeds its own generator from the date and difficulty.
    """

    def __init__(
        self,
        config: Optional[GuaranteedGenerationConfig] = None,
        *,
        placement: Optional[PointPlacementService] = None,
        planner: Optional[PathPlanner] = None,
        engine_factory: Optional[Callable[[random.Random], BeamEngine]] = None,
        fallbacks: Optional[FallbackPuzzleLoader] = None,
        metrics: Optional[GenerationMetrics] = None,
        rng: Optional[random.Random] = None,
        seed: Optional[int] = None,
        clock: Callable[[], float] = time.perf_counter,
    ):
        self.config = config or GuaranteedGenerationConfig()
        self.placement = placement or PointPlacementService(self.config)
        self.planner = planner or PathPlanner(self.config.planner_search_budget)
        self.engine_factory = engine_factory or self._default_engine
        self.fallbacks = fallbacks or FallbackPuzzleLoader()
        self.metrics = metrics
        self.recovery = RecoveryController(self.config)
        self.rng = rng
        self.seed = seed
        self.clock = clock

    def _default_engine(self, rng: random.Random) -> BeamEngine:
        return BeamEngine(rng, loop_window=self.config.loop_window)

    def generate_guaranteed_puzzle(
        self, difficulty: Union[str, Difficulty], date: str
    ) -> GenerationResult:
        difficulty = Difficulty.parse(difficulty)
        rng = self.rng or random.Random(derive_seed(date, difficulty, self.seed))
        engine = self.engine_factory(rng)
        validator = SolutionValidator(engine, self.config)
        context = self.recovery.start(difficulty, self.clock)

        grid_size = self.config.grid_sizes[difficulty]
        ranked = self.placement.select_entry_exit_pairs(
            difficulty,
            grid_size,
            rng=rng,
            limit=len(boundary_positions(grid_size)) ** 2,
        )
        context.candidate_offset = self.placement.pick_start(ranked, rng)

        while True:
            try:
                self.recovery.check_deadline(context)
                context.attempt += 1
                puzzle, validation, plan = self._attempt(
                    context, ranked, date, rng, engine, validator
                )
                self.recovery.check_deadline(context)
            except GenerationError as error:
                action = self.recovery.record_failure(error, context)
                if action is RecoveryAction.FALLBACK:
                    return self._finish(self._fallback(context, date, validator))
                if action is RecoveryAction.ABORT:
                    return self._finish(self._abort(context))
                continue
            metadata = PuzzleGenerationMetadata(
                puzzle_id=puzzle.id,
                difficulty=difficulty,
                algorithm=Algorithm.GUARANTEED,
                attempts=context.attempt,
                generation_time_ms=context.elapsed_ms,
                confidence_score=validation.confidence_score,
                validation_passed=True,
                spacing_distance=manhattan_distance(puzzle.entry, puzzle.solution),
                path_complexity=len(puzzle.solution_path.segments),
                material_density_achieved=puzzle.material_density,
                fallback_used=False,
                adapted_from_difficulty=context.adapted_from,
                created_at=puzzle.created_at,
                recovery_actions=tuple(action.value for action in context.actions),
            )
            logger.info(
                "Generated %s in %d attempt(s), %d reflections, confidence %.1f",
                puzzle.id,
                context.attempt,
                plan.required_reflections,
                validation.confidence_score,
            )
            return self._finish(GenerationResult(puzzle, metadata))

    def _attempt(
        self,
        context: GenerationContext,
        ranked: Sequence[EntryExitPair],
        date: str,
        rng: random.Random,
        engine: BeamEngine,
        validator: SolutionValidator,
    ) -> Tuple[Puzzle, ValidationResult, PathPlan]:
        difficulty = context.difficulty
        grid_size = self.config.grid_sizes[difficulty]
        spacing = self.config.spacing[difficulty]
        window = min(len(ranked), spacing.max_search_attempts * context.search_scale)
        if window == 0:
            raise SpacingFailure(f"no perimeter pair is {spacing.min_distance} cells apart")
        pair = ranked[(context.candidate_offset + context.candidate_index) % window]

        material_config = context.materials(self.config)
        plan = self.planner.plan(
            pair,
            context.complexity(self.config),
            grid_size,
            rng,
            difficulty=context.effective_difficulty,
            allowed_materials=material_config.allowed_materials,
        )
        minimum_critical = max(1, material_config.min_critical_materials - context.simplification)
        plan = self._furnish(
            plan, material_config, context.target_density(self.config), grid_size, rng, minimum_critical
        )
        materials = plan.placed_materials()

        path = engine.trace(materials, pair.entry, grid_size)
        if path.loop_detected or path.terminated or path.exit != plan.exit:
            raise PhysicsViolation(f"beam reached {path.exit} instead of planned exit {plan.exit}")
        if not self.placement.validate_spacing(pair.entry, path.exit, spacing.min_distance):
            raise SpacingFailure(f"{pair.entry}->{path.exit} is closer than {spacing.min_distance}")

        puzzle = Puzzle(
            id=self._puzzle_id(difficulty, date),
            difficulty=difficulty,
            grid_size=grid_size,
            materials=materials,
            entry=pair.entry,
            solution=path.exit,
            solution_path=path,
            hints=build_progressive_hints(path, grid_size),
            created_at=datetime.now(timezone.utc),
            material_density=round(len(materials) / grid_size ** 2, 4),
        )
        validation = validator.verify_unique_solution(puzzle, plan)
        if (
            not validation.is_valid
            or not validation.has_unique_solution
            or validation.confidence_score < self.config.min_confidence_score
        ):
            raise ValidationFailure(
                f"confidence {validation.confidence_score:.1f} with {len(validation.issues)} issue(s)",
                validation,
            )
        return puzzle, validation, plan

    def _furnish(
        self,
        plan: PathPlan,
        material_config: MaterialGenerationConfig,
        density: float,
        grid_size: int,
        rng: random.Random,
        minimum_critical: int = 1,
    ) -> PathPlan:
        """Add weighted decorative filler off the route to the plan."""
        critical = plan.critical_requirements
        if len(critical) < minimum_critical:
            raise MaterialPlacementFailure(
                f"plan has {len(critical)} critical mirrors, {minimum_critical} required"
            )
        reserved = set(plan.route) | {plan.entry, plan.exit}
        reserved.update(requirement.position for requirement in critical)
        free: List[GridPosition] = [cell for cell in all_positions(grid_size) if cell not in reserved]
        rng.shuffle(free)

        target = int(round(density * grid_size ** 2)) - len(critical)
        weights = {
            material: weight
            for material, weight in material_config.weights.items()
            if weight > 0 and material is not MaterialType.EMPTY
        }
        placed: Counter = Counter()
        fillers: List[MaterialRequirement] = []
        for cell in free[: max(0, target)]:
            if not weights:
                break
            kind = weighted_choice(rng, weights)
            angle = rng.choice(MIRROR_ANGLES) if kind in ANGLED_MATERIALS else None
            fillers.append(MaterialRequirement(cell, kind, Priority.DECORATIVE, angle))
            placed[kind] += 1
            if placed[kind] >= material_config.max_per_type:
                del weights[kind]

        return replace(plan, material_requirements=plan.material_requirements + tuple(fillers))

    def _puzzle_id(self, difficulty: Difficulty, date: str) -> str:
        digest = hashlib.sha256(f"{date}:{difficulty.value}:{self.seed}".encode("utf-8")).hexdigest()
        return f"guaranteed_{difficulty.value.lower()}_{date}_{digest[:8]}"

    def _fallback(
        self, context: GenerationContext, date: str, validator: SolutionValidator
    ) -> GenerationResult:
        puzzle = self.fallbacks.build_puzzle(
            context.difficulty, date, grid_size=self.config.grid_sizes[context.difficulty]
        )
        validation = validator.verify_unique_solution(puzzle)
        metadata = PuzzleGenerationMetadata(
            puzzle_id=puzzle.id,
            difficulty=context.difficulty,
            algorithm=Algorithm.LEGACY,
            attempts=context.attempt,
            generation_time_ms=context.elapsed_ms,
            confidence_score=validation.confidence_score,
            validation_passed=validation.is_valid and validation.has_unique_solution,
            spacing_distance=manhattan_distance(puzzle.entry, puzzle.solution),
            path_complexity=len(puzzle.solution_path.segments),
            material_density_achieved=round(puzzle.material_density, 4),
            fallback_used=True,
            created_at=puzzle.created_at,
            recovery_actions=tuple(action.value for action in context.actions),
        )
        return GenerationResult(puzzle, metadata)

    def _abort(self, context: GenerationContext) -> GenerationResult:
        logger.error(
            "Giving up on %s after %d attempt(s); fallback is disabled",
            context.difficulty.value,
            context.attempt,
        )
        metadata = PuzzleGenerationMetadata(
            puzzle_id=None,
            difficulty=context.difficulty,
            algorithm=Algorithm.LEGACY,
            attempts=context.attempt,
            generation_time_ms=context.elapsed_ms,
            confidence_score=0.0,
            validation_passed=False,
            spacing_distance=0,
            path_complexity=0,
            material_density_achieved=0.0,
            fallback_used=True,
            adapted_from_difficulty=context.adapted_from,
            created_at=datetime.now(timezone.utc),
            recovery_actions=tuple(action.value for action in context.actions),
        )
        return GenerationResult(None, metadata)

    def _finish(self, result: GenerationResult) -> GenerationResult:
        if self.metrics is not None:
            self.metrics.record(result.metadata)
        return result
