"""Failure classification and the retry / relax / adapt / fallback decisions."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from .config import ComplexityConfig, Difficulty, GuaranteedGenerationConfig, MaterialGenerationConfig
from .errors import FailureKind, GenerationError, GenerationTimeout


logger = logging.getLogger(__name__)

DENSITY_RELAXATION = 0.9
MIN_DENSITY_SCALE = 0.3


class RecoveryAction(str, Enum):
    RETRY = "retry"
    RETRY_RELAXED = "retry_relaxed"
    EXPAND_SEARCH = "expand_search"
    SIMPLIFY = "simplify"
    REDUCE_DIFFICULTY = "reduce_difficulty"
    FALLBACK = "fallback"
    ABORT = "abort"

    @property
    def is_terminal(self) -> bool:
        return self in (RecoveryAction.FALLBACK, RecoveryAction.ABORT)


@dataclass
class GenerationContext:
    """Mutable bookkeeping for one generation call."""

    difficulty: Difficulty
    started_at: float
    clock: Callable[[], float] = time.perf_counter
    attempt: int = 0
    effective_difficulty: Optional[Difficulty] = None
    failures_at_level: int = 0
    candidate_offset: int = 0
    candidate_index: int = 0
    search_scale: int = 1
    density_scale: float = 1.0
    simplification: int = 0
    actions: List[RecoveryAction] = field(default_factory=list)
    failures: List[FailureKind] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.effective_difficulty is None:
            self.effective_difficulty = self.difficulty

    @property
    def elapsed_ms(self) -> float:
        return (self.clock() - self.started_at) * 1000

    @property
    def adapted_from(self) -> Optional[Difficulty]:
        if self.effective_difficulty is self.difficulty:
            return None
        return self.effective_difficulty

    def complexity(self, config: GuaranteedGenerationConfig) -> ComplexityConfig:
        return config.complexity[self.effective_difficulty].simplified(self.simplification)

    def materials(self, config: GuaranteedGenerationConfig) -> MaterialGenerationConfig:
        return config.materials[self.effective_difficulty]

    def target_density(self, config: GuaranteedGenerationConfig) -> float:
        return self.materials(config).target_density * self.density_scale


class RecoveryController:
    """Pick the next step after an attempt fails."""

    def __init__(self, config: GuaranteedGenerationConfig):
        self.config = config

    def start(self, difficulty: Difficulty, clock: Callable[[], float] = time.perf_counter) -> GenerationContext:
        return GenerationContext(difficulty=difficulty, started_at=clock(), clock=clock)

    def check_deadline(self, context: GenerationContext) -> None:
        if context.elapsed_ms >= self.config.timeout_ms:
            raise GenerationTimeout(
                f"generation exceeded {self.config.timeout_ms:.0f} ms", overall=True
            )

    def decide(self, error: GenerationError, context: GenerationContext) -> RecoveryAction:
        give_up = RecoveryAction.FALLBACK if self.config.enable_fallback else RecoveryAction.ABORT
        if isinstance(error, GenerationTimeout) and error.overall:
            return give_up
        if context.elapsed_ms >= self.config.timeout_ms:
            return give_up
        if error.kind is FailureKind.VALIDATION_FAILURE and error.has_critical_issue:
            return give_up
        if context.attempt >= self.config.max_generation_attempts:
            return give_up
        if self._should_adapt(context):
            return RecoveryAction.REDUCE_DIFFICULTY
        if error.kind is FailureKind.VALIDATION_FAILURE:
            if context.attempt <= self.config.max_generation_attempts // 2:
                return RecoveryAction.RETRY_RELAXED
            return RecoveryAction.RETRY
        if error.kind is FailureKind.SPACING_FAILURE:
            return RecoveryAction.EXPAND_SEARCH
        if error.kind is FailureKind.MATERIAL_PLACEMENT_FAILURE:
            return RecoveryAction.SIMPLIFY
        return RecoveryAction.RETRY

    def record_failure(self, error: GenerationError, context: GenerationContext) -> RecoveryAction:
        """Classify ``error``, choose the next action and apply it to ``context``."""
        context.failures.append(error.kind)
        context.failures_at_level += 1
        action = self.decide(error, context)
        context.actions.append(action)
        log = logger.warning if action.is_terminal or action is RecoveryAction.REDUCE_DIFFICULTY else logger.info
        log(
            "Attempt %d for %s failed (%s: %s); next step: %s",
            context.attempt,
            context.difficulty.value,
            error.kind.value,
            error.message,
            action.value,
        )
        self.apply(action, context)
        return action

    def apply(self, action: RecoveryAction, context: GenerationContext) -> None:
        if action is RecoveryAction.RETRY_RELAXED:
            context.density_scale = max(MIN_DENSITY_SCALE, context.density_scale * DENSITY_RELAXATION)
            context.candidate_index += 1
        elif action is RecoveryAction.EXPAND_SEARCH:
            context.candidate_index += 1
            context.search_scale *= 2
        elif action is RecoveryAction.SIMPLIFY:
            context.simplification += 1
        elif action is RecoveryAction.REDUCE_DIFFICULTY:
            easier = context.effective_difficulty.easier()
            if easier is not None:
                context.effective_difficulty = easier
            context.failures_at_level = 0
            context.simplification = 0
            context.density_scale = 1.0

    def _should_adapt(self, context: GenerationContext) -> bool:
        return (
            self.config.adaptive_difficulty
            and context.difficulty is Difficulty.HARD
            and context.effective_difficulty.easier() is not None
            and context.failures_at_level >= self.config.adaptive_reduction_after
        )
