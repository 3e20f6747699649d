"""Failure taxonomy for a single generation attempt."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .models import ValidationResult


class FailureKind(str, Enum):
    TIMEOUT = "timeout"
    VALIDATION_FAILURE = "validation_failure"
    SPACING_FAILURE = "spacing_failure"
    MATERIAL_PLACEMENT_FAILURE = "material_placement_failure"
    PHYSICS_VIOLATION = "physics_violation"


class GenerationError(Exception):
    """Raised inside an attempt; the generator loop always catches it."""

    kind: FailureKind = FailureKind.VALIDATION_FAILURE

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def has_critical_issue(self) -> bool:
        return False


class GenerationTimeout(GenerationError):
    kind = FailureKind.TIMEOUT

    def __init__(self, message: str, *, overall: bool = False):
        super().__init__(message)
        self.overall = overall


class SpacingFailure(GenerationError):
    kind = FailureKind.SPACING_FAILURE


class MaterialPlacementFailure(GenerationError):
    kind = FailureKind.MATERIAL_PLACEMENT_FAILURE


class PhysicsViolation(GenerationError):
    kind = FailureKind.PHYSICS_VIOLATION


class ValidationFailure(GenerationError):
    kind = FailureKind.VALIDATION_FAILURE

    def __init__(self, message: str, result: Optional["ValidationResult"] = None):
        super().__init__(message)
        self.result = result

    @property
    def has_critical_issue(self) -> bool:
        return self.result is not None and self.result.has_critical_issue
