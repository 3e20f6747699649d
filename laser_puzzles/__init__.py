"""Laser puzzle generation engine."""

from .config import Difficulty, GuaranteedGenerationConfig
from .fallback import FallbackPuzzleLoader
from .generator import PuzzleGenerator
from .metrics import GenerationMetrics
from .models import GenerationResult, Puzzle, PuzzleGenerationMetadata
from .physics import BeamEngine
from .placement import PointPlacementService
from .planner import PathPlanner
from .validator import SolutionValidator

__all__ = [
    "BeamEngine",
    "Difficulty",
    "FallbackPuzzleLoader",
    "GenerationMetrics",
    "GenerationResult",
    "GuaranteedGenerationConfig",
    "PathPlanner",
    "PointPlacementService",
    "Puzzle",
    "PuzzleGenerationMetadata",
    "PuzzleGenerator",
    "SolutionValidator",
]
