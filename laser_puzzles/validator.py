"""Independent verification of a generated puzzle."""

from __future__ import annotations

import logging
import time
from typing import List, Optional, Sequence, Tuple

from .config import GuaranteedGenerationConfig
from .grid import GridPosition
from .materials import Material, MaterialType
from .models import (
    IssueType,
    LaserPath,
    PathPlan,
    Puzzle,
    Severity,
    ValidationIssue,
    ValidationResult,
)
from .physics import BeamEngine, BranchSurvey, material_map
from .placement import PointPlacementService


logger = logging.getLogger(__name__)

MIN_PHYSICS_ACCURACY = 0.95

PHYSICS_WEIGHT = 0.4
UNIQUENESS_WEIGHT = 0.4
ADHERENCE_WEIGHT = 0.2

NO_PATH_PENALTY = 50
WRONG_EXIT_PENALTY = 30
SEVERITY_IMPACT = {
    Severity.CRITICAL: 0,
    Severity.WARNING: 15,
    Severity.INFO: 5,
}


class SolutionValidator:
    """Re-simulate a puzzle and decide whether it can be handed to players."""

    def __init__(self, engine: BeamEngine, config: Optional[GuaranteedGenerationConfig] = None):
        self.engine = engine
        self.config = config

    def verify_unique_solution(self, puzzle: Puzzle, plan: Optional[PathPlan] = None) -> ValidationResult:
        started = time.perf_counter()
        path = self.engine.trace(puzzle.materials, puzzle.entry, puzzle.grid_size)
        issues: List[ValidationIssue] = []

        if path.loop_detected:
            issues.append(
                ValidationIssue(
                    IssueType.INFINITE_LOOP,
                    "Beam never leaves the grid",
                    Severity.CRITICAL,
                    tuple(interaction.position for interaction in path.interactions[-4:]),
                )
            )
        elif path.terminated:
            absorbed_at = path.segments[-1].end if path.segments else puzzle.entry
            issues.append(
                ValidationIssue(
                    IssueType.NO_SOLUTION,
                    f"Beam is absorbed at {absorbed_at}",
                    Severity.CRITICAL,
                    (absorbed_at,),
                )
            )
        elif path.exit != puzzle.solution:
            issues.append(
                ValidationIssue(
                    IssueType.NO_SOLUTION,
                    f"Beam exits at {path.exit}, expected {puzzle.solution}",
                    Severity.CRITICAL,
                    (path.exit, puzzle.solution),
                )
            )

        survey = self.find_alternative_exits(puzzle)
        alternatives = sorted(survey.exits - {puzzle.solution})
        if alternatives:
            issues.append(
                ValidationIssue(
                    IssueType.MULTIPLE_SOLUTIONS,
                    f"{len(alternatives)} other exit(s) are reachable",
                    Severity.CRITICAL,
                    tuple(alternatives),
                )
            )
        elif survey.branch_points:
            issues.append(
                ValidationIssue(
                    IssueType.MULTIPLE_SOLUTIONS,
                    f"Beam crosses {len(survey.branch_points)} probabilistic cell(s); all outcomes converge",
                    Severity.INFO,
                    tuple(sorted(survey.branch_points)),
                )
            )
        if survey.absorbed and not path.terminated:
            issues.append(
                ValidationIssue(
                    IssueType.NO_SOLUTION,
                    "Some beam outcomes end in an absorber",
                    Severity.WARNING,
                    tuple(sorted(survey.branch_points)),
                )
            )

        accuracy, violations = self.physics_compliance(path)
        physics_compliant = accuracy >= MIN_PHYSICS_ACCURACY
        if violations:
            issues.append(
                ValidationIssue(
                    IssueType.PHYSICS_VIOLATION,
                    f"{len(violations)} reflection(s) disagree with their mirror angle",
                    Severity.CRITICAL if not physics_compliant else Severity.WARNING,
                    tuple(violations),
                )
            )

        spacing_issue = self._spacing_issue(puzzle)
        if spacing_issue is not None:
            issues.append(spacing_issue)

        adherence = self.plan_adherence(path, plan) if plan else (1.0 if path.exit == puzzle.solution else 0.0)
        if plan is not None and adherence < 1.0:
            issues.append(
                ValidationIssue(
                    IssueType.PHYSICS_VIOLATION,
                    f"Realized path follows {adherence:.0%} of the plan",
                    Severity.WARNING,
                    plan.key_reflection_points,
                )
            )

        confidence = self.confidence_score(
            path, puzzle.solution, accuracy, len(alternatives), adherence, issues
        )
        result = ValidationResult(
            is_valid=not any(issue.severity is Severity.CRITICAL for issue in issues),
            has_unique_solution=not alternatives,
            alternative_count=len(alternatives),
            physics_compliant=physics_compliant,
            confidence_score=confidence,
            issues=tuple(issues),
            solution_path=path,
            validation_time_ms=(time.perf_counter() - started) * 1000,
            physics_accuracy=accuracy,
            reachable_exits=tuple(sorted(survey.exits)),
        )
        logger.debug(
            "Validated %s: valid=%s unique=%s confidence=%.1f issues=%d",
            puzzle.id,
            result.is_valid,
            result.has_unique_solution,
            confidence,
            len(issues),
        )
        return result

    def find_alternative_exits(self, puzzle: Puzzle) -> BranchSurvey:
        return self.engine.survey(material_map(puzzle.materials), puzzle.entry, puzzle.grid_size)

    def physics_compliance(self, path: LaserPath) -> Tuple[float, List[GridPosition]]:
        """Share of deterministic reflections that match their expected direction."""
        checked = 0
        violations: List[GridPosition] = []
        for interaction in path.interactions:
            if interaction.material is MaterialType.MIRROR:
                expected = self.engine.mirror_reflection(
                    Material(MaterialType.MIRROR, interaction.position, interaction.angle),
                    interaction.incoming,
                )
            elif interaction.material is MaterialType.METAL:
                expected = interaction.incoming.reverse()
            else:
                continue
            checked += 1
            if interaction.outgoing is not expected:
                violations.append(interaction.position)
        if not checked:
            return 1.0, violations
        return (checked - len(violations)) / checked, violations

    @staticmethod
    def plan_adherence(path: LaserPath, plan: PathPlan) -> float:
        """Fraction of planned key points hit in order, counting the exit as one more point."""
        realized = [interaction.position for interaction in path.interactions]
        matched = 0
        cursor = 0
        for point in plan.key_reflection_points:
            try:
                cursor = realized.index(point, cursor) + 1
            except ValueError:
                continue
            matched += 1
        if path.exit == plan.exit:
            matched += 1
        return matched / (len(plan.key_reflection_points) + 1)

    @staticmethod
    def confidence_score(
        path: LaserPath,
        solution: GridPosition,
        accuracy: float,
        alternative_count: int,
        adherence: float,
        issues: Sequence[ValidationIssue] = (),
    ) -> float:
        uniqueness = max(0.0, 1.0 - 0.25 * alternative_count)
        score = 100 * (
            PHYSICS_WEIGHT * accuracy + UNIQUENESS_WEIGHT * uniqueness + ADHERENCE_WEIGHT * adherence
        )
        if path.exit is None:
            score -= NO_PATH_PENALTY
        elif path.exit != solution:
            score -= WRONG_EXIT_PENALTY
        score -= sum(SEVERITY_IMPACT[issue.severity] for issue in issues)
        return round(max(0.0, min(100.0, score)), 1)

    def _spacing_issue(self, puzzle: Puzzle) -> Optional[ValidationIssue]:
        if self.config is None:
            return None
        minimum = self.config.spacing[puzzle.difficulty].min_distance
        distance = PointPlacementService.calculate_distance(puzzle.entry, puzzle.solution)
        if distance >= minimum:
            return None
        return ValidationIssue(
            IssueType.SPACING_VIOLATION,
            f"Entry and solution are {distance} apart, minimum is {minimum}",
            Severity.WARNING,
            (puzzle.entry, puzzle.solution),
        )
