"""Simple command line demo for the puzzle generator."""

from __future__ import annotations

import argparse
import json
import logging
from datetime import date
from typing import Optional, Sequence

from .config import Difficulty
from .generator import PuzzleGenerator
from .metrics import GenerationMetrics
from .models import metadata_payload, puzzle_payload


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Generate daily laser puzzles")
    parser.add_argument("--date", default=date.today().isoformat(), help="date or seed string")
    parser.add_argument(
        "--difficulty",
        action="append",
        choices=[d.value for d in Difficulty],
        help="difficulty to generate (repeatable, default: all)",
    )
    parser.add_argument("--json", action="store_true", help="print the puzzle payloads as JSON")
    parser.add_argument("--verbose", "-v", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    metrics = GenerationMetrics()
    generator = PuzzleGenerator(metrics=metrics)
    difficulties = [Difficulty.parse(name) for name in args.difficulty or [d.value for d in Difficulty]]

    if args.json:
        results = [generator.generate_guaranteed_puzzle(d, args.date) for d in difficulties]
        print(
            json.dumps(
                [
                    {
                        "puzzle": puzzle_payload(result.puzzle) if result.puzzle else None,
                        "metadata": metadata_payload(result.metadata),
                    }
                    for result in results
                ],
                indent=2,
            )
        )
        return 0

    print("=== Laser Puzzle Demo ===")
    for difficulty in difficulties:
        result = generator.generate_guaranteed_puzzle(difficulty, args.date)
        metadata = result.metadata
        print(f"\n{difficulty.value} ({metadata.algorithm.value}, {metadata.attempts} attempt(s))")
        if result.puzzle is None:
            print("  no puzzle produced")
            continue
        puzzle = result.puzzle
        print(puzzle.to_ascii())
        print(f"  entry {puzzle.entry} -> solution {puzzle.solution}")
        print(f"  segments: {len(puzzle.solution_path.segments)}, confidence: {metadata.confidence_score}")
        if metadata.adapted_from_difficulty:
            print(f"  built with {metadata.adapted_from_difficulty.value} settings")

    summary = metrics.summary()
    print(f"\nGenerated {summary.total_generated}, fallback rate {summary.fallback_rate:.0%}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
