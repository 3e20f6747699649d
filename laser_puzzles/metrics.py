"""Thread-safe aggregation of generation metadata."""

from __future__ import annotations

import csv
import io
import json
import threading
from collections import deque
from dataclasses import asdict, dataclass, field
from typing import Deque, Dict, Iterable, List, Optional

from .config import Difficulty
from .models import PuzzleGenerationMetadata, metadata_payload


DEFAULT_HISTORY = 10_000


@dataclass(frozen=True)
class DifficultySummary:
    generated: int = 0
    success_rate: float = 0.0
    average_generation_time_ms: float = 0.0
    average_confidence: float = 0.0
    fallback_rate: float = 0.0
    adaptation_rate: float = 0.0


@dataclass(frozen=True)
class MetricsSummary:
    total_generated: int
    success_rate: float
    average_generation_time_ms: float
    average_confidence: float
    fallback_rate: float
    adaptation_rate: float
    by_difficulty: Dict[str, DifficultySummary] = field(default_factory=dict)


def _summarise(records: List[PuzzleGenerationMetadata]) -> DifficultySummary:
    if not records:
        return DifficultySummary()
    count = len(records)
    return DifficultySummary(
        generated=count,
        success_rate=sum(1 for r in records if r.validation_passed) / count,
        average_generation_time_ms=sum(r.generation_time_ms for r in records) / count,
        average_confidence=sum(r.confidence_score for r in records) / count,
        fallback_rate=sum(1 for r in records if r.fallback_used) / count,
        adaptation_rate=sum(1 for r in records if r.adapted_from_difficulty is not None) / count,
    )


class GenerationMetrics:
    """Collects metadata records from any number of concurrent generators.

    Only the most recent ``history`` records are kept; the running total counts
    everything ever recorded.
    """

    def __init__(self, history: int = DEFAULT_HISTORY):
        self._lock = threading.Lock()
        self._records: Deque[PuzzleGenerationMetadata] = deque(maxlen=history)
        self._total = 0

    def record(self, metadata: PuzzleGenerationMetadata) -> None:
        with self._lock:
            self._records.append(metadata)
            self._total += 1

    def record_many(self, records: Iterable[PuzzleGenerationMetadata]) -> None:
        for metadata in records:
            self.record(metadata)

    @property
    def total_recorded(self) -> int:
        with self._lock:
            return self._total

    def records(self) -> List[PuzzleGenerationMetadata]:
        with self._lock:
            return list(self._records)

    def summary(self) -> MetricsSummary:
        records = self.records()
        overall = _summarise(records)
        by_difficulty = {
            difficulty.value: _summarise([r for r in records if r.difficulty is difficulty])
            for difficulty in Difficulty
        }
        return MetricsSummary(
            total_generated=self.total_recorded,
            success_rate=overall.success_rate,
            average_generation_time_ms=overall.average_generation_time_ms,
            average_confidence=overall.average_confidence,
            fallback_rate=overall.fallback_rate,
            adaptation_rate=overall.adaptation_rate,
            by_difficulty=by_difficulty,
        )

    def recent_failures(self, limit: int = 10) -> List[PuzzleGenerationMetadata]:
        failures = [r for r in self.records() if not r.validation_passed or r.fallback_used]
        return failures[-limit:][::-1]

    def reset(self) -> None:
        with self._lock:
            self._records.clear()
            self._total = 0

    def export(self, fmt: str = "json", difficulty: Optional[Difficulty] = None) -> str:
        records = [r for r in self.records() if difficulty is None or r.difficulty is difficulty]
        rows = [metadata_payload(r) for r in records]
        if fmt == "json":
            return json.dumps({"summary": asdict(self.summary()), "records": rows}, indent=2)
        if fmt == "csv":
            buffer = io.StringIO()
            columns = list(rows[0]) if rows else []
            writer = csv.DictWriter(buffer, fieldnames=columns)
            writer.writeheader()
            for row in rows:
                row = dict(row, recovery_actions=";".join(row["recovery_actions"]))
                writer.writerow(row)
            return buffer.getvalue()
        raise ValueError(f"Unknown export format: {fmt}")
