from __future__ import annotations

"""
reconcile.py — merge heuristic candidates into one total + difficulty split.

Policy:
- total: the largest candidate total inside [0, KNOWN_MAX_TOTAL]. Partial
  renders only ever under-report, so the maximum is the best guess. Ties go
  to the more trusted (lower rank) heuristic. With no explicit total, the sum
  of the first in-range complete difficulty triple is used.
- difficulty: the first complete triple (rank order) that adds up to the
  total; otherwise the fixed 40/45/15 split with the remainder in "hard".
- topics: first candidate carrying topic counts.
- provisionally valid: total > 0.
"""

import logging
from dataclasses import dataclass, field
from typing import Mapping, Optional, Sequence

from .catalog import KNOWN_MAX_TOTAL, normalize_topic_counts
from .models import Candidate, DifficultyStats

logger = logging.getLogger(__name__)

# percent of the total; hard takes whatever flooring leaves over
DIFFICULTY_SPLIT_PERCENT = (("easy", 40), ("medium", 45))


@dataclass(frozen=True)
class Reconciliation:
    total_solved: int
    difficulty: DifficultyStats
    provisional_validity: bool
    topic_solved: Mapping[str, int] = field(default_factory=dict)
    total_source: Optional[str] = None
    difficulty_source: Optional[str] = None

    def as_tuple(self) -> tuple[int, DifficultyStats, bool]:
        return self.total_solved, self.difficulty, self.provisional_validity


def split_difficulty(total: int) -> DifficultyStats:
    """Fixed-ratio split: 187 -> 74 / 84 / 29."""
    total = max(0, int(total))
    parts = {level: total * pct // 100 for level, pct in DIFFICULTY_SPLIT_PERCENT}
    return DifficultyStats(easy=parts["easy"], medium=parts["medium"], hard=total - parts["easy"] - parts["medium"])


def _in_range(v: Optional[int], max_total: int) -> bool:
    return v is not None and 0 <= v <= max_total


def reconcile(candidates: Sequence[Candidate], identifier: str = "", *, max_total: int = KNOWN_MAX_TOTAL) -> Reconciliation:
    ordered = sorted(candidates, key=lambda c: c.rank)

    total: Optional[int] = None
    total_source: Optional[str] = None
    for c in ordered:
        if _in_range(c.total, max_total) and (total is None or c.total > total):  # type: ignore[operator]
            total, total_source = c.total, c.heuristic

    if total is None:
        for c in ordered:
            triple = c.difficulty
            if triple is not None and _in_range(triple.total, max_total):
                total, total_source = triple.total, f"{c.heuristic}:sum"
                break

    total = total or 0

    difficulty: Optional[DifficultyStats] = None
    difficulty_source: Optional[str] = None
    for c in ordered:
        triple = c.difficulty
        if triple is not None and triple.total == total:
            difficulty, difficulty_source = triple, c.heuristic
            break
    if difficulty is None:
        difficulty = split_difficulty(total)
        difficulty_source = "ratio" if total > 0 else None

    topics: dict[str, int] = {}
    for c in ordered:
        if c.topics:
            topics = normalize_topic_counts(c.topics)
            if topics:
                break

    rec = Reconciliation(
        total_solved=total,
        difficulty=difficulty,
        provisional_validity=total > 0,
        topic_solved=topics,
        total_source=total_source,
        difficulty_source=difficulty_source,
    )
    logger.debug(
        "reconciled %s: total=%s (%s) difficulty=%s (%s) topics=%d valid=%s",
        identifier or "?", rec.total_solved, total_source, difficulty.to_dict(), difficulty_source,
        len(topics), rec.provisional_validity,
    )
    return rec
