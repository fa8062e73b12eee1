from __future__ import annotations

"""summary.py — class-level statistics and the leaderboard."""

from dataclasses import dataclass
from typing import Any, Optional, Sequence

from .catalog import KNOWN_MAX_TOTAL, percent_half_up
from .models import Profile


@dataclass(frozen=True)
class ClassStats:
    students: int
    total_solved: int
    average_solved: int
    completion_rate: int
    top_performer: Optional[str]
    top_solved: int
    authentic: int
    synthetic: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "students": self.students,
            "totalSolved": self.total_solved,
            "averageSolved": self.average_solved,
            "completionRate": self.completion_rate,
            "topPerformer": self.top_performer,
            "topSolved": self.top_solved,
            "authentic": self.authentic,
            "synthetic": self.synthetic,
        }


def _ranked(profiles: Sequence[Profile]) -> list[Profile]:
    return sorted(profiles, key=lambda p: (-p.total_solved, p.identifier.lower()))


def class_statistics(profiles: Sequence[Profile]) -> ClassStats:
    n = len(profiles)
    total = sum(p.total_solved for p in profiles)
    ranked = _ranked(profiles)
    top = ranked[0] if ranked else None
    return ClassStats(
        students=n,
        total_solved=total,
        # half-up average and class completion against the sheet size
        average_solved=(2 * total + n) // (2 * n) if n else 0,
        completion_rate=percent_half_up(total, n * KNOWN_MAX_TOTAL),
        top_performer=top.identifier if top else None,
        top_solved=top.total_solved if top else 0,
        authentic=sum(1 for p in profiles if p.is_authentic),
        synthetic=sum(1 for p in profiles if not p.is_authentic),
    )


def leaderboard(profiles: Sequence[Profile], *, limit: Optional[int] = None) -> list[dict[str, Any]]:
    ranked = _ranked(profiles)
    if limit is not None and limit > 0:
        ranked = ranked[:limit]
    return [
        {
            "rank": i,
            "identifier": p.identifier,
            "totalSolved": p.total_solved,
            "percentage": percent_half_up(p.total_solved, KNOWN_MAX_TOTAL),
            "isAuthentic": p.is_authentic,
        }
        for i, p in enumerate(ranked, start=1)
    ]
