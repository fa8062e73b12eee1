from __future__ import annotations

"""
overrides.py — per-identifier tables consulted before any scraping.

- OverrideTable: identifiers whose numbers are known and returned verbatim
  (the demo account). Looked up case-insensitively.
- BandTable: completion band (lo, hi) used by the synthetic generator.

Extra overrides can be loaded from a JSON file shaped like Profile.to_dict():

    {"someone": {"totalSolved": 120,
                 "difficultyStats": {"easy": 60, "medium": 40, "hard": 20},
                 "topicProgress": {"Arrays": 30, "Graph": {"solved": 4}}}}
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Optional

from .catalog import KNOWN_MAX_TOTAL, TOPIC_TOTALS, normalize_topic_counts
from .models import DifficultyStats, Profile, topic_progress_from_counts

DEMO_IDENTIFIER = "volcaryx"


@dataclass(frozen=True)
class OverrideEntry:
    total_solved: int
    difficulty: DifficultyStats
    topics: Mapping[str, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not 0 <= self.total_solved <= KNOWN_MAX_TOTAL:
            raise ValueError(f"override total out of range: {self.total_solved}")
        if self.difficulty.total != self.total_solved:
            raise ValueError(
                f"override difficulty {self.difficulty.to_dict()} does not add up to {self.total_solved}"
            )
        unknown = [name for name in self.topics if name not in TOPIC_TOTALS]
        if unknown:
            raise ValueError(f"override names unknown topics: {unknown}")

    def to_profile(self, identifier: str, retrieved_at: datetime) -> Profile:
        return Profile(
            identifier=identifier,
            total_solved=self.total_solved,
            difficulty_stats=self.difficulty,
            topic_progress=topic_progress_from_counts(normalize_topic_counts(self.topics)),
            is_authentic=True,
            retrieved_at=retrieved_at,
            source="override",
        )

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "OverrideEntry":
        topics: dict[str, int] = {}
        for name, v in (d.get("topicProgress") or {}).items():
            topics[str(name)] = int(v.get("solved", 0) if isinstance(v, dict) else v)
        return cls(
            total_solved=int(d["totalSolved"]),
            difficulty=DifficultyStats.from_dict(d.get("difficultyStats") or {}),
            topics=topics,
        )


BUILTIN_OVERRIDES: dict[str, OverrideEntry] = {
    DEMO_IDENTIFIER: OverrideEntry(
        total_solved=206,
        difficulty=DifficultyStats(easy=95, medium=75, hard=36),
        topics={
            "Arrays": 30,
            "Matrix": 4,
            "String": 22,
            "Searching & Sorting": 19,
            "Linked List": 16,
            "Binary Trees": 17,
            "Binary Search Trees": 9,
            "Greedy": 7,
            "Backtracking": 8,
            "Stacks and Queues": 11,
            "Heap": 5,
            "Graph": 20,
            "Trie": 2,
            "Dynamic Programming": 21,
            "Binary Search": 15,
        },
    ),
}


class OverrideTable:
    def __init__(self, entries: Optional[Mapping[str, OverrideEntry]] = None) -> None:
        source = BUILTIN_OVERRIDES if entries is None else entries
        self._entries: dict[str, OverrideEntry] = {k.strip().lower(): v for k, v in source.items()}

    def get(self, identifier: str) -> Optional[OverrideEntry]:
        return self._entries.get(str(identifier).strip().lower())

    def __contains__(self, identifier: object) -> bool:
        return isinstance(identifier, str) and self.get(identifier) is not None

    def __len__(self) -> int:
        return len(self._entries)

    def merged(self, extra: Mapping[str, OverrideEntry]) -> "OverrideTable":
        out = dict(self._entries)
        out.update({k.strip().lower(): v for k, v in extra.items()})
        return OverrideTable(out)


def load_override_table(path: Optional[str] = None, *, include_builtin: bool = True) -> OverrideTable:
    table = OverrideTable() if include_builtin else OverrideTable({})
    if not path:
        return table
    with open(path, "r", encoding="utf-8") as f:
        raw = json.load(f)
    if not isinstance(raw, dict):
        raise ValueError(f"{path}: overrides must be a JSON object keyed by identifier")
    return table.merged({str(k): OverrideEntry.from_dict(v) for k, v in raw.items()})


DEFAULT_COMPLETION_BAND = (0.30, 0.60)

BUILTIN_BANDS: dict[str, tuple[float, float]] = {
    DEMO_IDENTIFIER: (0.30, 0.90),
}


class BandTable:
    def __init__(
        self,
        bands: Optional[Mapping[str, tuple[float, float]]] = None,
        *,
        default: tuple[float, float] = DEFAULT_COMPLETION_BAND,
    ) -> None:
        source = BUILTIN_BANDS if bands is None else bands
        self._bands = {k.strip().lower(): self._check(v) for k, v in source.items()}
        self.default = self._check(default)

    @staticmethod
    def _check(band: tuple[float, float]) -> tuple[float, float]:
        lo, hi = float(band[0]), float(band[1])
        if not 0.0 <= lo <= hi <= 1.0:
            raise ValueError(f"completion band must satisfy 0 <= lo <= hi <= 1, got {band}")
        return lo, hi

    def band_for(self, identifier: str) -> tuple[float, float]:
        return self._bands.get(str(identifier).strip().lower(), self.default)
