from __future__ import annotations

"""
models.py — value types flowing through the scrape pipeline.

RawDocument -> [Candidate] -> Profile. All of them are frozen: a scrape never
mutates anything it has returned, every run builds new values.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from .catalog import TOPIC_CATALOG, TOPIC_TOTALS, percent_half_up


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_dt(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    s = str(value or "").strip()
    if not s:
        return utc_now()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    return datetime.fromisoformat(s)


@dataclass(frozen=True)
class RawDocument:
    """Fetched page. Transient: handed to the extractor, never stored."""

    identifier: str
    url: str
    html: str
    status_code: int = 200
    fetched_at: datetime = field(default_factory=utc_now)
    transport: str = "http"
    elapsed_ms: int = 0

    @property
    def size_bytes(self) -> int:
        return len(self.html.encode("utf-8", errors="replace"))


@dataclass(frozen=True)
class DifficultyStats:
    easy: int = 0
    medium: int = 0
    hard: int = 0

    def __post_init__(self) -> None:
        if min(self.easy, self.medium, self.hard) < 0:
            raise ValueError(f"difficulty counts must be >= 0: {self}")

    @property
    def total(self) -> int:
        return self.easy + self.medium + self.hard

    def to_dict(self) -> dict[str, int]:
        return {"easy": self.easy, "medium": self.medium, "hard": self.hard}

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "DifficultyStats":
        return cls(easy=int(d.get("easy", 0)), medium=int(d.get("medium", 0)), hard=int(d.get("hard", 0)))


@dataclass(frozen=True)
class TopicStat:
    solved: int
    total: int
    percentage: int

    @classmethod
    def of(cls, solved: int, total: int) -> "TopicStat":
        total = max(0, int(total))
        solved = max(0, min(total, int(solved)))
        return cls(solved=solved, total=total, percentage=percent_half_up(solved, total))

    def to_dict(self) -> dict[str, int]:
        return {"solved": self.solved, "total": self.total, "percentage": self.percentage}


@dataclass(frozen=True)
class Candidate:
    """Partial numbers found by one heuristic. rank: lower is more trusted."""

    heuristic: str
    rank: int = 0
    total: Optional[int] = None
    easy: Optional[int] = None
    medium: Optional[int] = None
    hard: Optional[int] = None
    topics: Mapping[str, int] = field(default_factory=dict)

    @property
    def difficulty(self) -> Optional[DifficultyStats]:
        if self.easy is None or self.medium is None or self.hard is None:
            return None
        if min(self.easy, self.medium, self.hard) < 0:
            return None
        return DifficultyStats(self.easy, self.medium, self.hard)

    @property
    def is_empty(self) -> bool:
        return (
            self.total is None
            and self.easy is None
            and self.medium is None
            and self.hard is None
            and not self.topics
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"heuristic": self.heuristic, "rank": self.rank}
        for key in ("total", "easy", "medium", "hard"):
            v = getattr(self, key)
            if v is not None:
                d[key] = v
        if self.topics:
            d["topics"] = dict(self.topics)
        return d


PROFILE_SOURCES = ("extracted", "synthetic", "override")


@dataclass(frozen=True)
class Profile:
    identifier: str
    total_solved: int
    difficulty_stats: DifficultyStats
    topic_progress: Mapping[str, TopicStat]
    is_authentic: bool
    retrieved_at: datetime = field(default_factory=utc_now)
    source: str = "extracted"

    def __post_init__(self) -> None:
        if self.source not in PROFILE_SOURCES:
            raise ValueError(f"unknown profile source: {self.source!r}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "identifier": self.identifier,
            "totalSolved": self.total_solved,
            "difficultyStats": self.difficulty_stats.to_dict(),
            "topicProgress": {name: st.to_dict() for name, st in self.topic_progress.items()},
            "isAuthentic": self.is_authentic,
            "retrievedAt": self.retrieved_at.isoformat(),
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "Profile":
        topics_raw = d.get("topicProgress") or {}
        topics: dict[str, TopicStat] = {}
        for name, st in topics_raw.items():
            total = int(st.get("total", TOPIC_TOTALS.get(name, 0)))
            topics[str(name)] = TopicStat.of(int(st.get("solved", 0)), total)
        return cls(
            identifier=str(d["identifier"]),
            total_solved=int(d.get("totalSolved", 0)),
            difficulty_stats=DifficultyStats.from_dict(d.get("difficultyStats") or {}),
            topic_progress=topics,
            is_authentic=bool(d.get("isAuthentic", False)),
            retrieved_at=_parse_dt(d.get("retrievedAt")),
            source=str(d.get("source") or ("extracted" if d.get("isAuthentic") else "synthetic")),
        )


def topic_progress_from_counts(counts: Mapping[str, int]) -> dict[str, TopicStat]:
    """Full catalog-ordered topic map; topics missing from counts get 0."""
    return {name: TopicStat.of(int(counts.get(name, 0)), total) for name, total in TOPIC_CATALOG}
