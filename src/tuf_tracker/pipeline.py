from __future__ import annotations

"""
pipeline.py — scrape_profile(identifier) -> Profile, never raising for missing
profiles or network trouble.

    FETCHING -> EXTRACTING -> RECONCILING -> VALID    -> DONE
        |                          |
        +-- FetchError ------------+-------> FALLBACK -> DONE

Override identifiers go straight to DONE before any network access.
An invalid identifier (empty / whitespace) is the only error callers see.

scrape_many() runs identifiers strictly one after another with a fixed
politeness delay and stops between items when the cancel event is set.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, Optional, Protocol, Sequence

from .errors import FetchError, FetchErrorKind, validate_identifier
from .extractors import DEFAULT_HEURISTICS, Heuristic, extract
from .models import Profile, RawDocument, topic_progress_from_counts, utc_now
from .overrides import BandTable, OverrideTable, load_override_table
from .reconcile import Reconciliation, reconcile
from .synthetic import SyntheticGenerator, topic_progress_for_total

logger = logging.getLogger(__name__)

DEFAULT_BATCH_DELAY = 2.0


class ScrapeState(str, Enum):
    FETCHING = "fetching"
    EXTRACTING = "extracting"
    RECONCILING = "reconciling"
    VALID = "valid"
    FALLBACK = "fallback"
    DONE = "done"


class Fetcher(Protocol):
    def fetch(self, identifier: str) -> RawDocument: ...


@dataclass
class ScrapeTrace:
    identifier: str
    states: list[ScrapeState] = field(default_factory=list)
    fetch_error: Optional[FetchErrorKind] = None
    candidates: int = 0
    total_source: Optional[str] = None

    def enter(self, state: ScrapeState) -> None:
        self.states.append(state)

    def to_dict(self) -> dict[str, Any]:
        return {
            "identifier": self.identifier,
            "states": [s.value for s in self.states],
            "fetchError": self.fetch_error.value if self.fetch_error else None,
            "candidates": self.candidates,
            "totalSource": self.total_source,
        }


@dataclass
class BatchReport:
    profiles: list[Profile] = field(default_factory=list)
    cancelled: bool = False
    skipped: list[str] = field(default_factory=list)

    @property
    def authentic(self) -> int:
        return sum(1 for p in self.profiles if p.is_authentic)

    @property
    def synthetic(self) -> int:
        return sum(1 for p in self.profiles if not p.is_authentic)

    def to_dict(self) -> dict[str, Any]:
        return {
            "scraped": len(self.profiles),
            "authentic": self.authentic,
            "synthetic": self.synthetic,
            "cancelled": self.cancelled,
            "skipped": list(self.skipped),
        }


class ProfileScraper:
    def __init__(
        self,
        fetcher: Fetcher,
        *,
        generator: Optional[SyntheticGenerator] = None,
        overrides: Optional[OverrideTable] = None,
        heuristics: Sequence[tuple[str, Heuristic]] = DEFAULT_HEURISTICS,
        batch_delay: float = DEFAULT_BATCH_DELAY,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable = utc_now,
    ) -> None:
        self.fetcher = fetcher
        self.overrides = overrides if overrides is not None else OverrideTable()
        self.generator = generator or SyntheticGenerator(overrides=self.overrides, bands=BandTable(), clock=clock)
        self.heuristics = heuristics
        self.batch_delay = float(batch_delay)
        self._sleep = sleep
        self.clock = clock
        self.last_trace: Optional[ScrapeTrace] = None

    @classmethod
    def from_config(cls, cfg: Any) -> "ProfileScraper":
        from .fetcher import ProfileFetcher

        overrides = load_override_table(cfg.overrides_path)
        return cls(
            ProfileFetcher.from_config(cfg),
            overrides=overrides,
            generator=SyntheticGenerator(overrides=overrides),
            batch_delay=cfg.batch_delay,
        )

    def close(self) -> None:
        close = getattr(self.fetcher, "close", None)
        if callable(close):
            close()

    def __enter__(self) -> "ProfileScraper":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # --------- single profile ---------

    def scrape_profile(self, identifier: str) -> Profile:
        ident = validate_identifier(identifier)
        trace = ScrapeTrace(identifier=ident)
        self.last_trace = trace

        entry = self.overrides.get(ident)
        if entry is not None:
            trace.enter(ScrapeState.DONE)
            logger.info("override profile for %s", ident)
            return entry.to_profile(ident, self.clock())

        trace.enter(ScrapeState.FETCHING)
        try:
            doc = self.fetcher.fetch(ident)
        except FetchError as e:
            trace.fetch_error = e.kind
            logger.warning("fetch failed for %s (%s: %s); using synthetic profile", ident, e.kind.value, e)
            return self._fallback(ident, trace)

        trace.enter(ScrapeState.EXTRACTING)
        candidates = extract(doc, self.heuristics)
        trace.candidates = len(candidates)

        trace.enter(ScrapeState.RECONCILING)
        rec = reconcile(candidates, ident)
        trace.total_source = rec.total_source

        if not rec.provisional_validity:
            logger.warning("no usable numbers on the profile page of %s; using synthetic profile", ident)
            return self._fallback(ident, trace)

        trace.enter(ScrapeState.VALID)
        profile = self._assemble(ident, rec)
        trace.enter(ScrapeState.DONE)
        logger.info("scraped %s: total=%d via %s", ident, profile.total_solved, rec.total_source)
        return profile

    def _fallback(self, ident: str, trace: ScrapeTrace) -> Profile:
        trace.enter(ScrapeState.FALLBACK)
        profile = self.generator.generate(ident)
        trace.enter(ScrapeState.DONE)
        return profile

    def _assemble(self, ident: str, rec: Reconciliation) -> Profile:
        filled = topic_progress_for_total(rec.total_solved)
        if rec.topic_solved:
            found = topic_progress_from_counts(rec.topic_solved)
            topics = {name: (found[name] if name in rec.topic_solved else filled[name]) for name in filled}
        else:
            topics = filled
        return Profile(
            identifier=ident,
            total_solved=rec.total_solved,
            difficulty_stats=rec.difficulty,
            topic_progress=topics,
            is_authentic=True,
            retrieved_at=self.clock(),
            source="extracted",
        )

    # --------- batch ---------

    def scrape_many(
        self,
        identifiers: Iterable[str],
        *,
        delay: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
        on_profile: Optional[Callable[[Profile], None]] = None,
    ) -> BatchReport:
        idents = [validate_identifier(x) for x in identifiers]
        wait = self.batch_delay if delay is None else max(0.0, float(delay))
        report = BatchReport()

        for idx, ident in enumerate(idents):
            if cancel is not None and cancel.is_set():
                report.cancelled = True
                report.skipped = idents[idx:]
                logger.info("batch cancelled; %d identifier(s) skipped", len(report.skipped))
                break

            profile = self.scrape_profile(ident)
            report.profiles.append(profile)
            if on_profile is not None:
                on_profile(profile)

            if idx < len(idents) - 1 and wait > 0:
                if cancel is not None:
                    cancel.wait(wait)
                else:
                    self._sleep(wait)

        logger.info(
            "batch done: %d scraped (%d authentic, %d synthetic)",
            len(report.profiles), report.authentic, report.synthetic,
        )
        return report
