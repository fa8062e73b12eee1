from __future__ import annotations

"""
synthetic.py — deterministic stand-in profiles for unreachable pages.

Same identifier in, same numbers out (only retrieved_at differs). Every
generated profile is marked is_authentic=False.

seed      = sum of code points of the identifier (case-sensitive)
draw(k)   = frac(sin(seed + 101*k) * 10000), k fixed per draw
fraction  = band.lo + (band.hi - band.lo) * draw(1)
total     = floor(fraction * KNOWN_MAX_TOTAL)
"""

import logging
import math
from typing import Callable, Optional

from .catalog import KNOWN_MAX_TOTAL, TOPIC_CATALOG, TOPIC_MULTIPLIERS
from .errors import validate_identifier
from .models import DifficultyStats, Profile, TopicStat, utc_now
from .overrides import BandTable, OverrideTable

logger = logging.getLogger(__name__)

_SALT_FRACTION = 1
_SALT_EASY = 2
_SALT_MEDIUM = 3
_SALT_TOPIC_BASE = 10

JITTER_LOW = 0.8
JITTER_SPAN = 0.4


def identifier_seed(identifier: str) -> int:
    return sum(ord(ch) for ch in identifier)


def seeded_fraction(seed: int, salt: int) -> float:
    """Value in [0, 1); pure function of (seed, salt)."""
    x = math.sin(seed + 101 * salt) * 10000.0
    return x - math.floor(x)


def synthetic_difficulty(total: int, seed: int) -> DifficultyStats:
    easy_ratio = 0.35 + 0.20 * seeded_fraction(seed, _SALT_EASY)
    medium_ratio = min(0.35 + 0.15 * seeded_fraction(seed, _SALT_MEDIUM), 1.0 - easy_ratio)
    easy = min(total, int(math.floor(total * easy_ratio)))
    medium = min(total - easy, int(math.floor(total * medium_ratio)))
    return DifficultyStats(easy=easy, medium=medium, hard=total - easy - medium)


def distribute_topics(fraction: float, *, seed: int) -> dict[str, TopicStat]:
    """Spread an overall completion fraction over the catalog.

    rate(topic) = fraction * multiplier(topic) * jitter, jitter in [0.8, 1.2).
    Solved counts are floored and clamped into [0, topic total].
    """
    out: dict[str, TopicStat] = {}
    for idx, (name, topic_total) in enumerate(TOPIC_CATALOG):
        jitter = JITTER_LOW + JITTER_SPAN * seeded_fraction(seed, _SALT_TOPIC_BASE + idx)
        rate = fraction * TOPIC_MULTIPLIERS.get(name, 1.0) * jitter
        out[name] = TopicStat.of(int(math.floor(topic_total * rate)), topic_total)
    return out


def topic_progress_for_total(total: int, *, max_total: int = KNOWN_MAX_TOTAL) -> dict[str, TopicStat]:
    """Topic breakdown for a real extracted total, seeded by that total."""
    fraction = (total / max_total) if max_total > 0 else 0.0
    return distribute_topics(fraction, seed=int(total))


class SyntheticGenerator:
    def __init__(
        self,
        *,
        overrides: Optional[OverrideTable] = None,
        bands: Optional[BandTable] = None,
        max_total: int = KNOWN_MAX_TOTAL,
        clock: Callable = utc_now,
    ) -> None:
        self.overrides = overrides if overrides is not None else OverrideTable()
        self.bands = bands if bands is not None else BandTable()
        self.max_total = int(max_total)
        self.clock = clock

    def generate(self, identifier: str, *, jitter_seed: Optional[int] = None) -> Profile:
        ident = validate_identifier(identifier)
        now = self.clock()

        entry = self.overrides.get(ident)
        if entry is not None:
            return entry.to_profile(ident, now)

        seed = identifier_seed(ident)
        lo, hi = self.bands.band_for(ident)
        fraction = lo + (hi - lo) * seeded_fraction(seed, _SALT_FRACTION)
        total = max(0, min(self.max_total, int(math.floor(fraction * self.max_total))))

        profile = Profile(
            identifier=ident,
            total_solved=total,
            difficulty_stats=synthetic_difficulty(total, seed),
            topic_progress=distribute_topics(fraction, seed=seed if jitter_seed is None else int(jitter_seed)),
            is_authentic=False,
            retrieved_at=now,
            source="synthetic",
        )
        logger.info("synthetic profile for %s: total=%d (band %.2f-%.2f)", ident, total, lo, hi)
        return profile
