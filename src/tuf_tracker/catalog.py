from __future__ import annotations

"""
catalog.py — fixed reference data of the A2Z sheet.

Everything that the extractor, the reconciler and the synthetic generator
treat as "known about the site" lives here:
- KNOWN_MAX_TOTAL: number of problems on the sheet
- TOPIC_CATALOG: ordered topic -> max problems (sums to KNOWN_MAX_TOTAL)
- DIFFICULTY_TOTALS: easy/medium/hard split of the sheet
- TOPIC_MULTIPLIERS: bias used when problems are distributed over topics
"""

from typing import Mapping

KNOWN_MAX_TOTAL = 455

PROFILE_URL_TEMPLATE = "https://takeuforward.org/profile/{identifier}"

TOPIC_CATALOG: tuple[tuple[str, int], ...] = (
    ("Arrays", 53),
    ("Matrix", 6),
    ("String", 43),
    ("Searching & Sorting", 36),
    ("Linked List", 31),
    ("Binary Trees", 39),
    ("Binary Search Trees", 22),
    ("Greedy", 15),
    ("Backtracking", 19),
    ("Stacks and Queues", 23),
    ("Heap", 12),
    ("Graph", 54),
    ("Trie", 7),
    ("Dynamic Programming", 60),
    ("Binary Search", 35),
)

TOPIC_TOTALS: dict[str, int] = dict(TOPIC_CATALOG)

DIFFICULTY_LEVELS: tuple[str, ...] = ("easy", "medium", "hard")

DIFFICULTY_TOTALS: dict[str, int] = {"easy": 131, "medium": 187, "hard": 137}

# >1.0: students usually get further in this topic than their overall rate
TOPIC_MULTIPLIERS: dict[str, float] = {
    "Arrays": 1.25,
    "Matrix": 1.15,
    "String": 1.2,
    "Searching & Sorting": 1.1,
    "Linked List": 1.05,
    "Binary Trees": 0.95,
    "Binary Search Trees": 0.9,
    "Greedy": 1.0,
    "Backtracking": 0.85,
    "Stacks and Queues": 1.0,
    "Heap": 0.75,
    "Graph": 0.7,
    "Trie": 0.7,
    "Dynamic Programming": 0.65,
    "Binary Search": 1.05,
}


def percent_half_up(solved: int, total: int) -> int:
    """round(100 * solved / total), halves rounded up; 0 when total is 0."""
    if total <= 0:
        return 0
    return (200 * int(solved) + int(total)) // (2 * int(total))


def catalog_names() -> list[str]:
    return [name for name, _ in TOPIC_CATALOG]


def normalize_topic_counts(raw: Mapping[str, int]) -> dict[str, int]:
    """Keep catalog topics only and clamp each count into [0, topic total]."""
    out: dict[str, int] = {}
    for name, total in TOPIC_CATALOG:
        if name not in raw:
            continue
        try:
            v = int(raw[name])
        except (TypeError, ValueError):
            continue
        out[name] = max(0, min(total, v))
    return out
