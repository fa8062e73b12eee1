from __future__ import annotations

"""
extractors.py — independent heuristics that pull numbers out of a profile page.

The site's markup changes between builds and some numbers only exist in JS
state, so no single rule is trusted. Each heuristic looks at the page its own
way and returns a Candidate (or None). Heuristics never raise: an internal
error is logged at DEBUG and treated as "nothing found". Order = rank.

    pattern     "<n>/455" in visible text
    label       "Easy: <n>" / "<n>/131" and friends
    embedded    JSON-ish state in <script> bodies
    structural  fractions inside progress/stats-looking elements
    meta        <meta> tags mentioning solved problems
    topics      per-topic "<n>/<m>" cards
"""

import json
import logging
import re
from collections import deque
from dataclasses import replace
from typing import Any, Callable, Iterable, Optional, Sequence

from .catalog import DIFFICULTY_LEVELS, DIFFICULTY_TOTALS, KNOWN_MAX_TOTAL, TOPIC_CATALOG, TOPIC_TOTALS
from .html_extract import HtmlTree
from .models import Candidate, RawDocument

logger = logging.getLogger(__name__)

Heuristic = Callable[[RawDocument, HtmlTree], Optional[Candidate]]

_FRACTION_RE = re.compile(r"(?<!\d)(\d{1,4})\s*/\s*(\d{1,4})(?!\d)")
_NUMBER_RE = re.compile(r"(?<!\d)(\d{1,4})(?!\d)")
_PROBLEMS_SOLVED_RE = re.compile(r"(?<!\d)(\d{1,4})\s+problems?\s+solved", re.IGNORECASE)

_LABEL_RES = {
    level: re.compile(rf"\b{level}\b\s*[:\-]?\s*(\d{{1,4}})(?!\d)", re.IGNORECASE)
    for level in DIFFICULTY_LEVELS
}

# plausible denominators of an overall "solved/total" widget
STRUCTURAL_DENOMINATOR_RANGE = (400, 600)

STRUCTURAL_SELECTORS = (
    "[class*=progress]",
    "[class*=stats]",
    "[class*=count]",
    "[class*=solved]",
    "[class*=problems]",
    "[class*=profile]",
    "[id*=stats]",
    "[id*=profile]",
    "[data-testid*=progress]",
    "[data-testid*=solved]",
)

TOPIC_SELECTORS = ("[data-topic]", "[class*=topic]", "[class*=card]")

TOTAL_KEYS = ("totalsolved", "total_solved", "solvedcount", "problemssolved", "totalproblemssolved")

_JSON_FRAGMENT_RE = re.compile(
    r"\{[^{}]*\"(?:totalSolved|total_solved|solvedCount|problemsSolved|easy|medium|hard)\"[^{}]*\}",
    re.IGNORECASE,
)
_STATE_ASSIGN_RE = re.compile(
    r"window\.(?:__INITIAL_STATE__|__NEXT_DATA__|__NUXT__|__APOLLO_STATE__)\s*=\s*(\{.*?\})\s*;",
    re.DOTALL,
)

# BFS limit over embedded JSON
_MAX_VISITED = 2000


def _as_int(v: Any) -> Optional[int]:
    if isinstance(v, bool):
        return None
    if isinstance(v, int):
        return v
    if isinstance(v, float) and v.is_integer():
        return int(v)
    if isinstance(v, str) and v.strip().isdigit():
        return int(v.strip())
    if isinstance(v, dict):
        # {"easy": {"solved": 10, "total": 131}}
        for k in ("solved", "count", "value"):
            if k in v:
                return _as_int(v[k])
    return None


# =========================
# Heuristics
# =========================

def pattern_heuristic(doc: RawDocument, tree: HtmlTree) -> Optional[Candidate]:
    text = tree.text()
    best: Optional[int] = None
    for m in _FRACTION_RE.finditer(text):
        num, den = int(m.group(1)), int(m.group(2))
        if den != KNOWN_MAX_TOTAL or num > KNOWN_MAX_TOTAL:
            continue
        best = num if best is None else max(best, num)
    if best is None:
        return None
    return Candidate(heuristic="pattern", total=best)


def label_heuristic(doc: RawDocument, tree: HtmlTree) -> Optional[Candidate]:
    text = tree.text()
    found: dict[str, int] = {}
    for level in DIFFICULTY_LEVELS:
        limit = DIFFICULTY_TOTALS[level]
        m = _LABEL_RES[level].search(text)
        if m and int(m.group(1)) <= limit:
            found[level] = int(m.group(1))
            continue
        for fm in _FRACTION_RE.finditer(text):
            if int(fm.group(2)) == limit and int(fm.group(1)) <= limit:
                found[level] = int(fm.group(1))
                break
    if not found:
        return None
    return Candidate(heuristic="label", easy=found.get("easy"), medium=found.get("medium"), hard=found.get("hard"))


def _iter_script_objects(tree: HtmlTree) -> Iterable[Any]:
    for node_id in tree.select("script"):
        body = tree.raw_text(node_id).strip()
        if not body:
            continue
        script_type = (tree.attr(node_id, "type") or "").lower()
        if "json" in script_type or tree.attr(node_id, "id") == "__NEXT_DATA__":
            try:
                yield json.loads(body)
            except ValueError:
                pass
            continue
        for m in _STATE_ASSIGN_RE.finditer(body):
            try:
                yield json.loads(m.group(1))
            except ValueError:
                continue
        for m in _JSON_FRAGMENT_RE.finditer(body):
            try:
                yield json.loads(m.group(0))
            except ValueError:
                continue


def _stats_from_object(obj: Any) -> Optional[dict[str, int]]:
    """BFS for the first dict carrying a total or difficulty counts."""
    queue: deque[Any] = deque([obj])
    visited = 0
    while queue and visited < _MAX_VISITED:
        cur = queue.popleft()
        visited += 1
        if isinstance(cur, dict):
            lowered = {str(k).lower(): v for k, v in cur.items()}
            stats: dict[str, int] = {}
            for key in TOTAL_KEYS:
                if key in lowered and _as_int(lowered[key]) is not None:
                    stats["total"] = _as_int(lowered[key])  # type: ignore[assignment]
                    break
            for level in DIFFICULTY_LEVELS:
                v = _as_int(lowered.get(level))
                if v is not None:
                    stats[level] = v
            if stats:
                return stats
            queue.extend(cur.values())
        elif isinstance(cur, list):
            queue.extend(cur)
    return None


def embedded_heuristic(doc: RawDocument, tree: HtmlTree) -> Optional[Candidate]:
    for obj in _iter_script_objects(tree):
        stats = _stats_from_object(obj)
        if stats:
            return Candidate(
                heuristic="embedded",
                total=stats.get("total"),
                easy=stats.get("easy"),
                medium=stats.get("medium"),
                hard=stats.get("hard"),
            )
    return None


def structural_heuristic(doc: RawDocument, tree: HtmlTree) -> Optional[Candidate]:
    lo, hi = STRUCTURAL_DENOMINATOR_RANGE
    best: Optional[int] = None
    for node_id in tree.select_any(STRUCTURAL_SELECTORS):
        text = tree.text(node_id)
        if not text:
            continue
        for m in _FRACTION_RE.finditer(text):
            num, den = int(m.group(1)), int(m.group(2))
            if lo < den < hi and num <= den:
                best = num if best is None else max(best, num)
        for m in _PROBLEMS_SOLVED_RE.finditer(text):
            num = int(m.group(1))
            if num <= KNOWN_MAX_TOTAL:
                best = num if best is None else max(best, num)
    if best is None:
        return None
    return Candidate(heuristic="structural", total=best)


def meta_heuristic(doc: RawDocument, tree: HtmlTree) -> Optional[Candidate]:
    for node_id in tree.select("meta[content]"):
        key = ((tree.attr(node_id, "name") or "") + " " + (tree.attr(node_id, "property") or "")).lower()
        if "solved" not in key and "problems" not in key:
            continue
        m = _NUMBER_RE.search(tree.attr(node_id, "content") or "")
        if m and int(m.group(1)) <= KNOWN_MAX_TOTAL:
            return Candidate(heuristic="meta", total=int(m.group(1)))
    return None


def _topic_pattern(name: str) -> re.Pattern[str]:
    stem = re.escape(name[:-1] if name.endswith("s") else name)
    return re.compile(rf"\b{stem}s?\b", re.IGNORECASE)


# longest first so "Binary Search Trees" is not read as "Binary Search"
_TOPIC_PATTERNS = sorted(
    ((name, total, _topic_pattern(name)) for name, total in TOPIC_CATALOG),
    key=lambda t: -len(t[0]),
)


def _topics_named(text: str) -> list[str]:
    names: list[str] = []
    rest = text
    for name, _total, pat in _TOPIC_PATTERNS:
        if pat.search(rest):
            names.append(name)
            rest = pat.sub(" ", rest)
    return names


# a card never extends past these
_TOPIC_SCOPE_STOP = frozenset({"body", "html", "main", "section"})


def _topic_fraction(text: str, name: str) -> Optional[int]:
    """First n/m in text whose denominator is the topic's sheet size."""
    expected = TOPIC_TOTALS[name]
    for m in _FRACTION_RE.finditer(text):
        num, den = int(m.group(1)), int(m.group(2))
        if den == expected and num <= den:
            return num
    return None


def _closest_topic_count(tree: HtmlTree, node_id: int, name: str) -> Optional[int]:
    # label and count are often siblings: <h3>Arrays</h3><span>30/53</span>
    for anc in tree.ancestors(node_id):
        if tree.tag(anc) in _TOPIC_SCOPE_STOP:
            break
        text = tree.text(anc)
        if _topics_named(text) != [name]:
            break
        num = _topic_fraction(text, name)
        if num is not None:
            return num
    return None


def topics_heuristic(doc: RawDocument, tree: HtmlTree) -> Optional[Candidate]:
    topics: dict[str, int] = {}
    for node_id in tree.select_any(TOPIC_SELECTORS):
        text = tree.text(node_id)
        label = tree.attr(node_id, "data-topic")
        names = _topics_named(label or text)
        if len(names) != 1 or names[0] in topics:
            continue
        name = names[0]
        num = _topic_fraction(text, name)
        if num is None:
            num = _closest_topic_count(tree, node_id, name)
        if num is not None:
            topics[name] = num
    if not topics:
        return None
    return Candidate(heuristic="topics", topics=topics)


DEFAULT_HEURISTICS: tuple[tuple[str, Heuristic], ...] = (
    ("pattern", pattern_heuristic),
    ("label", label_heuristic),
    ("embedded", embedded_heuristic),
    ("structural", structural_heuristic),
    ("meta", meta_heuristic),
    ("topics", topics_heuristic),
)


def extract(doc: RawDocument, heuristics: Sequence[tuple[str, Heuristic]] = DEFAULT_HEURISTICS) -> list[Candidate]:
    """Run every heuristic over the page; rank = position in `heuristics`."""
    tree = HtmlTree.parse(doc.html)
    out: list[Candidate] = []
    for rank, (name, fn) in enumerate(heuristics):
        try:
            cand = fn(doc, tree)
        except Exception:
            logger.debug("heuristic %s failed on %s", name, doc.identifier, exc_info=True)
            continue
        if cand is None or cand.is_empty:
            continue
        out.append(replace(cand, heuristic=name, rank=rank))
    logger.debug("extracted %d candidate(s) for %s: %s", len(out), doc.identifier, [c.heuristic for c in out])
    return out
