from __future__ import annotations

"""
export_csv.py — export stored profiles to CSV or JSON.

Columns are fixed: identity and difficulty first, then one column per catalog
topic (solved count), in catalog order. isAuthentic is always exported so a
synthetic row can never pass for scraped data in a spreadsheet.
"""

import csv
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Sequence

from .catalog import catalog_names
from .models import Profile

BASE_FIELDS: tuple[str, ...] = (
    "identifier",
    "totalSolved",
    "easy",
    "medium",
    "hard",
    "isAuthentic",
    "source",
    "retrievedAt",
)


def export_fields() -> list[str]:
    return list(BASE_FIELDS) + [f"topic:{name}" for name in catalog_names()]


def profile_row(profile: Profile) -> dict[str, Any]:
    d = profile.difficulty_stats
    row: dict[str, Any] = {
        "identifier": profile.identifier,
        "totalSolved": profile.total_solved,
        "easy": d.easy,
        "medium": d.medium,
        "hard": d.hard,
        "isAuthentic": "true" if profile.is_authentic else "false",
        "source": profile.source,
        "retrievedAt": profile.retrieved_at.isoformat(),
    }
    for name in catalog_names():
        st = profile.topic_progress.get(name)
        row[f"topic:{name}"] = "" if st is None else st.solved
    return row


def profiles_to_csv(profiles: Sequence[Profile], csv_path: str) -> dict[str, Any]:
    """Export profiles -> CSV. Returns a small report dict."""
    csv_path = str(csv_path)
    Path(csv_path).parent.mkdir(parents=True, exist_ok=True)
    headers = export_fields()

    rows = 0
    with open(csv_path, "w", encoding="utf-8", newline="") as fout:
        w = csv.DictWriter(fout, fieldnames=headers)
        w.writeheader()
        for p in profiles:
            w.writerow(profile_row(p))
            rows += 1

    return {"kind": "csv", "out": csv_path, "rows": rows, "fields": headers}


def profiles_to_json(profiles: Sequence[Profile], json_path: str, *, pretty: bool = True) -> dict[str, Any]:
    json_path = str(json_path)
    Path(json_path).parent.mkdir(parents=True, exist_ok=True)
    payload = {
        "exportedAt": datetime.now(timezone.utc).isoformat(),
        "count": len(profiles),
        "profiles": [p.to_dict() for p in profiles],
    }
    with open(json_path, "w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=(2 if pretty else None))
    return {"kind": "json", "out": json_path, "rows": len(profiles)}
