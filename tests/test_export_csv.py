from __future__ import annotations

import csv
import json
from datetime import datetime, timezone
from pathlib import Path

from tuf_tracker import export_csv
from tuf_tracker.models import DifficultyStats, Profile, topic_progress_from_counts
from tuf_tracker.summary import class_statistics, leaderboard

T0 = datetime(2026, 3, 1, tzinfo=timezone.utc)


def _p(identifier: str, total: int, authentic: bool) -> Profile:
    return Profile(
        identifier=identifier,
        total_solved=total,
        difficulty_stats=DifficultyStats(total, 0, 0),
        topic_progress=topic_progress_from_counts({"Graph": 5}),
        is_authentic=authentic,
        retrieved_at=T0,
        source="extracted" if authentic else "synthetic",
    )


PROFILES = [_p("alice", 206, True), _p("bob", 150, False), _p("carol", 0, True)]


def test_csv_export_has_fixed_columns_and_flags_synthetic(tmp_path: Path):
    out = tmp_path / "out" / "class.csv"
    rep = export_csv.profiles_to_csv(PROFILES, str(out))
    assert rep["rows"] == 3
    assert rep["fields"][:6] == ["identifier", "totalSolved", "easy", "medium", "hard", "isAuthentic"]
    assert "topic:Dynamic Programming" in rep["fields"]

    with open(out, "r", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))
    assert rows[0]["identifier"] == "alice"
    assert rows[0]["totalSolved"] == "206"
    assert rows[1]["isAuthentic"] == "false"
    assert rows[1]["source"] == "synthetic"
    assert rows[0]["topic:Graph"] == "5"
    assert rows[0]["topic:Arrays"] == "0"


def test_json_export(tmp_path: Path):
    out = tmp_path / "class.json"
    rep = export_csv.profiles_to_json(PROFILES, str(out))
    data = json.loads(out.read_text(encoding="utf-8"))
    assert rep["rows"] == 3
    assert data["count"] == 3
    assert data["profiles"][1]["isAuthentic"] is False
    assert data["profiles"][0]["topicProgress"]["Graph"] == {"solved": 5, "total": 54, "percentage": 9}


def test_class_statistics_and_leaderboard():
    st = class_statistics(PROFILES)
    assert st.students == 3
    assert st.total_solved == 356
    assert st.average_solved == 119  # 118.67
    assert st.completion_rate == 26  # 356 / 1365
    assert st.top_performer == "alice"
    assert (st.authentic, st.synthetic) == (2, 1)

    board = leaderboard(PROFILES, limit=2)
    assert [row["identifier"] for row in board] == ["alice", "bob"]
    assert board[0]["rank"] == 1
    assert board[0]["percentage"] == 45
    assert board[1]["isAuthentic"] is False


def test_class_statistics_of_empty_class():
    st = class_statistics([])
    assert st.to_dict()["students"] == 0
    assert st.average_solved == 0
    assert st.top_performer is None
