from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

from tuf_tracker.models import DifficultyStats, Profile, topic_progress_from_counts
from tuf_tracker.storage_sqlite import ProfileStore

T0 = datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc)


def _profile(identifier: str, total: int, *, authentic: bool = True, at: datetime = T0) -> Profile:
    return Profile(
        identifier=identifier,
        total_solved=total,
        difficulty_stats=DifficultyStats(total, 0, 0),
        topic_progress=topic_progress_from_counts({"Arrays": min(total, 53)}),
        is_authentic=authentic,
        retrieved_at=at,
        source="extracted" if authentic else "synthetic",
    )


def test_roster_add_list_remove(tmp_path: Path):
    with ProfileStore(str(tmp_path / "db" / "tracker.db")) as store:
        assert store.add_student("alice", "Alice A.") is True
        assert store.add_student("alice") is False
        assert store.add_student("bob") is True
        students = store.list_students()
        assert [s.identifier for s in students] == ["alice", "bob"]
        assert students[0].name == "Alice A."
        assert students[1].name == "bob"
        assert store.remove_student("bob") is True
        assert store.remove_student("bob") is False


def test_save_keeps_history_and_latest(tmp_path: Path):
    db = str(tmp_path / "tracker.db")
    with ProfileStore(db) as store:
        assert store.save_profile(_profile("alice", 100), run_id="r1") is True
        assert store.save_profile(_profile("alice", 120, at=T0 + timedelta(days=1)), run_id="r2") is False
        assert store.save_profile(_profile("bob", 150, authentic=False), run_id="r2") is True

    with ProfileStore(db) as store:
        latest = store.get_profile("alice")
        assert latest is not None
        assert latest.total_solved == 120
        assert latest.retrieved_at == T0 + timedelta(days=1)
        assert [p.total_solved for p in store.history("alice")] == [100, 120]
        assert store.scrape_count("alice") == 2
        assert store.count_snapshots() == 3
        assert [p.identifier for p in store.list_profiles()] == ["bob", "alice"]
        assert store.get_profile("bob").is_authentic is False
        assert store.get_profile("nobody") is None


def test_profile_round_trips_through_store(tmp_path: Path):
    p = _profile("carol", 40)
    with ProfileStore(str(tmp_path / "t.db")) as store:
        store.save_profile(p)
        assert store.get_profile("carol") == p
