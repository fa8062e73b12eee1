from __future__ import annotations

"""
storage_sqlite.py — SQLite store for the class roster and scraped profiles.

Tables:
1) students           — roster: who gets scraped (identifier, display name)
2) profile_snapshots  — every scrape result, tagged with run_id (history)
3) profiles           — latest profile per identifier + scrape counter

Snapshots keep the history, profiles is what exports and statistics read.
"""

import json
import sqlite3
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from .models import Profile


@dataclass
class Student:
    identifier: str
    name: str
    added_at: str

    def to_dict(self) -> dict[str, Any]:
        return {"identifier": self.identifier, "name": self.name, "addedAt": self.added_at}


class ProfileStore:
    def __init__(self, db_path: str) -> None:
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(self.db_path)
        self.conn.execute("PRAGMA journal_mode=WAL;")
        self.conn.execute("PRAGMA synchronous=NORMAL;")
        self._ensure_schema()

    def close(self) -> None:
        try:
            self.conn.commit()
        finally:
            self.conn.close()

    def __enter__(self) -> "ProfileStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _ensure_schema(self) -> None:
        self.conn.execute(
            """
            CREATE TABLE IF NOT EXISTS students (
                identifier TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                added_at TEXT NOT NULL
            );
            """
        )
        self.conn.execute(
            """
            CREATE TABLE IF NOT EXISTS profile_snapshots (
                sid INTEGER PRIMARY KEY AUTOINCREMENT,
                run_id TEXT NOT NULL,
                identifier TEXT NOT NULL,
                total_solved INTEGER NOT NULL,
                is_authentic INTEGER NOT NULL,
                payload TEXT NOT NULL,
                retrieved_at TEXT NOT NULL
            );
            """
        )
        self.conn.execute("CREATE INDEX IF NOT EXISTS idx_profile_snapshots_identifier ON profile_snapshots(identifier);")
        self.conn.execute("CREATE INDEX IF NOT EXISTS idx_profile_snapshots_run_id ON profile_snapshots(run_id);")
        self.conn.execute(
            """
            CREATE TABLE IF NOT EXISTS profiles (
                identifier TEXT PRIMARY KEY,
                total_solved INTEGER NOT NULL,
                is_authentic INTEGER NOT NULL,
                payload TEXT NOT NULL,
                first_seen_at TEXT NOT NULL,
                last_seen_at TEXT NOT NULL,
                scrape_count INTEGER NOT NULL DEFAULT 1
            );
            """
        )
        self.conn.commit()

    @staticmethod
    def new_run_id() -> str:
        return uuid.uuid4().hex

    @staticmethod
    def _now_iso() -> str:
        return datetime.now(timezone.utc).isoformat()

    # --------- roster ---------

    def add_student(self, identifier: str, name: Optional[str] = None) -> bool:
        """True if added, False if the identifier was already on the roster."""
        cur = self.conn.execute(
            "INSERT OR IGNORE INTO students(identifier, name, added_at) VALUES (?, ?, ?)",
            (identifier, name or identifier, self._now_iso()),
        )
        self.conn.commit()
        return cur.rowcount == 1

    def remove_student(self, identifier: str) -> bool:
        cur = self.conn.execute("DELETE FROM students WHERE identifier = ?", (identifier,))
        self.conn.commit()
        return cur.rowcount > 0

    def list_students(self) -> list[Student]:
        rows = self.conn.execute("SELECT identifier, name, added_at FROM students ORDER BY added_at, identifier").fetchall()
        return [Student(identifier=r[0], name=r[1], added_at=r[2]) for r in rows]

    # --------- profiles ---------

    def _upsert_latest(self, profile: Profile, *, payload: str, seen_at: str, authentic: int) -> bool:
        try:
            self.conn.execute(
                """
                INSERT INTO profiles(identifier, total_solved, is_authentic, payload, first_seen_at, last_seen_at, scrape_count)
                VALUES (?, ?, ?, ?, ?, ?, 1)
                """,
                (profile.identifier, profile.total_solved, authentic, payload, seen_at, seen_at),
            )
            return True
        except sqlite3.IntegrityError:
            self.conn.execute(
                """
                UPDATE profiles
                SET total_solved=?, is_authentic=?, payload=?, last_seen_at=?, scrape_count=scrape_count+1
                WHERE identifier=?
                """,
                (profile.total_solved, authentic, payload, seen_at, profile.identifier),
            )
            return False

    def save_profile(self, profile: Profile, *, run_id: Optional[str] = None) -> bool:
        """Snapshot + upsert latest. True if this is the first profile of the identifier."""
        payload = json.dumps(profile.to_dict(), ensure_ascii=False)
        seen_at = profile.retrieved_at.isoformat()
        authentic = 1 if profile.is_authentic else 0

        self.conn.execute(
            "INSERT INTO profile_snapshots(run_id, identifier, total_solved, is_authentic, payload, retrieved_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (run_id or self.new_run_id(), profile.identifier, profile.total_solved, authentic, payload, seen_at),
        )
        inserted = self._upsert_latest(profile, payload=payload, seen_at=seen_at, authentic=authentic)
        self.conn.commit()
        return inserted

    def get_profile(self, identifier: str) -> Optional[Profile]:
        row = self.conn.execute("SELECT payload FROM profiles WHERE identifier = ?", (identifier,)).fetchone()
        return Profile.from_dict(json.loads(row[0])) if row else None

    def list_profiles(self) -> list[Profile]:
        rows = self.conn.execute("SELECT payload FROM profiles ORDER BY total_solved DESC, identifier").fetchall()
        return [Profile.from_dict(json.loads(r[0])) for r in rows]

    def history(self, identifier: str) -> list[Profile]:
        rows = self.conn.execute(
            "SELECT payload FROM profile_snapshots WHERE identifier = ? ORDER BY sid", (identifier,)
        ).fetchall()
        return [Profile.from_dict(json.loads(r[0])) for r in rows]

    def scrape_count(self, identifier: str) -> int:
        row = self.conn.execute("SELECT scrape_count FROM profiles WHERE identifier = ?", (identifier,)).fetchone()
        return int(row[0]) if row else 0

    def count_snapshots(self) -> int:
        return int(self.conn.execute("SELECT COUNT(*) FROM profile_snapshots").fetchone()[0])
