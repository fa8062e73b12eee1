from __future__ import annotations

import json
from pathlib import Path

import pytest

from tuf_tracker.config import TrackerConfig, load_config
from tuf_tracker.errors import ConfigError
from tuf_tracker.http_engine import make_retry_policy_from_cfg
from tuf_tracker.overrides import BandTable, OverrideEntry, load_override_table


def test_defaults_without_file_or_env():
    cfg = load_config(env={})
    assert cfg.transport == "http"
    assert cfg.timeout == 30.0
    assert cfg.max_attempts == 3
    assert cfg.batch_delay == 2.0
    assert "{identifier}" in cfg.profile_url_template
    pol = make_retry_policy_from_cfg(cfg)
    assert (pol.max_attempts, pol.base_delay, pol.backoff) == (3, 1.0, "linear")


def test_file_then_env_precedence(tmp_path: Path):
    path = tmp_path / "tracker.json"
    path.write_text(json.dumps({"transport": "browser", "batch_delay": 3, "db_path": "a.db",
                                "browser": {"headless": False}}), encoding="utf-8")
    cfg = load_config(str(path), env={"TUF_TRACKER_DB_PATH": "b.db", "TUF_TRACKER_MAX_ATTEMPTS": "5"})
    assert cfg.transport == "browser"
    assert cfg.batch_delay == 3
    assert cfg.db_path == "b.db"
    assert cfg.max_attempts == 5
    assert cfg.browser == {"headless": False}


def test_config_path_from_env(tmp_path: Path):
    path = tmp_path / "c.json"
    path.write_text('{"log_level": "DEBUG"}', encoding="utf-8")
    assert load_config(env={"TUF_TRACKER_CONFIG": str(path)}).log_level == "DEBUG"


@pytest.mark.parametrize(
    "data",
    [
        {"transport": "carrier-pigeon"},
        {"max_attempts": 0},
        {"backoff": "random"},
        {"profile_url_template": "https://example.test/profile"},
        {"log_level": "LOUD"},
        {"nope": 1},
    ],
)
def test_invalid_config_is_rejected(data):
    with pytest.raises(ConfigError):
        TrackerConfig.from_dict(data)


def test_bad_env_value_is_a_config_error():
    with pytest.raises(ConfigError):
        load_config(env={"TUF_TRACKER_TIMEOUT": "soon"})


def test_missing_config_file(tmp_path: Path):
    with pytest.raises(ConfigError):
        load_config(str(tmp_path / "missing.json"), env={})


def test_override_file_extends_builtin_table(tmp_path: Path):
    path = tmp_path / "overrides.json"
    path.write_text(json.dumps({
        "Mentor": {"totalSolved": 10, "difficultyStats": {"easy": 5, "medium": 3, "hard": 2},
                   "topicProgress": {"Arrays": 6, "Graph": {"solved": 4}}},
    }), encoding="utf-8")
    table = load_override_table(str(path))
    assert "volcaryx" in table
    entry = table.get("mentor")
    assert entry is not None and entry.total_solved == 10
    assert dict(entry.topics) == {"Arrays": 6, "Graph": 4}


def test_override_entries_must_add_up():
    from tuf_tracker.models import DifficultyStats

    with pytest.raises(ValueError):
        OverrideEntry(total_solved=10, difficulty=DifficultyStats(5, 5, 5))
    with pytest.raises(ValueError):
        BandTable({"x": (0.7, 0.2)})
