from __future__ import annotations

"""
config.py — TrackerConfig: JSON file + TUF_TRACKER_* environment overrides.

Precedence (low -> high): defaults, JSON file, environment, CLI flags (the CLI
applies its flags on top via dataclasses.replace).
"""

import json
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Mapping, Optional

from .catalog import PROFILE_URL_TEMPLATE
from .errors import ConfigError
from .http_engine import DEFAULT_USER_AGENT

ENV_PREFIX = "TUF_TRACKER_"
ENV_CONFIG_PATH = ENV_PREFIX + "CONFIG"

TRANSPORTS = ("http", "browser")
BACKOFF_MODES = ("linear", "exponential")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# env suffix -> (field name, caster)
_ENV_FIELDS: dict[str, tuple[str, Any]] = {
    "TRANSPORT": ("transport", str),
    "TIMEOUT": ("timeout", float),
    "MAX_ATTEMPTS": ("max_attempts", int),
    "BACKOFF_BASE": ("backoff_base", float),
    "BATCH_DELAY": ("batch_delay", float),
    "DB_PATH": ("db_path", str),
    "LOG_LEVEL": ("log_level", str),
    "LOG_FILE": ("log_file", str),
    "URL_TEMPLATE": ("profile_url_template", str),
    "OVERRIDES": ("overrides_path", str),
    "USER_AGENT": ("user_agent", str),
}


@dataclass
class TrackerConfig:
    profile_url_template: str = PROFILE_URL_TEMPLATE
    transport: str = "http"
    timeout: float = 30.0
    max_attempts: int = 3
    backoff_base: float = 1.0
    backoff: str = "linear"
    batch_delay: float = 2.0
    user_agent: str = DEFAULT_USER_AGENT
    db_path: str = "tuf_tracker.db"
    log_level: str = "INFO"
    log_file: Optional[str] = None
    overrides_path: Optional[str] = None
    browser: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        if self.transport not in TRANSPORTS:
            raise ConfigError(f"transport must be one of {TRANSPORTS}, got {self.transport!r}")
        if self.backoff not in BACKOFF_MODES:
            raise ConfigError(f"backoff must be one of {BACKOFF_MODES}, got {self.backoff!r}")
        if self.max_attempts < 1:
            raise ConfigError("max_attempts must be >= 1")
        if self.timeout <= 0:
            raise ConfigError("timeout must be > 0")
        if self.backoff_base < 0 or self.batch_delay < 0:
            raise ConfigError("backoff_base and batch_delay must be >= 0")
        if "{identifier}" not in self.profile_url_template:
            raise ConfigError("profile_url_template must contain '{identifier}'")
        if not isinstance(self.browser, dict):
            raise ConfigError("browser must be an object")
        if str(self.log_level).upper() not in LOG_LEVELS:
            raise ConfigError(f"log_level must be one of {LOG_LEVELS}, got {self.log_level!r}")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TrackerConfig":
        if not isinstance(data, Mapping):
            raise ConfigError("config must be a JSON object")
        known = {f.name for f in fields(cls)}
        unknown = sorted(k for k in data if k not in known)
        if unknown:
            raise ConfigError(f"unknown config keys: {', '.join(unknown)}")
        try:
            return cls(**dict(data))
        except TypeError as e:
            raise ConfigError(str(e)) from e

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _read_json(path: str) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _env_overrides(env: Mapping[str, str]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for suffix, (name, caster) in _ENV_FIELDS.items():
        raw = env.get(ENV_PREFIX + suffix)
        if raw is None or raw.strip() == "":
            continue
        try:
            out[name] = caster(raw.strip())
        except ValueError as e:
            raise ConfigError(f"{ENV_PREFIX + suffix}: {e}") from e
    return out


def load_config(path: Optional[str] = None, *, env: Optional[Mapping[str, str]] = None) -> TrackerConfig:
    env = os.environ if env is None else env
    data: dict[str, Any] = {}

    cfg_path = path or env.get(ENV_CONFIG_PATH)
    if cfg_path:
        if not Path(cfg_path).is_file():
            raise ConfigError(f"config file not found: {cfg_path}")
        try:
            loaded = _read_json(cfg_path)
        except json.JSONDecodeError as e:
            raise ConfigError(f"{cfg_path}: invalid JSON ({e})") from e
        if not isinstance(loaded, dict):
            raise ConfigError(f"{cfg_path}: config must be a JSON object")
        data.update(loaded)

    data.update(_env_overrides(env))
    return TrackerConfig.from_dict(data)
