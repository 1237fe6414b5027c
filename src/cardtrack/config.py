from __future__ import annotations

import datetime as dt
import os
from pathlib import Path
from typing import Mapping

import msgspec
import msgspec.structs
import msgspec.toml
from platformdirs import PlatformDirs

from .store import MEMORY_DATABASE, parse_database_url

APP_NAME = "cardtrack"
CONFIG_FILENAME = "config.toml"
DEFAULT_DATABASE_URL = "sqlite:touhou.db"

ENV_CONFIG = "CARDTRACK_CONFIG"
ENV_DATABASE_URL = "DATABASE_URL"
ENV_SCORE_PATH = "CARDTRACK_SCORE_PATH"


class ConfigError(ValueError):
    pass


class TrackerConfig(msgspec.Struct, frozen=True, forbid_unknown_fields=True):
    score_path: str | None = None
    database_path: str = str(parse_database_url(DEFAULT_DATABASE_URL))
    poll_interval_s: float = 1.0
    recent_window_hours: float = 12.0
    log_dir: str | None = None

    @property
    def score_file(self) -> Path | None:
        if self.score_path is None:
            return None
        return Path(self.score_path).expanduser()

    @property
    def database(self) -> Path | str:
        if self.database_path == MEMORY_DATABASE:
            return MEMORY_DATABASE
        return Path(self.database_path).expanduser()

    @property
    def log_base_dir(self) -> Path | None:
        if self.log_dir is None:
            return None
        return Path(self.log_dir).expanduser()

    @property
    def recent_window(self) -> dt.timedelta:
        return dt.timedelta(hours=float(self.recent_window_hours))


def _config_dirs() -> PlatformDirs:
    return PlatformDirs(appname=APP_NAME, appauthor=False)


def default_config_path() -> Path:
    return Path(_config_dirs().user_config_path) / CONFIG_FILENAME


def default_log_dir() -> Path:
    return Path(_config_dirs().user_state_path)


def config_path(env: Mapping[str, str] | None = None) -> tuple[Path, bool]:
    """Config file to read, and whether it was asked for explicitly."""
    environ = os.environ if env is None else env
    override = environ.get(ENV_CONFIG)
    if override:
        return Path(override).expanduser(), True
    return default_config_path(), False


def read_config_file(path: Path) -> TrackerConfig:
    try:
        raw = Path(path).read_bytes()
    except OSError as exc:
        raise ConfigError(f"failed to read config {path}: {exc}") from exc
    try:
        return msgspec.toml.decode(raw, type=TrackerConfig)
    except (msgspec.DecodeError, msgspec.ValidationError) as exc:
        raise ConfigError(f"invalid config {path}: {exc}") from exc


def _validate(config: TrackerConfig) -> TrackerConfig:
    if not config.poll_interval_s > 0:
        raise ConfigError(f"poll_interval_s must be positive, got {config.poll_interval_s}")
    if not config.recent_window_hours > 0:
        raise ConfigError(f"recent_window_hours must be positive, got {config.recent_window_hours}")
    if not config.database_path:
        raise ConfigError("database_path must not be empty")
    return config


def load_config(
    *,
    path: Path | None = None,
    env: Mapping[str, str] | None = None,
    score_path: Path | None = None,
    database_path: Path | str | None = None,
    poll_interval_s: float | None = None,
    recent_window_hours: float | None = None,
    log_dir: Path | None = None,
) -> TrackerConfig:
    """Merge defaults, the TOML file, the environment and explicit overrides (in that order)."""
    environ = os.environ if env is None else env

    if path is not None:
        file_path, required = Path(path), True
    else:
        file_path, required = config_path(environ)
    if file_path.is_file():
        config = read_config_file(file_path)
    elif required:
        raise ConfigError(f"config file not found: {file_path}")
    else:
        config = TrackerConfig()

    updates: dict[str, object] = {}
    database_url = environ.get(ENV_DATABASE_URL)
    if database_url:
        try:
            updates["database_path"] = str(parse_database_url(database_url))
        except ValueError as exc:
            raise ConfigError(f"invalid {ENV_DATABASE_URL}: {exc}") from exc
    env_score = environ.get(ENV_SCORE_PATH)
    if env_score:
        updates["score_path"] = env_score

    explicit: dict[str, object | None] = {
        "score_path": None if score_path is None else str(score_path),
        "database_path": None if database_path is None else str(database_path),
        "poll_interval_s": None if poll_interval_s is None else float(poll_interval_s),
        "recent_window_hours": None if recent_window_hours is None else float(recent_window_hours),
        "log_dir": None if log_dir is None else str(log_dir),
    }
    updates.update({key: value for key, value in explicit.items() if value is not None})

    if updates:
        config = msgspec.structs.replace(config, **updates)
    return _validate(config)


__all__ = [
    "APP_NAME",
    "ConfigError",
    "DEFAULT_DATABASE_URL",
    "ENV_CONFIG",
    "ENV_DATABASE_URL",
    "ENV_SCORE_PATH",
    "TrackerConfig",
    "config_path",
    "default_config_path",
    "default_log_dir",
    "load_config",
    "read_config_file",
]
