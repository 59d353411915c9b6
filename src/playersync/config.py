"""Environment-driven configuration for the sync engine."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse

from playersync.constants import (
    COMMAND_NAMES,
    COMMAND_TIMEOUT_MS,
    DEFAULT_PLAYER_URL,
    LOG_FILENAME,
    POLL_INTERVAL_MS,
    PRIMARY_SELECTORS,
    PROFILE_DIRNAME,
    RESTORE_MAX_ATTEMPTS,
    RESTORE_RETRY_INTERVAL_MS,
    SELECTOR_ENV_VARS,
    SESSION_FILENAME,
    STATE_FILENAME,
)
from playersync.selectors import parse_selector_list


@dataclass(frozen=True)
class SyncConfig:
    player_url: str
    data_dir: Path
    guard_host: str
    poll_interval_ms: int = POLL_INTERVAL_MS
    command_timeout_ms: int = COMMAND_TIMEOUT_MS
    restore_retry_ms: int = RESTORE_RETRY_INTERVAL_MS
    restore_max_attempts: int = RESTORE_MAX_ATTEMPTS
    selectors: dict[str, tuple[str, ...]] = field(default_factory=lambda: dict(PRIMARY_SELECTORS))

    @property
    def state_path(self) -> Path:
        return self.data_dir / STATE_FILENAME

    @property
    def session_path(self) -> Path:
        return self.data_dir / SESSION_FILENAME

    @property
    def log_path(self) -> Path:
        return self.data_dir / LOG_FILENAME

    @property
    def profile_dir(self) -> Path:
        return self.data_dir / PROFILE_DIRNAME


def load_config(*, player_url: str | None = None, data_dir: str | None = None) -> SyncConfig:
    url = (player_url or os.getenv("PLAYERSYNC_URL", "") or DEFAULT_PLAYER_URL).strip()
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise SystemExit(f"Invalid player URL: {url}")

    guard_env = os.getenv("PLAYERSYNC_GUARD_HOST")
    guard_host = (guard_env if guard_env is not None else parsed.hostname or "").strip().lower()

    selectors: dict[str, tuple[str, ...]] = {}
    for name in COMMAND_NAMES:
        override = parse_selector_list(os.getenv(SELECTOR_ENV_VARS[name], ""))
        selectors[name] = tuple(override) if override else PRIMARY_SELECTORS[name]

    return SyncConfig(
        player_url=url,
        data_dir=_resolve_data_dir(data_dir),
        guard_host=guard_host,
        poll_interval_ms=_env_int("PLAYERSYNC_POLL_INTERVAL_MS", POLL_INTERVAL_MS, minimum=100),
        command_timeout_ms=_env_int("PLAYERSYNC_COMMAND_TIMEOUT_MS", COMMAND_TIMEOUT_MS, minimum=1),
        restore_retry_ms=_env_int("PLAYERSYNC_RESTORE_RETRY_MS", RESTORE_RETRY_INTERVAL_MS, minimum=0),
        restore_max_attempts=_env_int("PLAYERSYNC_RESTORE_MAX_ATTEMPTS", RESTORE_MAX_ATTEMPTS, minimum=1),
        selectors=selectors,
    )


def _resolve_data_dir(explicit: str | None) -> Path:
    raw = (explicit or os.getenv("PLAYERSYNC_DATA_DIR", "")).strip()
    if raw:
        return Path(raw).expanduser()
    xdg = os.getenv("XDG_DATA_HOME", "").strip()
    base = Path(xdg).expanduser() if xdg else Path.home() / ".local" / "share"
    return base / "playersync"


def _env_int(name: str, default: int, *, minimum: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise SystemExit(f"{name} must be an integer, got {raw!r}") from exc
    if value < minimum:
        raise SystemExit(f"{name} must be >= {minimum}, got {value}")
    return value
