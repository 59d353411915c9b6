"""File storage helpers for persisted playback state and sync logs."""

from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from playersync.models import PlaybackState


class StateStore:
    """Single JSON file holding the last captured playback state.

    Writes replace the whole file. Reads treat a missing, unreadable or
    non-conforming file as absent.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def write_state(self, state: PlaybackState) -> bool:
        body = json.dumps(state.to_dict(), ensure_ascii=False, separators=(",", ":"))
        return self.write_raw(body)

    def write_raw(self, text: str) -> bool:
        try:
            _replace_text(self.path, text)
        except OSError:
            return False
        return True

    def read_raw(self) -> str | None:
        try:
            return self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            return None

    def read_state(self) -> PlaybackState | None:
        raw = self.read_raw()
        if raw is None:
            return None
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError:
            return None
        if not isinstance(payload, dict):
            return None
        return PlaybackState.from_persisted(payload)


def append_log(path: Path | None, message: str) -> None:
    if path is None:
        return
    stamp = datetime.now(timezone.utc).isoformat()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as fh:
            fh.write(f"{stamp} {message.rstrip()}\n")
    except OSError:
        return


def write_json(path: Path, payload: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as fh:
        json.dump(payload, fh, indent=2, ensure_ascii=False)
        fh.write("\n")


def tail_lines(path: Path, line_count: int) -> list[str]:
    if not path.exists():
        return []
    with path.open("r", encoding="utf-8") as fh:
        lines = fh.readlines()
    return [line.rstrip("\n") for line in lines[-line_count:]]


def _replace_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f".{path.name}.{os.getpid()}.tmp")
    try:
        tmp.write_text(text, encoding="utf-8")
        os.replace(tmp, path)
    except OSError:
        try:
            tmp.unlink()
        except OSError:
            pass
        raise
