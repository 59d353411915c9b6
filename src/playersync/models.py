"""Data models for persisted playback state and page commands."""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Any

from playersync.constants import COMMAND_TIMEOUT_MS, FALLBACK_SELECTORS, UNKNOWN_TRACK_ID


@dataclass(frozen=True)
class PlaybackState:
    id: str = UNKNOWN_TRACK_ID
    time: float = 0.0
    paused: bool = True
    saved_at: str = ""

    def __post_init__(self) -> None:
        if self.time < 0:
            raise ValueError("'time' must be >= 0")

    @classmethod
    def from_capture(cls, payload: dict[str, Any]) -> "PlaybackState":
        """Build a state from the capture script's record.

        Raises ValueError unless ``id`` is a string, ``time`` a finite
        number >= 0 and ``paused`` a bool.
        """
        track_id = payload.get("id")
        position = payload.get("time")
        paused = payload.get("paused")
        if not isinstance(track_id, str):
            raise ValueError("'id' must be a string")
        if isinstance(position, bool) or not isinstance(position, (int, float)):
            raise ValueError("'time' must be a number")
        if not math.isfinite(position) or position < 0:
            raise ValueError("'time' must be a finite number >= 0")
        if not isinstance(paused, bool):
            raise ValueError("'paused' must be a boolean")
        return cls(id=track_id or UNKNOWN_TRACK_ID, time=float(position), paused=paused)

    @classmethod
    def from_persisted(cls, payload: dict[str, Any]) -> "PlaybackState":
        saved_at = payload.get("savedAt", "")
        return cls(
            id=_coerce_id(payload.get("id")),
            time=_coerce_time(payload.get("time")),
            paused=_coerce_paused(payload.get("paused")),
            saved_at=saved_at if isinstance(saved_at, str) else "",
        )

    def stamped(self, saved_at: str) -> "PlaybackState":
        return replace(self, saved_at=saved_at)

    def restore_payload(self) -> dict[str, Any]:
        return {"id": self.id, "time": self.time, "paused": self.paused}

    def to_dict(self) -> dict[str, Any]:
        payload = self.restore_payload()
        if self.saved_at:
            payload["savedAt"] = self.saved_at
        return payload


@dataclass(frozen=True)
class CommandSpec:
    name: str
    primary_selectors: tuple[str, ...]
    fallback_selectors: tuple[str, ...] = field(default=FALLBACK_SELECTORS)
    timeout_ms: int = COMMAND_TIMEOUT_MS

    def __post_init__(self) -> None:
        if isinstance(self.timeout_ms, bool) or not isinstance(self.timeout_ms, int):
            raise ValueError("'timeout_ms' must be an integer")
        if self.timeout_ms <= 0:
            raise ValueError("'timeout_ms' must be > 0")

    def candidates(self) -> list[str]:
        return [*self.primary_selectors, *self.fallback_selectors]


def _coerce_id(value: Any) -> str:
    if value is None:
        return UNKNOWN_TRACK_ID
    text = str(value)
    return text or UNKNOWN_TRACK_ID


def _coerce_time(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    number = float(value)
    if not math.isfinite(number) or number < 0:
        return 0.0
    return number


def _coerce_paused(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return True
