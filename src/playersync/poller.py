"""Periodic capture of the page's playback state into the state file."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from threading import Event, Lock, Thread
from typing import Any, Callable

from playersync.channel import ExecutionChannel
from playersync.constants import POLL_INTERVAL_MS
from playersync.models import PlaybackState
from playersync.page_scripts import CAPTURE_SCRIPT
from playersync.storage import StateStore, append_log


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class StateCapturePoller:
    def __init__(
        self,
        channel: ExecutionChannel,
        store: StateStore,
        *,
        interval_ms: int = POLL_INTERVAL_MS,
        log_path: Path | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._channel = channel
        self._store = store
        self._interval_seconds = max(1, int(interval_ms)) / 1000.0
        self._log_path = log_path
        self._clock = clock
        self._stamp_lock = Lock()
        self._last_saved_at: datetime | None = None
        self._seeded = False
        self._stop = Event()
        self._thread: Thread | None = None

    def start(self) -> None:
        if self._thread is not None:
            return
        self._stop.clear()
        self._thread = Thread(target=self._loop, name="playersync-poller", daemon=True)
        self._thread.start()

    def stop(self, timeout_seconds: float = 2.0) -> None:
        self._stop.set()
        thread = self._thread
        self._thread = None
        if thread is not None:
            thread.join(timeout_seconds)

    def tick(self) -> None:
        self._channel.submit(CAPTURE_SCRIPT, None, self.handle_result)

    def handle_result(self, result: Any) -> None:
        """Persist one capture result; runs on the channel's delivery thread."""
        if result is None:
            return
        if isinstance(result, dict):
            payload: Any = result
            raw = json.dumps(result, ensure_ascii=False, separators=(",", ":"))
        else:
            raw = str(result)
            if not raw:
                return
            try:
                payload = json.loads(raw)
            except json.JSONDecodeError:
                payload = None
        if not isinstance(payload, dict):
            self._write_raw(raw)
            return
        try:
            captured = PlaybackState.from_capture(payload)
        except ValueError:
            self._write_raw(raw)
            return

        state = captured.stamped(self._next_stamp())
        if self._store.write_state(state):
            return
        append_log(self._log_path, f"poll=write_failed path={self._store.path}")

    def _write_raw(self, raw: str) -> None:
        ok = self._store.write_raw(raw)
        append_log(self._log_path, f"poll=raw_written ok={str(ok).lower()} bytes={len(raw.encode('utf-8'))}")

    def _next_stamp(self) -> str:
        with self._stamp_lock:
            if not self._seeded:
                # Carry the ordering across restarts.
                self._last_saved_at = self._stored_saved_at()
                self._seeded = True
            now = self._clock()
            if self._last_saved_at is not None and now < self._last_saved_at:
                now = self._last_saved_at
            self._last_saved_at = now
            return now.isoformat()

    def _stored_saved_at(self) -> datetime | None:
        state = self._store.read_state()
        if state is None or not state.saved_at:
            return None
        try:
            stamp = datetime.fromisoformat(state.saved_at)
        except ValueError:
            return None
        if stamp.tzinfo is None:
            stamp = stamp.replace(tzinfo=timezone.utc)
        return stamp

    def _loop(self) -> None:
        while not self._stop.wait(self._interval_seconds):
            self.tick()
