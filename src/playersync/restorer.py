"""Re-apply the persisted playback state after each successful page load."""

from __future__ import annotations

from pathlib import Path
from threading import Event, Lock, Thread

from playersync.channel import ExecutionChannel
from playersync.constants import (
    RESTORE_ABSENT,
    RESTORE_APPLIED,
    RESTORE_ATTEMPT_TIMEOUT_MS,
    RESTORE_MAX_ATTEMPTS,
    RESTORE_NOT_READY,
    RESTORE_PLAYER,
    RESTORE_RETRY_INTERVAL_MS,
)
from playersync.dispatcher import evaluate_with_deadline
from playersync.models import PlaybackState
from playersync.page_scripts import RESTORE_ATTEMPT_SCRIPT
from playersync.storage import StateStore, append_log

_FINAL_OUTCOMES = (RESTORE_APPLIED, RESTORE_PLAYER, RESTORE_ABSENT)


class StateRestorer:
    """Seeks the page's media element back to the persisted position.

    The media element is rarely ready right after navigation, so each load
    gets a bounded loop of single-shot attempts spaced by a fixed interval.
    A newer load cancels the loop started by an older one.
    """

    def __init__(
        self,
        channel: ExecutionChannel,
        store: StateStore,
        *,
        retry_interval_ms: int = RESTORE_RETRY_INTERVAL_MS,
        max_attempts: int = RESTORE_MAX_ATTEMPTS,
        attempt_timeout_ms: int = RESTORE_ATTEMPT_TIMEOUT_MS,
        log_path: Path | None = None,
    ) -> None:
        self._channel = channel
        self._store = store
        self._retry_seconds = max(0, int(retry_interval_ms)) / 1000.0
        self._max_attempts = max(1, int(max_attempts))
        self._attempt_timeout_seconds = max(1, int(attempt_timeout_ms)) / 1000.0
        self._log_path = log_path
        self._lock = Lock()
        self._cancel: Event | None = None

    def on_load_finished(self, ok: bool) -> Thread | None:
        if not ok:
            append_log(self._log_path, "restore=skipped reason=load_failed")
            return None
        state = self._store.read_state()
        if state is None:
            append_log(self._log_path, "restore=skipped reason=no_state")
            return None
        cancel = self._begin()
        thread = Thread(
            target=self.restore,
            args=(state, cancel),
            name="playersync-restore",
            daemon=True,
        )
        thread.start()
        return thread

    def stop(self) -> None:
        with self._lock:
            if self._cancel is not None:
                self._cancel.set()
            self._cancel = None

    def restore(self, state: PlaybackState, cancel: Event | None = None) -> str:
        cancel = cancel or Event()
        payload = {"state": state.restore_payload()}
        outcome = "gave_up"
        attempts = 0
        for attempt in range(1, self._max_attempts + 1):
            if cancel.is_set():
                outcome = "superseded"
                break
            attempts = attempt
            completed, result = evaluate_with_deadline(
                self._channel,
                RESTORE_ATTEMPT_SCRIPT,
                payload,
                self._attempt_timeout_seconds,
            )
            if not completed or result is None:
                outcome = "no_result"
                break
            if result in _FINAL_OUTCOMES:
                outcome = result
                break
            if result != RESTORE_NOT_READY:
                outcome = "unexpected"
                break
            if attempt < self._max_attempts and cancel.wait(self._retry_seconds):
                outcome = "superseded"
                break
        append_log(
            self._log_path,
            f"restore={outcome} attempts={attempts} id={state.id!r} time={state.time:.3f} "
            f"paused={str(state.paused).lower()}",
        )
        return outcome

    def _begin(self) -> Event:
        with self._lock:
            if self._cancel is not None:
                self._cancel.set()
            self._cancel = Event()
            return self._cancel
