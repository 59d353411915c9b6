"""Bounded-wait command dispatch over the page execution channel."""

from __future__ import annotations

from pathlib import Path
from threading import Event, Lock
from typing import Any, Iterable

from playersync.channel import ExecutionChannel
from playersync.constants import COMMAND_TIMEOUT_MS
from playersync.models import CommandSpec
from playersync.page_scripts import RESOLVER_SCRIPT
from playersync.selectors import build_candidates
from playersync.storage import append_log


class _PendingResult:
    """One-shot slot shared by a waiting caller and the channel's delivery."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._done = Event()
        self._abandoned = False
        self.value: Any = None

    def deliver(self, value: Any) -> None:
        with self._lock:
            if self._abandoned or self._done.is_set():
                return
            self.value = value
            self._done.set()

    def wait(self, timeout_seconds: float) -> bool:
        if self._done.wait(max(0.0, timeout_seconds)):
            return True
        with self._lock:
            if self._done.is_set():
                return True
            self._abandoned = True
            return False


def evaluate_with_deadline(
    channel: ExecutionChannel,
    script: str,
    arg: Any,
    timeout_seconds: float,
) -> tuple[bool, Any]:
    """Submit a script and wait at most ``timeout_seconds`` for its value.

    Returns ``(completed, value)``. On timeout the submission is left to run
    in the page and its late value is dropped.
    """
    pending = _PendingResult()
    channel.submit(script, arg, pending.deliver)
    if pending.wait(timeout_seconds):
        return True, pending.value
    return False, None


class CommandDispatcher:
    def __init__(self, channel: ExecutionChannel, *, log_path: Path | None = None) -> None:
        self._channel = channel
        self._log_path = log_path

    def dispatch(self, spec: CommandSpec) -> bool:
        if self._channel.in_worker_thread():
            # Waiting here would block the thread that delivers the result.
            append_log(self._log_path, f"dispatch command={spec.name} ok=false reason=worker_thread")
            return False
        candidates = build_candidates(spec.primary_selectors, spec.fallback_selectors)
        completed, value = evaluate_with_deadline(
            self._channel,
            RESOLVER_SCRIPT,
            {"candidates": candidates},
            spec.timeout_ms / 1000.0,
        )
        if not completed:
            append_log(
                self._log_path,
                f"dispatch command={spec.name} ok=false reason=timeout timeout_ms={spec.timeout_ms}",
            )
            return False
        activated, selector = _interpret_resolution(value)
        if activated:
            append_log(self._log_path, f"dispatch command={spec.name} ok=true selector={selector!r}")
        else:
            reason = "no_result" if value is None else "not_found"
            append_log(self._log_path, f"dispatch command={spec.name} ok=false reason={reason}")
        return activated

    def dispatch_selectors(self, selectors: Iterable[str], timeout_ms: int = COMMAND_TIMEOUT_MS) -> bool:
        spec = CommandSpec(name="custom", primary_selectors=tuple(selectors), timeout_ms=timeout_ms)
        return self.dispatch(spec)


def _interpret_resolution(value: Any) -> tuple[bool, str]:
    if isinstance(value, dict):
        return value.get("activated") is True, str(value.get("selector", "") or "")
    if isinstance(value, bool):
        return value, ""
    return False, ""
