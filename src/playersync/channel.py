"""Execution channel into the player page's single script context."""

from __future__ import annotations

import importlib.util
import queue
from dataclasses import dataclass
from pathlib import Path
from threading import Event, Thread, current_thread
from typing import Any, Callable, Protocol
from urllib.parse import urlparse

from playersync.storage import append_log

ResultCallback = Callable[[Any], None]
LoadListener = Callable[[bool], None]

_ERROR_PAGE_PREFIX = "chrome-error://"


class ExecutionChannel(Protocol):
    def submit(self, script: str, arg: Any = None, on_result: ResultCallback | None = None) -> None:
        """Queue a script; ``on_result`` later receives its value, or None if the page went away."""

    def in_worker_thread(self) -> bool:
        """True when called from the thread that delivers results."""

    def add_load_listener(self, listener: LoadListener) -> None:
        """Register for one boolean per finished main-frame load."""


@dataclass(frozen=True)
class _Submission:
    script: str
    arg: Any
    on_result: ResultCallback | None


@dataclass(frozen=True)
class _Navigation:
    url: str


class PlaywrightChannel:
    """Owns a Playwright CDP connection on a dedicated worker thread.

    Playwright's sync API is bound to the thread that created it, so every
    evaluation runs here, one at a time, in submission order. Callers on
    other threads only enqueue work.
    """

    def __init__(
        self,
        cdp_url: str,
        *,
        guard_host: str = "",
        home_url: str = "",
        log_path: Path | None = None,
        idle_ms: int = 50,
    ) -> None:
        self._cdp_url = cdp_url
        self._guard_host = guard_host.strip().lower()
        self._home_url = home_url
        self._log_path = log_path
        self._idle_ms = max(10, int(idle_ms))
        self._jobs: queue.Queue[_Submission | _Navigation] = queue.Queue()
        self._load_listeners: list[LoadListener] = []
        self._ready = Event()
        self._closed = Event()
        self._thread: Thread | None = None
        self._startup_error = ""

    def add_load_listener(self, listener: LoadListener) -> None:
        self._load_listeners.append(listener)

    def start(self, timeout_seconds: float = 15.0) -> None:
        if not playwright_available():
            raise SystemExit("Playwright is not installed. Install it to attach to the player page.")
        self._thread = Thread(target=self._run, name="playersync-channel", daemon=True)
        self._thread.start()
        if not self._ready.wait(timeout_seconds):
            self.close()
            raise SystemExit(f"Timed out attaching to player page at {self._cdp_url}")
        if self._startup_error:
            raise SystemExit(f"Could not attach to player page: {self._startup_error}")

    def submit(self, script: str, arg: Any = None, on_result: ResultCallback | None = None) -> None:
        if self._closed.is_set():
            self._deliver(on_result, None)
            return
        self._jobs.put(_Submission(script, arg, on_result))
        if self._closed.is_set():
            self._drain()

    def navigate(self, url: str) -> None:
        if not self._closed.is_set():
            self._jobs.put(_Navigation(url))

    def in_worker_thread(self) -> bool:
        return self._thread is not None and current_thread() is self._thread

    def is_alive(self) -> bool:
        return not self._closed.is_set() and self._thread is not None and self._thread.is_alive()

    def close(self, timeout_seconds: float = 5.0) -> None:
        self._closed.set()
        thread = self._thread
        if thread is not None and thread is not current_thread():
            thread.join(timeout_seconds)
        self._drain()

    def serve(self, page: Any) -> None:
        """Run the submission loop against an attached page until closed."""
        page.on("load", self._handle_load)
        page.on("framenavigated", self._handle_frame_navigated)
        self._ready.set()
        append_log(self._log_path, f"channel=attached url={_page_url(page)}")
        while not self._closed.is_set():
            if _page_is_closed(page):
                append_log(self._log_path, "channel=page_closed")
                break
            try:
                job = self._jobs.get_nowait()
            except queue.Empty:
                try:
                    # Idle waits also pump Playwright's event dispatch.
                    page.wait_for_timeout(self._idle_ms)
                except Exception as exc:
                    append_log(self._log_path, f"channel=idle_failed error={_one_line(exc)}")
                    break
                continue
            self._run_job(page, job)

    def _run(self) -> None:
        from playwright.sync_api import sync_playwright

        try:
            with sync_playwright() as p:
                try:
                    browser = p.chromium.connect_over_cdp(self._cdp_url)
                except Exception as exc:
                    self._startup_error = _one_line(exc)
                    return
                context = browser.contexts[0] if browser.contexts else browser.new_context()
                page = context.pages[0] if context.pages else context.new_page()
                self.serve(page)
        except Exception as exc:
            if not self._ready.is_set():
                self._startup_error = _one_line(exc)
            append_log(self._log_path, f"channel=failed error={_one_line(exc)}")
        finally:
            self._closed.set()
            self._ready.set()
            self._drain()
            append_log(self._log_path, "channel=stopped")

    def _run_job(self, page: Any, job: _Submission | _Navigation) -> None:
        if isinstance(job, _Navigation):
            try:
                page.goto(job.url, wait_until="commit")
            except Exception as exc:
                append_log(self._log_path, f"navigate=failed url={job.url} error={_one_line(exc)}")
            return
        try:
            value = page.evaluate(job.script, job.arg)
        except Exception as exc:
            # Typically the execution context was destroyed by a navigation.
            append_log(self._log_path, f"evaluate=no_result error={_one_line(exc)}")
            value = None
        self._deliver(job.on_result, value)

    def _handle_load(self, page: Any) -> None:
        ok = not _page_url(page).startswith(_ERROR_PAGE_PREFIX)
        for listener in list(self._load_listeners):
            try:
                listener(ok)
            except Exception as exc:
                append_log(self._log_path, f"load_listener=failed error={_one_line(exc)}")

    def _handle_frame_navigated(self, frame: Any) -> None:
        if getattr(frame, "parent_frame", None) is not None:
            return
        if not self._guard_host or not self._home_url:
            return
        url = str(getattr(frame, "url", "") or "")
        if not url or url == "about:blank" or url.startswith(_ERROR_PAGE_PREFIX):
            return
        if _host_of(url) == self._guard_host:
            return
        append_log(self._log_path, f"guard=redirect from={url} to={self._home_url}")
        self._jobs.put(_Navigation(self._home_url))

    def _deliver(self, on_result: ResultCallback | None, value: Any) -> None:
        if on_result is None:
            return
        try:
            on_result(value)
        except Exception as exc:
            append_log(self._log_path, f"result_callback=failed error={_one_line(exc)}")

    def _drain(self) -> None:
        while True:
            try:
                job = self._jobs.get_nowait()
            except queue.Empty:
                return
            if isinstance(job, _Submission):
                self._deliver(job.on_result, None)


def playwright_available() -> bool:
    return importlib.util.find_spec("playwright") is not None


def _host_of(url: str) -> str:
    try:
        return (urlparse(url).hostname or "").lower()
    except ValueError:
        return ""


def _page_url(page: Any) -> str:
    try:
        return str(getattr(page, "url", "") or "")
    except Exception:
        return ""


def _page_is_closed(page: Any | None) -> bool:
    if page is None:
        return True
    checker = getattr(page, "is_closed", None)
    if callable(checker):
        try:
            return bool(checker())
        except Exception:
            return True
    return False


def _one_line(exc: BaseException) -> str:
    text = str(exc).strip()
    return text.splitlines()[0][:240] if text else type(exc).__name__
