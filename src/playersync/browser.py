"""Chromium process lifecycle and the persisted sync session record."""

from __future__ import annotations

import json
import os
import shutil
import signal
import socket
import subprocess
import time
import urllib.error
import urllib.request
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from playersync.storage import write_json


@dataclass
class SyncSession:
    pid: int
    cdp_port: int
    control_port: int
    url: str
    profile_dir: str
    browser_binary: str
    launched: bool
    started_at: str
    state: str = "open"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def save_session(path: Path, session: SyncSession) -> None:
    write_json(path, session.to_dict())


def load_session(path: Path) -> SyncSession:
    if not path.exists():
        raise SystemExit("No sync session recorded. Start one with: playersync run")
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
        return SyncSession(**payload)
    except (json.JSONDecodeError, TypeError) as exc:
        raise SystemExit(f"Session file is invalid: {path}") from exc


def launch_browser(profile_dir: Path, *, log_dir: Path) -> SyncSession:
    """Start Chromium on a free CDP port with a persistent profile."""
    browser = _find_browser_binary()
    port = _get_free_port()
    profile_dir.mkdir(parents=True, exist_ok=True)
    log_dir.mkdir(parents=True, exist_ok=True)
    cmd = [
        browser,
        f"--remote-debugging-port={port}",
        f"--user-data-dir={profile_dir}",
        "--new-window",
        "about:blank",
        "--no-first-run",
        "--no-default-browser-check",
        "--autoplay-policy=no-user-gesture-required",
    ]
    popen_kwargs: dict[str, Any] = {
        "stdin": subprocess.DEVNULL,
        "close_fds": True,
        "start_new_session": True,
    }
    if os.name == "nt":
        popen_kwargs["creationflags"] = getattr(subprocess, "DETACHED_PROCESS", 0) | getattr(
            subprocess,
            "CREATE_NEW_PROCESS_GROUP",
            0,
        )

    out_log = log_dir / "browser_stdout.log"
    err_log = log_dir / "browser_stderr.log"
    with out_log.open("w", encoding="utf-8") as out_fh, err_log.open("w", encoding="utf-8") as err_fh:
        proc = subprocess.Popen(cmd, stdout=out_fh, stderr=err_fh, **popen_kwargs)

    _wait_for_cdp(port, timeout_seconds=15)
    return SyncSession(
        pid=proc.pid,
        cdp_port=port,
        control_port=0,
        url="about:blank",
        profile_dir=str(profile_dir),
        browser_binary=browser,
        launched=True,
        started_at=datetime.now(timezone.utc).isoformat(),
    )


def attach_session(cdp_port: int, profile_dir: Path) -> SyncSession:
    if not _cdp_alive(cdp_port):
        raise SystemExit(f"No browser is answering CDP on port {cdp_port}")
    return SyncSession(
        pid=0,
        cdp_port=cdp_port,
        control_port=0,
        url="",
        profile_dir=str(profile_dir),
        browser_binary="",
        launched=False,
        started_at=datetime.now(timezone.utc).isoformat(),
    )


def stop_browser(session: SyncSession) -> None:
    if not session.launched or session.pid <= 0 or not _pid_alive(session.pid):
        return
    try:
        os.kill(session.pid, signal.SIGTERM)
    except OSError:
        return
    for _ in range(20):
        if not _pid_alive(session.pid):
            return
        time.sleep(0.1)
    try:
        os.kill(session.pid, signal.SIGKILL)
    except OSError:
        pass


def _find_browser_binary() -> str:
    candidates = (
        "google-chrome",
        "google-chrome-stable",
        "chromium",
        "chromium-browser",
    )
    for name in candidates:
        found = shutil.which(name)
        if found:
            return found
    raise SystemExit("No supported Chromium browser found to host the player page.")


def _pid_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
        return True
    except OSError:
        return False


def _cdp_alive(port: int) -> bool:
    url = f"http://127.0.0.1:{port}/json/version"
    try:
        with urllib.request.urlopen(url, timeout=1.5) as resp:
            return resp.status == 200
    except (urllib.error.URLError, TimeoutError):
        return False


def _get_free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return int(sock.getsockname()[1])


def _wait_for_cdp(port: int, timeout_seconds: int) -> None:
    deadline = time.time() + timeout_seconds
    while time.time() < deadline:
        if _cdp_alive(port):
            return
        time.sleep(0.2)
    raise SystemExit(f"Timed out waiting for browser CDP endpoint on port {port}")
