"""Loopback HTTP control surface for issuing player commands to a running engine."""

from __future__ import annotations

import json
import urllib.error
import urllib.request
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any


class _ControlHandler(BaseHTTPRequestHandler):
    server_version = "PlayerSyncControl/1.0"

    def _send_json(self, status_code: int, payload: dict[str, Any]) -> None:
        body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        self.send_response(status_code)
        self.send_header("Content-Type", "application/json; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.send_header("Cache-Control", "no-store")
        self.end_headers()
        self.wfile.write(body)

    def do_GET(self) -> None:  # noqa: N802
        if self.path == "/health":
            self._send_json(200, {"ok": True})
            return
        if self.path == "/state":
            state = self.server.engine.store.read_state()
            self._send_json(200, {"state": state.to_dict() if state is not None else None})
            return
        self._send_json(404, {"error": "not_found"})

    def do_POST(self) -> None:  # noqa: N802
        if self.path != "/command":
            self._send_json(404, {"error": "not_found"})
            return
        length = int(self.headers.get("Content-Length", "0") or "0")
        raw = self.rfile.read(length) if length > 0 else b"{}"
        try:
            payload = json.loads(raw.decode("utf-8", errors="replace"))
        except json.JSONDecodeError:
            self._send_json(400, {"error": "invalid_json"})
            return
        if not isinstance(payload, dict):
            self._send_json(400, {"error": "invalid_payload"})
            return

        command = str(payload.get("command", "")).strip().lower()
        try:
            ok = self.server.engine.dispatch(command)
        except ValueError as exc:
            self._send_json(400, {"error": str(exc)})
            return
        self._send_json(200, {"ok": bool(ok), "command": command})

    def log_message(self, _format: str, *_args: Any) -> None:
        return


class ControlServer(ThreadingHTTPServer):
    """Each request is handled on its own thread, never on the channel's."""

    daemon_threads = True

    def __init__(self, server_address: tuple[str, int], engine: Any):
        super().__init__(server_address, _ControlHandler)
        self.engine = engine

    @property
    def port(self) -> int:
        return int(self.server_address[1])


def request_command(port: int, command: str, timeout_seconds: float = 4.0) -> dict[str, Any]:
    if port <= 0:
        raise SystemExit("Sync engine control port is not configured.")
    payload = json.dumps({"command": command}, ensure_ascii=False).encode("utf-8")
    req = urllib.request.Request(
        f"http://127.0.0.1:{port}/command",
        data=payload,
        method="POST",
        headers={"Content-Type": "application/json"},
    )
    try:
        with urllib.request.urlopen(req, timeout=timeout_seconds) as resp:
            body = resp.read().decode("utf-8", errors="replace")
    except urllib.error.HTTPError as exc:
        reason = exc.read().decode("utf-8", errors="replace")
        raise SystemExit(f"Command failed ({command}): {reason}") from exc
    except (urllib.error.URLError, TimeoutError) as exc:
        raise SystemExit(f"Sync engine unreachable ({command}): {exc}") from exc
    try:
        parsed = json.loads(body)
    except json.JSONDecodeError as exc:
        raise SystemExit(f"Sync engine returned invalid JSON ({command})") from exc
    if not isinstance(parsed, dict):
        raise SystemExit(f"Sync engine returned invalid payload ({command})")
    return parsed
