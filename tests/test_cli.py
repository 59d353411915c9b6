import io
import json
import tempfile
import unittest
from contextlib import redirect_stdout
from pathlib import Path
from unittest.mock import patch

from playersync.browser import SyncSession, save_session
from playersync.cli import _build_parser, send_command, status_payload
from playersync.config import SyncConfig


class CliTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.config = SyncConfig(
            player_url="https://music.163.com/st/webplayer",
            data_dir=Path(self._tmp.name),
            guard_host="music.163.com",
        )

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _session(self, state: str = "open") -> SyncSession:
        return SyncSession(
            pid=4242,
            cdp_port=9222,
            control_port=9555,
            url="https://music.163.com/st/webplayer",
            profile_dir=str(self.config.profile_dir),
            browser_binary="/usr/bin/chromium",
            launched=True,
            started_at="2026-01-01T00:00:00+00:00",
            state=state,
        )

    def test_parser_accepts_known_commands_only(self) -> None:
        parser = _build_parser()
        self.assertEqual(parser.parse_args(["command", "next"]).name, "next")
        with redirect_stdout(io.StringIO()), patch("sys.stderr", io.StringIO()):
            with self.assertRaises(SystemExit):
                parser.parse_args(["command", "shuffle"])

    def test_status_reports_parsed_state_and_session(self) -> None:
        self.config.state_path.write_text('{"id":"trackA","time":5,"paused":true,"savedAt":"t"}', encoding="utf-8")
        save_session(self.config.session_path, self._session())
        payload = status_payload(self.config)
        self.assertEqual(payload["state"], {"id": "trackA", "time": 5.0, "paused": True, "savedAt": "t"})
        self.assertEqual(payload["session"]["control_port"], 9555)
        self.assertNotIn("raw", payload)

    def test_status_exposes_raw_diagnostic_payload(self) -> None:
        self.config.state_path.write_text("<<not json>>", encoding="utf-8")
        payload = status_payload(self.config)
        self.assertIsNone(payload["state"])
        self.assertEqual(payload["raw"], "<<not json>>")
        self.assertNotIn("session", payload)

    def test_send_command_prints_result(self) -> None:
        save_session(self.config.session_path, self._session())
        out = io.StringIO()
        with patch("playersync.cli.request_command", return_value={"ok": True, "command": "next"}) as req:
            with redirect_stdout(out):
                send_command(self.config, "next")
        self.assertEqual(req.call_args.args[:2], (9555, "next"))
        self.assertEqual(json.loads(out.getvalue()), {"ok": True, "command": "next"})

    def test_send_command_failure_exits_non_zero(self) -> None:
        save_session(self.config.session_path, self._session())
        with patch("playersync.cli.request_command", return_value={"ok": False, "command": "next"}):
            with redirect_stdout(io.StringIO()), self.assertRaises(SystemExit) as ctx:
                send_command(self.config, "next")
        self.assertEqual(ctx.exception.code, 1)

    def test_send_command_requires_open_session(self) -> None:
        with self.assertRaises(SystemExit):
            send_command(self.config, "next")
        save_session(self.config.session_path, self._session(state="closed"))
        with self.assertRaises(SystemExit):
            send_command(self.config, "next")


if __name__ == "__main__":
    unittest.main()
