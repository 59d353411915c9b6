"""CLI entrypoint for playersync."""

from __future__ import annotations

import argparse
import json
from dataclasses import replace

from playersync.browser import (
    attach_session,
    launch_browser,
    load_session,
    save_session,
    stop_browser,
)
from playersync.channel import PlaywrightChannel
from playersync.config import SyncConfig, load_config
from playersync.constants import COMMAND_NAMES, DISPATCH_GRACE_MS
from playersync.control_agent import ControlServer, request_command
from playersync.engine import PlayerSyncEngine
from playersync.storage import StateStore, append_log, tail_lines


def main() -> None:
    parser = _build_parser()
    args = parser.parse_args()

    if args.command == "run":
        config = load_config(player_url=args.url, data_dir=args.data_dir)
        run_command(config, cdp_port=args.cdp_port, control_port=args.control_port)
        return
    if args.command == "command":
        config = load_config(data_dir=args.data_dir)
        send_command(config, args.name)
        return
    if args.command == "status":
        config = load_config(data_dir=args.data_dir)
        print(json.dumps(status_payload(config), indent=2, ensure_ascii=False))
        return
    if args.command == "logs":
        config = load_config(data_dir=args.data_dir)
        print("\n".join(tail_lines(config.log_path, args.tail)))
        return

    parser.print_help()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="playersync",
        description="Drive a web player page and keep its playback position across restarts.",
    )
    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser("run", help="Open the player page and keep state in sync")
    run_parser.add_argument("--url", type=str, default=None, help="Player page URL.")
    run_parser.add_argument(
        "--cdp-port",
        type=int,
        default=0,
        help="Attach to an already running Chromium on this CDP port instead of launching one.",
    )
    run_parser.add_argument("--control-port", type=int, default=0, help="Loopback port for commands (0 = any).")
    _add_data_dir(run_parser)

    command_parser = subparsers.add_parser("command", help="Send a player command to the running engine")
    command_parser.add_argument("name", choices=COMMAND_NAMES)
    _add_data_dir(command_parser)

    status_parser = subparsers.add_parser("status", help="Show persisted playback state and session")
    _add_data_dir(status_parser)

    logs_parser = subparsers.add_parser("logs", help="Tail the sync log")
    logs_parser.add_argument("--tail", type=int, default=200)
    _add_data_dir(logs_parser)
    return parser


def _add_data_dir(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--data-dir", type=str, default=None, help="Override PLAYERSYNC_DATA_DIR.")


def run_command(config: SyncConfig, *, cdp_port: int = 0, control_port: int = 0) -> None:
    config.data_dir.mkdir(parents=True, exist_ok=True)
    if cdp_port > 0:
        session = attach_session(cdp_port, config.profile_dir)
    else:
        session = launch_browser(config.profile_dir, log_dir=config.data_dir)

    channel = PlaywrightChannel(
        f"http://127.0.0.1:{session.cdp_port}",
        guard_host=config.guard_host,
        home_url=config.player_url,
        log_path=config.log_path,
    )
    engine = PlayerSyncEngine(config, channel)
    server = ControlServer(("127.0.0.1", control_port), engine)
    server.timeout = 0.5
    try:
        engine.start()
        channel.start()
        channel.navigate(config.player_url)
        session = replace(session, control_port=server.port, url=config.player_url)
        save_session(config.session_path, session)
        append_log(
            config.log_path,
            f"engine=started url={config.player_url} cdp_port={session.cdp_port} control_port={server.port}",
        )
        print(json.dumps(session.to_dict(), indent=2, ensure_ascii=False), flush=True)
        while channel.is_alive():
            server.handle_request()
    except KeyboardInterrupt:
        pass
    finally:
        engine.stop()
        channel.close()
        server.server_close()
        stop_browser(session)
        save_session(config.session_path, replace(session, state="closed", control_port=0))
        append_log(config.log_path, "engine=stopped")


def send_command(config: SyncConfig, name: str) -> None:
    session = load_session(config.session_path)
    if session.state != "open":
        raise SystemExit("Sync session is closed. Start one with: playersync run")
    timeout_seconds = (config.command_timeout_ms + DISPATCH_GRACE_MS) / 1000.0 + 2.0
    payload = request_command(session.control_port, name, timeout_seconds=timeout_seconds)
    print(json.dumps(payload, indent=2, ensure_ascii=False))
    if not payload.get("ok"):
        raise SystemExit(1)


def status_payload(config: SyncConfig) -> dict[str, object]:
    store = StateStore(config.state_path)
    state = store.read_state()
    payload: dict[str, object] = {
        "state_path": str(config.state_path),
        "state": state.to_dict() if state is not None else None,
    }
    if state is None:
        raw = store.read_raw()
        if raw:
            payload["raw"] = raw[:2000]
    if config.session_path.exists():
        try:
            payload["session"] = load_session(config.session_path).to_dict()
        except SystemExit:
            payload["session"] = None
    return payload


if __name__ == "__main__":
    main()
