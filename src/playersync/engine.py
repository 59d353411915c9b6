"""Wiring of dispatcher, capture poller and restorer around one channel."""

from __future__ import annotations

from playersync.channel import ExecutionChannel
from playersync.config import SyncConfig
from playersync.constants import COMMAND_NAMES, FALLBACK_SELECTORS
from playersync.dispatcher import CommandDispatcher
from playersync.models import CommandSpec
from playersync.poller import StateCapturePoller
from playersync.restorer import StateRestorer
from playersync.storage import StateStore


def build_command_specs(config: SyncConfig) -> dict[str, CommandSpec]:
    return {
        name: CommandSpec(
            name=name,
            primary_selectors=tuple(config.selectors[name]),
            fallback_selectors=FALLBACK_SELECTORS,
            timeout_ms=config.command_timeout_ms,
        )
        for name in COMMAND_NAMES
    }


class PlayerSyncEngine:
    def __init__(self, config: SyncConfig, channel: ExecutionChannel) -> None:
        self.config = config
        self.channel = channel
        self.store = StateStore(config.state_path)
        self.commands = build_command_specs(config)
        self.dispatcher = CommandDispatcher(channel, log_path=config.log_path)
        self.poller = StateCapturePoller(
            channel,
            self.store,
            interval_ms=config.poll_interval_ms,
            log_path=config.log_path,
        )
        self.restorer = StateRestorer(
            channel,
            self.store,
            retry_interval_ms=config.restore_retry_ms,
            max_attempts=config.restore_max_attempts,
            log_path=config.log_path,
        )
        self._started = False
        self._listening = False

    def start(self) -> None:
        """Hook restore into page loads and begin polling; call before the first navigation."""
        if self._started:
            return
        if not self._listening:
            self.channel.add_load_listener(self.restorer.on_load_finished)
            self._listening = True
        self.poller.start()
        self._started = True

    def stop(self) -> None:
        self.poller.stop()
        self.restorer.stop()
        self._started = False

    def dispatch(self, command: str) -> bool:
        spec = self.commands.get(str(command or "").strip().lower())
        if spec is None:
            raise ValueError(f"Unsupported command: {command}")
        return self.dispatcher.dispatch(spec)
