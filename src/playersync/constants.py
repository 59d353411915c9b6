"""Shared constants for command selectors, timings and persisted state."""

DEFAULT_PLAYER_URL = "https://music.163.com/st/webplayer"

STATE_FILENAME = "player_state.json"
SESSION_FILENAME = "session.json"
LOG_FILENAME = "sync.log"
PROFILE_DIRNAME = "profile"

UNKNOWN_TRACK_ID = "unknown"

POLL_INTERVAL_MS = 4000
COMMAND_TIMEOUT_MS = 1200
# Slack added on top of a command timeout for thread wake-up and result handoff.
DISPATCH_GRACE_MS = 250
RESTORE_RETRY_INTERVAL_MS = 500
RESTORE_MAX_ATTEMPTS = 20
# Per-attempt wait for a restore script result before treating the page as gone.
RESTORE_ATTEMPT_TIMEOUT_MS = 3000

# Tried after the caller's list, in this order, for every command.
FALLBACK_SELECTORS = (
    "#btn_pc_minibar_play",
    "button.play-btn",
    "button.playorPauseIconStyle_p5dzjle",
    'button[title="播放"]',
    'button[title="暂停"]',
    'button[title="上一首"]',
    'button[title="下一首"]',
    "button .cmd-icon.cmd-icon-pre",
    "button .cmd-icon.cmd-icon-next",
)

COMMAND_PLAY_PAUSE = "play_pause"
COMMAND_PREVIOUS = "previous"
COMMAND_NEXT = "next"

COMMAND_NAMES = (COMMAND_PLAY_PAUSE, COMMAND_PREVIOUS, COMMAND_NEXT)

PRIMARY_SELECTORS = {
    COMMAND_PLAY_PAUSE: (
        "#btn_pc_minibar_play",
        "button.play-btn",
        "button.playorPauseIconStyle_p5dzjle",
        "button.play-pause-btn",
        'button[title="播放"]',
        'button[title="暂停"]',
        "span.cmd-icon.cmd-icon-play",
    ),
    COMMAND_PREVIOUS: (
        'button[title="上一首"]',
        "span.cmd-icon.cmd-icon-pre",
        'button[aria-label="pre"]',
        "button.cmd-icon-pre",
        "button .cmd-icon.cmd-icon-pre",
    ),
    COMMAND_NEXT: (
        'button[title="下一首"]',
        "span.cmd-icon.cmd-icon-next",
        'button[aria-label="next"]',
        "button.cmd-icon-next",
        "button .cmd-icon.cmd-icon-next",
    ),
}

SELECTOR_ENV_VARS = {
    COMMAND_PLAY_PAUSE: "PLAYERSYNC_SELECTORS_PLAY_PAUSE",
    COMMAND_PREVIOUS: "PLAYERSYNC_SELECTORS_PREVIOUS",
    COMMAND_NEXT: "PLAYERSYNC_SELECTORS_NEXT",
}

# Outcomes reported by the in-page restore attempt script.
RESTORE_APPLIED = "applied"
RESTORE_PLAYER = "player"
RESTORE_ABSENT = "absent"
RESTORE_NOT_READY = "not_ready"
