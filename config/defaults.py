from __future__ import annotations

# Trigger + listing
DEFAULT_TRIGGER_PREFIX = "!"
DISCORD_MAX_MESSAGE_LEN = 2000
DEFAULT_LIST_CHUNK_CHARS = DISCORD_MAX_MESSAGE_LEN

# Command names (slash options, capture modal, dashboard form)
COMMAND_NAME_MIN_LEN = 1
COMMAND_NAME_MAX_LEN = 50

# Storage
DEFAULT_DB_PATH = "nkmzbot.db"

# Capture flow
CAPTURE_CONTEXT_MENU_NAME = "Save as command"
CAPTURE_MODAL_TITLE = "New command"

# Web dashboard
DISCORD_API_BASE = "https://discord.com/api"
DASHBOARD_USER_AGENT = "nkmzbot/1.0 (+https://github.com/susu3304/nkmzbot)"
CSRF_TOKEN_BYTES = 24
