from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml


@dataclass(slots=True)
class ReplyMessages:
    version: str = "reply_messages_v1"
    added: str = "Added command '{name}'."
    already_exists: str = "A command named '{name}' already exists."
    updated: str = "Updated command '{name}'."
    removed: str = "Removed command '{name}'."
    not_found: str = "There is no command named '{name}'."
    failed: str = "Something went wrong. Please try again later."
    invalid_name: str = "Command names must be 1-50 characters."
    guild_only: str = "This only works inside a server."
    list_empty: str = "No commands are registered."
    search_empty: str = "No commands match '{query}'."
    capture_message_not_found: str = "I couldn't find that message. It may have been deleted."
    capture_invalid_token: str = "This form is no longer valid. Start again from the message."
    capture_empty_message: str = "That message has no text or attachments to save."
    capture_name_label: str = "Command name"

    def render(self, key: str, **values: Any) -> str:
        template = getattr(self, key)
        try:
            return template.format(**values)
        except (KeyError, IndexError, ValueError):
            # A broken override should never block the reply itself.
            return getattr(ReplyMessages(), key).format(**values)


def load_reply_messages(path: str | Path | None) -> tuple[ReplyMessages, str | None]:
    """
    Returns (messages, warning_message). warning_message is None on clean load.
    """
    defaults = ReplyMessages()
    if not path:
        return (defaults, "Reply messages path missing; using built-in defaults.")

    p = Path(path)
    if not p.exists():
        return (defaults, f"Reply messages file not found at {p}; using built-in defaults.")

    try:
        payload = yaml.safe_load(p.read_text(encoding="utf-8"))
    except Exception as exc:
        return (defaults, f"Failed to read reply messages from {p}: {exc}; using built-in defaults.")

    if not isinstance(payload, dict):
        return (defaults, f"Invalid reply messages format in {p}; using built-in defaults.")

    values: dict[str, str] = {}
    for f in fields(ReplyMessages):
        raw = payload.get(f.name)
        text = str(raw).strip() if raw is not None else ""
        values[f.name] = text or getattr(defaults, f.name)
    return (ReplyMessages(**values), None)
