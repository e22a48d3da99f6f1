from __future__ import annotations

from typing import Iterable

from config.defaults import DEFAULT_TRIGGER_PREFIX
from config.defaults import DISCORD_MAX_MESSAGE_LEN
from registry.models import Command


def format_command_entry(command: Command, prefix: str = DEFAULT_TRIGGER_PREFIX) -> str:
    return f"{prefix}{command.name}: {command.response}"


def chunk_entries(
    entries: Iterable[str],
    max_size: int = DISCORD_MAX_MESSAGE_LEN,
    separator: str = "\n",
) -> list[str]:
    """Greedy in-order packing of whole entries into chunks of at most max_size.

    An entry longer than max_size is emitted as its own chunk, untouched.
    """
    if max_size <= 0:
        raise ValueError("max_size must be positive")

    chunks: list[str] = []
    current: str | None = None
    for entry in entries:
        if current is None:
            current = entry
            continue
        if len(current) + len(separator) + len(entry) <= max_size:
            current = f"{current}{separator}{entry}"
            continue
        chunks.append(current)
        current = entry

    if current is not None:
        chunks.append(current)
    return chunks


def chunk_command_listing(
    commands: Iterable[Command],
    max_size: int = DISCORD_MAX_MESSAGE_LEN,
    prefix: str = DEFAULT_TRIGGER_PREFIX,
) -> list[str]:
    return chunk_entries((format_command_entry(c, prefix) for c in commands), max_size)


def split_text(text: str, limit: int = DISCORD_MAX_MESSAGE_LEN) -> list[str]:
    """Split text into parts of at most limit characters; "".join(parts) == text.

    Cuts land just after a paragraph break, then a newline, then a space, and
    fall back to a hard cut at limit. Separators stay with the earlier part.
    """
    text = text or ""
    if len(text) <= limit:
        return [text]

    chunks = []
    remaining = text

    while len(remaining) > limit:
        cut = -1
        for sep in ("\n\n", "\n", " "):
            at = remaining.rfind(sep, 0, limit)
            if at != -1:
                cut = at + len(sep)
                break
        if cut <= 0:
            cut = limit

        chunks.append(remaining[:cut])
        remaining = remaining[cut:]

    if remaining:
        chunks.append(remaining)

    return chunks
