from __future__ import annotations

from dataclasses import dataclass
from dataclasses import field
from typing import Any
from typing import Callable

from config.defaults import DEFAULT_LIST_CHUNK_CHARS
from config.defaults import DEFAULT_TRIGGER_PREFIX
from misc.discord_gates import interaction_guild_id
from registry.reply_messages import ReplyMessages


@dataclass(frozen=True)
class CommandDeps:
    # Core/shared
    registry: Any = None
    capture_flow: Any = None
    reply_messages: ReplyMessages = field(default_factory=ReplyMessages)

    # Rendering
    trigger_prefix: str = DEFAULT_TRIGGER_PREFIX
    list_chunk_chars: int = DEFAULT_LIST_CHUNK_CHARS


@dataclass(frozen=True)
class CommandGates:
    guild_id_of: Callable[[Any], int | None] = interaction_guild_id
