from __future__ import annotations

import discord


def message_guild_id(message: discord.Message) -> int | None:
    guild = getattr(message, "guild", None)
    if guild is None:
        return None
    return int(guild.id)


def interaction_guild_id(interaction: discord.Interaction) -> int | None:
    raw = getattr(interaction, "guild_id", None)
    return int(raw) if raw is not None else None


def should_resolve_trigger(message: discord.Message, prefix: str) -> bool:
    # Triggers only exist inside guilds, and bots (including this one) never fire them.
    if message_guild_id(message) is None:
        return False
    author = getattr(message, "author", None)
    if author is None or getattr(author, "bot", False):
        return False
    return (message.content or "").lstrip().startswith(prefix)


async def fetch_channel_message(channel, message_id: int):
    """Re-fetch a message; None when it is gone or no longer readable."""
    if channel is None or not hasattr(channel, "fetch_message"):
        return None
    try:
        return await channel.fetch_message(int(message_id))
    except (discord.NotFound, discord.Forbidden):
        return None
