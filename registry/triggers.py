from __future__ import annotations

from config.defaults import DEFAULT_TRIGGER_PREFIX


def parse_trigger_name(raw_text: str | None, prefix: str = DEFAULT_TRIGGER_PREFIX) -> str | None:
    """Return the candidate command name in ``raw_text`` or None.

    Only the message as a whole is trimmed. Whatever follows the prefix is the
    name verbatim: no case folding and no inner trimming, so ``"! hi"`` looks
    up ``" hi"``.
    """
    text = (raw_text or "").strip()
    if not prefix or not text.startswith(prefix):
        return None
    name = text[len(prefix):]
    if not name:
        return None
    return name


async def resolve_trigger(
    registry,
    guild_id: int | None,
    raw_text: str | None,
    *,
    prefix: str = DEFAULT_TRIGGER_PREFIX,
) -> str | None:
    if guild_id is None:
        return None
    name = parse_trigger_name(raw_text, prefix)
    if name is None:
        return None
    command = await registry.get(int(guild_id), name)
    if command is None:
        return None
    return command.response
