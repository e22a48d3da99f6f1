from __future__ import annotations

import importlib


class _DummyRegistry:
    async def get(self, guild_id, name):
        return None

    async def add(self, guild_id, name, response):
        return "created"


class _DummySyncManager:
    async def reconcile(self, guild_id):
        return None

    async def reconcile_many(self, guild_ids):
        return []


async def _noop_async(*args, **kwargs):
    return None


def _try_import_or_skip(module_name: str, pip_name: str | None = None) -> bool:
    try:
        importlib.import_module(module_name)
        return True
    except ModuleNotFoundError:
        install_name = pip_name or module_name
        print(
            f"Smoke wiring check skipped: missing dependency '{module_name}'. "
            f"Install requirements and retry (e.g. `pip install {install_name}` "
            f"or `pip install -e .`)."
        )
        return False


def _main() -> int:
    if not _try_import_or_skip("discord", "discord.py"):
        return 0

    import discord
    from discord.ext import commands
    from misc.runtime_wiring import wire_bot_runtime
    from registry.capture import CaptureFlow
    from registry.reply_messages import ReplyMessages
    from registry.schema import schema_drift

    intents = discord.Intents.none()
    bot = commands.Bot(command_prefix=commands.when_mentioned, intents=intents)
    registry = _DummyRegistry()

    wire_bot_runtime(
        bot,
        registry=registry,
        capture_flow=CaptureFlow(registry=registry),
        sync_manager=_DummySyncManager(),
        reply_messages=ReplyMessages(),
        send_chunked=_noop_async,
        trigger_prefix="!",
        list_chunk_chars=2000,
    )

    missing, unknown = schema_drift(bot.tree)
    if missing or unknown:
        raise RuntimeError(f"Handlers out of step with schema: missing={sorted(missing)} unknown={sorted(unknown)}")

    for event_name in ("on_ready", "on_guild_join", "on_guild_available", "on_message"):
        handler = getattr(bot, event_name, None)
        if getattr(handler, "__module__", "") != "misc.events_runtime":
            raise RuntimeError(f"Runtime event {event_name} was not registered")

    print("Smoke wiring check passed.")
    return 0


if __name__ == "__main__":
    raise SystemExit(_main())
