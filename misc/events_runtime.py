from __future__ import annotations

import discord
from discord.ext import commands

from misc.discord_gates import message_guild_id
from misc.discord_gates import should_resolve_trigger
from misc.runtime_deps import RuntimeBootDeps
from misc.runtime_deps import RuntimeDeps
from registry.models import CommandStoreError
from registry.triggers import resolve_trigger


def register_runtime_events(
    bot: commands.Bot,
    *,
    deps: RuntimeDeps,
    boot: RuntimeBootDeps,
) -> None:
    @bot.event
    async def on_ready():
        print(f"nkmzbot is online as {bot.user}")
        await boot.sync_manager.reconcile_many(g.id for g in bot.guilds)

    @bot.event
    async def on_guild_join(guild: discord.Guild):
        print(f"[Sync] joined guild={guild.id}")
        await boot.sync_manager.reconcile(guild.id)

    @bot.event
    async def on_guild_available(guild: discord.Guild):
        # Fires again after outages; reconciling is idempotent.
        await boot.sync_manager.reconcile(guild.id)

    @bot.event
    async def on_message(message: discord.Message):
        if not should_resolve_trigger(message, deps.trigger_prefix):
            return

        guild_id = message_guild_id(message)
        try:
            response = await resolve_trigger(
                deps.registry,
                guild_id,
                message.content,
                prefix=deps.trigger_prefix,
            )
        except CommandStoreError as e:
            print(f"[Trigger] guild={guild_id} lookup failed: {e}")
            return

        if response is None:
            return

        try:
            await deps.send_chunked(message, response)
        except discord.HTTPException as e:
            print(f"[Reply] guild={guild_id} message={message.id} reply failed: {e}")
