from __future__ import annotations

import io

import discord
from discord import app_commands
from discord.ext import commands

from config.defaults import CAPTURE_MODAL_TITLE
from config.defaults import COMMAND_NAME_MAX_LEN
from config.defaults import COMMAND_NAME_MIN_LEN
from config.defaults import DISCORD_MAX_MESSAGE_LEN
from misc.commands.command_deps import CommandDeps
from misc.commands.command_deps import CommandGates
from misc.discord_gates import fetch_channel_message
from registry.capture import EMPTY_MESSAGE
from registry.capture import INVALID_NAME
from registry.capture import INVALID_TOKEN
from registry.capture import MESSAGE_NOT_FOUND
from registry.capture import NO_GUILD
from registry.capture import CaptureFlow
from registry.capture import CaptureResult
from registry.chunking import chunk_command_listing
from registry.models import ALREADY_EXISTS
from registry.models import CREATED
from registry.models import NOT_FOUND
from registry.models import REMOVED
from registry.models import UPDATED
from registry.models import Command
from registry.models import CommandStoreError
from registry.models import normalize_command_name
from registry.reply_messages import ReplyMessages
from registry.schema import CANONICAL_COMMAND_SCHEMA
from registry.schema import CAPTURE_CONTEXT_MENU_NAME

_DESCRIPTORS = {d.name: d for d in CANONICAL_COMMAND_SCHEMA}

CommandName = app_commands.Range[str, COMMAND_NAME_MIN_LEN, COMMAND_NAME_MAX_LEN]


def _description(name: str) -> str:
    return _DESCRIPTORS[name].description


def _option_descriptions(name: str) -> dict[str, str]:
    return {o.name: o.description for o in _DESCRIPTORS[name].options}


def outcome_text(messages: ReplyMessages, outcome: str, *, name: str) -> str:
    key = {
        CREATED: "added",
        ALREADY_EXISTS: "already_exists",
        UPDATED: "updated",
        REMOVED: "removed",
        NOT_FOUND: "not_found",
        INVALID_NAME: "invalid_name",
    }.get(outcome, "failed")
    return messages.render(key, name=name)


def capture_result_text(messages: ReplyMessages, result: CaptureResult) -> str:
    if result.outcome == MESSAGE_NOT_FOUND:
        return messages.capture_message_not_found
    if result.outcome == INVALID_TOKEN:
        return messages.capture_invalid_token
    if result.outcome == EMPTY_MESSAGE:
        return messages.capture_empty_message
    if result.outcome == NO_GUILD:
        return messages.guild_only
    return outcome_text(messages, result.outcome, name=result.name or "")


async def safe_respond(interaction: discord.Interaction, text: str, *, ephemeral: bool = False) -> bool:
    try:
        if interaction.response.is_done():
            await interaction.followup.send(text, ephemeral=ephemeral)
        else:
            await interaction.response.send_message(text, ephemeral=ephemeral)
    except discord.HTTPException as exc:
        print(f"[Reply] interaction={getattr(interaction, 'id', '?')} send failed: {exc}")
        return False
    return True


async def _send_chunk(interaction: discord.Interaction, chunk: str) -> None:
    if len(chunk) <= DISCORD_MAX_MESSAGE_LEN:
        if interaction.response.is_done():
            await interaction.followup.send(chunk)
        else:
            await interaction.response.send_message(chunk)
        return
    # One entry alone is over the message limit: ship it whole as a file.
    attachment = discord.File(io.BytesIO(chunk.encode("utf-8")), filename="commands.txt")
    if interaction.response.is_done():
        await interaction.followup.send(file=attachment)
    else:
        await interaction.response.send_message(file=attachment)


async def send_command_listing(
    interaction: discord.Interaction,
    commands_list: list[Command],
    *,
    empty_text: str,
    max_size: int,
    prefix: str,
) -> int:
    chunks = chunk_command_listing(commands_list, max_size, prefix)
    if not chunks:
        await safe_respond(interaction, empty_text)
        return 0

    sent = 0
    for chunk in chunks:
        try:
            await _send_chunk(interaction, chunk)
        except discord.HTTPException as exc:
            print(f"[Reply] listing chunk {sent + 1}/{len(chunks)} failed: {exc}")
            break
        sent += 1
    return sent


class CaptureNameModal(discord.ui.Modal):
    def __init__(
        self,
        *,
        flow: CaptureFlow,
        token: str,
        messages: ReplyMessages,
        gates: CommandGates,
    ) -> None:
        # The token rides in custom_id; it is all stage 2 gets back.
        super().__init__(title=CAPTURE_MODAL_TITLE, custom_id=token)
        self.flow = flow
        self.messages = messages
        self.gates = gates
        self.name_input = discord.ui.TextInput(
            label=messages.capture_name_label,
            placeholder="hello",
            required=True,
            min_length=COMMAND_NAME_MIN_LEN,
            max_length=COMMAND_NAME_MAX_LEN,
        )
        self.add_item(self.name_input)

    async def on_submit(self, interaction: discord.Interaction) -> None:
        await self.submit_name(interaction, self.name_input.value)

    async def submit_name(self, interaction: discord.Interaction, name: str) -> CaptureResult:
        channel = interaction.channel

        async def _fetch(message_id: int):
            return await fetch_channel_message(channel, message_id)

        result = await self.flow.complete(
            guild_id=self.gates.guild_id_of(interaction),
            token=self.custom_id,
            name=name,
            fetch_message=_fetch,
        )
        await safe_respond(
            interaction,
            capture_result_text(self.messages, result),
            ephemeral=not result.committed,
        )
        return result

    async def on_error(self, interaction: discord.Interaction, error: Exception) -> None:
        print(f"[Capture] modal submit crashed: {error!r}")
        await safe_respond(interaction, self.messages.failed, ephemeral=True)


def register(
    bot: commands.Bot,
    *,
    deps: CommandDeps,
    gates: CommandGates,
) -> None:
    messages = deps.reply_messages

    async def _require_guild(interaction: discord.Interaction) -> int | None:
        guild_id = gates.guild_id_of(interaction)
        if guild_id is None:
            await safe_respond(interaction, messages.guild_only, ephemeral=True)
        return guild_id

    @bot.tree.command(name="add", description=_description("add"))
    @app_commands.describe(**_option_descriptions("add"))
    @app_commands.guild_only()
    async def add_command(interaction: discord.Interaction, name: CommandName, response: str):
        guild_id = await _require_guild(interaction)
        if guild_id is None:
            return
        clean_name = normalize_command_name(name)
        if clean_name is None:
            await safe_respond(interaction, messages.invalid_name, ephemeral=True)
            return
        outcome = await deps.registry.add(guild_id, clean_name, response)
        await safe_respond(
            interaction,
            outcome_text(messages, outcome, name=clean_name),
            ephemeral=outcome != CREATED,
        )

    @bot.tree.command(name="remove", description=_description("remove"))
    @app_commands.describe(**_option_descriptions("remove"))
    @app_commands.guild_only()
    async def remove_command(interaction: discord.Interaction, name: CommandName):
        guild_id = await _require_guild(interaction)
        if guild_id is None:
            return
        name = normalize_command_name(name)
        if name is None:
            await safe_respond(interaction, messages.invalid_name, ephemeral=True)
            return
        outcome = await deps.registry.remove(guild_id, name)
        await safe_respond(
            interaction,
            outcome_text(messages, outcome, name=name),
            ephemeral=outcome != REMOVED,
        )

    @bot.tree.command(name="update", description=_description("update"))
    @app_commands.describe(**_option_descriptions("update"))
    @app_commands.guild_only()
    async def update_command(interaction: discord.Interaction, name: CommandName, response: str):
        guild_id = await _require_guild(interaction)
        if guild_id is None:
            return
        name = normalize_command_name(name)
        if name is None:
            await safe_respond(interaction, messages.invalid_name, ephemeral=True)
            return
        outcome = await deps.registry.update(guild_id, name, response)
        await safe_respond(
            interaction,
            outcome_text(messages, outcome, name=name),
            ephemeral=outcome != UPDATED,
        )

    @bot.tree.command(name="list", description=_description("list"))
    @app_commands.guild_only()
    async def list_commands(interaction: discord.Interaction):
        guild_id = await _require_guild(interaction)
        if guild_id is None:
            return
        try:
            rows = await deps.registry.list(guild_id)
        except CommandStoreError:
            await safe_respond(interaction, messages.failed, ephemeral=True)
            return
        await send_command_listing(
            interaction,
            rows,
            empty_text=messages.list_empty,
            max_size=deps.list_chunk_chars,
            prefix=deps.trigger_prefix,
        )

    @bot.tree.command(name="search", description=_description("search"))
    @app_commands.describe(**_option_descriptions("search"))
    @app_commands.guild_only()
    async def search_commands(interaction: discord.Interaction, query: str):
        guild_id = await _require_guild(interaction)
        if guild_id is None:
            return
        try:
            rows = await deps.registry.search(guild_id, query)
        except CommandStoreError:
            await safe_respond(interaction, messages.failed, ephemeral=True)
            return
        await send_command_listing(
            interaction,
            rows,
            empty_text=messages.render("search_empty", query=query),
            max_size=deps.list_chunk_chars,
            prefix=deps.trigger_prefix,
        )

    @bot.tree.context_menu(name=CAPTURE_CONTEXT_MENU_NAME)
    @app_commands.guild_only()
    async def capture_message(interaction: discord.Interaction, message: discord.Message):
        ticket = deps.capture_flow.begin(guild_id=gates.guild_id_of(interaction), message_id=message.id)
        if ticket.token is None:
            await safe_respond(interaction, messages.guild_only, ephemeral=True)
            return
        modal = CaptureNameModal(
            flow=deps.capture_flow,
            token=ticket.token,
            messages=messages,
            gates=gates,
        )
        try:
            await interaction.response.send_modal(modal)
        except discord.HTTPException as exc:
            print(f"[Capture] could not open form for message={message.id}: {exc}")
