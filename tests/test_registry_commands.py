from __future__ import annotations

import asyncio
import sqlite3
import unittest
from pathlib import Path
from types import SimpleNamespace

try:
    import discord
    from discord.ext import commands
except ModuleNotFoundError:
    discord = None
    commands = None

if commands is not None:
    from misc.commands.command_deps import CommandDeps
    from misc.commands.command_deps import CommandGates
    from misc.commands.commands_registry import CaptureNameModal
    from misc.commands.commands_registry import register as register_registry

from db.migrate import apply_sqlite_migrations
from registry.capture import CaptureFlow
from registry.reply_messages import ReplyMessages
from registry.service import CommandRegistry

MIGRATIONS_DIR = Path(__file__).resolve().parents[1] / "migrations"
GUILD = 77


class FakeInteractionResponse:
    def __init__(self, sink: list[dict]):
        self.sink = sink
        self.done = False
        self.modal = None

    def is_done(self) -> bool:
        return self.done

    async def send_message(self, content=None, *, ephemeral=False, file=None):
        self.done = True
        self.sink.append({"content": content, "ephemeral": ephemeral, "file": file})

    async def send_modal(self, modal):
        self.done = True
        self.modal = modal


class FakeFollowup:
    def __init__(self, sink: list[dict]):
        self.sink = sink

    async def send(self, content=None, *, ephemeral=False, file=None):
        self.sink.append({"content": content, "ephemeral": ephemeral, "file": file})


class FakeInteraction:
    def __init__(self, guild_id: int | None = GUILD, channel=None):
        self.id = 1
        self.guild_id = guild_id
        self.channel = channel
        self.sent: list[dict] = []
        self.response = FakeInteractionResponse(self.sent)
        self.followup = FakeFollowup(self.sent)


class FakeChannel:
    def __init__(self, messages: dict[int, object]):
        self.messages = messages

    async def fetch_message(self, message_id: int):
        if message_id not in self.messages:
            raise discord.NotFound(SimpleNamespace(status=404, reason="Not Found"), "Unknown Message")
        return self.messages[message_id]


@unittest.skipIf(commands is None, "discord.py not installed")
class RegistryCommandsTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.conn = sqlite3.connect(":memory:", check_same_thread=False)
        apply_sqlite_migrations(self.conn, MIGRATIONS_DIR)
        self.registry = CommandRegistry(db_lock=asyncio.Lock(), db_conn=self.conn)
        self.flow = CaptureFlow(registry=self.registry)
        self.messages = ReplyMessages()
        self.bot = commands.Bot(command_prefix="!", intents=discord.Intents.none())
        register_registry(
            self.bot,
            deps=CommandDeps(
                registry=self.registry,
                capture_flow=self.flow,
                reply_messages=self.messages,
                list_chunk_chars=60,
            ),
            gates=CommandGates(),
        )

    async def asyncTearDown(self):
        self.conn.close()

    def _command(self, name: str):
        cmd = self.bot.tree.get_command(name)
        self.assertIsNotNone(cmd, name)
        return cmd

    async def test_add_then_duplicate(self):
        interaction = FakeInteraction()
        await self._command("add").callback(interaction, name=" hello ", response="hi!")
        self.assertEqual(interaction.sent[-1]["content"], "Added command 'hello'.")
        self.assertFalse(interaction.sent[-1]["ephemeral"])

        interaction = FakeInteraction()
        await self._command("add").callback(interaction, name="hello", response="other")
        self.assertEqual(interaction.sent[-1]["content"], "A command named 'hello' already exists.")
        self.assertTrue(interaction.sent[-1]["ephemeral"])
        self.assertEqual((await self.registry.get(GUILD, "hello")).response, "hi!")

    async def test_update_and_remove_missing(self):
        interaction = FakeInteraction()
        await self._command("update").callback(interaction, name="nope", response="x")
        self.assertEqual(interaction.sent[-1]["content"], "There is no command named 'nope'.")
        self.assertEqual(await self.registry.list(GUILD), [])

        interaction = FakeInteraction()
        await self._command("remove").callback(interaction, name="nope")
        self.assertEqual(interaction.sent[-1]["content"], "There is no command named 'nope'.")

    async def test_commands_outside_guild_are_refused(self):
        interaction = FakeInteraction(guild_id=None)
        await self._command("add").callback(interaction, name="hello", response="hi")
        self.assertEqual(interaction.sent[-1]["content"], self.messages.guild_only)
        self.assertEqual(await self.registry.list_guild_ids(), set())

    async def test_list_empty_and_chunked(self):
        interaction = FakeInteraction()
        await self._command("list").callback(interaction)
        self.assertEqual([s["content"] for s in interaction.sent], [self.messages.list_empty])

        for i in range(6):
            await self.registry.add(GUILD, f"cmd{i}", "response text")
        interaction = FakeInteraction()
        await self._command("list").callback(interaction)
        contents = [s["content"] for s in interaction.sent]
        self.assertGreater(len(contents), 1)
        self.assertTrue(all(len(c) <= 60 for c in contents))
        self.assertEqual("\n".join(contents).split("\n"), [f"!cmd{i}: response text" for i in range(6)])

    async def test_oversized_entry_goes_out_as_a_file(self):
        await self.registry.add(GUILD, "big", "y" * 2100)
        interaction = FakeInteraction()
        await self._command("list").callback(interaction)
        self.assertEqual(len(interaction.sent), 1)
        self.assertIsNotNone(interaction.sent[0]["file"])

    async def test_search(self):
        await self.registry.add(GUILD, "greet", "Hello there")
        await self.registry.add(GUILD, "bye", "later")
        interaction = FakeInteraction()
        await self._command("search").callback(interaction, query="HELLO")
        self.assertEqual(interaction.sent[-1]["content"], "!greet: Hello there")

        interaction = FakeInteraction()
        await self._command("search").callback(interaction, query="zzz")
        self.assertEqual(interaction.sent[-1]["content"], "No commands match 'zzz'.")

    async def test_capture_context_menu_opens_form_and_commits(self):
        menu = self.bot.tree.get_command("Save as command", type=discord.AppCommandType.message)
        self.assertIsNotNone(menu)

        message = SimpleNamespace(
            id=555,
            content="look at this",
            attachments=[SimpleNamespace(url="u1")],
        )
        interaction = FakeInteraction(channel=FakeChannel({555: message}))
        await menu.callback(interaction, message)
        modal = interaction.response.modal
        self.assertIsInstance(modal, CaptureNameModal)
        self.assertEqual(modal.custom_id, "capture:555")

        submit = FakeInteraction(channel=FakeChannel({555: message}))
        result = await modal.submit_name(submit, "pic")
        self.assertTrue(result.committed)
        self.assertEqual(submit.sent[-1]["content"], "Added command 'pic'.")
        self.assertEqual((await self.registry.get(GUILD, "pic")).response, "look at this\nu1")

    async def test_capture_of_deleted_message_replies_not_found(self):
        modal = CaptureNameModal(
            flow=self.flow,
            token="capture:999",
            messages=self.messages,
            gates=CommandGates(),
        )
        submit = FakeInteraction(channel=FakeChannel({}))
        result = await modal.submit_name(submit, "gone")
        self.assertFalse(result.committed)
        self.assertEqual(submit.sent[-1]["content"], self.messages.capture_message_not_found)
        self.assertTrue(submit.sent[-1]["ephemeral"])


if __name__ == "__main__":
    unittest.main()
