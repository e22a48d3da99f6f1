from __future__ import annotations

import asyncio
import sqlite3
import unittest
from pathlib import Path
from types import SimpleNamespace

from db.migrate import apply_sqlite_migrations
from registry.capture import ABANDONED
from registry.capture import AWAITING_NAME
from registry.capture import COMMITTED
from registry.capture import EMPTY_MESSAGE
from registry.capture import INVALID_NAME
from registry.capture import INVALID_TOKEN
from registry.capture import MESSAGE_NOT_FOUND
from registry.capture import NO_GUILD
from registry.capture import CaptureFlow
from registry.capture import issue_capture_token
from registry.capture import resolve_capture_token
from registry.capture import synthesize_capture_response
from registry.models import ALREADY_EXISTS
from registry.models import CREATED
from registry.models import FAILED
from registry.service import CommandRegistry
from web.session import derive_session_key
from web.session import seal_value

MIGRATIONS_DIR = Path(__file__).resolve().parents[1] / "migrations"
GUILD = 42


def _message(content: str, urls: list[str] | None = None):
    return SimpleNamespace(
        content=content,
        attachments=[SimpleNamespace(url=u) for u in (urls or [])],
    )


class CaptureTokenTests(unittest.TestCase):
    def test_unsealed_token_round_trip(self):
        token = issue_capture_token(987654321)
        self.assertEqual(token, "capture:987654321")
        self.assertEqual(resolve_capture_token(token), 987654321)

    def test_sealed_token_round_trip(self):
        key = derive_session_key("s3cret")
        token = issue_capture_token(987654321, key=key)
        self.assertTrue(token.startswith("capture:s:"))
        self.assertEqual(resolve_capture_token(token, key=key), 987654321)

    def test_tampered_or_forged_tokens_are_rejected(self):
        key = derive_session_key("s3cret")
        token = issue_capture_token(987654321, key=key)
        body = token[len("capture:s:"):]
        tampered = "capture:s:" + ("B" if body[0] != "B" else "C") + body[1:]
        self.assertIsNone(resolve_capture_token(tampered, key=key))
        self.assertIsNone(resolve_capture_token("capture:987654321", key=key))
        self.assertIsNone(resolve_capture_token(token, key=derive_session_key("other")))

    def test_malformed_tokens_are_rejected(self):
        for token in (
            None,
            "",
            "987654321",
            "capture:",
            "capture:abc",
            "other:123",
            "capture:s:xyz",
            "capture:\u00b2",
            "capture:\uff11\uff12",
            "capture:\u0661\u0662",
        ):
            self.assertIsNone(resolve_capture_token(token), token)

    def test_sealed_value_without_capture_prefix_is_rejected(self):
        key = derive_session_key("s3cret")
        # A bare sealed id (e.g. a session value sealed with the same key) is not a capture ref.
        self.assertIsNone(resolve_capture_token("capture:s:" + seal_value(key, "987654321"), key=key))
        self.assertIsNone(resolve_capture_token("capture:s:" + seal_value(key, "capture:\u00b2"), key=key))

    def test_synthesized_response_appends_urls_in_order(self):
        self.assertEqual(synthesize_capture_response("look", ["u1", "u2"]), "look\nu1\nu2")
        self.assertEqual(synthesize_capture_response("", ["u1"]), "u1")
        self.assertEqual(synthesize_capture_response("only text", []), "only text")
        self.assertEqual(synthesize_capture_response(None, []), "")


class CaptureFlowTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.conn = sqlite3.connect(":memory:", check_same_thread=False)
        apply_sqlite_migrations(self.conn, MIGRATIONS_DIR)
        self.registry = CommandRegistry(db_lock=asyncio.Lock(), db_conn=self.conn)
        self.flow = CaptureFlow(registry=self.registry)
        self.messages = {555: _message("look at this", ["u1"])}
        self.fetched: list[int] = []

    async def asyncTearDown(self):
        self.conn.close()

    async def _fetch(self, message_id: int):
        self.fetched.append(message_id)
        return self.messages.get(message_id)

    async def _complete(self, token: str, name: str, *, guild_id=GUILD, flow=None):
        return await (flow or self.flow).complete(
            guild_id=guild_id,
            token=token,
            name=name,
            fetch_message=self._fetch,
        )

    async def test_end_to_end_capture_commits_body_and_attachment(self):
        ticket = self.flow.begin(guild_id=GUILD, message_id=555)
        self.assertEqual(ticket.state, AWAITING_NAME)

        result = await self._complete(ticket.token, "pic")

        self.assertEqual(result.state, COMMITTED)
        self.assertEqual(result.outcome, CREATED)
        self.assertTrue(result.committed)
        stored = await self.registry.get(GUILD, "pic")
        self.assertEqual(stored.response, "look at this\nu1")

    async def test_existing_name_is_reported_and_not_mutated(self):
        await self.registry.add(GUILD, "pic", "original")
        ticket = self.flow.begin(guild_id=GUILD, message_id=555)

        result = await self._complete(ticket.token, "pic")

        self.assertEqual(result.state, ABANDONED)
        self.assertEqual(result.outcome, ALREADY_EXISTS)
        self.assertEqual((await self.registry.get(GUILD, "pic")).response, "original")

    async def test_resubmitting_the_same_form_reports_already_exists(self):
        ticket = self.flow.begin(guild_id=GUILD, message_id=555)
        first = await self._complete(ticket.token, "pic")
        self.messages[555] = _message("edited later")
        second = await self._complete(ticket.token, "pic")

        self.assertEqual(first.outcome, CREATED)
        self.assertEqual(second.outcome, ALREADY_EXISTS)
        self.assertEqual((await self.registry.get(GUILD, "pic")).response, "look at this\nu1")

    async def test_message_is_refetched_in_stage_two(self):
        ticket = self.flow.begin(guild_id=GUILD, message_id=555)
        self.messages[555] = _message("edited body")
        result = await self._complete(ticket.token, "edited")
        self.assertEqual(self.fetched, [555])
        self.assertEqual(result.response, "edited body")

    async def test_deleted_message_abandons(self):
        ticket = self.flow.begin(guild_id=GUILD, message_id=999)
        result = await self._complete(ticket.token, "gone")
        self.assertEqual((result.state, result.outcome), (ABANDONED, MESSAGE_NOT_FOUND))
        self.assertIsNone(await self.registry.get(GUILD, "gone"))

    async def test_fetch_error_abandons_as_failed(self):
        async def broken_fetch(message_id):
            raise ConnectionError("gateway down")

        ticket = self.flow.begin(guild_id=GUILD, message_id=555)
        result = await self.flow.complete(
            guild_id=GUILD, token=ticket.token, name="x", fetch_message=broken_fetch
        )
        self.assertEqual(result.outcome, FAILED)

    async def test_empty_message_abandons(self):
        self.messages[556] = _message("")
        ticket = self.flow.begin(guild_id=GUILD, message_id=556)
        result = await self._complete(ticket.token, "blank")
        self.assertEqual(result.outcome, EMPTY_MESSAGE)

    async def test_attachment_only_message_is_captured(self):
        self.messages[557] = _message("", ["https://cdn.example/a.png", "https://cdn.example/b.png"])
        ticket = self.flow.begin(guild_id=GUILD, message_id=557)
        await self._complete(ticket.token, "imgs")
        stored = await self.registry.get(GUILD, "imgs")
        self.assertEqual(stored.response, "https://cdn.example/a.png\nhttps://cdn.example/b.png")

    async def test_invalid_name_and_token(self):
        ticket = self.flow.begin(guild_id=GUILD, message_id=555)
        self.assertEqual((await self._complete(ticket.token, "   ")).outcome, INVALID_NAME)
        self.assertEqual((await self._complete(ticket.token, "x" * 51)).outcome, INVALID_NAME)
        self.assertEqual((await self._complete("capture:nope", "ok")).outcome, INVALID_TOKEN)
        self.assertEqual(self.fetched, [])

    async def test_unicode_digit_token_is_invalid_not_a_crash(self):
        for token in ("capture:\u00b2", "capture:\uff15\uff15\uff15"):
            result = await self._complete(token, "pic")
            self.assertEqual((result.state, result.outcome), (ABANDONED, INVALID_TOKEN))
        self.assertEqual(self.fetched, [])
        self.assertIsNone(await self.registry.get(GUILD, "pic"))

    async def test_no_guild_context(self):
        ticket = self.flow.begin(guild_id=None, message_id=555)
        self.assertEqual((ticket.state, ticket.outcome, ticket.token), (ABANDONED, NO_GUILD, None))
        result = await self._complete("capture:555", "pic", guild_id=None)
        self.assertEqual(result.outcome, NO_GUILD)

    async def test_sealed_flow_rejects_plain_tokens(self):
        sealed = CaptureFlow(registry=self.registry, token_key=derive_session_key("k"))
        ticket = sealed.begin(guild_id=GUILD, message_id=555)
        ok = await self._complete(ticket.token, "pic", flow=sealed)
        forged = await self._complete("capture:555", "pic2", flow=sealed)
        self.assertEqual(ok.outcome, CREATED)
        self.assertEqual(forged.outcome, INVALID_TOKEN)


if __name__ == "__main__":
    unittest.main()
