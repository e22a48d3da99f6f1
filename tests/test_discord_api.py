from __future__ import annotations

import unittest

try:
    import aiohttp
except ModuleNotFoundError:
    aiohttp = None

if aiohttp is not None:
    from web.discord_api import DiscordApiError
    from web.discord_api import UserGuild
    from web.discord_api import fetch_user_guilds
    from web.discord_api import parse_user_guilds


class FakeResponse:
    def __init__(self, status: int, payload):
        self.status = status
        self.payload = payload

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def text(self):
        return str(self.payload)

    async def json(self):
        return self.payload


class FakeSession:
    def __init__(self, response: FakeResponse):
        self.response = response
        self.requests: list[tuple[str, dict]] = []
        self.closed = False

    def get(self, url, headers=None):
        self.requests.append((url, dict(headers or {})))
        return self.response

    async def close(self):
        self.closed = True


@unittest.skipIf(aiohttp is None, "aiohttp not installed")
class DiscordApiTests(unittest.IsolatedAsyncioTestCase):
    def test_parse_skips_malformed_entries(self):
        guilds = parse_user_guilds(
            [
                {"id": "10", "name": "Home", "owner": True},
                {"id": "not-a-number", "name": "Bad"},
                "junk",
                {"id": "20"},
            ]
        )
        self.assertEqual(guilds, [UserGuild(id=10, name="Home", owner=True), UserGuild(id=20, name="")])

    def test_parse_rejects_non_list(self):
        with self.assertRaises(DiscordApiError):
            parse_user_guilds({"message": "401: Unauthorized"})

    async def test_fetch_sends_bearer_token(self):
        session = FakeSession(FakeResponse(200, [{"id": "10", "name": "Home"}]))
        guilds = await fetch_user_guilds("tok", session=session, api_base="https://api.test")
        self.assertEqual([g.id for g in guilds], [10])
        url, headers = session.requests[0]
        self.assertEqual(url, "https://api.test/users/@me/guilds")
        self.assertEqual(headers["Authorization"], "Bearer tok")
        self.assertFalse(session.closed)

    async def test_fetch_error_status_raises(self):
        session = FakeSession(FakeResponse(401, {"message": "401: Unauthorized"}))
        with self.assertRaises(DiscordApiError) as ctx:
            await fetch_user_guilds("tok", session=session)
        self.assertEqual(ctx.exception.status, 401)


if __name__ == "__main__":
    unittest.main()
