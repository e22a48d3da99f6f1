from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import aiohttp

from config.defaults import DASHBOARD_USER_AGENT
from config.defaults import DISCORD_API_BASE


class DiscordApiError(RuntimeError):
    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


@dataclass(frozen=True, slots=True)
class UserGuild:
    id: int
    name: str
    owner: bool = False


def parse_user_guilds(payload: Any) -> list[UserGuild]:
    if not isinstance(payload, list):
        raise DiscordApiError("unexpected guild list payload")
    out: list[UserGuild] = []
    for item in payload:
        if not isinstance(item, dict):
            continue
        raw_id = str(item.get("id") or "")
        if not raw_id.isdigit():
            continue
        out.append(
            UserGuild(
                id=int(raw_id),
                name=str(item.get("name") or ""),
                owner=bool(item.get("owner")),
            )
        )
    return out


async def fetch_user_guilds(
    access_token: str,
    *,
    session: aiohttp.ClientSession | None = None,
    api_base: str = DISCORD_API_BASE,
) -> list[UserGuild]:
    headers = {
        "Authorization": f"Bearer {access_token}",
        "User-Agent": DASHBOARD_USER_AGENT,
        "Accept": "application/json",
    }
    url = f"{api_base}/users/@me/guilds"
    owns_session = session is None
    http = session or aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=15))
    try:
        async with http.get(url, headers=headers) as resp:
            if resp.status >= 400:
                body = (await resp.text())[:200]
                raise DiscordApiError(f"GET /users/@me/guilds -> {resp.status}: {body}", status=resp.status)
            payload = await resp.json()
    except aiohttp.ClientError as exc:
        raise DiscordApiError(f"GET /users/@me/guilds failed: {exc}") from exc
    finally:
        if owns_session:
            await http.close()
    return parse_user_guilds(payload)
