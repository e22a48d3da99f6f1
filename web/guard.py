from __future__ import annotations

import hmac
import secrets
from dataclasses import dataclass
from typing import Awaitable, Callable

from config.defaults import CSRF_TOKEN_BYTES
from web.discord_api import DiscordApiError
from web.discord_api import UserGuild
from web.session import open_value

FetchUserGuilds = Callable[[str], Awaitable[list[UserGuild]]]

# AuthorizationFailure reasons
CSRF_MISMATCH = "csrf_mismatch"
UNAUTHENTICATED = "unauthenticated"
NOT_A_MEMBER = "not_a_member"
MEMBERSHIP_LOOKUP_FAILED = "membership_lookup_failed"


class AuthorizationFailure(Exception):
    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


@dataclass(frozen=True, slots=True)
class GuildAuthorization:
    guild_id: int
    guild_name: str
    access_token: str


def issue_csrf_token() -> str:
    return secrets.token_urlsafe(CSRF_TOKEN_BYTES)


def csrf_matches(cookie_token: str | None, submitted_token: str | None) -> bool:
    if not cookie_token or not submitted_token:
        return False
    return hmac.compare_digest(cookie_token.encode("utf-8"), submitted_token.encode("utf-8"))


def require_csrf(cookie_token: str | None, submitted_token: str | None) -> None:
    if not csrf_matches(cookie_token, submitted_token):
        raise AuthorizationFailure(CSRF_MISMATCH)


def open_session(session_key: bytes, session_cookie: str | None) -> str:
    access_token = open_value(session_key, session_cookie)
    if not access_token:
        raise AuthorizationFailure(UNAUTHENTICATED)
    return access_token


async def authorize_guild_member(
    *,
    session_key: bytes,
    session_cookie: str | None,
    guild_id: int,
    fetch_user_guilds: FetchUserGuilds,
) -> GuildAuthorization:
    access_token = open_session(session_key, session_cookie)
    try:
        guilds = await fetch_user_guilds(access_token)
    except DiscordApiError as exc:
        print(f"[Web] guild lookup failed: {exc}")
        raise AuthorizationFailure(MEMBERSHIP_LOOKUP_FAILED) from exc

    for guild in guilds:
        if guild.id == int(guild_id):
            return GuildAuthorization(guild_id=guild.id, guild_name=guild.name, access_token=access_token)
    raise AuthorizationFailure(NOT_A_MEMBER)
