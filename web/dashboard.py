from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from registry.models import ALREADY_EXISTS
from registry.models import CREATED
from registry.models import FAILED
from registry.models import NOT_FOUND
from registry.models import REMOVED
from registry.models import UPDATED
from registry.models import Command
from registry.models import normalize_command_name
from web.discord_api import DiscordApiError
from web.discord_api import UserGuild
from web.guard import AuthorizationFailure
from web.guard import FetchUserGuilds
from web.guard import MEMBERSHIP_LOOKUP_FAILED
from web.guard import authorize_guild_member
from web.guard import open_session
from web.guard import require_csrf

UNAUTHORIZED = "unauthorized"
INVALID_INPUT = "invalid_input"

_HTTP_STATUS = {
    CREATED: 303,
    UPDATED: 303,
    REMOVED: 303,
    ALREADY_EXISTS: 409,
    NOT_FOUND: 404,
    INVALID_INPUT: 400,
    UNAUTHORIZED: 403,
    FAILED: 502,
}


@dataclass(frozen=True, slots=True)
class DashboardRequest:
    session_cookie: str | None
    csrf_cookie: str | None = None


@dataclass(frozen=True, slots=True)
class DashboardResult:
    outcome: str
    reason: str | None = None
    removed: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.outcome in {CREATED, UPDATED, REMOVED}

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS.get(self.outcome, 400)


@dataclass(frozen=True, slots=True)
class CommandsPage:
    guild_id: int
    guild_name: str
    query: str
    commands: list[Command]
    csrf: str | None


class CommandDashboard:
    """Web-side operations over the registry.

    Every state-changing call checks the CSRF token, then guild membership,
    and only then reaches the registry. Rejections say nothing about whether
    the guild has any commands.
    """

    def __init__(self, *, registry, session_key: bytes, fetch_user_guilds: FetchUserGuilds) -> None:
        self.registry = registry
        self.session_key = session_key
        self.fetch_user_guilds = fetch_user_guilds

    async def _authorize(self, request: DashboardRequest, guild_id: int):
        return await authorize_guild_member(
            session_key=self.session_key,
            session_cookie=request.session_cookie,
            guild_id=int(guild_id),
            fetch_user_guilds=self.fetch_user_guilds,
        )

    async def _guard_write(self, request: DashboardRequest, guild_id: int, csrf: str | None) -> DashboardResult | None:
        try:
            require_csrf(request.csrf_cookie, csrf)
            await self._authorize(request, guild_id)
        except AuthorizationFailure as exc:
            print(f"[Web] write rejected guild={guild_id} reason={exc.reason}")
            return DashboardResult(outcome=UNAUTHORIZED, reason=exc.reason)
        return None

    async def list_guilds(self, request: DashboardRequest) -> list[UserGuild]:
        """Guilds the user belongs to that already have commands."""
        access_token = open_session(self.session_key, request.session_cookie)
        try:
            guilds = await self.fetch_user_guilds(access_token)
        except DiscordApiError as exc:
            print(f"[Web] guild lookup failed: {exc}")
            raise AuthorizationFailure(MEMBERSHIP_LOOKUP_FAILED) from exc
        known = await self.registry.list_guild_ids()
        return [g for g in guilds if g.id in known]

    async def view_commands(self, request: DashboardRequest, guild_id: int, query: str | None = None) -> CommandsPage:
        auth = await self._authorize(request, guild_id)
        q = (query or "").strip()
        if q:
            commands = await self.registry.search(auth.guild_id, q)
        else:
            commands = await self.registry.list(auth.guild_id)
        return CommandsPage(
            guild_id=auth.guild_id,
            guild_name=auth.guild_name,
            query=q,
            commands=commands,
            csrf=request.csrf_cookie,
        )

    async def add_command(
        self,
        request: DashboardRequest,
        guild_id: int,
        *,
        name: str,
        response: str,
        csrf: str | None,
    ) -> DashboardResult:
        rejected = await self._guard_write(request, guild_id, csrf)
        if rejected:
            return rejected
        clean_name = normalize_command_name(name)
        if clean_name is None or not (response or "").strip():
            return DashboardResult(outcome=INVALID_INPUT, reason="name and response are required")
        return DashboardResult(outcome=await self.registry.add(int(guild_id), clean_name, response))

    async def update_command(
        self,
        request: DashboardRequest,
        guild_id: int,
        *,
        name: str,
        response: str,
        csrf: str | None,
    ) -> DashboardResult:
        rejected = await self._guard_write(request, guild_id, csrf)
        if rejected:
            return rejected
        clean_name = normalize_command_name(name)
        if clean_name is None or not (response or "").strip():
            return DashboardResult(outcome=INVALID_INPUT, reason="name and response are required")
        return DashboardResult(outcome=await self.registry.update(int(guild_id), clean_name, response))

    async def bulk_delete(
        self,
        request: DashboardRequest,
        guild_id: int,
        *,
        names: Iterable[str] | None,
        csrf: str | None,
    ) -> DashboardResult:
        rejected = await self._guard_write(request, guild_id, csrf)
        if rejected:
            return rejected
        selected = [n for n in (names or []) if n]
        if not selected:
            return DashboardResult(outcome=REMOVED)
        results = await self.registry.remove_many(int(guild_id), selected)
        outcome = FAILED if FAILED in results.values() else REMOVED
        return DashboardResult(outcome=outcome, removed=results)
