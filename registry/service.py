from __future__ import annotations

import asyncio
import sqlite3
from typing import Iterable

from registry.models import FAILED
from registry.models import Command
from registry.models import CommandStoreError
from registry.store import add_command_sync
from registry.store import get_command_sync
from registry.store import list_commands_sync
from registry.store import list_guild_ids_sync
from registry.store import remove_command_sync
from registry.store import search_commands_sync
from registry.store import update_command_sync


class CommandRegistry:
    """Async boundary over the guild_commands table.

    Every call takes ``db_lock`` and runs the sqlite work on a worker thread,
    so handlers on the event loop never block on disk. Mutations report
    storage failures as the ``failed`` outcome; reads raise
    :class:`CommandStoreError`.
    """

    def __init__(self, *, db_lock: asyncio.Lock, db_conn: sqlite3.Connection) -> None:
        self.db_lock = db_lock
        self.db_conn = db_conn

    async def _read(self, label: str, fn, *args):
        try:
            async with self.db_lock:
                return await asyncio.to_thread(fn, self.db_conn, *args)
        except sqlite3.Error as exc:
            print(f"[Registry] {label} failed: {exc}")
            raise CommandStoreError(f"{label} failed") from exc

    async def _mutate(self, label: str, fn, *args) -> str:
        try:
            async with self.db_lock:
                return await asyncio.to_thread(fn, self.db_conn, *args)
        except sqlite3.Error as exc:
            print(f"[Registry] {label} failed: {exc}")
            return FAILED

    async def get(self, guild_id: int, name: str) -> Command | None:
        return await self._read("get", get_command_sync, int(guild_id), name)

    async def add(self, guild_id: int, name: str, response: str) -> str:
        return await self._mutate("add", add_command_sync, int(guild_id), name, response)

    async def update(self, guild_id: int, name: str, response: str) -> str:
        return await self._mutate("update", update_command_sync, int(guild_id), name, response)

    async def remove(self, guild_id: int, name: str) -> str:
        return await self._mutate("remove", remove_command_sync, int(guild_id), name)

    async def remove_many(self, guild_id: int, names: Iterable[str]) -> dict[str, str]:
        out: dict[str, str] = {}
        for name in names:
            if name in out:
                continue
            out[name] = await self.remove(guild_id, name)
        return out

    async def list(self, guild_id: int) -> list[Command]:
        return await self._read("list", list_commands_sync, int(guild_id))

    async def search(self, guild_id: int, query: str) -> list[Command]:
        return await self._read("search", search_commands_sync, int(guild_id), query)

    async def list_guild_ids(self) -> set[int]:
        return await self._read("list_guild_ids", list_guild_ids_sync)
