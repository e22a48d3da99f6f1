from __future__ import annotations

import asyncio
import copy
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable

from registry.schema import CANONICAL_COMMAND_SCHEMA
from registry.schema import CommandDescriptor
from registry.schema import schema_payload

ReplaceGuildCommands = Callable[[int, list[dict[str, Any]]], Awaitable[Any]]


@dataclass(frozen=True, slots=True)
class SyncResult:
    guild_id: int
    ok: bool
    registered: int = 0
    error: str | None = None


class CommandSyncManager:
    """Keeps each guild's registered application commands equal to the schema.

    Reconciliation is a full replace (Discord's bulk overwrite), never a
    diff: repeating it, or running it twice at once for the same guild, lands
    on the same registered set and wipes out any drift left behind by manual
    edits or an older schema.
    """

    def __init__(
        self,
        *,
        replace_guild_commands: ReplaceGuildCommands,
        schema: tuple[CommandDescriptor, ...] = CANONICAL_COMMAND_SCHEMA,
    ) -> None:
        self.replace_guild_commands = replace_guild_commands
        self.schema = tuple(schema)
        self._payload = schema_payload(self.schema)

    def payload(self) -> list[dict[str, Any]]:
        # Transports may mutate the list they are handed.
        return copy.deepcopy(self._payload)

    async def reconcile(self, guild_id: int) -> SyncResult:
        guild_id = int(guild_id)
        try:
            registered = await self.replace_guild_commands(guild_id, self.payload())
        except Exception as exc:
            print(f"[Sync] guild={guild_id} reconcile failed: {exc}")
            return SyncResult(guild_id=guild_id, ok=False, error=str(exc) or type(exc).__name__)

        count = len(registered) if isinstance(registered, list) else len(self._payload)
        print(f"[Sync] guild={guild_id} registered={count}")
        return SyncResult(guild_id=guild_id, ok=True, registered=count)

    async def reconcile_many(self, guild_ids: Iterable[int]) -> list[SyncResult]:
        unique_ids = list(dict.fromkeys(int(g) for g in guild_ids))
        if not unique_ids:
            return []
        results = await asyncio.gather(*(self.reconcile(g) for g in unique_ids))
        failed = [r.guild_id for r in results if not r.ok]
        print(f"[Sync] reconciled guilds={len(results)} failed={len(failed)}")
        return list(results)
