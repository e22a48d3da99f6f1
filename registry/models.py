from __future__ import annotations

from dataclasses import dataclass

from config.defaults import COMMAND_NAME_MAX_LEN
from config.defaults import COMMAND_NAME_MIN_LEN

# Store outcomes. Expected results are returned, never raised.
CREATED = "created"
ALREADY_EXISTS = "already_exists"
UPDATED = "updated"
REMOVED = "removed"
NOT_FOUND = "not_found"
FAILED = "failed"

ADD_OUTCOMES = {CREATED, ALREADY_EXISTS, FAILED}
UPDATE_OUTCOMES = {UPDATED, NOT_FOUND, FAILED}
REMOVE_OUTCOMES = {REMOVED, NOT_FOUND, FAILED}


class CommandStoreError(RuntimeError):
    """Storage was unreachable or returned something other than a uniqueness conflict."""


@dataclass(frozen=True, slots=True)
class Command:
    guild_id: int
    name: str
    response: str


def normalize_command_name(raw: str | None) -> str | None:
    name = str(raw or "").strip()
    if not (COMMAND_NAME_MIN_LEN <= len(name) <= COMMAND_NAME_MAX_LEN):
        return None
    return name
