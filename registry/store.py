from __future__ import annotations

import sqlite3
from typing import Any

from registry.models import ALREADY_EXISTS
from registry.models import CREATED
from registry.models import FAILED
from registry.models import NOT_FOUND
from registry.models import REMOVED
from registry.models import UPDATED
from registry.models import Command


def _row_to_command(row: sqlite3.Row | tuple[Any, ...] | None) -> Command | None:
    if row is None:
        return None
    return Command(guild_id=int(row[0]), name=str(row[1]), response=str(row[2]))


def _is_unique_violation(exc: sqlite3.IntegrityError) -> bool:
    return "UNIQUE constraint failed" in str(exc)


def get_command_sync(conn: sqlite3.Connection, guild_id: int, name: str) -> Command | None:
    cur = conn.cursor()
    cur.execute(
        """
        SELECT guild_id, name, response
        FROM guild_commands
        WHERE guild_id = ? AND name = ?
        LIMIT 1
        """,
        (int(guild_id), name),
    )
    return _row_to_command(cur.fetchone())


def add_command_sync(conn: sqlite3.Connection, guild_id: int, name: str, response: str) -> str:
    # Plain INSERT: the UNIQUE(guild_id, name) constraint decides races, and a
    # conflict must surface as already_exists rather than a silent no-op.
    cur = conn.cursor()
    try:
        cur.execute(
            """
            INSERT INTO guild_commands (guild_id, name, response)
            VALUES (?, ?, ?)
            """,
            (int(guild_id), name, response),
        )
    except sqlite3.IntegrityError as exc:
        conn.rollback()
        if _is_unique_violation(exc):
            return ALREADY_EXISTS
        print(f"[Registry] add rejected guild={guild_id} name={name!r}: {exc}")
        return FAILED
    conn.commit()
    return CREATED


def update_command_sync(conn: sqlite3.Connection, guild_id: int, name: str, response: str) -> str:
    cur = conn.cursor()
    try:
        cur.execute(
            """
            UPDATE guild_commands
            SET response = ?
            WHERE guild_id = ? AND name = ?
            """,
            (response, int(guild_id), name),
        )
    except sqlite3.Error:
        conn.rollback()
        raise
    conn.commit()
    return UPDATED if cur.rowcount > 0 else NOT_FOUND


def remove_command_sync(conn: sqlite3.Connection, guild_id: int, name: str) -> str:
    cur = conn.cursor()
    try:
        cur.execute(
            "DELETE FROM guild_commands WHERE guild_id = ? AND name = ?",
            (int(guild_id), name),
        )
    except sqlite3.Error:
        conn.rollback()
        raise
    conn.commit()
    return REMOVED if cur.rowcount > 0 else NOT_FOUND


def list_commands_sync(conn: sqlite3.Connection, guild_id: int) -> list[Command]:
    cur = conn.cursor()
    cur.execute(
        """
        SELECT guild_id, name, response
        FROM guild_commands
        WHERE guild_id = ?
        ORDER BY name ASC, id ASC
        """,
        (int(guild_id),),
    )
    return [c for c in (_row_to_command(r) for r in cur.fetchall()) if c is not None]


def search_commands_sync(conn: sqlite3.Connection, guild_id: int, query: str) -> list[Command]:
    needle = (query or "").strip()
    if not needle:
        return list_commands_sync(conn, guild_id)

    # instr() instead of LIKE so '%' and '_' in the query match literally.
    cur = conn.cursor()
    cur.execute(
        """
        SELECT guild_id, name, response
        FROM guild_commands
        WHERE guild_id = ?
          AND (instr(lower(name), lower(?)) > 0 OR instr(lower(response), lower(?)) > 0)
        ORDER BY name ASC, id ASC
        """,
        (int(guild_id), needle, needle),
    )
    rows = [c for c in (_row_to_command(r) for r in cur.fetchall()) if c is not None]

    # sqlite lower() only folds ASCII; catch the remaining case-insensitive hits here.
    if needle.isascii():
        return rows
    folded = needle.casefold()
    matched = {c.name for c in rows}
    for c in list_commands_sync(conn, guild_id):
        if c.name in matched:
            continue
        if folded in c.name.casefold() or folded in c.response.casefold():
            rows.append(c)
    rows.sort(key=lambda c: c.name)
    return rows


def list_guild_ids_sync(conn: sqlite3.Connection) -> set[int]:
    cur = conn.cursor()
    cur.execute("SELECT DISTINCT guild_id FROM guild_commands")
    return {int(r[0]) for r in cur.fetchall()}
