from __future__ import annotations

import sqlite3


def upgrade(conn: sqlite3.Connection) -> None:
    cur = conn.cursor()
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS guild_commands (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            guild_id INTEGER NOT NULL,
            name TEXT NOT NULL CHECK (length(name) > 0),
            response TEXT NOT NULL,
            UNIQUE (guild_id, name)
        )
        """
    )
    conn.commit()
