from __future__ import annotations

import hashlib
import importlib.util
import re
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path


MIGRATION_RE = re.compile(r"^(\d{4})_([a-zA-Z0-9_]+)\.(sql|py)$")


@dataclass(frozen=True, slots=True)
class MigrationFile:
    version: str
    name: str
    ext: str
    path: Path

    @property
    def label(self) -> str:
        return f"{self.version}_{self.name}.{self.ext}"

    def checksum(self) -> str:
        return hashlib.sha256(self.path.read_bytes()).hexdigest()


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _ensure_migration_table(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_migrations (
            version TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            checksum TEXT NOT NULL,
            applied_at_utc TEXT NOT NULL
        )
        """
    )
    conn.commit()


def list_schema_migrations_sync(conn: sqlite3.Connection) -> list[tuple[str, str, str]]:
    """(version, name, applied_at_utc) rows in version order; [] before the first run."""
    try:
        cur = conn.execute(
            "SELECT version, name, applied_at_utc FROM schema_migrations ORDER BY version"
        )
    except sqlite3.OperationalError:
        return []
    return [(str(v), str(n), str(a)) for v, n, a in cur.fetchall()]


def table_columns_sync(conn: sqlite3.Connection, table: str) -> list[str]:
    cur = conn.execute(f"PRAGMA table_info({table})")
    # rows: (cid, name, type, notnull, dflt_value, pk)
    return [r[1] for r in cur.fetchall()]


def missing_columns_sync(conn: sqlite3.Connection, table: str, required: list[str]) -> list[str]:
    cols = set(table_columns_sync(conn, table))
    return [c for c in required if c not in cols]


def discover_migrations(migrations_dir: str | Path) -> list[MigrationFile]:
    base = Path(migrations_dir)
    if not base.exists():
        raise RuntimeError(f"Migrations directory not found: {migrations_dir}")

    found: list[MigrationFile] = []
    for p in sorted(base.iterdir()):
        m = MIGRATION_RE.match(p.name) if p.is_file() else None
        if m:
            found.append(MigrationFile(version=m.group(1), name=m.group(2), ext=m.group(3), path=p))
    return found


def _run_py(conn: sqlite3.Connection, path: Path) -> None:
    spec = importlib.util.spec_from_file_location(f"nkmzbot_migration_{path.stem}", str(path))
    if spec is None or spec.loader is None:
        raise RuntimeError(f"Could not load migration module: {path}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    upgrade = getattr(module, "upgrade", None)
    if not callable(upgrade):
        raise RuntimeError(f"Python migration missing upgrade(conn): {path}")
    upgrade(conn)


def apply_sqlite_migrations(conn: sqlite3.Connection, migrations_dir: str | Path) -> list[str]:
    """Apply every pending migration in version order; return the labels applied.

    A version already recorded under a different name or checksum is a hard
    error: edited migrations must ship as new versions.
    """
    _ensure_migration_table(conn)
    applied = {
        version: (name, checksum)
        for version, name, checksum in conn.execute(
            "SELECT version, name, checksum FROM schema_migrations"
        ).fetchall()
    }

    ran: list[str] = []
    for migration in discover_migrations(migrations_dir):
        checksum = migration.checksum()
        existing = applied.get(migration.version)
        if existing:
            if existing != (migration.name, checksum):
                raise RuntimeError(
                    f"Migration version {migration.version} already applied with different content "
                    f"(existing name={existing[0]}, file name={migration.name})."
                )
            continue

        print(f"[DB] Applying migration {migration.label}")
        if migration.ext == "sql":
            conn.executescript(migration.path.read_text(encoding="utf-8"))
        else:
            _run_py(conn, migration.path)

        conn.execute(
            """
            INSERT INTO schema_migrations (version, name, checksum, applied_at_utc)
            VALUES (?, ?, ?, ?)
            """,
            (migration.version, migration.name, checksum, _utc_now_iso()),
        )
        conn.commit()
        ran.append(migration.label)
    return ran
