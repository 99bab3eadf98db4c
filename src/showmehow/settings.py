"""SQLite persistence for unlocked lessons, known spells and clues."""

from __future__ import annotations

import json
import sqlite3
from datetime import UTC, datetime
from pathlib import Path

SCHEMA_VERSION = 1

UNLOCKED_LESSONS = "unlocked-lessons"
KNOWN_SPELLS = "known-spells"
CLUES = "clues"


class SettingsStore:
    """Key/value store holding JSON lists."""

    def __init__(self, db_path: Path | str) -> None:
        """Initialize database and schema."""
        if isinstance(db_path, Path):
            db_path.parent.mkdir(parents=True, exist_ok=True)
            target = str(db_path)
        else:
            target = db_path
        self._conn = sqlite3.connect(target)
        self._conn.row_factory = sqlite3.Row
        self._apply_migrations()

    def _apply_migrations(self) -> None:
        """Apply forward-only schema migrations to latest version."""
        current = int(self._conn.execute("PRAGMA user_version").fetchone()[0])
        if current > SCHEMA_VERSION:
            raise RuntimeError(f"Database schema version {current} is newer than supported {SCHEMA_VERSION}.")

        with self._conn:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS schema_migrations (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT NOT NULL
                )
                """)

        for version in range(current + 1, SCHEMA_VERSION + 1):
            if version == 1:
                self._migrate_to_v1()
            with self._conn:
                self._conn.execute(f"PRAGMA user_version = {version}")
                self._conn.execute(
                    "INSERT OR REPLACE INTO schema_migrations (version, applied_at) VALUES (?, ?)",
                    (version, datetime.now(UTC).isoformat()),
                )

    def _migrate_to_v1(self) -> None:
        with self._conn:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """)

    def _get(self, key: str) -> object:
        row = self._conn.execute("SELECT value FROM settings WHERE key = ?", (key,)).fetchone()
        if row is None:
            return None
        return json.loads(str(row["value"]))

    def _set(self, key: str, value: object) -> None:
        with self._conn:
            self._conn.execute(
                """
                INSERT INTO settings (key, value, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                (key, json.dumps(value), datetime.now(UTC).isoformat()),
            )

    def get_strings(self, key: str) -> list[str]:
        """Return the string list stored under key, empty when unset."""
        value = self._get(key)
        if not isinstance(value, list):
            return []
        return [str(item) for item in value]

    def set_strings(self, key: str, values: list[str]) -> None:
        self._set(key, [str(item) for item in values])

    def get_clues(self) -> list[tuple[str, str]]:
        """Return registered clues as (content, type) pairs."""
        value = self._get(CLUES)
        if not isinstance(value, list):
            return []
        return [(str(item[0]), str(item[1])) for item in value if isinstance(item, list) and len(item) == 2]

    def set_clues(self, clues: list[tuple[str, str]]) -> None:
        self._set(CLUES, [[content, clue_type] for content, clue_type in clues])

    def close(self) -> None:
        """Close db connection."""
        self._conn.close()
