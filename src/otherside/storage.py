"""SQLite persistence for the stage and mute preferences."""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import UTC, datetime
from pathlib import Path

from .models import Stage

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
STAGE_KEY = "paranormalEnigmaStage"
MUTE_KEY = "paranormalEnigmaMuted"


class KeyValueStore:
    """Durable string key-value storage. Errors propagate as ``sqlite3.Error``."""

    def __init__(self, db_path: Path | str) -> None:
        """Open the database and apply schema migrations."""
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
        """Create the preferences table."""
        with self._conn:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS preferences (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """)

    def get(self, key: str) -> str | None:
        """Return the stored value for a key, if any."""
        row = self._conn.execute("SELECT value FROM preferences WHERE key = ?", (key,)).fetchone()
        if row is None:
            return None
        return str(row["value"])

    def set(self, key: str, value: str) -> None:
        """Insert or replace one value."""
        with self._conn:
            self._conn.execute(
                """
                INSERT INTO preferences (key, value, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                (key, value, datetime.now(UTC).isoformat()),
            )

    def delete(self, key: str) -> bool:
        """Remove one key. Returns whether it existed."""
        with self._conn:
            cursor = self._conn.execute("DELETE FROM preferences WHERE key = ?", (key,))
        return cursor.rowcount > 0

    def close(self) -> None:
        """Close db connection."""
        self._conn.close()


class ProgressStore:
    """Typed, fail-open access to the two persisted preferences.

    Loads return a default (``Stage.START`` / ``False``) on a missing key,
    unparseable content or a storage error. Saves log and swallow storage
    errors so the in-memory session keeps going without durability.
    """

    def __init__(self, kv: KeyValueStore) -> None:
        self.kv = kv

    def load_stage(self) -> Stage:
        """Return the persisted stage or ``Stage.START``."""
        try:
            raw = self.kv.get(STAGE_KEY)
        except sqlite3.Error:
            logger.exception("Failed to read stage from storage")
            return Stage.START
        return parse_stage(raw)

    def save_stage(self, stage: Stage) -> bool:
        """Persist the stage index. Returns False when the write failed."""
        try:
            self.kv.set(STAGE_KEY, str(int(stage)))
        except sqlite3.Error:
            logger.exception("Failed to write stage %s to storage", stage.name)
            return False
        return True

    def clear_stage(self) -> bool:
        """Forget persisted progress. Returns False when the delete failed."""
        try:
            self.kv.delete(STAGE_KEY)
        except sqlite3.Error:
            logger.exception("Failed to remove stage from storage")
            return False
        return True

    def load_muted(self) -> bool:
        """Return the persisted mute flag or ``False``."""
        try:
            raw = self.kv.get(MUTE_KEY)
        except sqlite3.Error:
            logger.exception("Failed to read mute state from storage")
            return False
        return parse_muted(raw)

    def save_muted(self, muted: bool) -> bool:
        """Persist the mute flag as ``"true"``/``"false"``."""
        try:
            self.kv.set(MUTE_KEY, json.dumps(bool(muted)))
        except sqlite3.Error:
            logger.exception("Failed to write mute state to storage")
            return False
        return True

    def close(self) -> None:
        """Close the underlying store."""
        try:
            self.kv.close()
        except sqlite3.Error:
            logger.exception("Failed to close storage")


def parse_stage(raw: str | None) -> Stage:
    """Parse a persisted decimal stage index, defaulting to START."""
    if not raw:
        return Stage.START
    try:
        return Stage(int(raw.strip()))
    except ValueError:
        logger.warning("Ignoring invalid persisted stage %r", raw)
        return Stage.START


def parse_muted(raw: str | None) -> bool:
    """Parse a persisted JSON boolean, defaulting to False."""
    if not raw:
        return False
    try:
        value = json.loads(raw)
    except ValueError:
        logger.warning("Ignoring invalid persisted mute state %r", raw)
        return False
    if not isinstance(value, bool):
        logger.warning("Ignoring non-boolean persisted mute state %r", raw)
        return False
    return value


def open_progress_store(db_path: Path | str) -> ProgressStore:
    """Open the progress store, falling back to an in-memory database."""
    try:
        kv = KeyValueStore(db_path)
    except (sqlite3.Error, OSError, RuntimeError):
        logger.exception("Could not open progress database at %s; progress will not persist", db_path)
        kv = KeyValueStore(":memory:")
    return ProgressStore(kv)
