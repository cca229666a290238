"""
SQLite persistence manager for MediaWatch state.

Single-file SQLite database shared by the watcher and the capture worker.
Every operation opens its own connection, so the manager is safe to use from
the sweep-runner thread and the drain thread at the same time.
"""

import sqlite3
from pathlib import Path
from typing import Dict, List, Optional
from datetime import datetime
from contextlib import contextmanager

from .errors import PersistenceError


# Database schema version for migrations
SCHEMA_VERSION = 1


class PersistenceManager:
    """
    Manages SQLite persistence for MediaWatch.

    Stores:
    - Settings (string key -> scalar value), including the feed marker
    - Processed items (the ledger, keyed by item identity)
    - Dispatch queue entries awaiting the capture worker

    Does NOT store:
    - Media index rows (owned by the external index)
    - Captured output files
    """

    def __init__(self, db_path: Optional[str] = None, timeout: float = 5.0):
        """
        Initialize persistence manager.

        Args:
            db_path: Path to SQLite database file (defaults to ./mediawatch.db)
            timeout: Seconds to wait on a locked database before failing
        """
        if db_path is None:
            db_path = str(Path.cwd() / "mediawatch.db")

        self.db_path = db_path
        self.timeout = timeout
        self._ensure_schema()

    @contextmanager
    def _connect(self):
        """Context manager for database connections."""
        try:
            conn = sqlite3.connect(self.db_path, timeout=self.timeout)
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot open database {self.db_path}: {e}") from e
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception as e:
            conn.rollback()
            raise PersistenceError(f"Database operation failed: {e}") from e
        finally:
            conn.close()

    def _ensure_schema(self):
        """Create schema if it doesn't exist."""
        with self._connect() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT NOT NULL
                )
            """)

            cursor.execute("SELECT version FROM schema_version ORDER BY version DESC LIMIT 1")
            row = cursor.fetchone()
            current_version = row[0] if row else 0

            if current_version < SCHEMA_VERSION:
                self._migrate_schema(conn, current_version)

    def _migrate_schema(self, conn, from_version: int):
        """Apply schema migrations."""
        cursor = conn.cursor()

        if from_version < 1:
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS processed_items (
                    identity TEXT PRIMARY KEY,
                    path TEXT NOT NULL,
                    processed_at TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS dispatch_queue (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    path TEXT NOT NULL,
                    enqueued_at TEXT NOT NULL,
                    claimed_at TEXT
                )
            """)

            cursor.execute(
                "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
                (1, datetime.now().isoformat())
            )

    # Settings

    def save_settings(self, values: Dict[str, str]):
        """Write several settings in one transaction."""
        now = datetime.now().isoformat()
        with self._connect() as conn:
            cursor = conn.cursor()
            for key, value in values.items():
                cursor.execute("""
                    INSERT INTO settings (key, value, updated_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        updated_at = excluded.updated_at
                """, (key, str(value), now))

    def load_setting(self, key: str) -> Optional[str]:
        """Load a single setting value, or None if unset."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT value FROM settings WHERE key = ?", (key,))
            row = cursor.fetchone()
            return row["value"] if row else None

    def delete_setting(self, key: str):
        with self._connect() as conn:
            conn.execute("DELETE FROM settings WHERE key = ?", (key,))

    # Processed items tracking

    def save_processed_item(self, identity: str, path: str):
        """Mark an item identity as processed."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                INSERT INTO processed_items (identity, path, processed_at)
                VALUES (?, ?, ?)
                ON CONFLICT(identity) DO NOTHING
            """, (identity, path, datetime.now().isoformat()))

    def is_item_processed(self, identity: str) -> bool:
        """Check if an item identity has been processed."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT 1 FROM processed_items WHERE identity = ?", (identity,))
            return cursor.fetchone() is not None

    def count_processed_items(self) -> int:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT COUNT(*) FROM processed_items")
            return cursor.fetchone()[0]

    # Dispatch queue

    def append_queue_entry(self, path: str) -> int:
        """Append a path to the dispatch queue. Returns the entry id."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "INSERT INTO dispatch_queue (path, enqueued_at) VALUES (?, ?)",
                (path, datetime.now().isoformat())
            )
            return cursor.lastrowid

    def claim_next_queue_entry(self) -> Optional[Dict]:
        """
        Claim the oldest unclaimed queue entry.

        Claiming marks the entry so a concurrent drain does not pick it up
        again. Returns None when nothing is left to claim.
        """
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("BEGIN IMMEDIATE")
            cursor.execute("""
                SELECT id, path, enqueued_at FROM dispatch_queue
                WHERE claimed_at IS NULL
                ORDER BY id ASC LIMIT 1
            """)
            row = cursor.fetchone()
            if not row:
                return None

            cursor.execute(
                "UPDATE dispatch_queue SET claimed_at = ? WHERE id = ?",
                (datetime.now().isoformat(), row["id"])
            )
            return {
                "id": row["id"],
                "path": row["path"],
                "enqueued_at": row["enqueued_at"],
            }

    def release_queue_entry(self, entry_id: int):
        """Return a claimed entry to the queue for a later drain."""
        with self._connect() as conn:
            conn.execute(
                "UPDATE dispatch_queue SET claimed_at = NULL WHERE id = ?",
                (entry_id,)
            )

    def delete_queue_entry(self, entry_id: int):
        with self._connect() as conn:
            conn.execute("DELETE FROM dispatch_queue WHERE id = ?", (entry_id,))

    def release_all_claims(self) -> int:
        """Unclaim entries left behind by an interrupted drain."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("UPDATE dispatch_queue SET claimed_at = NULL WHERE claimed_at IS NOT NULL")
            return cursor.rowcount

    def load_queue_paths(self) -> List[str]:
        """Load all queued paths in FIFO order."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT path FROM dispatch_queue ORDER BY id ASC")
            return [row["path"] for row in cursor.fetchall()]
