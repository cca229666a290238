"""
Dispatch queue.

Ordered, at-least-once destination for item paths. The watcher only
appends; the capture worker claims entries in FIFO order and deletes them
once handled.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from .errors import SaveError, PersistenceError
from .manager import PersistenceManager

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueueEntry:
    id: int
    path: str
    enqueued_at: str


class DispatchQueue:
    """SQLite-backed FIFO queue of absolute paths."""

    def __init__(self, persistence: PersistenceManager):
        self._persistence = persistence

    def enqueue(self, path: str) -> None:
        try:
            entry_id = self._persistence.append_queue_entry(path)
        except PersistenceError as e:
            raise SaveError(f"Failed to enqueue {path}: {e}") from e
        logger.debug(f"Queued entry {entry_id}: {path}")

    def claim(self) -> Optional[QueueEntry]:
        """Claim the oldest unclaimed entry, or None if the queue is drained."""
        row = self._persistence.claim_next_queue_entry()
        if row is None:
            return None
        return QueueEntry(id=row["id"], path=row["path"], enqueued_at=row["enqueued_at"])

    def complete(self, entry: QueueEntry) -> None:
        self._persistence.delete_queue_entry(entry.id)

    def release(self, entry: QueueEntry) -> None:
        """Put a claimed entry back so a later drain retries it."""
        self._persistence.release_queue_entry(entry.id)

    def recover(self) -> int:
        """Unclaim entries left over from an interrupted drain."""
        count = self._persistence.release_all_claims()
        if count:
            logger.info(f"Recovered {count} interrupted queue entr{'y' if count == 1 else 'ies'}")
        return count

    def paths(self) -> List[str]:
        return self._persistence.load_queue_paths()

    def __len__(self) -> int:
        return len(self.paths())
