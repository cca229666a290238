"""
Processed-item ledger.

Answers "has this item already been delivered downstream?". The capture
worker writes entries; the watcher only reads them, without locking.
"""

from pathlib import Path
from typing import Union

from .manager import PersistenceManager


def item_identity(path: Union[str, Path]) -> str:
    """Stable identity of an item: its file name."""
    return Path(path).name


class ProcessedLedger:
    """Durable set of processed item identities."""

    def __init__(self, persistence: PersistenceManager):
        self._persistence = persistence

    def have_processed(self, identity: str) -> bool:
        return self._persistence.is_item_processed(identity)

    def mark_processed(self, identity: str, path: str) -> None:
        """
        Record an item as processed.

        Idempotent: marking an identity twice keeps the first record.
        """
        self._persistence.save_processed_item(identity, path)

    def __len__(self) -> int:
        return self._persistence.count_processed_items()
