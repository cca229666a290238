"""
Persistence layer for MediaWatch state.

SQLite-backed storage for settings (the feed marker), the processed-item
ledger and the dispatch queue.
"""

from .manager import PersistenceManager
from .errors import PersistenceError, LoadError, SaveError
from .settings_store import SettingsStore, MARKER_KEY
from .ledger import ProcessedLedger, item_identity
from .dispatch_queue import DispatchQueue, QueueEntry

__all__ = [
    "PersistenceManager",
    "PersistenceError",
    "LoadError",
    "SaveError",
    "SettingsStore",
    "MARKER_KEY",
    "ProcessedLedger",
    "item_identity",
    "DispatchQueue",
    "QueueEntry",
]
