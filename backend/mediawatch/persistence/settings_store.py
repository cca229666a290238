"""
Key-value settings store with explicit commit.

Values set through the store are staged in memory and only reach the
database on commit(), so a batch of settings is written atomically.
"""

import logging
import threading
from typing import Dict, Optional

from .errors import LoadError, PersistenceError, SaveError
from .manager import PersistenceManager

logger = logging.getLogger(__name__)


MARKER_KEY = "last_image_processed_timestamp"


class SettingsStore:
    """
    Settings facade over the persistence manager.

    get_* always reads the last committed value; staged values are invisible
    until commit() succeeds.
    """

    def __init__(self, persistence: PersistenceManager):
        self._persistence = persistence
        self._staged: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        try:
            value = self._persistence.load_setting(key)
        except PersistenceError as e:
            raise LoadError(f"Failed to load setting '{key}': {e}") from e
        return default if value is None else value

    def set(self, key: str, value) -> None:
        with self._lock:
            self._staged[key] = str(value)

    def commit(self) -> None:
        """
        Write all staged values.

        Raises:
            SaveError: The write failed. Staged values are discarded so a
                failed commit never leaks into a later one.
        """
        with self._lock:
            staged, self._staged = self._staged, {}

        if not staged:
            return

        try:
            self._persistence.save_settings(staged)
        except PersistenceError as e:
            raise SaveError(f"Failed to commit settings {sorted(staged)}: {e}") from e

        logger.debug(f"Committed settings: {sorted(staged)}")

    def discard(self) -> None:
        with self._lock:
            self._staged.clear()

    # Marker accessors

    def get_marker(self) -> int:
        """Last processed feed timestamp, 0 if never set."""
        value = self.get(MARKER_KEY)
        if value is None:
            return 0
        try:
            return int(value)
        except ValueError as e:
            raise LoadError(f"Corrupt marker value: {value!r}") from e

    def set_marker(self, timestamp: int) -> None:
        self.set(MARKER_KEY, int(timestamp))

    def reset_marker(self) -> None:
        """Forget the marker entirely. The next sweep reads the whole feed."""
        with self._lock:
            self._staged.pop(MARKER_KEY, None)
        try:
            self._persistence.delete_setting(MARKER_KEY)
        except PersistenceError as e:
            raise SaveError(f"Failed to reset marker: {e}") from e
