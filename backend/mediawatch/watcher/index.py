"""
Media index sources.

A media index is the external, append-mostly catalogue the watcher polls.
Every source exposes query(), a context manager yielding FeedRow objects
sorted by add time, newest first. The cursor is released when the `with`
block exits, whatever the exit path.
"""

import logging
import mimetypes
import os
import sqlite3
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Set

from pydantic import ValidationError

from .errors import FeedUnavailableError
from .models import FeedRow

logger = logging.getLogger(__name__)


# Media file extensions reported by directory indexes
MEDIA_EXTENSIONS: Set[str] = {
    ".jpg", ".jpeg", ".png", ".gif", ".heic", ".heif", ".webp", ".tif", ".tiff", ".dng",
    ".mov", ".mp4", ".m4v", ".avi", ".mkv", ".mxf",
}


class MediaIndex(ABC):
    """Queryable catalogue of media entries."""

    @abstractmethod
    def query(
        self, source_uri: str, sort: str = "added_at DESC", since: Optional[int] = None
    ):
        """
        Open a cursor over the index.

        Args:
            source_uri: Which collection to read
            sort: Requested ordering; only "added_at DESC" is required
            since: Optional hint; sources may omit rows at or below it

        Returns:
            Context manager yielding an iterator of FeedRow

        Raises:
            FeedUnavailableError: The index cannot be opened
        """


class DirectoryMediaIndex(MediaIndex):
    """
    Media index built from directory trees on the local filesystem.

    Each media file is reported with the later of its modification and
    status-change times, in integer nanoseconds, as its add time. On POSIX
    systems this moves forward when a file is copied or moved into a watched
    directory, and files landing within the same second stay distinct.
    Skips hidden files and directories and, by default, symlinks.
    """

    def __init__(
        self,
        roots: Sequence[str],
        recursive: bool = True,
        skip_hidden: bool = True,
        follow_symlinks: bool = False,
        extensions: Optional[Set[str]] = None,
    ):
        self.roots = [Path(r).expanduser() for r in roots]
        self.recursive = recursive
        self.skip_hidden = skip_hidden
        self.follow_symlinks = follow_symlinks
        self.extensions = {e.lower() for e in (extensions or MEDIA_EXTENSIONS)}

    @contextmanager
    def query(self, source_uri, sort="added_at DESC", since=None):
        rows = self._collect(since)
        yield iter(rows)

    def _collect(self, since: Optional[int]) -> List[FeedRow]:
        rows: List[FeedRow] = []
        for root in self.roots:
            if not root.is_dir():
                raise FeedUnavailableError(f"Media root is not an accessible directory: {root}")

            try:
                walker = root.rglob("*") if self.recursive else root.iterdir()
                for item in walker:
                    row = self._row_for(root, item)
                    if row is None:
                        continue
                    if since is not None and row.added_at <= since:
                        continue
                    rows.append(row)
            except OSError as e:
                raise FeedUnavailableError(f"Failed to scan media root {root}: {e}") from e

        rows.sort(key=lambda r: (r.added_at, r.path), reverse=True)
        return rows

    def _row_for(self, root: Path, item: Path) -> Optional[FeedRow]:
        if item.is_symlink() and not self.follow_symlinks:
            return None

        if self.skip_hidden:
            relative = item.relative_to(root)
            if any(part.startswith(".") for part in relative.parts):
                return None

        if item.suffix.lower() not in self.extensions:
            return None

        try:
            st = item.stat()
        except OSError:
            # File vanished between listing and stat
            return None

        mime_type, _ = mimetypes.guess_type(item.name)
        return FeedRow(
            path=str(item.absolute()),
            mime_type=mime_type,
            added_at=max(st.st_mtime_ns, st.st_ctime_ns),
        )


class SQLiteMediaIndex(MediaIndex):
    """
    Media index stored in an external SQLite table.

    The table must provide `path`, `mime_type` and `date_added` columns
    (date_added in seconds since the epoch). Column names are configurable
    for catalogues that use other names.
    """

    def __init__(
        self,
        db_path: str,
        table: str = "media",
        path_column: str = "path",
        mime_column: str = "mime_type",
        added_column: str = "date_added",
    ):
        for name in (table, path_column, mime_column, added_column):
            if not name.isidentifier():
                raise ValueError(f"Invalid SQL identifier: {name!r}")
        self.db_path = db_path
        self.table = table
        self.path_column = path_column
        self.mime_column = mime_column
        self.added_column = added_column

    @contextmanager
    def query(self, source_uri, sort="added_at DESC", since=None):
        uri = f"file:{Path(self.db_path).absolute()}?mode=ro"
        try:
            conn = sqlite3.connect(uri, uri=True)
        except sqlite3.Error as e:
            raise FeedUnavailableError(f"Cannot open media index {self.db_path}: {e}") from e

        try:
            sql = (
                f"SELECT {self.path_column}, {self.mime_column}, {self.added_column} "
                f"FROM {self.table}"
            )
            params = ()
            if since is not None:
                sql += f" WHERE {self.added_column} > ?"
                params = (since,)
            sql += f" ORDER BY {self.added_column} DESC"

            try:
                cursor = conn.execute(sql, params)
            except sqlite3.Error as e:
                raise FeedUnavailableError(f"Media index query failed: {e}") from e

            yield self._rows(cursor)
        finally:
            conn.close()

    @staticmethod
    def _rows(cursor) -> Iterator[FeedRow]:
        for path, mime_type, added_at in cursor:
            if path is None or added_at is None:
                continue
            try:
                row = FeedRow(path=path, mime_type=mime_type, added_at=int(added_at))
            except (TypeError, ValueError, ValidationError) as e:
                logger.warning(f"Skipping malformed media index row {path!r}: {e}")
                continue
            yield row
