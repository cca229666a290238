"""
Change feed reader.

Reads every media index entry added after a marker timestamp and resolves
the entries whose backing files are usable into MediaItem descriptors.
"""

import logging
import os
import stat
from typing import Optional

from .errors import FeedUnavailableError
from .index import MediaIndex
from .models import FeedBatch, FeedRow, MediaItem, MediaKind

logger = logging.getLogger(__name__)


DEFAULT_SORT = "added_at DESC"


def is_usable_file(path: str) -> bool:
    """
    Sanity check for a feed entry's backing file.

    A usable file exists, is a regular file, is readable and is not empty.
    Files routinely disappear between indexing and reading, so any failure
    here just means "not usable".
    """
    try:
        st = os.stat(path)
    except (OSError, ValueError):
        return False
    if not stat.S_ISREG(st.st_mode):
        return False
    if st.st_size <= 0:
        return False
    return os.access(path, os.R_OK)


class ChangeFeedReader:
    """
    Incremental reader over a media index.

    The reader is stateless between calls; the caller owns the marker.
    """

    def __init__(self, index: MediaIndex, source_uri: str = "media:images"):
        self.index = index
        self.source_uri = source_uri

    def read_since(self, marker: int) -> FeedBatch:
        """
        Read all entries added strictly after `marker`.

        Items keep the order the index returned them in (newest first for a
        well-behaved index). max_timestamp is computed over every row seen,
        including rows whose files turned out unusable, and never assumes
        the first row is the newest.

        Raises:
            FeedUnavailableError: The index could not be queried or drained.
        """
        items = []
        max_timestamp: Optional[int] = None
        seen_paths = set()

        try:
            with self.index.query(self.source_uri, sort=DEFAULT_SORT, since=marker) as cursor:
                for row in cursor:
                    if max_timestamp is None or row.added_at > max_timestamp:
                        max_timestamp = row.added_at

                    if row.added_at <= marker:
                        continue

                    try:
                        item = self._resolve(row)
                    except ValueError as e:
                        logger.warning(f"Skipping feed entry {row.path!r}: {e}")
                        continue
                    if item is None or item.path in seen_paths:
                        continue

                    seen_paths.add(item.path)
                    items.append(item)
        except FeedUnavailableError:
            raise
        except Exception as e:
            raise FeedUnavailableError(
                f"Media index query failed for {self.source_uri}: {e}"
            ) from e

        logger.debug(
            f"Feed {self.source_uri}: {len(items)} usable item(s) since {marker}, "
            f"max timestamp {max_timestamp}"
        )
        return FeedBatch(items=items, max_timestamp=max_timestamp)

    @staticmethod
    def _resolve(row: FeedRow) -> Optional[MediaItem]:
        path = os.path.abspath(row.path)
        if not is_usable_file(path):
            logger.debug(f"Skipping unusable feed entry: {path}")
            return None
        return MediaItem(
            path=path,
            kind=MediaKind.from_mime_type(row.mime_type),
            added_at=row.added_at,
        )
