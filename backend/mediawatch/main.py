"""
MediaWatch composition root.

Builds every component from a WatcherConfig and wires the watcher to the
capture worker. Collaborators can be overridden for tests or embedding.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

from .capture import CaptureWorker, copy_to_output
from .capture.worker import Handler
from .config import DirectoryIndexConfig, WatcherConfig
from .liveness import LivenessBackend, LivenessGuard, select_backend
from .persistence import DispatchQueue, PersistenceManager, ProcessedLedger, SettingsStore
from .watcher import (
    ChangeFeedReader,
    DirectoryMediaIndex,
    MediaIndex,
    PathFilter,
    SQLiteMediaIndex,
    SweepResult,
    WatcherEngine,
    WatcherService,
)

logger = logging.getLogger(__name__)


def build_index(config: WatcherConfig) -> MediaIndex:
    index = config.index
    if isinstance(index, DirectoryIndexConfig):
        return DirectoryMediaIndex(
            roots=index.roots,
            recursive=index.recursive,
            follow_symlinks=index.follow_symlinks,
        )
    return SQLiteMediaIndex(
        db_path=index.db_path,
        table=index.table,
        path_column=index.path_column,
        mime_column=index.mime_column,
        added_column=index.added_column,
    )


class MediaWatch:
    """All MediaWatch components for one configuration."""

    def __init__(
        self,
        config: WatcherConfig,
        index: Optional[MediaIndex] = None,
        liveness_backend: Optional[LivenessBackend] = None,
        handler: Optional[Handler] = None,
    ):
        self.config = config

        Path(config.db_path).parent.mkdir(parents=True, exist_ok=True)
        self.persistence = PersistenceManager(db_path=config.db_path)
        self.settings = SettingsStore(self.persistence)
        self.ledger = ProcessedLedger(self.persistence)
        self.queue = DispatchQueue(self.persistence)

        self.capture = CaptureWorker(
            queue=self.queue,
            ledger=self.ledger,
            handler=handler or copy_to_output(config.output_root),
        )

        self.engine = WatcherEngine(
            feed_reader=ChangeFeedReader(index or build_index(config), config.source_uri),
            path_filter=PathFilter(
                output_root=config.output_root,
                rules=config.rules,
                default_action=config.default_action,
            ),
            ledger=self.ledger,
            queue=self.queue,
            settings=self.settings,
            liveness=LivenessGuard(
                backend=liveness_backend or select_backend(config.liveness_backend),
                timeout=config.liveness_timeout_seconds,
            ),
            kick=self.capture.kick,
        )

        self.service = WatcherService(
            self.engine,
            queue_size=config.trigger_queue_size,
            poll_seconds=config.poll_seconds,
        )

    def start(self) -> bool:
        """
        Start watching. Idempotent.

        On the first start, queue entries orphaned by a previous run are
        recovered and drained, and an initial sweep is requested.
        """
        started = self.service.ensure_running()
        if started:
            if self.queue.recover() or len(self.queue):
                self.capture.kick()
            self.service.notify_change()
        return started

    def stop(self, timeout: float = 10.0) -> None:
        self.service.stop(timeout)
        self.capture.join(timeout)

    def sweep_once(self) -> SweepResult:
        """Run a single sweep synchronously on the calling thread."""
        return self.engine.run_sweep()

    def status(self) -> Dict[str, Any]:
        last: Optional[SweepResult] = self.engine.last_result
        return {
            "running": self.service.running,
            "state": self.engine.state.value,
            "marker": self.settings.get_marker(),
            "queue_depth": len(self.queue),
            "processed_items": len(self.ledger),
            "sweeps": self.service.sweep_count,
            "coalesced_triggers": self.service.coalesced_count,
            "last_sweep": last.model_dump(mode="json") if last else None,
        }
