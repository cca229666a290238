"""
Capture worker — downstream consumer of the dispatch queue.

The watcher kicks the worker after a sweep that queued something. The worker
drains the queue on a background thread, hands every path to a handler and
records the item in the processed-item ledger once the handler succeeds.

The worker tolerates duplicate dispatch: an entry whose identity is already
in the ledger is dropped without calling the handler.
"""

import logging
import shutil
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Union

from ..persistence import DispatchQueue, ProcessedLedger, QueueEntry, item_identity

logger = logging.getLogger(__name__)


Handler = Callable[[str], None]


def copy_to_output(output_root: Union[str, Path]) -> Handler:
    """Handler that copies each item into `output_root`, keeping its file name."""
    root = Path(output_root)

    def handle(path: str) -> None:
        root.mkdir(parents=True, exist_ok=True)
        destination = root / Path(path).name
        shutil.copy2(path, destination)
        logger.info(f"Captured {path} -> {destination}")

    return handle


@dataclass
class DrainReport:
    processed: int = 0
    duplicates: int = 0
    failed: int = 0


class CaptureWorker:
    """Drains the dispatch queue, one entry at a time, in FIFO order."""

    def __init__(
        self,
        queue: DispatchQueue,
        ledger: ProcessedLedger,
        handler: Handler,
        identity: Callable[[str], str] = item_identity,
    ):
        self.queue = queue
        self.ledger = ledger
        self.handler = handler
        self.identity = identity

        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._kick_pending = False
        self.last_report: Optional[DrainReport] = None

    def kick(self) -> None:
        """
        Signal that new work is available. Fire-and-forget.

        Starts a drain thread, or asks the running one for another pass.
        """
        with self._lock:
            self._kick_pending = True
            if self._thread is not None:
                return
            self._thread = threading.Thread(
                target=self._drain_loop, name="mediawatch-capture", daemon=True
            )
            self._thread.start()

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the current drain thread to finish. False on timeout."""
        with self._lock:
            thread = self._thread
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def drain(self) -> DrainReport:
        """Process every unclaimed queue entry. Failed entries go back to the queue."""
        report = DrainReport()
        failed: List[QueueEntry] = []

        try:
            while True:
                entry = self.queue.claim()
                if entry is None:
                    break
                if not self._handle_entry(entry, report):
                    failed.append(entry)
        finally:
            for entry in failed:
                self.queue.release(entry)

        if report.processed or report.duplicates or report.failed:
            logger.info(
                f"Drain complete: {report.processed} processed, "
                f"{report.duplicates} duplicate, {report.failed} failed"
            )
        self.last_report = report
        return report

    def _handle_entry(self, entry: QueueEntry, report: DrainReport) -> bool:
        identity = self.identity(entry.path)

        if self.ledger.have_processed(identity):
            logger.info(f"Dropping duplicate queue entry for {entry.path}")
            self.queue.complete(entry)
            report.duplicates += 1
            return True

        try:
            self.handler(entry.path)
        except Exception as e:
            logger.error(f"Capture failed for {entry.path}, will retry on next kick: {e}")
            report.failed += 1
            return False

        self.ledger.mark_processed(identity, entry.path)
        self.queue.complete(entry)
        report.processed += 1
        return True

    def _drain_loop(self) -> None:
        while True:
            with self._lock:
                if not self._kick_pending:
                    self._thread = None
                    return
                self._kick_pending = False
            try:
                self.drain()
            except Exception as e:
                logger.error(f"Capture drain aborted: {e}", exc_info=True)
