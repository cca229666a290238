"""
Watcher engine — change detection and dispatch.

Coordinates one sweep over the media index:
1. Liveness guarantee (via LivenessGuard)
2. Incremental feed read since the marker (via ChangeFeedReader)
3. Filtering: own output, path rules, processed-item ledger
4. Queue hand-off (via DispatchQueue)
5. Marker advance and commit (via SettingsStore)
6. A single kick to the downstream worker

Sweeps are serialized by a mutual-exclusion region around steps 2 to 6, so two
overlapping triggers can never both read the feed from the same marker.
"""

import logging
import threading
from datetime import datetime
from typing import Callable, Optional

from ..liveness import LivenessGuard
from ..persistence import DispatchQueue, ProcessedLedger, SettingsStore, item_identity
from ..persistence.errors import PersistenceError
from .errors import FeedUnavailableError, MarkerPersistenceError
from .feed import ChangeFeedReader
from .models import FilterDecision, MediaItem, SweepResult, SweepState, SweepStatus
from .path_filter import PathFilter

logger = logging.getLogger(__name__)


class WatcherEngine:
    """
    Sweep orchestration engine.

    All collaborators are injected; the engine owns no storage of its own
    apart from a cached copy of the last committed marker.
    """

    def __init__(
        self,
        feed_reader: ChangeFeedReader,
        path_filter: PathFilter,
        ledger: ProcessedLedger,
        queue: DispatchQueue,
        settings: SettingsStore,
        liveness: LivenessGuard,
        kick: Optional[Callable[[], None]] = None,
        identity: Callable[[str], str] = item_identity,
    ):
        """
        Initialize watcher engine.

        Args:
            feed_reader: Reader over the external media index
            path_filter: Own-output and rule based path filter
            ledger: Processed-item ledger (read only from here)
            queue: Destination for admitted item paths
            settings: Store holding the marker
            liveness: Guard providing a per-sweep liveness lease
            kick: Parameterless callable that starts the downstream worker
            identity: Maps an item path to its ledger identity
        """
        self.feed_reader = feed_reader
        self.path_filter = path_filter
        self.ledger = ledger
        self.queue = queue
        self.settings = settings
        self.liveness = liveness
        self.kick = kick
        self.identity = identity

        self.state = SweepState.IDLE
        self.last_result: Optional[SweepResult] = None
        self._sweep_lock = threading.Lock()
        self._marker: Optional[int] = None

    @property
    def marker(self) -> Optional[int]:
        """Last marker known to be committed, None before the first sweep."""
        return self._marker

    def run_sweep(self) -> SweepResult:
        """
        Run one full sweep.

        Never raises: failures are logged and reported through the returned
        SweepResult, and the liveness lease is released on every path.
        """
        result = SweepResult(status=SweepStatus.FAILED)

        self._set_state(SweepState.ACQUIRING_LIVENESS)
        with self.liveness.hold("mediawatch sweep") as lease:
            result.liveness_held = not lease.degraded
            try:
                with self._sweep_lock:
                    self._sweep(result)
                result.status = SweepStatus.COMPLETED
            except (FeedUnavailableError, MarkerPersistenceError) as e:
                result.error = str(e)
                logger.error(f"Sweep aborted: {e}")
            except Exception as e:
                result.error = f"Unexpected error: {e}"
                logger.error(f"Unexpected error during sweep: {e}", exc_info=True)
            finally:
                self._set_state(SweepState.RELEASING_LIVENESS)

        self._set_state(SweepState.IDLE)
        result.finished_at = datetime.now()
        self.last_result = result

        if result.status is SweepStatus.COMPLETED:
            logger.info(
                f"Sweep complete: {len(result.dispatched)} dispatched, "
                f"{result.skipped_own} own, {result.skipped_excluded} excluded, "
                f"{result.skipped_processed} already processed, "
                f"marker {result.marker_before} -> {result.marker_after}"
            )
        return result

    def _sweep(self, result: SweepResult) -> None:
        try:
            marker = self.settings.get_marker()
        except PersistenceError as e:
            raise MarkerPersistenceError(f"Failed to read marker: {e}") from e
        self._marker = marker
        result.marker_before = marker
        result.marker_after = marker

        self._set_state(SweepState.READING_FEED)
        batch = self.feed_reader.read_since(marker)
        result.candidates = len(batch.items)

        self._set_state(SweepState.FILTERING)
        for item in batch.items:
            try:
                if self._filter_and_enqueue(item, result):
                    result.dispatched.append(item.path)
            except Exception as e:
                result.failed_items += 1
                logger.error(f"Failed to handle {item.path}, skipping: {e}")

        try:
            self._set_state(SweepState.ADVANCING_MARKER)
            if batch.max_timestamp is not None and batch.max_timestamp > marker:
                self._advance_marker(batch.max_timestamp)
                result.marker_after = batch.max_timestamp
        finally:
            # Entries already queued are drained by this kick even if the
            # marker commit failed.
            self._set_state(SweepState.DISPATCHING)
            if result.dispatched:
                result.kicked = self._kick()

    def _filter_and_enqueue(self, item: MediaItem, result: SweepResult) -> bool:
        """Run one item through the filter pipeline. Returns True if queued."""
        decision = self.path_filter.admit(item.path)

        if decision is FilterDecision.REJECTED_OWN_FILE:
            result.skipped_own += 1
            logger.info(f"Ignoring own file {item.path}")
            return False

        if decision is FilterDecision.REJECTED_EXCLUDED:
            result.skipped_excluded += 1
            logger.info(f"Ignoring path-excluded file {item.path}")
            return False

        if self.ledger.have_processed(self.identity(item.path)):
            result.skipped_processed += 1
            logger.warning(
                f"Already have {item.path} in the ledger. Skipping. "
                "(The marker should have excluded it.)"
            )
            return False

        try:
            self.queue.enqueue(item.path)
        except PersistenceError as e:
            result.failed_items += 1
            logger.warning(f"Failed to queue {item.path}, dropping it: {e}")
            return False

        logger.info(f"Added item {item.path} to the processing queue")
        return True

    def _advance_marker(self, new_marker: int) -> None:
        """Stage and commit the marker as one step."""
        self.settings.set_marker(new_marker)
        try:
            self.settings.commit()
        except PersistenceError as e:
            raise MarkerPersistenceError(
                f"Failed to persist marker {new_marker}: {e}"
            ) from e
        self._marker = new_marker

    def _kick(self) -> bool:
        if self.kick is None:
            return False
        try:
            self.kick()
        except Exception as e:
            logger.warning(f"Failed to kick downstream worker: {e}")
            return False
        return True

    def _set_state(self, state: SweepState) -> None:
        if state is not self.state:
            logger.debug(f"Sweep state: {self.state.value} -> {state.value}")
        self.state = state

