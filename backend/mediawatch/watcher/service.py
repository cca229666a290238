"""
Watcher service — trigger intake and the sweep-runner thread.

Change notifications carry no payload. Each one drops a token on a bounded
queue; a single runner thread turns tokens into sweeps. A notification that
arrives while the queue is full is coalesced: a sweep still waiting in the
queue covers everything that notification could have announced.
"""

import logging
import queue
import threading
import time
from typing import Optional

from .engine import WatcherEngine
from .models import SweepResult

logger = logging.getLogger(__name__)


DEFAULT_TRIGGER_QUEUE_SIZE = 8


class WatcherService:
    """Long-running wrapper that feeds triggers to a WatcherEngine."""

    def __init__(
        self,
        engine: WatcherEngine,
        queue_size: int = DEFAULT_TRIGGER_QUEUE_SIZE,
        poll_seconds: Optional[float] = None,
        tick_seconds: float = 0.5,
    ):
        """
        Args:
            engine: Engine that runs the sweeps
            queue_size: Maximum number of pending triggers
            poll_seconds: If set, sweep at least this often without triggers
            tick_seconds: How often the runner checks for shutdown
        """
        if queue_size < 1:
            raise ValueError(f"Trigger queue size must be at least 1: {queue_size}")
        self.engine = engine
        self.poll_seconds = poll_seconds
        self.tick_seconds = tick_seconds

        self._triggers: "queue.Queue[None]" = queue.Queue(maxsize=queue_size)
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._state_lock = threading.Lock()
        self._last_sweep_at = time.monotonic()
        self.sweep_count = 0
        self.coalesced_count = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def ensure_running(self) -> bool:
        """
        Start the runner thread unless it is already running.

        Returns:
            True if this call started the service
        """
        with self._state_lock:
            if self.running:
                logger.info("Service previously started")
                return False

            self._stop.clear()
            self._thread = threading.Thread(
                target=self._run, name="mediawatch-sweeper", daemon=True
            )
            self._thread.start()

        logger.info("Service started")
        return True

    def notify_change(self, self_change: bool = False) -> bool:
        """
        Announce that the media index may have changed.

        The flag is accepted for interface compatibility and ignored: every
        trigger means "re-check everything since the marker".

        Returns:
            False if the trigger was coalesced into an already pending one
        """
        try:
            self._triggers.put_nowait(None)
        except queue.Full:
            self.coalesced_count += 1
            logger.debug("Trigger coalesced into a pending sweep")
            return False
        return True

    def stop(self, timeout: Optional[float] = 10.0) -> None:
        """Stop the runner after the current sweep. Pending triggers are dropped."""
        with self._state_lock:
            thread = self._thread
            if thread is None:
                return
            self._stop.set()

        thread.join(timeout)
        if thread.is_alive():
            logger.warning("Sweep runner did not stop within timeout")
            return

        with self._state_lock:
            self._thread = None
        self._discard_pending()
        logger.info("Service stopped")

    def wait_until_idle(self, timeout: float = 10.0) -> bool:
        """Block until every queued trigger has been swept. False on timeout."""
        deadline = time.monotonic() + timeout
        with self._triggers.all_tasks_done:
            while self._triggers.unfinished_tasks:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._triggers.all_tasks_done.wait(remaining)
        return True

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                self._triggers.get(timeout=self.tick_seconds)
            except queue.Empty:
                if self._poll_due():
                    self._sweep()
                continue

            try:
                if not self._stop.is_set():
                    self._sweep()
            finally:
                self._triggers.task_done()

    def _poll_due(self) -> bool:
        if not self.poll_seconds:
            return False
        return time.monotonic() - self._last_sweep_at >= self.poll_seconds

    def _sweep(self) -> Optional[SweepResult]:
        self._last_sweep_at = time.monotonic()
        try:
            result = self.engine.run_sweep()
        except Exception as e:
            logger.error(f"Sweep runner caught unexpected error: {e}", exc_info=True)
            return None
        self.sweep_count += 1
        return result

    def _discard_pending(self) -> None:
        while True:
            try:
                self._triggers.get_nowait()
            except queue.Empty:
                return
            self._triggers.task_done()
