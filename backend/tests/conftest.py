"""
Pytest configuration and shared fakes for the MediaWatch test suite.
"""

import sys
from contextlib import contextmanager
from pathlib import Path
from typing import List, Optional

import pytest

# Add backend to Python path for test imports
backend_path = Path(__file__).parent.parent
sys.path.insert(0, str(backend_path))

from mediawatch.liveness import LivenessBackend, LivenessError, LivenessGuard
from mediawatch.persistence import DispatchQueue, PersistenceManager, ProcessedLedger, SettingsStore
from mediawatch.watcher import (
    ChangeFeedReader,
    FeedRow,
    MediaIndex,
    PathFilter,
    WatcherEngine,
)
from mediawatch.watcher.errors import FeedUnavailableError


class FakeMediaIndex(MediaIndex):
    """In-memory media index that records cursor lifecycle."""

    def __init__(self, rows: Optional[List[FeedRow]] = None):
        self.rows = list(rows or [])
        self.fail_on_open = False
        self.fail_mid_iteration = False
        self.opened = 0
        self.closed = 0

    def add(self, path, added_at, mime_type="image/jpeg"):
        self.rows.append(FeedRow(path=str(path), mime_type=mime_type, added_at=added_at))

    @contextmanager
    def query(self, source_uri, sort="added_at DESC", since=None):
        if self.fail_on_open:
            raise FeedUnavailableError("media index offline")
        self.opened += 1
        try:
            yield self._iterate()
        finally:
            self.closed += 1

    def _iterate(self):
        for i, row in enumerate(self.rows):
            if self.fail_mid_iteration and i == 1:
                raise OSError("connection reset")
            yield row


class FakeLivenessBackend(LivenessBackend):
    """Counts acquisitions, releases and reaps."""

    name = "fake"

    def __init__(self, refuse: bool = False):
        self.refuse = refuse
        self.acquired = 0
        self.released = 0
        self.reaped = 0

    def acquire(self, timeout, reason):
        if self.refuse:
            raise LivenessError("platform refused")
        self.acquired += 1
        return object()

    def release(self, handle):
        self.released += 1

    def reap(self, handle):
        self.reaped += 1


class KickCounter:
    def __init__(self):
        self.calls = 0

    def __call__(self):
        self.calls += 1


def write_media(path: Path, content: bytes = b"\xff\xd8\xff fake jpeg") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    return path


@pytest.fixture
def persistence(tmp_path):
    return PersistenceManager(db_path=str(tmp_path / "state.db"))


@pytest.fixture
def settings(persistence):
    return SettingsStore(persistence)


@pytest.fixture
def ledger(persistence):
    return ProcessedLedger(persistence)


@pytest.fixture
def dispatch_queue(persistence):
    return DispatchQueue(persistence)


@pytest.fixture
def media_dir(tmp_path):
    d = tmp_path / "media"
    d.mkdir()
    return d


@pytest.fixture
def output_root(tmp_path):
    d = tmp_path / "captured"
    d.mkdir()
    return d


@pytest.fixture
def fake_index():
    return FakeMediaIndex()


@pytest.fixture
def liveness_backend():
    return FakeLivenessBackend()


@pytest.fixture
def kick():
    return KickCounter()


@pytest.fixture
def engine(fake_index, output_root, ledger, dispatch_queue, settings, liveness_backend, kick):
    return WatcherEngine(
        feed_reader=ChangeFeedReader(fake_index),
        path_filter=PathFilter(output_root=output_root),
        ledger=ledger,
        queue=dispatch_queue,
        settings=settings,
        liveness=LivenessGuard(backend=liveness_backend, timeout=10.0),
        kick=kick,
    )
