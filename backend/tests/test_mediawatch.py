"""
Integration tests for the MediaWatch composition root.

The full pipeline runs against a real directory index and the real capture
worker; only the liveness backend is faked.
"""

import os
import time

import pytest

from conftest import FakeLivenessBackend, write_media
from mediawatch.config import DirectoryIndexConfig, SQLiteIndexConfig, WatcherConfig
from mediawatch.main import MediaWatch, build_index
from mediawatch.watcher import DirectoryMediaIndex, SQLiteMediaIndex, SweepStatus


@pytest.fixture
def config(tmp_path, media_dir, output_root):
    return WatcherConfig(
        db_path=str(tmp_path / "state.db"),
        output_root=str(output_root),
        index=DirectoryIndexConfig(roots=[str(media_dir)]),
        poll_seconds=None,
    )


@pytest.fixture
def mediawatch(config):
    mw = MediaWatch(config, liveness_backend=FakeLivenessBackend())
    yield mw
    mw.stop(timeout=5)


def test_build_index(tmp_path, config):
    assert isinstance(build_index(config), DirectoryMediaIndex)

    sqlite_config = config.model_copy(
        update={"index": SQLiteIndexConfig(db_path=str(tmp_path / "catalogue.db"))}
    )
    assert isinstance(build_index(sqlite_config), SQLiteMediaIndex)


def test_sweep_captures_new_media_once(mediawatch, media_dir, output_root):
    write_media(media_dir / "IMG_0001.jpg", b"one")
    write_media(media_dir / "sub" / "IMG_0002.jpg", b"two")

    result = mediawatch.sweep_once()
    assert result.status is SweepStatus.COMPLETED
    assert len(result.dispatched) == 2
    assert mediawatch.capture.join(timeout=5)

    assert (output_root / "IMG_0001.jpg").read_bytes() == b"one"
    assert (output_root / "IMG_0002.jpg").read_bytes() == b"two"
    assert len(mediawatch.ledger) == 2
    assert len(mediawatch.queue) == 0

    again = mediawatch.sweep_once()
    assert again.dispatched == []
    assert again.kicked is False


def test_capture_output_is_not_reingested(tmp_path, media_dir):
    # Output directory nested inside the watched tree
    nested_output = media_dir / "captured"
    config = WatcherConfig(
        db_path=str(tmp_path / "state.db"),
        output_root=str(nested_output),
        index=DirectoryIndexConfig(roots=[str(media_dir)]),
        poll_seconds=None,
    )
    mw = MediaWatch(config, liveness_backend=FakeLivenessBackend())
    write_media(media_dir / "IMG_1.jpg")

    mw.sweep_once()
    assert mw.capture.join(timeout=5)
    assert (nested_output / "IMG_1.jpg").exists()

    # Make the copy look newer than the marker
    future = int(time.time()) + 10_000
    os.utime(nested_output / "IMG_1.jpg", (future, future))
    result = mw.sweep_once()

    assert result.skipped_own == 1
    assert result.dispatched == []


def test_start_recovers_orphaned_queue_entries(config, media_dir, output_root):
    source = write_media(media_dir / "IMG_9.jpg")
    first = MediaWatch(config, liveness_backend=FakeLivenessBackend())
    first.queue.enqueue(str(source))
    first.queue.claim()

    mw = MediaWatch(config, liveness_backend=FakeLivenessBackend())
    try:
        assert mw.start() is True
        assert mw.service.wait_until_idle(timeout=5)
        assert mw.capture.join(timeout=5)
    finally:
        mw.stop(timeout=5)

    assert (output_root / "IMG_9.jpg").exists()
    assert len(mw.queue) == 0


def test_start_is_idempotent(mediawatch):
    assert mediawatch.start() is True
    assert mediawatch.start() is False


def test_status(mediawatch, media_dir):
    write_media(media_dir / "IMG_1.jpg")
    mediawatch.sweep_once()
    mediawatch.capture.join(timeout=5)

    status = mediawatch.status()

    assert status["running"] is False
    assert status["state"] == "idle"
    assert status["marker"] > 0
    assert status["processed_items"] == 1
    assert status["queue_depth"] == 0
    assert status["last_sweep"]["status"] == "completed"
