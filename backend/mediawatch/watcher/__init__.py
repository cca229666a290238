"""
Watcher — change detection and dispatch for an external media index.

Public API:
    MediaItem, FeedRow, FeedBatch — feed data models
    PathRule, RuleAction, FilterDecision — path filter models
    SweepResult, SweepState, SweepStatus — sweep reporting
    DirectoryMediaIndex, SQLiteMediaIndex — media index sources
    ChangeFeedReader — incremental feed read since a marker
    PathFilter — own-output and rule based admission
    WatcherEngine — one sweep: feed → filter → queue → marker → kick
    WatcherService — trigger queue and sweep-runner thread
"""

from .errors import (
    WatcherError,
    FeedUnavailableError,
    MarkerPersistenceError,
    ConfigError,
)
from .models import (
    MediaKind,
    MediaItem,
    FeedRow,
    FeedBatch,
    PathRule,
    RuleAction,
    FilterDecision,
    SweepState,
    SweepStatus,
    SweepResult,
)
from .index import MediaIndex, DirectoryMediaIndex, SQLiteMediaIndex
from .feed import ChangeFeedReader
from .path_filter import PathFilter
from .engine import WatcherEngine
from .service import WatcherService

__all__ = [
    # Errors
    "WatcherError",
    "FeedUnavailableError",
    "MarkerPersistenceError",
    "ConfigError",
    # Models
    "MediaKind",
    "MediaItem",
    "FeedRow",
    "FeedBatch",
    "PathRule",
    "RuleAction",
    "FilterDecision",
    "SweepState",
    "SweepStatus",
    "SweepResult",
    # Sources
    "MediaIndex",
    "DirectoryMediaIndex",
    "SQLiteMediaIndex",
    # Core
    "ChangeFeedReader",
    "PathFilter",
    "WatcherEngine",
    "WatcherService",
]
