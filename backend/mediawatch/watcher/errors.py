"""
Watcher error hierarchy.

All errors are non-fatal to the application. They abort at most a single
sweep; the watcher keeps accepting triggers.
"""


class WatcherError(Exception):
    """Base exception for watcher failures."""

    pass


class FeedUnavailableError(WatcherError):
    """The media index could not be queried (transport or permission failure)."""

    pass


class MarkerPersistenceError(WatcherError):
    """The advanced marker could not be committed to the settings store."""

    pass


class ConfigError(WatcherError):
    """Watcher configuration is missing required values or is malformed."""

    pass
