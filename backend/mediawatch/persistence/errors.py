"""
Errors raised by the MediaWatch state database.

Callers above the persistence layer decide what a failure means: a failed
marker commit aborts the sweep, a failed queue append drops one item.
"""


class PersistenceError(Exception):
    """The state database could not be opened or an operation on it failed."""

    pass


class LoadError(PersistenceError):
    """A stored value (settings, marker) could not be read or is corrupt."""

    pass


class SaveError(PersistenceError):
    """Staged settings or a queue entry could not be written."""

    pass
