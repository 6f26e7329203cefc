"""Exceptions raised by gorerun components."""


class RerunError(Exception):
    """Base class for gorerun errors."""


class ResolveError(RerunError):
    """Raised when an import path cannot be resolved to a package."""

    def __init__(self, import_path: str, reason: str):
        self.import_path = import_path
        self.reason = reason
        super().__init__(f"cannot resolve {import_path!r}: {reason}")


class SetupError(RerunError):
    """Raised when a resolved package cannot be run."""


class WatcherError(RerunError):
    """Raised when a filesystem watcher cannot be constructed.

    Without a watcher no further changes can be detected, so this is
    fatal to the control loop.
    """
