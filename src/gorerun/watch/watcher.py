"""Filesystem change notification for the watch set.

Wraps a watchdog observer and forwards its events into asyncio queues:

- ``events``: filesystem events for the watched directories
- ``errors``: failures to watch a directory

A SourceWatcher is used for exactly one change. Once a relevant event has
been seen the watcher is discarded and a new one is opened from a fresh
walk of the import graph, since packages may have appeared or disappeared.
Discarding stops the observer and drains whatever is still queued, then
ends both streams with a ``None`` sentinel.
"""

import asyncio
import errno
import logging
from pathlib import Path

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from gorerun.errors import WatcherError
from gorerun.packages.resolver import PackageResolver
from gorerun.watch.builder import build_watch_set

logger = logging.getLogger(__name__)

# Opened/closed events fire when the go tool merely reads sources
CHANGE_EVENT_TYPES = frozenset(
    {EVENT_TYPE_CREATED, EVENT_TYPE_DELETED, EVENT_TYPE_MODIFIED, EVENT_TYPE_MOVED}
)

# Out of notification handles or watches: no watcher can be built at all
RESOURCE_ERRNOS = frozenset({errno.EMFILE, errno.ENFILE, errno.ENOSPC, errno.ENOMEM})


class QueueingEventHandler(FileSystemEventHandler):
    """Hands watchdog events from the observer thread to an asyncio queue."""

    def __init__(self, loop: asyncio.AbstractEventLoop, queue: asyncio.Queue):
        self._loop = loop
        self._queue = queue

    def on_any_event(self, event: FileSystemEvent) -> None:
        if self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self._queue.put_nowait, event)


class SourceWatcher:
    """Single-use watcher over a set of directories.

    Must be created from a running event loop.
    """

    def __init__(self, source_extension: str = ".go"):
        self.source_extension = source_extension
        self.directories: set[Path] = set()
        self.events: asyncio.Queue[FileSystemEvent | None] = asyncio.Queue()
        self.errors: asyncio.Queue[Exception | None] = asyncio.Queue()

        self._loop = asyncio.get_running_loop()
        self._handler = QueueingEventHandler(self._loop, self.events)
        self._drain: asyncio.Task | None = None

        try:
            self._observer = Observer()
            self._observer.start()
        except (OSError, RuntimeError) as e:
            raise WatcherError(f"cannot start filesystem observer: {e}") from e

        # Errors are reported for the whole lifetime of the watcher
        self._error_drain = asyncio.create_task(self._report_errors())

    def add(self, directory: Path) -> bool:
        """Watch a single directory (not recursively).

        A directory that cannot be watched, e.g. because the package was
        removed, is reported on the error stream.

        Returns:
            True if the directory is now watched.

        Raises:
            WatcherError: If the system is out of notification resources.
        """
        if directory in self.directories:
            return True

        try:
            self._observer.schedule(self._handler, str(directory), recursive=False)
        except OSError as e:
            if e.errno in RESOURCE_ERRNOS:
                raise WatcherError(f"cannot watch {directory}: {e}") from e
            self.errors.put_nowait(e)
            return False

        self.directories.add(directory)
        return True

    def relevant_path(self, event: FileSystemEvent) -> str | None:
        """Path of a source file changed by ``event``, or None if it is noise.

        For a move the destination counts, so saving through a temporary file
        triggers on the final rename.
        """
        if event.is_directory or event.event_type not in CHANGE_EVENT_TYPES:
            return None

        path = event.dest_path if event.event_type == EVENT_TYPE_MOVED else event.src_path
        if isinstance(path, bytes):
            path = path.decode(errors="replace")
        if not path or Path(path).suffix != self.source_extension:
            return None
        return path

    async def wait_for_change(self) -> str:
        """Wait for a change to a source file and return its path.

        Raises:
            WatcherError: If the watcher is closed while waiting.
        """
        while True:
            event = await self.events.get()
            if event is None:
                self.events.put_nowait(None)
                raise WatcherError("watcher closed while waiting for changes")

            path = self.relevant_path(event)
            if path is not None:
                return path

    def discard(self) -> asyncio.Task:
        """Stop watching and drain leftover notifications in the background.

        Safe to call more than once. The returned task finishes once both
        streams have been exhausted.
        """
        if self._drain is None:
            # Release the notification handles now; only the join waits
            self._observer.stop()
            self._drain = asyncio.create_task(self._shutdown())
        return self._drain

    async def close(self) -> None:
        """Discard the watcher and wait for it to be fully drained."""
        await self.discard()

    @property
    def discarded(self) -> bool:
        return self._drain is not None

    @property
    def is_watching(self) -> bool:
        """Whether the observer still holds any directory watches."""
        return bool(self._observer.emitters)

    async def _shutdown(self) -> None:
        # Joining blocks until the emitter threads have finished
        await asyncio.to_thread(self._observer.join)

        # Everything the observer thread queued was scheduled before the
        # join completed, so it is already in the queue.
        drained = 0
        while not self.events.empty():
            self.events.get_nowait()
            drained += 1

        # Closure sentinels; also wakes anyone still waiting for a change
        self.events.put_nowait(None)
        self.errors.put_nowait(None)
        await self._error_drain

        logger.debug(f"Discarded watcher over {len(self.directories)} directories ({drained} events drained)")

    async def _report_errors(self) -> None:
        while (error := await self.errors.get()) is not None:
            logger.warning(f"Watcher error: {error}")


async def open_watcher(
    root: str,
    resolver: PackageResolver,
    source_extension: str = ".go",
) -> SourceWatcher:
    """Create a watcher over ``root`` and everything it imports.

    Raises:
        WatcherError: If the watcher cannot be constructed.
    """
    watcher = SourceWatcher(source_extension)
    watch_set = await build_watch_set(root, resolver)

    try:
        for directory in sorted(watch_set.directories):
            watcher.add(directory)
    except WatcherError:
        await watcher.close()
        raise

    if not watcher.directories:
        logger.warning(f"Nothing to watch for {root}; waiting anyway")
    else:
        logger.debug(f"Watching {len(watcher.directories)} directories for {root}")

    return watcher
