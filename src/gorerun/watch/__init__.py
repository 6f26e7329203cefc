"""Watching the import graph of the supervised program for changes."""

from gorerun.watch.builder import WatchSet, build_watch_set
from gorerun.watch.watcher import SourceWatcher, open_watcher

__all__ = [
    "SourceWatcher",
    "WatchSet",
    "build_watch_set",
    "open_watcher",
]
