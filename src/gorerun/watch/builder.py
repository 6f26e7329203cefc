"""Discovery of the directories to watch.

Walks the import graph of the supervised program depth-first and collects
the directory of every package that can change. Read-only packages (the
standard library and versioned modules in the module cache) are neither
watched nor descended into.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from gorerun.errors import ResolveError
from gorerun.packages.resolver import PackageResolver

logger = logging.getLogger(__name__)


@dataclass
class WatchSet:
    """Result of one import graph walk."""

    root: str
    visited: set[str] = field(default_factory=set)  # import paths
    directories: set[Path] = field(default_factory=set)

    def __len__(self) -> int:
        return len(self.directories)


async def build_watch_set(root: str, resolver: PackageResolver) -> WatchSet:
    """Collect the directories of ``root`` and everything it imports.

    Unresolvable packages are skipped rather than failing the walk. The
    visited set is keyed by import path, so cyclic graphs terminate and two
    import paths sharing a directory still yield one directory.
    """
    watch_set = WatchSet(root=root)
    stack = [root]
    watch_set.visited.add(root)

    while stack:
        import_path = stack.pop()

        try:
            package = await resolver.resolve(import_path)
        except ResolveError as e:
            logger.debug(f"Skipping {import_path}: {e.reason}")
            continue

        if package.read_only:
            continue

        watch_set.directories.add(package.dir)

        for imp in package.imports:
            if imp not in watch_set.visited:
                watch_set.visited.add(imp)
                stack.append(imp)

    logger.debug(
        f"Watch set for {root}: {len(watch_set.directories)} directories "
        f"from {len(watch_set.visited)} import paths"
    )
    return watch_set
