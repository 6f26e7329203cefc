"""Go package metadata lookup.

Resolves an import path to its directory, its imports and whether it lives
in the read-only standard library, by asking the go tool:

    go list -e -json <import path>
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from gorerun.errors import ResolveError

logger = logging.getLogger(__name__)


@dataclass
class Package:
    """Metadata for a single Go package."""

    import_path: str
    name: str
    dir: Path
    imports: list[str] = field(default_factory=list)
    read_only: bool = False  # standard library or module cache; never changes
    target: Path | None = None  # install location of the package binary
    error: str | None = None

    @property
    def is_command(self) -> bool:
        """True for package main, which builds an executable."""
        return self.name == "main"

    @property
    def bin_dir(self) -> Path | None:
        """Directory `go install` writes this package's binary to."""
        if self.target is None:
            return None
        return self.target.parent

    @classmethod
    def from_go_list(cls, data: dict) -> "Package":
        """Build a Package from one `go list -json` object.

        Raises:
            ResolveError: If the package has no directory (not found).
        """
        import_path = data.get("ImportPath", "")
        error = data.get("Error") or {}
        error_text = error.get("Err") if isinstance(error, dict) else str(error)

        if not data.get("Dir"):
            raise ResolveError(import_path, error_text or "package not found")

        target = data.get("Target")
        return cls(
            import_path=import_path,
            name=data.get("Name", ""),
            dir=Path(data["Dir"]),
            imports=list(data.get("Imports") or []),
            read_only=_is_read_only(data),
            target=Path(target) if target else None,
            error=error_text or None,
        )


def _is_read_only(data: dict) -> bool:
    """Whether a package lives somewhere that cannot change.

    That is the standard library, or a versioned module in the module cache.
    A module replaced by a local directory is editable.
    """
    if data.get("Goroot") or data.get("Standard"):
        return True

    module = data.get("Module") or {}
    if not module.get("Version"):
        return False
    replace = module.get("Replace")
    return replace is None or bool(replace.get("Version"))


class PackageResolver(Protocol):
    """Anything that can look up package metadata by import path."""

    async def resolve(self, import_path: str) -> Package: ...


class GoPackageResolver:
    """Resolves packages with `go list`."""

    def __init__(self, go_binary: str = "go", cwd: Path | None = None):
        self.go_binary = go_binary
        self.cwd = cwd

    async def resolve(self, import_path: str) -> Package:
        """Resolve an import path.

        Raises:
            ResolveError: If the go tool fails or the package is not found.
        """
        cmd = [self.go_binary, "list", "-e", "-json", import_path]
        logger.debug(f"Resolving {import_path}: {' '.join(cmd)}")

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                cwd=self.cwd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            stdout, stderr = await process.communicate()
        except OSError as e:
            raise ResolveError(import_path, str(e)) from e

        if process.returncode != 0:
            reason = stderr.decode(errors="replace").strip() or f"exit status {process.returncode}"
            raise ResolveError(import_path, reason)

        try:
            data = json.loads(stdout.decode())
        except ValueError as e:
            raise ResolveError(import_path, f"invalid go list output: {e}") from e

        return Package.from_go_list(data)
