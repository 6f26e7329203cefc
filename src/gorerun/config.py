"""Run configuration and the supervised build target.

Both are built once at startup and passed explicitly to every component
that needs them.
"""

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from gorerun.errors import SetupError
from gorerun.packages.resolver import Package

# Environment variable naming the directory that holds installed binaries
BIN_DIR_ENV: Final = "GOBIN"

DEFAULT_GRACE_PERIOD: Final = 5.0

_MAJOR_VERSION: Final = re.compile(r"v[0-9]+")


@dataclass(frozen=True)
class RerunConfig:
    """Configuration for a gorerun session."""

    run_tests: bool = False
    release_build: bool = False
    no_run: bool = False
    race: bool = False
    go_binary: str = "go"
    source_extension: str = ".go"
    # Seconds to wait after SIGINT before killing; None waits forever
    grace_period: float | None = DEFAULT_GRACE_PERIOD
    # Override for the directory holding the compiled binary
    bin_dir: Path | None = None

    @classmethod
    def from_environment(cls, environ: Mapping[str, str], **options) -> "RerunConfig":
        """Build a config from CLI options plus the process environment."""
        bin_dir = environ.get(BIN_DIR_ENV) or None
        return cls(bin_dir=Path(bin_dir) if bin_dir else None, **options)


@dataclass(frozen=True)
class BuildTarget:
    """The program under supervision."""

    import_path: str
    binary_name: str
    binary_path: Path
    args: tuple[str, ...] = ()

    @property
    def command(self) -> list[str]:
        """Full command line used to launch the program."""
        return [str(self.binary_path), *self.args]


def binary_name_for(import_path: str) -> str:
    """Name of the binary `go install` produces for an import path.

    A trailing major version element (``example.com/tool/v2``) is skipped,
    as the go tool does.
    """
    segments = [s for s in import_path.split("/") if s]
    if len(segments) > 1 and _MAJOR_VERSION.fullmatch(segments[-1]):
        return segments[-2]
    return segments[-1] if segments else import_path


def derive_target(package: Package, args: Sequence[str], config: RerunConfig) -> BuildTarget:
    """Derive the build target for a resolved package.

    Raises:
        SetupError: If the package is broken, is not a command, or has no
            known install location.
    """
    if package.error:
        raise SetupError(package.error)

    if not package.is_command:
        raise SetupError(f'expected package "main", got "{package.name}"')

    binary_name = binary_name_for(package.import_path)

    if config.bin_dir is not None:
        bin_dir = config.bin_dir
    elif package.bin_dir is not None:
        bin_dir = package.bin_dir
    else:
        raise SetupError(
            f"no install location known for {package.import_path}; set {BIN_DIR_ENV}"
        )

    return BuildTarget(
        import_path=package.import_path,
        binary_name=binary_name,
        binary_path=(bin_dir / binary_name).absolute(),
        args=tuple(args),
    )
