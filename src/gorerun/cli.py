"""gorerun CLI entry point."""

import asyncio
import logging
import os

import click
from rich.console import Console
from rich.logging import RichHandler

from gorerun import __version__
from gorerun.config import DEFAULT_GRACE_PERIOD, RerunConfig
from gorerun.errors import WatcherError
from gorerun.loop import ControlLoop

console = Console(stderr=True)
logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging with rich handler."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, console=console)],
    )


@click.command(context_settings={"allow_interspersed_args": False})
@click.option("--test", "run_tests", is_flag=True, help="Run tests (before running program)")
@click.option("--build", "release_build", is_flag=True, help="Build program")
@click.option("--no-run", is_flag=True, help="Do not run")
@click.option("--race", is_flag=True, help="Run program and tests with the race detector")
@click.option(
    "--grace-period",
    default=DEFAULT_GRACE_PERIOD,
    show_default=True,
    help="Seconds to wait for the program to exit after SIGINT before killing it (0 waits forever)",
)
@click.option("--go", "go_binary", default="go", show_default=True, help="Go tool to invoke")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose logging")
@click.version_option(__version__, prog_name="gorerun")
@click.argument("import_path")
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
def cli(
    run_tests: bool,
    release_build: bool,
    no_run: bool,
    race: bool,
    grace_period: float,
    go_binary: str,
    verbose: bool,
    import_path: str,
    args: tuple[str, ...],
) -> None:
    """Rebuild and rerun a Go program whenever its sources change.

    IMPORT_PATH is the package to build and run; any ARGS are passed to the
    program unchanged.
    """
    setup_logging(verbose)

    config = RerunConfig.from_environment(
        os.environ,
        run_tests=run_tests,
        release_build=release_build,
        no_run=no_run,
        race=race,
        go_binary=go_binary,
        grace_period=grace_period if grace_period > 0 else None,
    )
    loop = ControlLoop(import_path, args, config)

    try:
        asyncio.run(loop.run())
    except WatcherError as e:
        logger.error(str(e))
        raise SystemExit(1) from e
    except KeyboardInterrupt:
        console.print("\n[yellow]gorerun stopped[/yellow]")


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
