"""The watch / rebuild / relaunch control loop.

Flow:
1. Set up: resolve the build target and start the process supervisor
2. Open a watcher over the import graph and run the pipeline once
3. Wait for a change to a source file
4. Discard the watcher and open a new one from a fresh scan
5. Retry setup if it failed, run the pipeline, relaunch on success
6. Repeat from 3

Setup failures are not fatal: a broken package keeps being watched, so it
can recover once fixed. Only failing to create a watcher ends the loop.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from enum import Enum

from gorerun.config import BuildTarget, RerunConfig, derive_target
from gorerun.errors import RerunError
from gorerun.packages.resolver import GoPackageResolver, PackageResolver
from gorerun.pipeline.stages import BuildPipeline, PipelineResult
from gorerun.supervisor.process import ProcessSupervisor
from gorerun.watch.watcher import SourceWatcher, open_watcher

logger = logging.getLogger(__name__)

WatcherFactory = Callable[[str, PackageResolver, str], Awaitable[SourceWatcher]]
SupervisorFactory = Callable[[BuildTarget, RerunConfig], ProcessSupervisor]


class LoopState(str, Enum):
    """Where the control loop currently is."""

    INITIALIZING = "initializing"
    SETUP_OK = "setup_ok"
    SETUP_FAILED = "setup_failed"
    WAITING_FOR_CHANGE = "waiting_for_change"
    REBUILDING = "rebuilding"
    SIGNAL_RELAUNCH = "signal_relaunch"
    STOPPED = "stopped"


class ControlLoop:
    """Drives setup, watching, rebuilding and relaunching for one program."""

    def __init__(
        self,
        import_path: str,
        args: Sequence[str] = (),
        config: RerunConfig | None = None,
        resolver: PackageResolver | None = None,
        pipeline: BuildPipeline | None = None,
        watcher_factory: WatcherFactory = open_watcher,
        supervisor_factory: SupervisorFactory = ProcessSupervisor,
    ):
        self.import_path = import_path
        self.args = tuple(args)
        self.config = config or RerunConfig()
        self.resolver = resolver or GoPackageResolver(self.config.go_binary)
        self.pipeline = pipeline or BuildPipeline(import_path, self.config)
        self._watcher_factory = watcher_factory
        self._supervisor_factory = supervisor_factory

        self.state = LoopState.INITIALIZING
        self.target: BuildTarget | None = None
        self.supervisor: ProcessSupervisor | None = None
        self.watcher: SourceWatcher | None = None
        self.cycles = 0
        self._drains: set[asyncio.Task] = set()

    @property
    def is_setup(self) -> bool:
        return self.target is not None

    async def setup(self) -> bool:
        """Resolve the build target and start supervising it.

        Returns:
            True if the program can be run.
        """
        logger.info(f"setting up {self.import_path} {list(self.args)}")

        try:
            package = await self.resolver.resolve(self.import_path)
            target = derive_target(package, self.args, self.config)
        except RerunError as e:
            logger.error(f"Setup failed: {e}")
            self.state = LoopState.SETUP_FAILED
            return False

        self.target = target
        if not self.config.no_run:
            self.supervisor = self._supervisor_factory(target, self.config)
            self.supervisor.start()

        self.state = LoopState.SETUP_OK
        return True

    async def build_test_run(self) -> PipelineResult:
        """Run the pipeline and relaunch the program if it passed."""
        self.state = LoopState.REBUILDING
        result = await self.pipeline.run()

        if result.passed and self.supervisor is not None:
            self.state = LoopState.SIGNAL_RELAUNCH
            await self.supervisor.relaunch()

        return result

    async def rescan(self) -> SourceWatcher:
        """Replace the current watcher with one built from a fresh scan.

        Raises:
            WatcherError: If the new watcher cannot be created.
        """
        self._discard_watcher()
        self.watcher = await self._watcher_factory(
            self.import_path, self.resolver, self.config.source_extension
        )
        return self.watcher

    async def run_cycle(self) -> PipelineResult:
        """Wait for one relevant change and react to it."""
        if self.watcher is None:
            await self.rescan()

        self.state = LoopState.WAITING_FOR_CHANGE
        path = await self.watcher.wait_for_change()
        logger.info(f"Changed: {path}")

        logger.info("rescanning")
        await self.rescan()

        if not self.is_setup:
            await self.setup()

        result = await self.build_test_run()
        self.cycles += 1
        return result

    async def run(self) -> None:
        """Run until cancelled or a watcher cannot be created.

        Raises:
            WatcherError: If watching is no longer possible.
        """
        try:
            await self.setup()
            # Watch before the first build so edits made during it are seen
            await self.rescan()
            await self.build_test_run()

            while True:
                await self.run_cycle()
        finally:
            await self.shutdown()

    async def shutdown(self) -> None:
        """Stop watching and stop the program."""
        self.state = LoopState.STOPPED
        self._discard_watcher()
        if self._drains:
            await asyncio.gather(*self._drains, return_exceptions=True)

        if self.supervisor is not None:
            await self.supervisor.aclose()

    def _discard_watcher(self) -> None:
        if self.watcher is None:
            return

        drain = self.watcher.discard()
        self._drains.add(drain)
        drain.add_done_callback(self._drains.discard)
        self.watcher = None
