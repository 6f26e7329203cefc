"""Supervision of the running program.

A single control task owns the child process. Relaunch and stop requests
arrive through a one-slot queue and are handled strictly in order:

1. Interrupt the running child (SIGINT), killing it if the signal cannot
   be delivered or the grace period runs out.
2. Reap it.
3. On relaunch, start a fresh child that shares our stdout/stderr.

The queue is the only synchronization point, so a new child is never
started before the previous one has exited.
"""

import asyncio
import contextlib
import logging
import signal

from gorerun.config import BuildTarget, RerunConfig

logger = logging.getLogger(__name__)

RELAUNCH = True
STOP = False


class ProcessSupervisor:
    """Keeps at most one instance of the build target running."""

    def __init__(self, target: BuildTarget, config: RerunConfig | None = None):
        self.target = target
        self.config = config or RerunConfig()
        self._signals: asyncio.Queue[bool] = asyncio.Queue(maxsize=1)
        self._process: asyncio.subprocess.Process | None = None
        self._task: asyncio.Task | None = None
        self.launch_count = 0

    @property
    def process(self) -> asyncio.subprocess.Process | None:
        """The current child, if one was started."""
        return self._process

    @property
    def is_running(self) -> bool:
        return self._process is not None and self._process.returncode is None

    def start(self) -> None:
        """Start the control task."""
        if self._task is None:
            self._task = asyncio.create_task(self._control_loop())

    async def relaunch(self) -> None:
        """Request a restart (or first start) of the program."""
        await self._signals.put(RELAUNCH)

    async def stop(self) -> None:
        """Request that the running program, if any, be stopped."""
        await self._signals.put(STOP)

    async def wait_idle(self) -> None:
        """Wait until every request sent so far has been handled."""
        await self._signals.join()

    async def aclose(self) -> None:
        """Stop the program and end the control task."""
        if self._task is None:
            return

        if not self._task.done():
            await self.stop()
            await self.wait_idle()
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        self._task = None

    async def _control_loop(self) -> None:
        while True:
            relaunch = await self._signals.get()
            try:
                await self._terminate()
                if relaunch:
                    await self._launch()
            finally:
                self._signals.task_done()

    async def _terminate(self) -> None:
        process = self._process
        if process is None:
            return

        if process.returncode is None:
            try:
                process.send_signal(signal.SIGINT)
            except OSError as e:
                logger.warning(f"Error sending signal to process {process.pid}: {e}; killing it")
                self._kill(process)
            else:
                await self._wait_for_exit(process)

        # Always reap before anything new is started
        await process.wait()
        logger.debug(f"Process {process.pid} exited with {process.returncode}")
        self._process = None

    async def _wait_for_exit(self, process: asyncio.subprocess.Process) -> None:
        grace_period = self.config.grace_period
        if grace_period is None:
            return

        try:
            await asyncio.wait_for(process.wait(), timeout=grace_period)
        except TimeoutError:
            logger.warning(
                f"Process {process.pid} did not exit within {grace_period}s of SIGINT; killing it"
            )
            self._kill(process)

    def _kill(self, process: asyncio.subprocess.Process) -> None:
        try:
            process.kill()
        except OSError as e:
            # Nothing left to escalate to
            logger.debug(f"Error killing process {process.pid}: {e}")

    async def _launch(self) -> None:
        command = self.target.command
        logger.info(f"Starting {self.target.binary_name}: {command}")

        try:
            # stdout/stderr are inherited so the program's output stays visible
            self._process = await asyncio.create_subprocess_exec(*command)
        except (OSError, ValueError) as e:
            logger.error(f"Error starting process {command[0]}: {e}")
            self._process = None
            return

        self.launch_count += 1
