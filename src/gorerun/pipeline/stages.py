"""Build pipeline: install, then optionally test, then optionally build.

Each stage runs one go command with stdout and stderr captured together.
The first failing stage prints its output and ends the pipeline for this
cycle; the caller just waits for the next change.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum

from gorerun.config import RerunConfig

logger = logging.getLogger(__name__)


class Stage(str, Enum):
    """Pipeline stages, in the order they run."""

    INSTALL = "install"
    TEST = "test"
    BUILD = "build"


@dataclass
class CommandOutput:
    """Captured result of running one command."""

    command: list[str]
    output: str
    returncode: int | None = None
    error: str | None = None  # set when the command could not be executed

    @property
    def exited_cleanly(self) -> bool:
        return self.error is None and self.returncode == 0


@dataclass
class StageResult:
    """Outcome of a single pipeline stage."""

    stage: Stage
    passed: bool
    command: list[str]
    output: str = ""
    returncode: int | None = None
    error: str | None = None


@dataclass
class PipelineResult:
    """Outcome of a whole pipeline run."""

    passed: bool
    stages: list[StageResult] = field(default_factory=list)

    @property
    def failed_stage(self) -> Stage | None:
        """The stage that stopped the pipeline, if any."""
        for result in self.stages:
            if not result.passed:
                return result.stage
        return None

    @property
    def ran(self) -> list[Stage]:
        return [result.stage for result in self.stages]


CommandRunner = Callable[[list[str]], Awaitable[CommandOutput]]


async def run_command(cmd: list[str]) -> CommandOutput:
    """Run a command, capturing stdout and stderr into one buffer."""
    logger.debug(f"Running: {' '.join(cmd)}")

    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
        stdout, _ = await process.communicate()
    except OSError as e:
        return CommandOutput(command=cmd, output="", error=str(e))

    output = stdout.decode(errors="replace") if stdout else ""
    return CommandOutput(command=cmd, output=output, returncode=process.returncode)


class BuildPipeline:
    """Runs the go tool stages for one import path."""

    def __init__(
        self,
        import_path: str,
        config: RerunConfig,
        runner: CommandRunner = run_command,
    ):
        self.import_path = import_path
        self.config = config
        self.runner = runner

    def command_for(self, stage: Stage) -> list[str]:
        """Command line for a stage, honoring the race detector flag."""
        cmd = [self.config.go_binary, stage.value]
        if self.config.race:
            cmd.append("-race")
        if stage is not Stage.INSTALL:
            cmd.append("-v")
        cmd.append(self.import_path)
        return cmd

    async def install(self) -> StageResult:
        """Compile and install the program.

        The go tool is silent on success, so any output counts as failure.
        """
        result = await self.runner(self.command_for(Stage.INSTALL))
        passed = result.exited_cleanly and not result.output
        return self._finish(Stage.INSTALL, result, passed)

    async def test(self) -> StageResult:
        """Run the package tests."""
        result = await self.runner(self.command_for(Stage.TEST))
        return self._finish(Stage.TEST, result, result.exited_cleanly, "tests passed")

    async def build(self) -> StageResult:
        """Produce a release build."""
        result = await self.runner(self.command_for(Stage.BUILD))
        return self._finish(Stage.BUILD, result, result.exited_cleanly, "build passed")

    async def run(self) -> PipelineResult:
        """Run every enabled stage until one fails."""
        stages = [self.install]
        if self.config.run_tests:
            stages.append(self.test)
        if self.config.release_build:
            stages.append(self.build)

        pipeline = PipelineResult(passed=True)
        for stage in stages:
            result = await stage()
            pipeline.stages.append(result)
            if not result.passed:
                pipeline.passed = False
                break

        return pipeline

    def _finish(
        self,
        stage: Stage,
        result: CommandOutput,
        passed: bool,
        success_message: str | None = None,
    ) -> StageResult:
        if passed:
            if success_message:
                logger.info(success_message)
        else:
            details = result.output or result.error or f"exit status {result.returncode}"
            logger.error(f"{stage.value} failed for {self.import_path}:\n{details.rstrip()}")

        return StageResult(
            stage=stage,
            passed=passed,
            command=result.command,
            output=result.output,
            returncode=result.returncode,
            error=result.error,
        )
