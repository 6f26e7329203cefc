"""The install / test / build pipeline run on every change."""

from gorerun.pipeline.stages import (
    BuildPipeline,
    CommandOutput,
    PipelineResult,
    Stage,
    StageResult,
    run_command,
)

__all__ = [
    "BuildPipeline",
    "CommandOutput",
    "PipelineResult",
    "Stage",
    "StageResult",
    "run_command",
]
