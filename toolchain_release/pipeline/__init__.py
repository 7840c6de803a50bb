"""Release pipeline orchestration."""

from .runner import ReleasePipeline, build_release_pipeline, run_release
from .steps import (
    PipelineError,
    PipelineRunResult,
    RunState,
    Step,
    StepOutcome,
    run_steps,
    tolerate,
)

__all__ = [
    "PipelineError",
    "PipelineRunResult",
    "ReleasePipeline",
    "RunState",
    "Step",
    "StepOutcome",
    "build_release_pipeline",
    "run_release",
    "run_steps",
    "tolerate",
]
