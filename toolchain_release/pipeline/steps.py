"""Named pipeline steps and the sequential runner that executes them."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, TypeVar

from ..config import ReleaseConfig
from ..packaging import PackResult
from ..release_info import ReleaseMetadata

logger = logging.getLogger(__name__)

T = TypeVar("T")

STATUS_OK = "ok"
STATUS_SKIPPED = "skipped"
STATUS_TOLERATED = "tolerated"
STATUS_FAILED = "failed"


class PipelineError(RuntimeError):
    """Raised when a pipeline step cannot run with the given state or configuration."""


@dataclass
class RunState:
    """Shared state handed from one step to the next."""

    workspace: Path
    tag: str
    config: ReleaseConfig
    dry_run: bool = False
    cache_hit: bool = False
    metadata: Optional[ReleaseMetadata] = None
    pack: Optional[PackResult] = None
    artifacts: Dict[str, object] = field(default_factory=dict)


@dataclass
class StepOutcome:
    name: str
    status: str = STATUS_OK
    logs: List[str] = field(default_factory=list)
    data: Dict[str, object] = field(default_factory=dict)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, object]:
        payload: Dict[str, object] = {
            "name": self.name,
            "status": self.status,
            "logs": self.logs,
            "data": self.data,
        }
        if self.error:
            payload["error"] = self.error
        return payload


StepAction = Callable[[RunState, StepOutcome], None]


@dataclass(frozen=True)
class Step:
    name: str
    description: str
    action: StepAction
    tolerated: bool = False
    condition: Optional[Callable[[RunState], bool]] = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "description": self.description,
            "tolerated": self.tolerated,
            "conditional": self.condition is not None,
        }


@dataclass
class PipelineRunResult:
    status: str
    tag: Optional[str]
    steps: List[StepOutcome] = field(default_factory=list)
    failed_step: Optional[str] = None
    artifacts: Dict[str, object] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, object]:
        return {
            "status": self.status,
            "tag": self.tag,
            "failed_step": self.failed_step,
            "steps": [outcome.to_dict() for outcome in self.steps],
            "artifacts": self.artifacts,
        }


def tolerate(name: str, func: Callable[..., T], *args: Any, **kwargs: Any) -> tuple[Optional[T], Optional[BaseException]]:
    """Call ``func`` and capture any exception instead of propagating it."""

    try:
        return func(*args, **kwargs), None
    except Exception as exc:
        logger.warning("Step %s failed; continuing: %s", name, exc)
        return None, exc


def _execute(step: Step, state: RunState, outcome: StepOutcome) -> None:
    step.action(state, outcome)


def run_steps(
    steps: Iterable[Step],
    state: RunState,
    *,
    skip: Iterable[str] = (),
) -> PipelineRunResult:
    """Run ``steps`` in order; the first non-tolerated failure aborts the run."""

    skipped = set(skip)
    result = PipelineRunResult(status=STATUS_OK, tag=state.tag, artifacts=state.artifacts)
    for step in steps:
        outcome = StepOutcome(name=step.name)
        result.steps.append(outcome)

        if step.name in skipped:
            outcome.status = STATUS_SKIPPED
            outcome.logs.append("Skipped by request.")
            continue
        if step.condition is not None and not step.condition(state):
            outcome.status = STATUS_SKIPPED
            outcome.logs.append("Condition not met; step skipped.")
            continue

        logger.info("Running step %s", step.name)
        if step.tolerated:
            _, error = tolerate(step.name, _execute, step, state, outcome)
            if error is not None:
                outcome.status = STATUS_TOLERATED
                outcome.error = str(error)
                outcome.logs.append(f"Ignored failure: {error}")
            continue

        try:
            _execute(step, state, outcome)
        except Exception as exc:
            logger.error("Step %s failed: %s", step.name, exc)
            outcome.status = STATUS_FAILED
            outcome.error = str(exc)
            result.status = STATUS_FAILED
            result.failed_step = step.name
            break
    return result
