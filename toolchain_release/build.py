"""Source checkout, build invocation and dist relocation."""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence

logger = logging.getLogger(__name__)

OUTPUT_TAIL = 2000
STDERR_FD = 2


class BuildError(RuntimeError):
    """Raised when checkout, configuration or the build tool fails."""

    def __init__(self, message: str, returncode: Optional[int] = None) -> None:
        super().__init__(message)
        self.returncode = returncode


@dataclass(slots=True)
class CommandReceipt:
    command: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    def to_dict(self) -> Dict[str, object]:
        return {
            "command": self.command,
            "returncode": self.returncode,
            "stdout": self.stdout[-OUTPUT_TAIL:],
            "stderr": self.stderr[-OUTPUT_TAIL:],
        }


def _run(
    command: Sequence[str],
    *,
    cwd: Path,
    env: Optional[Dict[str, str]] = None,
    stream: bool = False,
) -> CommandReceipt:
    """Run ``command``; with ``stream`` its output goes live to our stderr instead of being captured."""

    merged_env = os.environ.copy()
    if env:
        merged_env.update(env)
    logger.info("Running %s in %s", " ".join(command), cwd)
    if stream:
        # stdout stays reserved for the JSON result
        sys.stderr.flush()
        output: Dict[str, object] = {"stdout": STDERR_FD}
    else:
        output = {"capture_output": True}
    try:
        proc = subprocess.run(
            list(command),
            cwd=str(cwd),
            text=True,
            env=merged_env,
            check=False,
            **output,
        )
    except OSError as exc:
        raise BuildError(f"Could not start {command[0]}: {exc}") from exc
    return CommandReceipt(
        command=list(command),
        returncode=proc.returncode,
        stdout=proc.stdout or "",
        stderr=proc.stderr or "",
    )


def _failure(receipt: CommandReceipt, label: str) -> BuildError:
    output = receipt.stderr.strip() or receipt.stdout.strip()
    detail = output[-OUTPUT_TAIL:] if output else "see the tool output on stderr"
    return BuildError(
        f"{label} failed ({receipt.returncode}): {detail}",
        returncode=receipt.returncode,
    )


def checkout_source(workspace: Path, *, remote: str, ref: str, depth: int) -> List[CommandReceipt]:
    """Fetch ``ref`` with a shallow history and check it out detached."""

    receipts = []
    for command in (
        ["git", "fetch", "--depth", str(depth), remote, ref],
        ["git", "checkout", "--force", "FETCH_HEAD"],
    ):
        receipt = _run(command, cwd=workspace)
        receipts.append(receipt)
        if receipt.returncode != 0:
            raise _failure(receipt, " ".join(command[:2]))
    return receipts


def apply_config_template(workspace: Path, template: str, target: str) -> Path:
    """Copy the template config over the active build config, verbatim."""

    source = workspace / template
    destination = workspace / target
    if not source.is_file():
        raise BuildError(f"Config template not found: {source}")
    shutil.copyfile(source, destination)
    return destination


def run_build(
    workspace: Path,
    command: Sequence[str],
    args: Sequence[str] = (),
    *,
    env: Optional[Dict[str, str]] = None,
) -> CommandReceipt:
    """Run the build tool with its output streamed live to stderr; only the exit code is kept."""

    full_command = [*command, *args]
    if not full_command:
        raise BuildError("Build command is empty.")
    receipt = _run(full_command, cwd=workspace, env=env, stream=True)
    if receipt.returncode != 0:
        raise _failure(receipt, "Build")
    return receipt


def relocate_dist(workspace: Path, source: str = "../dist", name: str = "dist") -> Path:
    """Move the build output into ``workspace/name``, clearing a stale copy first."""

    source_path = (workspace / source).resolve()
    destination = workspace / name
    if not source_path.exists():
        raise BuildError(f"Build output not found at {source_path}")
    if destination.resolve() == source_path:
        return destination
    if destination.exists():
        shutil.rmtree(destination)
    shutil.move(str(source_path), str(destination))
    return destination


def list_tree(root: Path, depth: int = 1) -> List[str]:
    """Relative paths under ``root`` down to ``depth`` levels, sorted."""

    entries: List[str] = []

    def _walk(directory: Path, level: int) -> None:
        for path in sorted(directory.iterdir(), key=lambda item: item.name):
            is_dir = path.is_dir() and not path.is_symlink()
            entries.append(path.relative_to(root).as_posix() + ("/" if is_dir else ""))
            if is_dir and level < depth:
                _walk(path, level + 1)

    if root.is_dir():
        _walk(root, 1)
    return entries
