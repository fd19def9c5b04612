# executor/base.py
from __future__ import annotations

import os
import shlex
import signal
import subprocess
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Iterable, Optional, Tuple

from ..errors import ExecutionError
from ..model import Job, Step

# How often a blocking wait wakes up to look at the cancel flag.
POLL_SECONDS = 0.5

# How long to drain pipes after killing a process group.
KILL_GRACE_SECONDS = 2.0

TOOL_HINTS = {
    "docker": "Install Docker and ensure the daemon is running.",
    "sh": "A POSIX shell (/bin/sh) is required for local execution.",
}


@dataclass
class ExecutionContext:
    """
    Deadline + cancel flag for one run.

    Built by the orchestrator from its own clock, never from a request.
    """
    deadline: float  # time.monotonic() based
    cancelled: threading.Event = field(default_factory=threading.Event)

    @classmethod
    def with_timeout(cls, seconds: float, cancelled: Optional[threading.Event] = None) -> ExecutionContext:
        return cls(
            deadline=time.monotonic() + seconds,
            cancelled=cancelled if cancelled is not None else threading.Event(),
        )

    def remaining(self) -> float:
        return max(0.0, self.deadline - time.monotonic())

    def check(self) -> None:
        if self.cancelled.is_set():
            raise ExecutionError("execution cancelled")
        if self.remaining() <= 0:
            raise ExecutionError("execution deadline exceeded")


class Executor(ABC):
    """Runs one job's combined script in an isolated sandbox."""

    @abstractmethod
    def execute(self, job_name: str, job: Job, ctx: ExecutionContext) -> str:
        """
        Return the combined stdout/stderr of the job's script.

        Raises ExecutionError on a non-zero exit or a sandbox failure; the
        error's `output` holds whatever was captured.
        """

    def close(self) -> None:
        pass


# ----------------------------------------------------------------------
# Script assembly
# ----------------------------------------------------------------------

_TS = "$(date '+%Y-%m-%d %H:%M:%S')"


def _marker(kind: str, step_name: str) -> str:
    return f"printf '=== [%s] {kind}: %s ===\\n' \"{_TS}\" {shlex.quote(step_name)}"


def build_script(steps: Iterable[Step]) -> str:
    """
    One script for the whole job. Aborts on the first failing command and
    brackets every step with timestamped Starting/Completed markers so the
    output can be attributed to a step afterwards.
    """
    lines = ["#!/bin/sh", "set -e"]
    for i, step in enumerate(steps, start=1):
        title = " ".join(step.name.splitlines())
        lines.append("")
        lines.append(f"# Step {i}: {title}")
        lines.append(_marker("Starting", step.name))
        lines.append(step.run.rstrip("\n"))
        lines.append(_marker("Completed", step.name))
    return "\n".join(lines) + "\n"


# ----------------------------------------------------------------------
# Process helpers
# ----------------------------------------------------------------------

def _kill(proc: subprocess.Popen) -> None:
    # processes are started in their own session so the whole group goes
    try:
        os.killpg(os.getpgid(proc.pid), signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        proc.kill()


def wait_process(proc: subprocess.Popen, ctx: ExecutionContext, *, what: str) -> Tuple[str, str]:
    """
    Wait for `proc` while honoring the context's deadline and cancel flag.

    Returns (stdout, stderr). On cancel/deadline the process group is killed
    and ExecutionError carries the output gathered so far.
    """
    while True:
        reason = None
        if ctx.cancelled.is_set():
            reason = "cancelled"
        elif ctx.remaining() <= 0:
            reason = "timed out"

        if reason is not None:
            _kill(proc)
            try:
                out, _ = proc.communicate(timeout=KILL_GRACE_SECONDS)
            except subprocess.TimeoutExpired:
                # something outside the process group still holds the pipe
                out = ""
            raise ExecutionError(f"{what} {reason}", output=out or "")

        try:
            out, err = proc.communicate(timeout=min(POLL_SECONDS, ctx.remaining()) or POLL_SECONDS)
            return out or "", err or ""
        except subprocess.TimeoutExpired:
            continue
