# executor/docker.py
from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from typing import Dict, List, Optional

from ..errors import ExecutionError
from ..model import Job
from .base import TOOL_HINTS, ExecutionContext, Executor, build_script, wait_process

logger = logging.getLogger(__name__)

DEFAULT_IMAGES: Dict[str, str] = {
    "ubuntu": "ubuntu:latest",
    "alpine": "alpine:latest",
}


@dataclass
class DockerTimeouts:
    """Seconds allowed for each docker phase. Waiting on the container is bounded by the run deadline instead."""
    pull: float = 300
    create: float = 60
    start: float = 60
    logs: float = 30
    remove: float = 30


class DockerExecutor(Executor):
    """
    Runs a job inside a throwaway container through the docker CLI.

    pull -> create -> start -> wait -> logs -> rm, each phase with its own
    timeout. The container is removed whatever happens after it was created.
    """

    def __init__(
        self,
        *,
        docker_bin: str = "docker",
        default_image: str = "ubuntu:latest",
        images: Optional[Dict[str, str]] = None,
        timeouts: Optional[DockerTimeouts] = None,
    ):
        self.docker_bin = docker_bin
        self.default_image = default_image
        self.images = dict(DEFAULT_IMAGES if images is None else images)
        self.timeouts = timeouts or DockerTimeouts()

    def image_for(self, target: str) -> str:
        return self.images.get(target, self.default_image)

    # ------------------------------------------------------------------
    # docker CLI plumbing
    # ------------------------------------------------------------------

    def _docker(self, args: List[str], *, timeout: float, phase: str) -> subprocess.CompletedProcess:
        cmd = [self.docker_bin, *args]
        try:
            proc = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=timeout,
            )
        except FileNotFoundError as e:
            raise ExecutionError(
                "Docker is not available",
                details={"hint": TOOL_HINTS["docker"]},
            ) from e
        except subprocess.TimeoutExpired as e:
            raise ExecutionError(
                f"failed to {phase}: timed out after {timeout:g}s",
                details={"phase": phase},
            ) from e

        if proc.returncode != 0:
            raise ExecutionError(
                f"failed to {phase}: {proc.stderr.strip()}",
                exit_code=proc.returncode,
                details={"phase": phase},
            )
        return proc

    def check_available(self) -> str:
        """Returns the docker client version line, raises ExecutionError if missing."""
        return self._docker(["--version"], timeout=self.timeouts.start, phase="check docker").stdout.strip()

    def _wait(self, container_id: str, ctx: ExecutionContext) -> int:
        proc = subprocess.Popen(
            [self.docker_bin, "wait", container_id],
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
            start_new_session=True,
        )
        out, err = wait_process(proc, ctx, what="waiting for container")
        if proc.returncode != 0:
            raise ExecutionError(f"error waiting for container: {err.strip()}", exit_code=proc.returncode)
        try:
            return int(out.strip().splitlines()[-1])
        except (ValueError, IndexError) as e:
            raise ExecutionError(f"unexpected docker wait output: {out!r}") from e

    def _logs(self, container_id: str) -> str:
        try:
            proc = subprocess.run(
                [self.docker_bin, "logs", container_id],
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=self.timeouts.logs,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            return f"Failed to get logs: {e}"
        return proc.stdout or ""

    def _remove(self, container_id: str) -> None:
        try:
            self._docker(["rm", "-f", container_id], timeout=self.timeouts.remove, phase="remove container")
        except ExecutionError as e:
            logger.warning("container %s was not removed: %s", container_id, e)

    # ------------------------------------------------------------------
    # Executor
    # ------------------------------------------------------------------

    def execute(self, job_name: str, job: Job, ctx: ExecutionContext) -> str:
        image = self.image_for(job.target)
        script = build_script(job.steps)

        ctx.check()
        logger.info("pulling image %s for job %s", image, job_name)
        self._docker(["pull", image], timeout=self.timeouts.pull, phase="pull image")

        ctx.check()
        created = self._docker(
            ["create", "--label", f"shipyard.job={job_name}", image, "/bin/sh", "-c", script],
            timeout=self.timeouts.create,
            phase="create container",
        )
        container_id = created.stdout.strip()
        logger.debug("created container %s for job %s", container_id, job_name)

        try:
            self._docker(["start", container_id], timeout=self.timeouts.start, phase="start container")
            try:
                exit_code = self._wait(container_id, ctx)
            except ExecutionError as e:
                e.output = self._logs(container_id)
                raise
            output = self._logs(container_id)
        finally:
            self._remove(container_id)

        if exit_code != 0:
            raise ExecutionError(
                f"container exited with status {exit_code}",
                output=output,
                exit_code=exit_code,
            )
        return output
