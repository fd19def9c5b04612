# executor/local.py
from __future__ import annotations

import logging
import os
import subprocess
import tempfile
from typing import Dict, Optional

from ..errors import ExecutionError
from ..model import Job
from .base import TOOL_HINTS, ExecutionContext, Executor, build_script, wait_process

logger = logging.getLogger(__name__)


class LocalExecutor(Executor):
    """
    Runs a job's script with the host shell inside a fresh temporary
    directory, removed afterwards. `target` is ignored.

    Not an isolation boundary: meant for development and tests.
    """

    def __init__(self, *, shell: str = "/bin/sh", env: Optional[Dict[str, str]] = None):
        self.shell = shell
        self.env = env

    def execute(self, job_name: str, job: Job, ctx: ExecutionContext) -> str:
        script = build_script(job.steps)
        ctx.check()

        env = os.environ.copy()
        env.update(self.env or {})

        with tempfile.TemporaryDirectory(prefix="shipyard-") as workdir:
            logger.debug("running job %s in %s", job_name, workdir)
            try:
                proc = subprocess.Popen(
                    [self.shell, "-c", script],
                    cwd=workdir,
                    env=env,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.STDOUT,
                    text=True,
                    encoding="utf-8",
                    errors="replace",
                    start_new_session=True,
                )
            except FileNotFoundError as e:
                raise ExecutionError(
                    f"shell not found: {self.shell}",
                    details={"hint": TOOL_HINTS["sh"]},
                ) from e
            output, _ = wait_process(proc, ctx, what=f"job '{job_name}'")

        if proc.returncode != 0:
            raise ExecutionError(
                f"script exited with status {proc.returncode}",
                output=output,
                exit_code=proc.returncode,
            )
        return output
