# orchestrator.py
from __future__ import annotations

import logging
import threading
import time
from typing import Any, Dict, List, Optional

from . import parser
from .errors import ExecutionError, NotFoundError, PersistenceError
from .executor.base import ExecutionContext, Executor
from .model import FAILED, RUNNING, SUCCESS, TERMINAL_STATUSES, Workflow, WorkflowRun, utcnow
from .storage.base import Storage

logger = logging.getLogger(__name__)

DEFAULT_RUN_TIMEOUT = 30 * 60


class Orchestrator:
    """
    Stores workflows and drives their runs.

    Every trigger spawns one background thread that executes the run's jobs
    strictly in `job_order` and writes progress back through the storage
    after each transition. Nothing else talks to that thread: callers watch
    a run by reading it from the storage.
    """

    def __init__(
        self,
        storage: Storage,
        executor: Executor,
        *,
        run_timeout: float = DEFAULT_RUN_TIMEOUT,
    ):
        self.storage = storage
        self.executor = executor
        self.run_timeout = run_timeout

        self._cancel = threading.Event()
        self._threads: set[threading.Thread] = set()
        self._threads_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Workflows
    # ------------------------------------------------------------------

    def ingest(self, text: str | bytes) -> Workflow:
        """Parse, validate, then store. Nothing is written if any step fails."""
        wf = parser.load(text)
        self.storage.save_workflow(wf)
        logger.info("stored workflow %s (jobs: %s)", wf.name, ", ".join(wf.job_order))
        return wf

    def get_workflow(self, name: str) -> Workflow:
        return self.storage.get_workflow(name)

    def list_workflows(self) -> List[Workflow]:
        return self.storage.list_workflows()

    def delete_workflow(self, name: str) -> None:
        """Delete a workflow along with its run history."""
        try:
            removed = self.storage.delete_runs_by_workflow(name)
            if removed:
                logger.info("deleted %d runs for workflow %s", removed, name)
        except PersistenceError as e:
            logger.warning("failed to delete runs for workflow %s: %s", name, e)

        self.storage.delete_workflow(name)

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    def trigger(self, name: str) -> WorkflowRun:
        """
        Start a run of workflow `name` and return immediately.

        Raises NotFoundError for an unknown workflow. The returned run is a
        snapshot taken at creation time.
        """
        wf = self.storage.get_workflow(name)
        run = WorkflowRun.start(wf)
        self.storage.save_run(run)

        t = threading.Thread(
            target=self._run_jobs,
            args=(run,),
            name=f"shipyard-{run.id}",
            daemon=True,
        )
        with self._threads_lock:
            self._threads.add(t)
        t.start()

        logger.info("triggered %s for workflow %s", run.id, wf.name)
        return run.snapshot()

    def get_run(self, run_id: str) -> WorkflowRun:
        return self.storage.get_run(run_id)

    def list_runs(self) -> List[WorkflowRun]:
        return self.storage.list_runs()

    def workflow_runs(self, name: str) -> List[WorkflowRun]:
        return [r for r in self.storage.list_runs() if r.workflow_name == name]

    def workflow_stats(self, name: str) -> Dict[str, Any]:
        runs = self.workflow_runs(name)
        successful = sum(1 for r in runs if r.status == SUCCESS)
        failed = sum(1 for r in runs if r.status == FAILED)
        durations = [
            (r.completed_at - r.started_at).total_seconds()
            for r in runs
            if r.completed_at is not None
        ]
        return {
            "total_runs": len(runs),
            "successful_runs": successful,
            "failed_runs": failed,
            "success_rate": (successful / len(runs) * 100) if runs else 0.0,
            "average_duration": (sum(durations) / len(durations)) if durations else 0.0,
        }

    def wait(self, run_id: str, timeout: Optional[float] = None, poll_interval: float = 0.1) -> WorkflowRun:
        """
        Poll the storage until the run is terminal and return it.

        Raises TimeoutError if `timeout` elapses first.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            run = self.storage.get_run(run_id)
            if run.status in TERMINAL_STATUSES and run.completed_at is not None:
                return run
            if deadline is not None and time.monotonic() >= deadline:
                raise TimeoutError(f"run '{run_id}' still {run.status} after {timeout}s")
            time.sleep(poll_interval)

    def shutdown(self, timeout: Optional[float] = None) -> None:
        """Cancel in-flight runs and wait for their threads to finish."""
        self._cancel.set()
        with self._threads_lock:
            threads = list(self._threads)
        for t in threads:
            t.join(timeout)
        self.executor.close()
        self.storage.close()

    # ------------------------------------------------------------------
    # Background execution
    # ------------------------------------------------------------------

    def _persist(self, run: WorkflowRun) -> None:
        # a failed progress write never stops the run
        try:
            self.storage.update_run(run)
        except (PersistenceError, NotFoundError) as e:
            logger.warning("failed to record progress of %s: %s", run.id, e)

    def _execute_job(self, run: WorkflowRun, job_name: str, ctx: ExecutionContext) -> bool:
        job = run.get_job(job_name)
        if job is None:
            logger.error("run %s has no job named %s", run.id, job_name)
            return False

        logger.info("starting job %s (%s)", job_name, run.id)
        job.status = RUNNING
        job.started_at = utcnow()
        run.update_job(job_name, job)
        self._persist(run)

        ok = False
        try:
            output = self.executor.execute(job_name, job, ctx)
            ok = True
        except ExecutionError as e:
            output = e.output
            logger.warning("job %s failed (%s): %s", job_name, run.id, e)
        except Exception as e:  # recorded as the job output
            output = f"Error: {e}"
            logger.exception("job %s crashed (%s)", job_name, run.id)

        job.output = output
        job.ended_at = utcnow()
        job.status = SUCCESS if ok else FAILED
        run.update_job(job_name, job)
        self._persist(run)

        if ok:
            logger.info("job %s completed successfully (%s)", job_name, run.id)
        return ok

    def _run_jobs(self, run: WorkflowRun) -> None:
        ctx = ExecutionContext.with_timeout(self.run_timeout, cancelled=self._cancel)
        all_ok = True
        try:
            for job_name in run.job_order:
                if not self._execute_job(run, job_name, ctx):
                    all_ok = False
                    break  # stop on first failure
        except Exception:
            all_ok = False
            logger.exception("run %s aborted", run.id)
        finally:
            run.complete(SUCCESS if all_ok else FAILED)
            self._persist(run)
            logger.info("run %s of %s finished: %s", run.id, run.workflow_name, run.status)
            with self._threads_lock:
                self._threads.discard(threading.current_thread())
