# storage/memory.py
from __future__ import annotations

import threading
from typing import Dict, List

from ..errors import NotFoundError
from ..model import Workflow, WorkflowRun
from .base import Storage


class MemoryStorage(Storage):
    """
    Volatile store.

    One table lock guards the dicts themselves; each stored run is a
    snapshot, so the store never shares memory with a run the orchestrator
    is still writing to.
    """

    def __init__(self) -> None:
        self._workflows: Dict[str, Workflow] = {}
        self._runs: Dict[str, WorkflowRun] = {}
        self._lock = threading.RLock()

    def save_workflow(self, wf: Workflow) -> None:
        with self._lock:
            self._workflows[wf.name] = wf.copy()

    def get_workflow(self, name: str) -> Workflow:
        with self._lock:
            wf = self._workflows.get(name)
            if wf is None:
                raise NotFoundError("workflow", name)
            return wf.copy()

    def list_workflows(self) -> List[Workflow]:
        with self._lock:
            return [wf.copy() for wf in self._workflows.values()]

    def delete_workflow(self, name: str) -> None:
        with self._lock:
            if name not in self._workflows:
                raise NotFoundError("workflow", name)
            del self._workflows[name]

    def save_run(self, run: WorkflowRun) -> None:
        snap = run.snapshot()
        with self._lock:
            self._runs[snap.id] = snap

    def get_run(self, run_id: str) -> WorkflowRun:
        with self._lock:
            run = self._runs.get(run_id)
            if run is None:
                raise NotFoundError("run", run_id)
        return run.snapshot()

    def list_runs(self) -> List[WorkflowRun]:
        with self._lock:
            runs = [r.snapshot() for r in self._runs.values()]
        runs.sort(key=lambda r: (r.started_at, r.id), reverse=True)
        return runs

    def update_run(self, run: WorkflowRun) -> None:
        snap = run.snapshot()
        with self._lock:
            if snap.id not in self._runs:
                raise NotFoundError("run", snap.id)
            self._runs[snap.id] = snap

    def delete_runs_by_workflow(self, workflow_name: str) -> int:
        with self._lock:
            doomed = [rid for rid, r in self._runs.items() if r.workflow_name == workflow_name]
            for rid in doomed:
                del self._runs[rid]
            return len(doomed)
