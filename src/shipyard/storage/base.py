# storage/base.py
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List

from ..model import Workflow, WorkflowRun


class Storage(ABC):
    """
    Persistence contract for workflows and runs.

    Every method must be safe to call from several threads at once.
    Runs handed back to callers are always independent copies.
    """

    # ---- workflows ----

    @abstractmethod
    def save_workflow(self, wf: Workflow) -> None:
        """Insert or replace the workflow keyed by its name."""

    @abstractmethod
    def get_workflow(self, name: str) -> Workflow:
        """Raises NotFoundError."""

    @abstractmethod
    def list_workflows(self) -> List[Workflow]:
        ...

    @abstractmethod
    def delete_workflow(self, name: str) -> None:
        """Raises NotFoundError."""

    # ---- runs ----

    @abstractmethod
    def save_run(self, run: WorkflowRun) -> None:
        """Insert or replace."""

    @abstractmethod
    def get_run(self, run_id: str) -> WorkflowRun:
        """Raises NotFoundError. Returns a copy."""

    @abstractmethod
    def list_runs(self) -> List[WorkflowRun]:
        """Copies of every run, newest first."""

    @abstractmethod
    def update_run(self, run: WorkflowRun) -> None:
        """Replace an existing run. Raises NotFoundError, never inserts."""

    @abstractmethod
    def delete_runs_by_workflow(self, workflow_name: str) -> int:
        """Remove every run of a workflow, returns how many went."""

    def close(self) -> None:
        pass
