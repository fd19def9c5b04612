# model.py
from __future__ import annotations

import threading
import time
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .errors import RunStateError

PENDING = "pending"
RUNNING = "running"
SUCCESS = "success"
FAILED = "failed"

TERMINAL_STATUSES = (SUCCESS, FAILED)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse_dt(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


@dataclass(frozen=True)
class Step:
    """A single named shell command inside a job."""
    name: str
    run: str

    def to_dict(self) -> dict:
        return {"name": self.name, "run": self.run}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Step:
        return cls(name=data.get("name", ""), run=data.get("run", ""))


@dataclass
class Job:
    """
    A job: ordered steps executed as one script in one sandbox.

    `target` picks the sandbox environment (the `runs-on` key in YAML).
    The execution fields stay at their defaults on a stored Workflow and are
    only filled in on the copies a WorkflowRun owns.
    """
    target: str
    steps: List[Step]

    status: str = PENDING
    output: str = ""
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None

    def copy(self) -> Job:
        return replace(self, steps=list(self.steps))

    def to_dict(self) -> dict:
        return {
            "runs_on": self.target,
            "steps": [s.to_dict() for s in self.steps],
            "status": self.status,
            "output": self.output,
            "started_at": _iso(self.started_at),
            "ended_at": _iso(self.ended_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Job:
        return cls(
            target=data.get("runs_on", ""),
            steps=[Step.from_dict(s) for s in data.get("steps", [])],
            status=data.get("status", PENDING),
            output=data.get("output", ""),
            started_at=_parse_dt(data.get("started_at")),
            ended_at=_parse_dt(data.get("ended_at")),
        )


@dataclass
class Workflow:
    """
    A stored pipeline definition.

    `job_order` is the execution schedule: a permutation of `jobs` keys in
    declaration order.
    """
    name: str
    jobs: Dict[str, Job]
    job_order: List[str]
    triggers: Dict[str, Any] = field(default_factory=dict)

    def copy(self) -> Workflow:
        return Workflow(
            name=self.name,
            jobs={k: j.copy() for k, j in self.jobs.items()},
            job_order=list(self.job_order),
            triggers=dict(self.triggers),
        )

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "on": self.triggers,
            "jobs": {k: j.to_dict() for k, j in self.jobs.items()},
            "job_order": list(self.job_order),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Workflow:
        jobs = {k: Job.from_dict(v) for k, v in (data.get("jobs") or {}).items()}
        return cls(
            name=data.get("name", ""),
            jobs=jobs,
            job_order=list(data.get("job_order") or jobs.keys()),
            triggers=dict(data.get("on") or {}),
        )


def new_run_id() -> str:
    # epoch millis keeps ids roughly sortable, the suffix keeps two triggers
    # in the same millisecond apart
    return f"run-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"


@dataclass
class WorkflowRun:
    """
    One execution of a Workflow.

    Written by exactly one background thread, read by anyone. All access to
    the mutable fields goes through the run's own lock; readers get a deep
    copy from `snapshot()` and never hold a reference into `jobs`.
    Once the run is terminal (`completed_at` set) every mutator raises
    RunStateError.
    """
    id: str
    workflow_name: str
    status: str
    jobs: Dict[str, Job]
    job_order: List[str]
    started_at: datetime
    completed_at: Optional[datetime] = None

    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    @classmethod
    def start(cls, workflow: Workflow) -> WorkflowRun:
        """Create a running run with every job of `workflow` seeded as pending."""
        jobs = {}
        for name, job in workflow.jobs.items():
            jobs[name] = replace(
                job.copy(), status=PENDING, output="", started_at=None, ended_at=None
            )
        return cls(
            id=new_run_id(),
            workflow_name=workflow.name,
            status=RUNNING,
            jobs=jobs,
            job_order=list(workflow.job_order),
            started_at=utcnow(),
        )

    # ---- reads ----

    @property
    def is_terminal(self) -> bool:
        with self._lock:
            return self.completed_at is not None and self.status in TERMINAL_STATUSES

    def get_job(self, name: str) -> Optional[Job]:
        with self._lock:
            job = self.jobs.get(name)
            return job.copy() if job is not None else None

    def snapshot(self) -> WorkflowRun:
        with self._lock:
            return WorkflowRun(
                id=self.id,
                workflow_name=self.workflow_name,
                status=self.status,
                jobs={k: j.copy() for k, j in self.jobs.items()},
                job_order=list(self.job_order),
                started_at=self.started_at,
                completed_at=self.completed_at,
            )

    def to_dict(self) -> dict:
        with self._lock:
            return {
                "id": self.id,
                "workflow_name": self.workflow_name,
                "status": self.status,
                "jobs": {k: j.to_dict() for k, j in self.jobs.items()},
                "job_order": list(self.job_order),
                "started_at": _iso(self.started_at),
                "completed_at": _iso(self.completed_at),
            }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> WorkflowRun:
        return cls(
            id=data["id"],
            workflow_name=data.get("workflow_name", ""),
            status=data.get("status", PENDING),
            jobs={k: Job.from_dict(v) for k, v in (data.get("jobs") or {}).items()},
            job_order=list(data.get("job_order") or []),
            started_at=_parse_dt(data.get("started_at")) or utcnow(),
            completed_at=_parse_dt(data.get("completed_at")),
        )

    # ---- writes ----

    def _ensure_open(self) -> None:
        if self.completed_at is not None and self.status in TERMINAL_STATUSES:
            raise RunStateError(self.id, f"run is already {self.status}")

    def update_job(self, name: str, job: Job) -> None:
        with self._lock:
            self._ensure_open()
            self.jobs[name] = job.copy()

    def set_status(self, status: str) -> None:
        with self._lock:
            self._ensure_open()
            self.status = status

    def complete(self, status: str) -> None:
        """Move to a terminal status and stamp `completed_at`, exactly once."""
        if status not in TERMINAL_STATUSES:
            raise RunStateError(self.id, f"{status!r} is not a terminal status")
        with self._lock:
            self._ensure_open()
            self.status = status
            self.completed_at = utcnow()
