# api/schemas.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from ..model import Job, Workflow, WorkflowRun


class StepOut(BaseModel):
    name: str
    run: str


class JobOut(BaseModel):
    runs_on: str
    steps: list[StepOut]
    status: str
    output: str
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None

    @classmethod
    def from_job(cls, job: Job) -> JobOut:
        return cls(
            runs_on=job.target,
            steps=[StepOut(name=s.name, run=s.run) for s in job.steps],
            status=job.status,
            output=job.output,
            started_at=job.started_at,
            ended_at=job.ended_at,
        )


class WorkflowOut(BaseModel):
    name: str
    on: dict[str, Any] = Field(default_factory=dict)
    jobs: dict[str, JobOut]
    job_order: list[str]

    @classmethod
    def from_workflow(cls, wf: Workflow) -> WorkflowOut:
        return cls(
            name=wf.name,
            on=wf.triggers,
            jobs={k: JobOut.from_job(j) for k, j in wf.jobs.items()},
            job_order=wf.job_order,
        )


class RunOut(BaseModel):
    id: str
    workflow_name: str
    status: str
    jobs: dict[str, JobOut]
    job_order: list[str]
    started_at: datetime
    completed_at: Optional[datetime] = None

    @classmethod
    def from_run(cls, run: WorkflowRun) -> RunOut:
        snap = run.snapshot()
        return cls(
            id=snap.id,
            workflow_name=snap.workflow_name,
            status=snap.status,
            jobs={k: JobOut.from_job(j) for k, j in snap.jobs.items()},
            job_order=snap.job_order,
            started_at=snap.started_at,
            completed_at=snap.completed_at,
        )


class MessageResponse(BaseModel):
    message: str
    name: str


class StatsOut(BaseModel):
    total_runs: int
    successful_runs: int
    failed_runs: int
    success_rate: float
    average_duration: float
