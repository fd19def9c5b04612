# dsl.py
from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from .model import Job, Step, Workflow
from .parser import validate


# ---------------------------------------------------------------------
# Step helper
# ---------------------------------------------------------------------

def sh(name: str, cmd: str) -> Step:
    """Create a shell step."""
    return Step(name=name, run=cmd)


# ---------------------------------------------------------------------
# Functional Job helper
# ---------------------------------------------------------------------

def job(
    name: str,
    *steps: Step,  # allow: job("x", sh(...), sh(...))
    runs_on: str = "ubuntu",
    steps_list: Optional[List[Step]] = None,
) -> Tuple[str, Job]:
    """Returns a (name, Job) pair so `wf` keeps the order jobs were written in."""
    steps_final: List[Step] = []
    if steps_list:
        steps_final.extend(steps_list)
    steps_final.extend(steps)

    if not steps_final:
        raise ValueError(f"job({name!r}) must have at least one step")

    return name, Job(target=runs_on, steps=steps_final)


# ---------------------------------------------------------------------
# Builder API
# ---------------------------------------------------------------------

class JobBuilder:
    def __init__(self, name: str):
        self.name = name
        self._runs_on = "ubuntu"
        self._steps: list[Step] = []

    def runs_on(self, target: str):
        self._runs_on = target
        return self

    def define_step(self, name: str, run: str):
        self._steps.append(Step(name=name, run=run))
        return self

    def build(self) -> Tuple[str, Job]:
        if not self._steps:
            raise ValueError(f"Job '{self.name}' has no steps")
        return self.name, Job(target=self._runs_on, steps=list(self._steps))


def build(name: str) -> JobBuilder:
    """Convenience: build('test').define_step(...).build()"""
    return JobBuilder(name)


# ---------------------------------------------------------------------
# Workflow helper
# ---------------------------------------------------------------------

def wf(name: str, *jobs: Tuple[str, Job], on: Optional[Dict[str, Any]] = None) -> Workflow:
    """
    Workflow definition helper. Job order is the argument order:

        from shipyard.dsl import wf, job, sh

        demo = wf(
            "demo",
            job("lint", sh("Lint", "ruff check .")),
            job("test", sh("Test", "pytest -q"), runs_on="alpine"),
        )
    """
    order: List[str] = []
    by_name: Dict[str, Job] = {}
    for job_name, j in jobs:
        if job_name in by_name:
            raise ValueError(f"Duplicate job name: {job_name}")
        by_name[job_name] = j
        order.append(job_name)

    workflow = Workflow(name=name, jobs=by_name, job_order=order, triggers=dict(on or {}))
    validate(workflow)
    return workflow
