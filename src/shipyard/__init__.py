from .dsl import job, sh, wf, JobBuilder, build
from .model import Job, Step, Workflow, WorkflowRun
from .orchestrator import Orchestrator
from .parser import load, parse, validate

__all__ = [
    "job", "sh", "wf", "JobBuilder", "build",
    "Job", "Step", "Workflow", "WorkflowRun",
    "Orchestrator",
    "load", "parse", "validate",
]
