# parser.py
from __future__ import annotations

import logging
from typing import Any, List, Optional

import yaml

from .errors import ParseError, ValidationError
from .model import Job, Step, Workflow

logger = logging.getLogger(__name__)


# ----------------------------------------------------------------------
# Parsing
# ----------------------------------------------------------------------

def _job_order_from_nodes(text: str) -> Optional[List[str]]:
    """
    Recover the declaration order of the `jobs` mapping.

    Works on the composed node tree rather than the decoded dict so the
    order comes from the document itself. Returns None when the document has
    no `jobs` mapping node to read from.
    """
    loader = yaml.SafeLoader(text)
    try:
        root = loader.get_single_node()
        if not isinstance(root, yaml.MappingNode):
            return None

        for key_node, value_node in root.value:
            if key_node.value != "jobs":
                continue
            if not isinstance(value_node, yaml.MappingNode):
                return None

            order: List[str] = []
            for job_key, _job_value in value_node.value:
                # resolved like the decoded mapping: `yes` is True, `010` is 8
                name = str(loader.construct_object(job_key, deep=True))
                if name in order:
                    raise ParseError(f"duplicate job name '{name}'")
                order.append(name)
            return order
    finally:
        loader.dispose()

    return None


def _parse_step(job_name: str, index: int, raw: Any) -> Step:
    if not isinstance(raw, dict):
        raise ParseError(f"job '{job_name}' step {index} must be a mapping")
    name = raw.get("name")
    run = raw.get("run")
    return Step(
        name="" if name is None else str(name),
        run="" if run is None else str(run),
    )


def _parse_job(name: str, raw: Any) -> Job:
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ParseError(f"job '{name}' must be a mapping")

    steps_raw = raw.get("steps") or []
    if not isinstance(steps_raw, list):
        raise ParseError(f"job '{name}' steps must be a list")

    target = raw.get("runs-on", raw.get("runs_on", ""))
    return Job(
        target="" if target is None else str(target),
        steps=[_parse_step(name, i + 1, s) for i, s in enumerate(steps_raw)],
    )


def parse(text: str | bytes) -> Workflow:
    """
    Parse a YAML workflow document.

    Job declaration order is recovered with a second, structural pass over
    the document; the decoded mapping's own key order is only a fallback.
    """
    if isinstance(text, bytes):
        try:
            text = text.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ParseError("workflow document is not valid UTF-8") from e

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ParseError(str(e)) from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ParseError("workflow document must be a mapping")

    jobs_raw = data.get("jobs") or {}
    if not isinstance(jobs_raw, dict):
        raise ParseError("'jobs' must be a mapping of job name to job")

    jobs = {str(name): _parse_job(str(name), raw) for name, raw in jobs_raw.items()}

    try:
        order = _job_order_from_nodes(text)
    except yaml.YAMLError as e:
        logger.warning("could not walk workflow document for job order: %s", e)
        order = None

    if order is None:
        order = list(jobs.keys())
        if order:
            logger.warning("could not recover job order, using decoded key order: %s", order)

    # YAML 1.1 reads a bare `on` key as the boolean True
    triggers = data.get("on", data.get(True)) or {}
    if not isinstance(triggers, dict):
        triggers = {"events": triggers}

    name = data.get("name")
    return Workflow(
        name="" if name is None else str(name),
        jobs=jobs,
        job_order=order,
        triggers=triggers,
    )


# ----------------------------------------------------------------------
# Validation
# ----------------------------------------------------------------------

def validate(wf: Workflow) -> None:
    """Raise ValidationError for the first structural problem found."""
    if not wf.name:
        raise ValidationError("workflow name is required")

    if not wf.jobs:
        raise ValidationError("workflow must have at least one job")

    for job_name in wf.job_order:
        job = wf.jobs.get(job_name)
        if job is None:
            continue
        if not job.steps:
            raise ValidationError(f"job '{job_name}' must have at least one step", job=job_name)

        for i, step in enumerate(job.steps, start=1):
            if not step.name:
                raise ValidationError(
                    f"job '{job_name}' step {i} is missing a name",
                    job=job_name,
                    step=str(i),
                )
            if not step.run.strip():
                raise ValidationError(
                    f"job '{job_name}' step '{step.name}' is missing run commands",
                    job=job_name,
                    step=step.name,
                )

    if sorted(wf.job_order) != sorted(wf.jobs):
        raise ValidationError(
            f"job order {wf.job_order} does not match declared jobs {sorted(wf.jobs)}"
        )


def load(text: str | bytes) -> Workflow:
    """Parse and validate in one go."""
    wf = parse(text)
    validate(wf)
    return wf
