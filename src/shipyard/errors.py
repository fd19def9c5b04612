# errors.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


class ShipyardError(Exception):
    """Base class for every error raised by shipyard."""


@dataclass(eq=False)
class ParseError(ShipyardError):
    """The workflow document could not be decoded."""
    message: str

    def __str__(self) -> str:
        return f"failed to parse workflow: {self.message}"


@dataclass(eq=False)
class ValidationError(ShipyardError):
    """
    The document decoded fine but the workflow is incomplete.

    `job` / `step` point at the offending element when there is one.
    """
    message: str
    job: Optional[str] = None
    step: Optional[str] = None

    def __str__(self) -> str:
        return self.message


@dataclass(eq=False)
class NotFoundError(ShipyardError):
    kind: str  # "workflow" | "run"
    key: str

    def __str__(self) -> str:
        return f"{self.kind} '{self.key}' not found"


@dataclass(eq=False)
class ExecutionError(ShipyardError):
    """
    A job's sandbox failed or its script exited non-zero.

    Whatever output was captured before the failure travels with the error,
    callers must not drop it.
    """
    message: str
    output: str = ""
    exit_code: Optional[int] = None
    details: dict = field(default_factory=dict)

    def __str__(self) -> str:
        lines = [self.message]
        if self.exit_code is not None:
            lines.append(f"exit_code={self.exit_code}")
        for k, v in self.details.items():
            lines.append(f"{k}={v}")
        return "\n".join(lines)


@dataclass(eq=False)
class PersistenceError(ShipyardError):
    """The store was unreachable or rejected a write."""
    message: str

    def __str__(self) -> str:
        return self.message


@dataclass(eq=False)
class RunStateError(ShipyardError):
    """An illegal transition was attempted on a run."""
    run_id: str
    message: str

    def __str__(self) -> str:
        return f"run '{self.run_id}': {self.message}"
