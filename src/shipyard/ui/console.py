"""Console output formatting utilities for Shipyard."""

from __future__ import annotations

import sys
from typing import Optional

from ..model import WorkflowRun


class Console:
    """Centralized console output formatting."""

    def __init__(self, debug: bool = False):
        """
        Initialize console formatter.

        Args:
            debug: If True, show detailed output including stack traces
        """
        self.debug = debug

    def print_header(self, title: str) -> None:
        """Print a section header."""
        print(f"\n{title}")
        print("-" * len(title))

    def print_run_started(self, workflow: str, run_id: str, job_order: list[str]) -> None:
        """Print run start information."""
        print("\nRUN STARTED")
        print(f"Workflow: {workflow}")
        print(f"Run ID: {run_id}")
        print(f"Jobs: {' -> '.join(job_order)}")
        print()

    def print_workflow_valid(self, name: str, job_order: list[str]) -> None:
        print(f"Workflow '{name}' is valid")
        for i, job in enumerate(job_order, start=1):
            print(f"  {i}. {job}")

    def print_results(self, run: WorkflowRun, show_output: bool = False) -> None:
        """Print final results summary, one line per job in execution order."""
        print("\n" + "=" * 40)
        print("RESULTS")
        print("=" * 40)
        for name in run.job_order:
            job = run.jobs[name]
            line = f"  {name}: {job.status.upper()}"
            if job.started_at and job.ended_at:
                line += f" ({(job.ended_at - job.started_at).total_seconds():.1f}s)"
            print(line)
            if show_output and job.output:
                for out_line in job.output.rstrip("\n").splitlines():
                    print(f"    | {out_line}")
        print(f"\nRUN {run.status.upper()}")

    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[list[str]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        """
        Print structured error message.

        Args:
            title: Error title
            message: Main error message
            details: Optional list of detail lines
            suggestion: Optional suggestion for user
        """
        print(f"\nERROR: {title}", file=sys.stderr)
        print(f"{message}", file=sys.stderr)
        if details:
            for detail in details:
                print(f"  {detail}", file=sys.stderr)
        if suggestion:
            print(f"\n{suggestion}", file=sys.stderr)

    def print_exception(self, exc: Exception) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback
            traceback.print_exc()
        else:
            print(f"Error: {exc}", file=sys.stderr)

    def print_info(self, message: str) -> None:
        """Print informational message."""
        print(message)

    def print_debug(self, message: str) -> None:
        """Print debug message (only if debug mode enabled)."""
        if self.debug:
            print(f"[DEBUG] {message}", file=sys.stderr)


# Global console instance (will be initialized by CLI)
_console: Optional[Console] = None


def get_console() -> Console:
    """Get the global console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    """Set the global console instance."""
    global _console
    _console = console
