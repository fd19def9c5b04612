# cli.py
from __future__ import annotations

import sys
from pathlib import Path

import click

from shipyard.errors import ExecutionError, ParseError, ShipyardError, ValidationError
from shipyard.executor import DockerExecutor, LocalExecutor
from shipyard.logging import configure_logging
from shipyard.orchestrator import Orchestrator
from shipyard.parser import load
from shipyard.settings import Settings
from shipyard.storage import MemoryStorage
from shipyard.ui.console import Console, get_console, set_console


def _read_workflow(path: str) -> str:
    console = get_console()
    workflow_path = Path(path)
    if not workflow_path.exists():
        console.print_error(
            "Workflow file not found",
            f"Could not find workflow file: {path}",
            suggestion="Specify an existing YAML file:\n  shipyard run .shipyard/ci.yml",
        )
        sys.exit(1)
    return workflow_path.read_text(encoding="utf-8")


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and detailed output)",
)
@click.pass_context
def cli(ctx, debug):
    """Shipyard: run YAML workflows in container sandboxes."""
    console = Console(debug=debug)
    set_console(console)
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@cli.command()
@click.argument("workflow")
def validate(workflow):
    """Parse and validate a workflow file."""
    console = get_console()
    text = _read_workflow(workflow)
    try:
        wf = load(text)
    except (ParseError, ValidationError) as e:
        console.print_error("Invalid workflow", str(e))
        sys.exit(1)
    console.print_workflow_valid(wf.name, wf.job_order)


@cli.command()
@click.argument("workflow")
@click.option(
    "--executor",
    "executor_kind",
    type=click.Choice(["docker", "local"]),
    default="docker",
    show_default=True,
    help="Where jobs run: docker containers or a local temp dir",
)
@click.option("--timeout", default=1800.0, type=float, show_default=True, help="Run deadline in seconds")
@click.option("--show-output/--no-show-output", default=False, help="Print each job's captured output")
@click.pass_context
def run(ctx, workflow, executor_kind, timeout, show_output):
    """Run a workflow file once and report per-job results."""
    console = get_console()
    if ctx.obj.get("debug", False):
        configure_logging("DEBUG")

    text = _read_workflow(workflow)

    if executor_kind == "docker":
        executor = DockerExecutor()
        try:
            console.print_debug(executor.check_available())
        except ExecutionError as e:
            console.print_error(
                "Docker is not available",
                str(e),
                suggestion="Use the local executor instead:\n  shipyard run --executor local " + workflow,
            )
            sys.exit(1)
    else:
        executor = LocalExecutor()

    orchestrator = Orchestrator(MemoryStorage(), executor, run_timeout=timeout)
    try:
        wf = orchestrator.ingest(text)
        started = orchestrator.trigger(wf.name)
        console.print_run_started(wf.name, started.id, started.job_order)

        # the run's own deadline fires before this one
        finished = orchestrator.wait(started.id, timeout=timeout + 30)
        console.print_results(finished, show_output=show_output)
    except (ParseError, ValidationError) as e:
        console.print_error("Invalid workflow", str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        orchestrator.shutdown(timeout=60)
        sys.exit(130)
    except (ShipyardError, TimeoutError) as e:
        console.print_exception(e)
        sys.exit(1)

    orchestrator.shutdown(timeout=5)
    if finished.status != "success":
        sys.exit(1)


@cli.command()
@click.option("--host", default=None, help="Bind address (defaults to $HOST or 0.0.0.0)")
@click.option("--port", default=None, type=int, help="Port (defaults to $PORT or 8080)")
def serve(host, port):
    """Serve the HTTP API, configured from the environment."""
    import uvicorn

    from shipyard.api import create_app
    from shipyard.server import build_orchestrator

    settings = Settings.from_env()
    configure_logging(settings.log_level)

    orchestrator = build_orchestrator(settings)
    app = create_app(orchestrator, cors_origins=settings.cors_origins)
    try:
        uvicorn.run(
            app,
            host=host or settings.host,
            port=port or settings.port,
            log_level=settings.log_level.lower(),
        )
    finally:
        orchestrator.shutdown(timeout=10)


if __name__ == "__main__":
    cli()
