from __future__ import annotations

import threading
import time
from typing import Iterable, Optional

import pytest

from shipyard.errors import ExecutionError
from shipyard.executor.base import ExecutionContext, Executor
from shipyard.model import Job
from shipyard.orchestrator import Orchestrator
from shipyard.storage import MemoryStorage

DEMO_YAML = """
name: demo
on:
  push:
    branches:
      - main
jobs:
  lint:
    runs-on: alpine
    steps:
      - name: Lint code
        run: echo "linting"
  test:
    runs-on: ubuntu
    steps:
      - name: Run tests
        run: echo "testing"
"""

THREE_JOBS_YAML = """
name: pipeline
jobs:
  build:
    runs-on: ubuntu
    steps:
      - name: Compile
        run: echo build
  test:
    runs-on: ubuntu
    steps:
      - name: Unit
        run: echo test
  deploy:
    runs-on: alpine
    steps:
      - name: Ship
        run: echo deploy
"""


class FakeExecutor(Executor):
    """Scripted executor: fails the named jobs, records the call order."""

    def __init__(self, fail: Iterable[str] = (), delay: float = 0.0, crash: Iterable[str] = ()):
        self.fail = set(fail)
        self.crash = set(crash)
        self.delay = delay
        self.calls: list[str] = []
        self._lock = threading.Lock()

    def execute(self, job_name: str, job: Job, ctx: ExecutionContext) -> str:
        with self._lock:
            self.calls.append(job_name)
        if self.delay:
            time.sleep(self.delay)
        if job_name in self.crash:
            raise RuntimeError(f"{job_name} exploded")
        if job_name in self.fail:
            raise ExecutionError("container exited with status 1", output=f"{job_name} partial output\n", exit_code=1)
        return f"{job_name} ok\n"


class GateExecutor(FakeExecutor):
    """Blocks inside execute() until released, so tests can look at a run mid-flight."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.entered = threading.Event()
        self.release = threading.Event()

    def execute(self, job_name: str, job: Job, ctx: ExecutionContext) -> str:
        self.entered.set()
        self.release.wait(timeout=10)
        return super().execute(job_name, job, ctx)


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def orchestrator(storage, executor):
    orch = Orchestrator(storage, executor)
    yield orch
    orch.shutdown(timeout=5)


def wait_for(predicate, timeout: float = 5.0, interval: float = 0.02) -> Optional[bool]:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return False
