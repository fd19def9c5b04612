from .base import ExecutionContext, Executor, build_script
from .docker import DockerExecutor, DockerTimeouts
from .local import LocalExecutor

__all__ = [
    "ExecutionContext",
    "Executor",
    "build_script",
    "DockerExecutor",
    "DockerTimeouts",
    "LocalExecutor",
]
