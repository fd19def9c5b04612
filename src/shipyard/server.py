# server.py
from __future__ import annotations

import logging

from .executor import DockerExecutor, DockerTimeouts, Executor, LocalExecutor
from .orchestrator import Orchestrator
from .settings import Settings
from .storage import MemoryStorage, SQLStorage, Storage

logger = logging.getLogger(__name__)


def build_storage(settings: Settings) -> Storage:
    if settings.storage_type == "sql":
        logger.info("using SQL storage: %s", settings.database_url)
        return SQLStorage(settings.database_url)
    if settings.storage_type == "memory":
        logger.info("using in-memory storage")
        return MemoryStorage()
    raise ValueError(f"unknown STORAGE_TYPE {settings.storage_type!r} (expected memory|sql)")


def build_executor(settings: Settings) -> Executor:
    if settings.executor == "docker":
        return DockerExecutor(
            default_image=settings.default_image,
            timeouts=DockerTimeouts(
                pull=settings.pull_timeout,
                create=settings.container_op_timeout,
                start=settings.container_op_timeout,
                logs=settings.logs_timeout,
                remove=settings.logs_timeout,
            ),
        )
    if settings.executor == "local":
        return LocalExecutor()
    raise ValueError(f"unknown EXECUTOR {settings.executor!r} (expected docker|local)")


def build_orchestrator(settings: Settings) -> Orchestrator:
    return Orchestrator(
        build_storage(settings),
        build_executor(settings),
        run_timeout=settings.run_timeout,
    )
