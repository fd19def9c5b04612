from __future__ import annotations

import pytest

from shipyard.executor import DockerExecutor, LocalExecutor
from shipyard.server import build_executor, build_orchestrator, build_storage
from shipyard.settings import Settings
from shipyard.storage import MemoryStorage, SQLStorage


def test_defaults():
    s = Settings.from_env({})
    assert s.storage_type == "memory"
    assert s.executor == "docker"
    assert s.run_timeout == 1800
    assert s.port == 8080
    assert s.cors_origins == ["*"]


def test_from_env_reads_every_knob():
    s = Settings.from_env(
        {
            "STORAGE_TYPE": "SQL",
            "DATABASE_URL": "sqlite://",
            "EXECUTOR": "Local",
            "DEFAULT_IMAGE": "debian:stable",
            "RUN_TIMEOUT_SECONDS": "90",
            "PULL_TIMEOUT_SECONDS": "12",
            "CONTAINER_OP_TIMEOUT_SECONDS": "7",
            "LOGS_TIMEOUT_SECONDS": "3",
            "HOST": "127.0.0.1",
            "PORT": "9000",
            "LOG_LEVEL": "debug",
            "CORS_ORIGINS": "http://a.test, http://b.test,",
        }
    )
    assert s.storage_type == "sql"
    assert s.executor == "local"
    assert s.default_image == "debian:stable"
    assert (s.run_timeout, s.pull_timeout, s.container_op_timeout, s.logs_timeout) == (90, 12, 7, 3)
    assert (s.host, s.port, s.log_level) == ("127.0.0.1", 9000, "DEBUG")
    assert s.cors_origins == ["http://a.test", "http://b.test"]


def test_build_storage():
    assert isinstance(build_storage(Settings(storage_type="memory")), MemoryStorage)
    sql = build_storage(Settings(storage_type="sql", database_url="sqlite://"))
    try:
        assert isinstance(sql, SQLStorage)
    finally:
        sql.close()
    with pytest.raises(ValueError, match="STORAGE_TYPE"):
        build_storage(Settings(storage_type="redis"))


def test_build_executor():
    docker = build_executor(Settings(executor="docker", default_image="debian:stable", pull_timeout=5))
    assert isinstance(docker, DockerExecutor)
    assert docker.image_for("mystery") == "debian:stable"
    assert docker.timeouts.pull == 5
    assert isinstance(build_executor(Settings(executor="local")), LocalExecutor)
    with pytest.raises(ValueError, match="EXECUTOR"):
        build_executor(Settings(executor="k8s"))


def test_build_orchestrator():
    orch = build_orchestrator(Settings(executor="local", run_timeout=42))
    try:
        assert orch.run_timeout == 42
        assert isinstance(orch.executor, LocalExecutor)
    finally:
        orch.shutdown(timeout=1)
