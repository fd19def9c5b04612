# settings.py
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Mapping, Optional


def _list(value: str) -> List[str]:
    return [v.strip() for v in value.split(",") if v.strip()]


@dataclass(frozen=True)
class Settings:
    storage_type: str = "memory"  # memory | sql
    database_url: str = "sqlite:///shipyard.db"
    executor: str = "docker"  # docker | local
    default_image: str = "ubuntu:latest"

    run_timeout: float = 30 * 60
    pull_timeout: float = 300
    container_op_timeout: float = 60
    logs_timeout: float = 30

    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "INFO"
    cors_origins: List[str] = field(default_factory=lambda: ["*"])

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> Settings:
        env = os.environ if environ is None else environ
        return cls(
            storage_type=env.get("STORAGE_TYPE", "memory").lower(),
            database_url=env.get("DATABASE_URL", "sqlite:///shipyard.db"),
            executor=env.get("EXECUTOR", "docker").lower(),
            default_image=env.get("DEFAULT_IMAGE", "ubuntu:latest"),
            run_timeout=float(env.get("RUN_TIMEOUT_SECONDS", "1800")),
            pull_timeout=float(env.get("PULL_TIMEOUT_SECONDS", "300")),
            container_op_timeout=float(env.get("CONTAINER_OP_TIMEOUT_SECONDS", "60")),
            logs_timeout=float(env.get("LOGS_TIMEOUT_SECONDS", "30")),
            host=env.get("HOST", "0.0.0.0"),
            port=int(env.get("PORT", "8080")),
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
            cors_origins=_list(env.get("CORS_ORIGINS", "*")),
        )
