from __future__ import annotations

import os
from pathlib import Path

DEFAULT_TIMEOUT_SECONDS = 5.0
DEFAULT_RETRIES = 3
DEFAULT_API_PORT = 8080


def _env(name: str, default: str = "") -> str:
    return os.getenv(name, default).strip()


def _env_int(name: str, default: int) -> int:
    try:
        return int(_env(name, str(default)))
    except ValueError:
        return default


def results_dir() -> Path:
    return Path(_env("CDNS_RESULTS_DIR") or ".")


def log_level() -> str:
    return _env("CDNS_LOG_LEVEL", "info").lower() or "info"


def cors_origins() -> list[str]:
    raw = _env("CDNS_CORS_ALLOW_ORIGINS")
    if raw:
        return [o.strip() for o in raw.split(",") if o.strip()]
    return ["*"]


def task_workers() -> int:
    return max(1, _env_int("CDNS_TASK_WORKERS", 16))


def shutdown_grace_seconds() -> int:
    return max(1, _env_int("CDNS_SHUTDOWN_GRACE_SECONDS", 30))
