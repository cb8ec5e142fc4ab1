# src/lifecycle_tasks/config.py

"""Settings loaded from environment variables (+ optional local .env).

One Settings object is shared by the CLI and the process adapter. Library code accepts
an injected Settings; get_settings() is only the default.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "LIFECYCLE_TASKS"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path | None) -> Path | None:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- Logging ----
    log_level: str
    log_dir: Path | None

    # ---- Worker processes ----
    python_executable: str
    handshake_timeout_seconds: float
    stop_timeout_seconds: float  # 0 => wait for the run to settle without a deadline
    forward_worker_stderr: bool

    @staticmethod
    def from_env() -> "Settings":
        return Settings(
            log_level=_env(_k("LOG_LEVEL"), "INFO").strip().upper() or "INFO",
            log_dir=_env_path(_k("LOG_DIR"), None),
            python_executable=_env(_k("PYTHON"), sys.executable) or sys.executable,
            handshake_timeout_seconds=max(0.1, _env_float(_k("HANDSHAKE_TIMEOUT_SECONDS"), 10.0)),
            stop_timeout_seconds=max(0.0, _env_float(_k("STOP_TIMEOUT_SECONDS"), 5.0)),
            forward_worker_stderr=_env_bool(_k("FORWARD_WORKER_STDERR"), True),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    load_dotenv(override=False)
    return Settings.from_env()
