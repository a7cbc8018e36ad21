"""
Worker configuration.

Values come from environment variables (optionally loaded from .env by
env.load_env). Invalid values raise ConfigError at startup rather than
surfacing later inside the poll loop.
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .errors import ConfigError

DEFAULT_DATABASE_URL = "sqlite:///data/ltxworker.db"


def _get_int(env: Mapping[str, str], name: str, default: int, minimum: int = 0) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")
    if value < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got {value}")
    return value


def _get_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw.strip())
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}")
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {value}")
    return value


@dataclass
class WorkerConfig:
    """Runtime settings for a worker process."""

    database_url: str = DEFAULT_DATABASE_URL
    poll_interval: float = 0.6  # seconds
    max_concurrency: int = 4
    repair_retries: int = 3
    fetch_timeout: float = 15.0
    model_timeout: float = 120.0
    model_name: str = "gpt-4o-mini"
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    health_port: int = 8081
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "WorkerConfig":
        """
        Build a config from environment variables.

        Args:
            env: Mapping to read from (default: os.environ)

        Returns:
            WorkerConfig instance

        Raises:
            ConfigError: If any value is malformed or out of range
        """
        if env is None:
            env = os.environ

        log_level = env.get("LOG_LEVEL", "INFO").strip().upper()
        if log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ConfigError(f"LOG_LEVEL must be a standard level name, got {log_level!r}")

        return cls(
            database_url=env.get("DATABASE_URL") or DEFAULT_DATABASE_URL,
            poll_interval=_get_int(env, "WORKER_POLL_INTERVAL_MS", 600) / 1000.0,
            max_concurrency=_get_int(env, "WORKER_MAX_CONCURRENCY", 4, minimum=1),
            repair_retries=_get_int(env, "WORKER_REPAIR_RETRIES", 3),
            fetch_timeout=_get_float(env, "FETCH_TIMEOUT_S", 15.0),
            model_timeout=_get_float(env, "MODEL_TIMEOUT_S", 120.0),
            model_name=env.get("LLM_MODEL") or "gpt-4o-mini",
            api_key=env.get("OPENAI_API_KEY") or None,
            base_url=env.get("OPENAI_BASE_URL") or None,
            health_port=_get_int(env, "HEALTH_PORT", 8081),
            log_level=log_level,
        )
