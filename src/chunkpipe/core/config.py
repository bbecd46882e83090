"""Environment-backed settings for chunkpipe."""

import os
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel, Field

from .exceptions import InvalidConfigError
from .models import (
    DEFAULT_BACKOFF_MS,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_MAX_CONCURRENCY,
    DEFAULT_MAX_RETRIES,
    DEFAULT_TIMEOUT_MS,
    MB,
    JobConfig,
)

DEFAULT_BASE_URL = "http://localhost:5000"
DEFAULT_PARALLEL_THRESHOLD = 100 * MB

ENV_PREFIX = "CHUNKPIPE_"


def _env_value(name: str, parse: Callable[[str], Any]) -> Any:
    raw = os.getenv(f"{ENV_PREFIX}{name}")
    if raw is None or raw.strip() == "":
        return None
    try:
        return parse(raw.strip())
    except ValueError as exc:
        raise InvalidConfigError(f"{ENV_PREFIX}{name}", raw, str(exc)) from exc


def _megabytes(raw: str) -> int:
    return int(float(raw) * MB)


class Settings(BaseModel):
    """Service location and job defaults."""

    base_url: str = Field(DEFAULT_BASE_URL, description="Processing service root URL")
    chunk_size_bytes: int = Field(DEFAULT_CHUNK_SIZE, description="Chunk size in bytes")
    max_concurrency: int = Field(DEFAULT_MAX_CONCURRENCY, description="Parallel batch size")
    max_retries: int = Field(DEFAULT_MAX_RETRIES, description="Retries per chunk")
    base_backoff_ms: int = Field(DEFAULT_BACKOFF_MS, description="First retry delay")
    timeout_ms: int = Field(DEFAULT_TIMEOUT_MS, description="Per-chunk timeout floor")
    parallel_threshold_bytes: int = Field(
        DEFAULT_PARALLEL_THRESHOLD,
        description="Sources at least this large are uploaded in parallel",
    )

    @classmethod
    def from_env(cls, **overrides: Any) -> "Settings":
        """Build settings from ``CHUNKPIPE_*`` variables.

        Explicit ``overrides`` that are not None win over the environment.
        """
        values: Dict[str, Any] = {
            "base_url": _env_value("BASE_URL", str),
            "chunk_size_bytes": _env_value("CHUNK_SIZE_MB", _megabytes),
            "max_concurrency": _env_value("MAX_CONCURRENCY", int),
            "max_retries": _env_value("MAX_RETRIES", int),
            "base_backoff_ms": _env_value("BACKOFF_MS", int),
            "timeout_ms": _env_value("TIMEOUT_MS", int),
            "parallel_threshold_bytes": _env_value("PARALLEL_THRESHOLD_MB", _megabytes),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**{k: v for k, v in values.items() if v is not None})

    def job_config(self, chunk_size_bytes: Optional[int] = None) -> JobConfig:
        """Return the validated job configuration for these settings."""
        return JobConfig(
            chunk_size_bytes=chunk_size_bytes or self.chunk_size_bytes,
            max_concurrency=self.max_concurrency,
            max_retries=self.max_retries,
            base_backoff_ms=self.base_backoff_ms,
            per_chunk_timeout_ms=self.timeout_ms,
        )
