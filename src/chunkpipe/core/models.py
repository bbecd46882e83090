"""
Data model for chunkpipe.

Chunk ranges are plain dataclasses since they sit on the hot path and carry
raw payload bytes. Everything that crosses the API boundary (configuration,
outcomes, progress, results, request metadata and the development server's
responses) is a pydantic model.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, Union
import json

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .exceptions import ErrorKind, InvalidConfigError, TransferError

MB = 1024 * 1024

DEFAULT_CHUNK_SIZE = 5 * MB
DEFAULT_MAX_CONCURRENCY = 8
DEFAULT_MAX_RETRIES = 3
DEFAULT_BACKOFF_MS = 1000
DEFAULT_TIMEOUT_MS = 120_000
DEFAULT_TIMEOUT_PER_MB_MS = 30_000
DEFAULT_FAILURE_THRESHOLD = 0.5

Buffer = Union[bytes, memoryview]


class ChunkState(str, Enum):
    """Lifecycle state of a single chunk inside a job."""

    PENDING = "pending"
    IN_FLIGHT = "in_flight"
    RETRYING = "retrying"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class ChunkForm(str, Enum):
    """Multipart layout used when sending a chunk."""

    ORDERED = "ordered"  # /api/frontend/upload-chunk
    INDEPENDENT = "independent"  # /api/process-chunk


@dataclass(frozen=True)
class ChunkRange:
    """A planned byte range ``[start_offset, end_offset)`` of a source."""

    index: int
    total_chunks: int
    start_offset: int
    end_offset: int

    @property
    def size(self) -> int:
        return self.end_offset - self.start_offset

    @property
    def is_last(self) -> bool:
        return self.index == self.total_chunks - 1


@dataclass(frozen=True)
class Chunk(ChunkRange):
    """A planned range together with its payload bytes."""

    payload: Buffer = field(default=b"", repr=False)
    chunk_id: str = ""


# Request Models
class ProjectMetadata(BaseModel):
    """Project/job metadata sent alongside every chunk."""

    model_config = ConfigDict(populate_by_name=True)

    project_name: str = Field(
        ...,
        min_length=1,
        alias="projectName",
        description="Project name, also used as the project identifier",
        examples=["summer-trip"],
    )
    description: str = Field("", description="Free-form project description")
    source_type: str = Field(
        "file", alias="sourceType", description="Kind of source: file, url or text"
    )
    target_platforms: List[str] = Field(
        default_factory=list,
        alias="targetPlatforms",
        description="Platforms the output is targeted at",
        examples=[["tiktok", "youtube"]],
    )
    ai_prompt: str = Field("", alias="aiPrompt", description="Prompt for the processing service")
    processing_options: Dict[str, Any] = Field(
        default_factory=dict,
        alias="processingOptions",
        description="Opaque processing options forwarded as JSON",
    )
    num_clips: int = Field(3, ge=1, alias="numClips", description="Number of clips to produce")

    def as_payload(self) -> Dict[str, Any]:
        """Return the metadata keyed by its wire (camelCase) names."""
        return self.model_dump(by_alias=True)

    def form_fields(self) -> List[Tuple[str, str]]:
        """Return the metadata as multipart text fields."""
        return [
            ("projectName", self.project_name),
            ("description", self.description),
            ("sourceType", self.source_type),
            ("targetPlatforms", json.dumps(self.target_platforms)),
            ("aiPrompt", self.ai_prompt),
            ("processingOptions", json.dumps(self.processing_options)),
            ("numClips", str(self.num_clips)),
        ]


# Configuration Models
TimeoutSpec = Union[int, Callable[[int], int]]


class JobConfig(BaseModel):
    """Settings for one upload job.

    ``per_chunk_timeout_ms`` is either a floor in milliseconds, scaled up by
    ``timeout_per_mb_ms`` for larger chunks, or a callable mapping a chunk
    size in bytes to a timeout in milliseconds.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    chunk_size_bytes: int = Field(DEFAULT_CHUNK_SIZE, gt=0, description="Target chunk size")
    max_concurrency: int = Field(
        DEFAULT_MAX_CONCURRENCY, ge=1, description="Chunks in flight per parallel batch"
    )
    max_retries: int = Field(DEFAULT_MAX_RETRIES, ge=0, description="Retries per chunk")
    base_backoff_ms: int = Field(DEFAULT_BACKOFF_MS, ge=0, description="First retry delay")
    per_chunk_timeout_ms: TimeoutSpec = Field(DEFAULT_TIMEOUT_MS)
    timeout_per_mb_ms: int = Field(DEFAULT_TIMEOUT_PER_MB_MS, ge=0)
    redispatch_on_timeout: bool = Field(
        True, description="Re-run a chunk's retry loop once after it times out"
    )
    failure_threshold: float = Field(
        DEFAULT_FAILURE_THRESHOLD,
        ge=0.0,
        lt=1.0,
        description="Fraction of failed chunks above which a parallel job fails",
    )

    def __init__(self, **data: Any) -> None:
        try:
            super().__init__(**data)
        except ValidationError as exc:
            error = exc.errors()[0]
            field_name = ".".join(str(part) for part in error["loc"]) or "config"
            raise InvalidConfigError(field_name, error.get("input"), error["msg"]) from exc

    @field_validator("per_chunk_timeout_ms")
    def validate_timeout(cls, v: TimeoutSpec) -> TimeoutSpec:
        """Validate the timeout floor."""
        if not callable(v) and v <= 0:
            raise ValueError("timeout must be positive")
        return v

    def timeout_for(self, chunk_size: int) -> int:
        """Return the deadline in milliseconds for a chunk of ``chunk_size`` bytes."""
        if callable(self.per_chunk_timeout_ms):
            timeout_ms = int(self.per_chunk_timeout_ms(chunk_size))
            if timeout_ms <= 0:
                raise InvalidConfigError(
                    "per_chunk_timeout_ms",
                    timeout_ms,
                    f"returned a non-positive timeout for {chunk_size} bytes",
                )
            return timeout_ms
        scaled = (chunk_size / MB) * self.timeout_per_mb_ms
        return int(max(self.per_chunk_timeout_ms, scaled))

    def merged(self, **changes: Any) -> "JobConfig":
        """Return a validated copy with ``changes`` applied."""
        values = {name: getattr(self, name) for name in type(self).model_fields}
        values.update(changes)
        return JobConfig(**values)


# Outcome Models
class TransferOutcome(BaseModel):
    """Terminal or intermediate result of sending one chunk."""

    chunk_index: int = Field(..., ge=0)
    success: bool
    http_status: Optional[int] = None
    latency_ms: Optional[int] = Field(None, ge=0)
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    server_payload: Optional[Any] = None
    chunk_size: int = Field(0, ge=0)

    @property
    def retryable(self) -> bool:
        """Failed outcomes are retryable unless they timed out."""
        return not self.success and self.error_kind is not ErrorKind.TIMEOUT

    @classmethod
    def from_error(
        cls,
        chunk_index: int,
        exc: TransferError,
        latency_ms: Optional[int] = None,
        chunk_size: int = 0,
    ) -> "TransferOutcome":
        return cls(
            chunk_index=chunk_index,
            success=False,
            http_status=exc.status_code,
            latency_ms=latency_ms,
            error=exc.message,
            error_kind=exc.kind,
            chunk_size=chunk_size,
        )


class JobProgress(BaseModel):
    """Snapshot of a job's progress. Derived from the outcome stream."""

    total_chunks: int = Field(..., ge=0)
    uploaded: int = Field(0, ge=0, description="Chunks that succeeded")
    in_flight: int = Field(0, ge=0)
    completed: int = Field(0, ge=0, description="Chunks in a terminal state")
    failed: int = Field(0, ge=0)
    pending: int = Field(0, ge=0, description="Chunks not dispatched yet")
    retrying: int = Field(0, ge=0, description="Chunks waiting out a retry backoff")
    current_chunk_index: Optional[int] = None
    overall_percent: float = Field(0.0, ge=0.0, le=100.0)
    eta_seconds: float = Field(0.0, ge=0.0)
    throughput_mbps: float = Field(0.0, ge=0.0)


class JobResult(BaseModel):
    """Job-level summary returned to the caller."""

    success: bool
    message: str
    chunks_attempted: int = Field(0, ge=0)
    chunks_succeeded: int = Field(0, ge=0)
    chunks_failed: int = Field(0, ge=0)
    total_chunks: int = Field(0, ge=0)
    discipline: str = "sequential"
    per_chunk_results: List[TransferOutcome] = Field(default_factory=list)
    chunk_states: Dict[int, ChunkState] = Field(
        default_factory=dict, description="Final state of every planned chunk"
    )
    max_in_flight: int = Field(0, ge=0, description="Peak number of concurrent transfers")

    @property
    def failed_indices(self) -> List[int]:
        return [o.chunk_index for o in self.per_chunk_results if not o.success]

    @property
    def server_results(self) -> List[Any]:
        """Server payloads of the successful chunks, in index order."""
        return [o.server_payload for o in self.per_chunk_results if o.success]


# Response Models (development receiver)
class ChunkUploadResponse(BaseModel):
    """Response to an ordered chunk upload."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = Field(..., description="Whether the chunk was accepted")
    processing_started: bool = Field(False, alias="processingStarted")
    next_step: str = Field("", alias="nextStep", examples=["video_processing"])
    message: str = Field("", examples=["Chunk 1/5 received"])
    error: Optional[str] = None


class ProcessChunkResponse(BaseModel):
    """Response to an independent chunk upload."""

    model_config = ConfigDict(populate_by_name=True)

    chunk_id: str = Field(..., alias="chunkId")
    chunk_index: int = Field(..., alias="chunkIndex")
    bytes_received: int = Field(..., alias="bytesReceived")
    is_last_chunk: bool = Field(False, alias="isLastChunk")
    chunks_received: int = Field(..., alias="chunksReceived")


class ProcessProjectResponse(BaseModel):
    """Response to a whole-file submission."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    project_name: str = Field(..., alias="projectName")
    bytes_received: int = Field(..., alias="bytesReceived")
    message: str = ""


class HealthCheckResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., description="Service status", examples=["healthy"])
    version: str = Field(..., description="API version", examples=["1.0.0"])
    timestamp: datetime = Field(default_factory=datetime.utcnow, description="Check timestamp")
