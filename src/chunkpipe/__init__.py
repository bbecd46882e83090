"""
chunkpipe - Chunked, retrying, bounded-concurrency uploads to a media processing service.

This package provides:
- Python SDK for planning and uploading large payloads in chunks
- Sequential (fail-fast) and parallel (fault-tolerant) dispatch
- Progress, throughput and ETA reporting
- CLI tool and a FastAPI development receiver
"""

__version__ = "1.0.0"
__author__ = "chunkpipe maintainers"

from .core.api import ChunkUploadAPI, upload_bytes, upload_file
from .core.client import TransferClient
from .core.combiner import ResultCombiner
from .core.config import Settings
from .core.exceptions import (
    ApplicationError,
    ChunkPipeError,
    ErrorKind,
    HttpError,
    InvalidConfigError,
    NetworkError,
    TransferTimeoutError,
)
from .core.models import (
    Chunk,
    ChunkRange,
    ChunkState,
    JobConfig,
    JobProgress,
    JobResult,
    ProjectMetadata,
    TransferOutcome,
)
from .core.planner import ChunkPlanner
from .core.progress import ProgressAggregator
from .core.retry import RetryPolicy
from .core.scheduler import Parallel, Sequential, UploadScheduler
from .core.source import BytesSource, ChunkSource, FileSource
from .core.transport import AiohttpTransport, CancellableTransport

__all__ = [
    # Core classes
    "ChunkUploadAPI",
    "ChunkPlanner",
    "TransferClient",
    "RetryPolicy",
    "UploadScheduler",
    "Sequential",
    "Parallel",
    "ProgressAggregator",
    "ResultCombiner",
    "CancellableTransport",
    "AiohttpTransport",
    "ChunkSource",
    "BytesSource",
    "FileSource",
    "Settings",
    # Models
    "Chunk",
    "ChunkRange",
    "ChunkState",
    "JobConfig",
    "JobProgress",
    "JobResult",
    "ProjectMetadata",
    "TransferOutcome",
    # Exceptions
    "ChunkPipeError",
    "ErrorKind",
    "NetworkError",
    "TransferTimeoutError",
    "HttpError",
    "ApplicationError",
    "InvalidConfigError",
    # Convenience functions
    "upload_file",
    "upload_bytes",
    # Metadata
    "__version__",
    "__author__",
]
