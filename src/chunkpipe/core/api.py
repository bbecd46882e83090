"""Programmatic API for chunked uploads."""

import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .client import TransferClient
from .config import Settings
from .exceptions import InvalidConfigError
from .models import JobConfig, JobResult, ProjectMetadata, TransferOutcome
from .planner import ChunkPlanner
from .scheduler import Discipline, Parallel, ProgressCallback, Sequential, UploadScheduler
from .source import BytesSource, ChunkSource, FileSource
from .transport import AiohttpTransport, CancellableTransport

logger = logging.getLogger(__name__)

MetadataLike = Union[ProjectMetadata, Dict[str, Any]]


def _coerce_metadata(metadata: MetadataLike) -> ProjectMetadata:
    if isinstance(metadata, ProjectMetadata):
        return metadata
    return ProjectMetadata.model_validate(metadata)


class ChunkUploadAPI:
    """High-level API for uploading payloads to the processing service.

    Create one instance and pass it to whatever needs to upload; it owns the
    transport and its connection pool until ``close()``.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        config: Optional[JobConfig] = None,
        transport: Optional[CancellableTransport] = None,
        parallel_threshold_bytes: Optional[int] = None,
        settings: Optional[Settings] = None,
    ):
        """Initialize the API.

        Args:
            base_url: Service root URL (or from CHUNKPIPE_BASE_URL env var)
            config: Job configuration (default: derived from settings)
            transport: Transport to use (default: a new ``AiohttpTransport``)
            parallel_threshold_bytes: Sources at least this large are
                uploaded in parallel (or from CHUNKPIPE_PARALLEL_THRESHOLD_MB)
            settings: Pre-built settings; skips the environment lookup
        """
        self.settings = settings or Settings.from_env(
            base_url=base_url, parallel_threshold_bytes=parallel_threshold_bytes
        )
        self.config = config or self.settings.job_config()
        self.transport = transport or AiohttpTransport()
        self.client = TransferClient(self.settings.base_url, self.transport)

    async def __aenter__(self) -> "ChunkUploadAPI":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        await self.transport.close()

    # Configuration
    def update_config(self, **changes: Any) -> JobConfig:
        """Apply ``changes`` to the job configuration and return it."""
        self.config = self.config.merged(**changes)
        return self.config

    def select_discipline(self, source_size: int) -> Discipline:
        """Parallel for large sources, sequential otherwise."""
        if source_size >= self.settings.parallel_threshold_bytes:
            return Parallel(self.config.max_concurrency)
        return Sequential()

    # Uploads
    async def check_connectivity(self) -> bool:
        return await self.client.check_connectivity()

    async def upload_bytes(
        self,
        payload: bytes,
        metadata: MetadataLike,
        file_name: str = "upload.bin",
        discipline: Optional[Discipline] = None,
        on_progress: Optional[ProgressCallback] = None,
        check_connection: bool = True,
    ) -> JobResult:
        """Upload ``payload`` in chunks.

        Args:
            payload: Source bytes
            metadata: Project metadata (model or camelCase/snake_case dict)
            file_name: Source file name reported to the service
            discipline: Force ``Sequential()`` or ``Parallel(...)``
                (default: chosen by payload size)
            on_progress: Called with a ``JobProgress`` after every chunk
            check_connection: Probe the health endpoint first

        Returns:
            The job result
        """
        return await self.upload_source(
            BytesSource(payload), metadata, file_name, discipline, on_progress, check_connection
        )

    async def upload_file(
        self,
        local_path: Union[str, Path],
        metadata: MetadataLike,
        discipline: Optional[Discipline] = None,
        on_progress: Optional[ProgressCallback] = None,
        check_connection: bool = True,
    ) -> JobResult:
        """Upload a local file in chunks, reading each chunk when it is sent."""
        with FileSource(local_path) as source:
            logger.info(f"Uploading {source.path} ({source.size} bytes)")
            return await self.upload_source(
                source, metadata, source.path.name, discipline, on_progress, check_connection
            )

    async def upload_source(
        self,
        source: ChunkSource,
        metadata: MetadataLike,
        file_name: str = "upload.bin",
        discipline: Optional[Discipline] = None,
        on_progress: Optional[ProgressCallback] = None,
        check_connection: bool = True,
    ) -> JobResult:
        """Upload any ``ChunkSource`` in chunks."""
        if source.size == 0:
            raise InvalidConfigError("payload", 0, "payload is empty")

        metadata = _coerce_metadata(metadata)
        if discipline is None:
            discipline = self.select_discipline(source.size)

        if check_connection and not await self.client.check_connectivity():
            logger.warning(f"Service at {self.client.base_url} did not answer the health check")

        ranges = ChunkPlanner.plan(source.size, self.config.chunk_size_bytes)
        scheduler = UploadScheduler(self.client, self.config)
        return await scheduler.run(ranges, source, metadata, discipline, on_progress, file_name)

    async def process_whole_file(
        self, payload: bytes, file_name: str, metadata: MetadataLike
    ) -> TransferOutcome:
        """Submit a small payload in one request."""
        if not payload:
            raise InvalidConfigError("payload", 0, "payload is empty")
        timeout_ms = self.config.timeout_for(len(payload))
        return await self.client.send_whole_file(
            payload, file_name, _coerce_metadata(metadata), timeout_ms
        )


# Convenience functions for quick usage
def upload_file(
    local_path: Union[str, Path],
    metadata: MetadataLike,
    base_url: Optional[str] = None,
    config: Optional[JobConfig] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> JobResult:
    """Quick function to upload a file."""

    async def _run() -> JobResult:
        async with ChunkUploadAPI(base_url=base_url, config=config) as api:
            return await api.upload_file(local_path, metadata, on_progress=on_progress)

    return asyncio.run(_run())


def upload_bytes(
    payload: bytes,
    metadata: MetadataLike,
    file_name: str = "upload.bin",
    base_url: Optional[str] = None,
    config: Optional[JobConfig] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> JobResult:
    """Quick function to upload in-memory bytes."""

    async def _run() -> JobResult:
        async with ChunkUploadAPI(base_url=base_url, config=config) as api:
            return await api.upload_bytes(payload, metadata, file_name, on_progress=on_progress)

    return asyncio.run(_run())
