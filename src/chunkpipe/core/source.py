"""Lazy access to the bytes behind planned chunk ranges.

The scheduler reads a chunk's payload immediately before dispatching it and
drops it once the chunk is terminal, so only the chunks of the running batch
hold payload buffers.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, BinaryIO, Optional, Union

from .exceptions import InvalidConfigError
from .models import Buffer, Chunk, ChunkRange

logger = logging.getLogger(__name__)


class ChunkSource(ABC):
    """Random-access byte source of a known size."""

    size: int

    @abstractmethod
    def read(self, start: int, end: int) -> Buffer:
        """Return the bytes of ``[start, end)``."""

    def chunk(self, chunk_range: ChunkRange, timestamp_ms: int) -> Chunk:
        """Materialize ``chunk_range`` with its payload and job-scoped id."""
        if chunk_range.end_offset > self.size:
            raise InvalidConfigError(
                "chunk_range", chunk_range.end_offset, f"past the end of a {self.size} byte source"
            )
        return Chunk(
            chunk_range.index,
            chunk_range.total_chunks,
            chunk_range.start_offset,
            chunk_range.end_offset,
            payload=self.read(chunk_range.start_offset, chunk_range.end_offset),
            chunk_id=f"chunk_{chunk_range.index}_{timestamp_ms}",
        )

    def close(self) -> None:
        """Release any open handle."""

    def __enter__(self) -> "ChunkSource":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


class BytesSource(ChunkSource):
    """In-memory payload; chunks are zero-copy ``memoryview`` slices."""

    def __init__(self, payload: Union[bytes, bytearray, memoryview]):
        self._view = memoryview(payload)
        self.size = self._view.nbytes

    def read(self, start: int, end: int) -> memoryview:
        return self._view[start:end]


class FileSource(ChunkSource):
    """Local file read one range at a time with seek/read."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        if not self.path.exists():
            raise FileNotFoundError(f"Local file not found: {self.path}")
        if self.path.is_dir():
            raise ValueError(f"Path is a directory: {self.path}")
        self.size = self.path.stat().st_size
        self._file: Optional[BinaryIO] = None

    def read(self, start: int, end: int) -> bytes:
        if self._file is None:
            self._file = open(self.path, "rb")
        self._file.seek(start)
        data = self._file.read(end - start)
        if len(data) != end - start:
            raise ValueError(
                f"{self.path}: expected {end - start} bytes at offset {start}, got {len(data)}; "
                "file changed during upload?"
            )
        return data

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None
