"""Deterministic partitioning of a byte source into chunk ranges."""

import logging
import math
from typing import List

from .exceptions import InvalidConfigError
from .models import MB, ChunkRange

logger = logging.getLogger(__name__)


class ChunkPlanner:
    """Split a source of known size into contiguous, gap-free chunk ranges."""

    @staticmethod
    def plan(source_size: int, chunk_size_bytes: int) -> List[ChunkRange]:
        """Plan the chunk ranges covering ``[0, source_size)``.

        Every range except the last is exactly ``chunk_size_bytes`` long; the
        last one holds the remainder. An empty source yields an empty plan.

        Raises:
            InvalidConfigError: if ``chunk_size_bytes`` is not positive or
                ``source_size`` is negative.
        """
        if chunk_size_bytes <= 0:
            raise InvalidConfigError(
                "chunk_size_bytes", chunk_size_bytes, "must be greater than 0"
            )
        if source_size < 0:
            raise InvalidConfigError("source_size", source_size, "must not be negative")

        total_chunks = math.ceil(source_size / chunk_size_bytes)
        ranges = []
        for index in range(total_chunks):
            start = index * chunk_size_bytes
            end = min(start + chunk_size_bytes, source_size)
            ranges.append(ChunkRange(index, total_chunks, start, end))

        logger.debug(
            f"Planned {total_chunks} chunks of up to {chunk_size_bytes} bytes for {source_size} bytes"
        )
        return ranges

    @staticmethod
    def recommend_chunk_size(source_size: int) -> int:
        """Pick a chunk size by file-size tier."""
        if source_size < 100 * MB:
            return 5 * MB
        elif source_size < 1024 * MB:
            return 8 * MB
        elif source_size < 10 * 1024 * MB:
            return 16 * MB
        return 32 * MB
