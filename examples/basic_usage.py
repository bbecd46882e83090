#!/usr/bin/env python3
"""
Basic usage examples for chunkpipe.

This script demonstrates the most common operations:
- Planning chunks for a payload
- Uploading sequentially and in parallel with a progress callback
- Submitting a small file in one request
- Error handling

Start a local receiver first (``chunkpipe-server``) or point
CHUNKPIPE_BASE_URL at a real processing service.
"""

import asyncio
import os

from chunkpipe import (
    ChunkPipeError,
    ChunkPlanner,
    ChunkUploadAPI,
    InvalidConfigError,
    JobProgress,
    Parallel,
    ProjectMetadata,
    Sequential,
)
from chunkpipe.core.models import MB


def print_progress(progress: JobProgress) -> None:
    print(
        f"   {progress.overall_percent:5.1f}%  "
        f"{progress.completed}/{progress.total_chunks} chunks, "
        f"{progress.failed} failed, {progress.throughput_mbps:.2f} MB/s"
    )


async def main():
    """Demonstrate basic chunkpipe operations."""
    payload = os.urandom(23 * MB)
    metadata = ProjectMetadata(
        project_name="demo-project",
        description="chunkpipe demo upload",
        target_platforms=["tiktok", "youtube"],
        ai_prompt="Find the three best moments",
    )

    print("\n" + "=" * 50)
    print("BASIC CHUNKPIPE OPERATIONS")
    print("=" * 50)

    # 1. Plan chunks
    print("\n1. Planning chunks...")
    ranges = ChunkPlanner.plan(len(payload), 5 * MB)
    for r in ranges:
        print(f"   • chunk {r.index}: [{r.start_offset}, {r.end_offset}) {r.size} bytes")

    async with ChunkUploadAPI() as api:
        # 2. Connectivity
        print(f"\n2. Checking {api.client.base_url}...")
        if not await api.check_connectivity():
            print("   ❌ Service is not reachable; start one with `chunkpipe-server`")
            return
        print("   ✅ Service is reachable")

        # 3. Sequential upload
        print("\n3. Sequential upload...")
        result = await api.upload_bytes(
            payload, metadata, "demo.mp4", discipline=Sequential(), on_progress=print_progress
        )
        print(f"   {'✅' if result.success else '❌'} {result.message}")

        # 4. Parallel upload
        print("\n4. Parallel upload (4 chunks in flight)...")
        result = await api.upload_bytes(
            payload, metadata, "demo.mp4", discipline=Parallel(4), on_progress=print_progress
        )
        print(f"   {'✅' if result.success else '❌'} {result.message}")
        if result.failed_indices:
            print(f"   Failed chunks: {result.failed_indices}")

        # 5. Whole-file submission
        print("\n5. Whole-file submission...")
        outcome = await api.process_whole_file(payload[:MB], "clip.mp4", metadata)
        print(f"   {'✅' if outcome.success else '❌'} {outcome.server_payload or outcome.error}")

        # 6. Error handling
        print("\n6. Error handling...")
        try:
            api.update_config(chunk_size_bytes=0)
        except InvalidConfigError as e:
            print(f"   ✅ Rejected bad config: {e}")
        try:
            await api.upload_bytes(b"", metadata)
        except ChunkPipeError as e:
            print(f"   ✅ Rejected empty payload: {e}")


if __name__ == "__main__":
    asyncio.run(main())
