"""Shared fixtures: a scripted in-memory transport and fast retry policies."""

import asyncio
import json
from typing import Dict, List, Optional, Sequence, Tuple

import pytest

from chunkpipe.core.client import TransferClient
from chunkpipe.core.exceptions import NetworkError, TransferTimeoutError
from chunkpipe.core.models import Chunk, JobConfig, ProjectMetadata
from chunkpipe.core.planner import ChunkPlanner
from chunkpipe.core.retry import RetryPolicy
from chunkpipe.core.source import BytesSource
from chunkpipe.core.transport import CancellableTransport, TransportRequest, TransportResponse

BASE_URL = "http://receiver.test"


def make_chunks(payload: bytes, chunk_size: int, timestamp_ms: int = 123) -> List[Chunk]:
    """Plan ``payload`` and materialize every chunk."""
    source = BytesSource(payload)
    return [source.chunk(r, timestamp_ms) for r in ChunkPlanner.plan(source.size, chunk_size)]


def json_response(status: int, body) -> TransportResponse:
    return TransportResponse(status=status, reason="", body=json.dumps(body).encode())


class FakeTransport(CancellableTransport):
    """Answers chunk requests from a per-index script of actions.

    Actions, consumed one per attempt (the last one repeats):
      ``ok``       2xx success for either form
      ``http500``  HTTP 500 with an error body
      ``app``      2xx with ``success: false``
      ``timeout``  raise ``TransferTimeoutError``
      ``network``  raise ``NetworkError``
    """

    def __init__(
        self,
        script: Optional[Dict[int, Sequence[str]]] = None,
        healthy: bool = True,
        yields: int = 3,
        keep_requests: bool = True,
    ):
        self.script = {index: list(actions) for index, actions in (script or {}).items()}
        self.healthy = healthy
        self.yields = yields
        self.keep_requests = keep_requests
        self.requests: List[TransportRequest] = []
        self.chunk_calls: List[Tuple[str, int]] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    def attempts(self, index: int) -> int:
        return sum(1 for _, i in self.chunk_calls if i == index)

    def _next_action(self, index: int) -> str:
        actions = self.script.get(index)
        if not actions:
            return "ok"
        if len(actions) > 1:
            return actions.pop(0)
        return actions[0]

    async def send(self, request: TransportRequest, deadline_s: float) -> TransportResponse:
        if self.keep_requests:
            self.requests.append(request)
        if request.method == "GET":
            if request.url.endswith("/api/health"):
                if not self.healthy:
                    raise NetworkError("connection refused", request.url)
                return json_response(200, {"status": "healthy", "version": "test"})
            return json_response(200, {"success": True, "status": "ready", "projects": []})

        if request.json_body is not None:
            return json_response(
                200,
                {
                    "success": True,
                    "projectName": request.json_body["projectName"],
                    "bytesReceived": len(request.json_body["videoFile"]),
                },
            )

        fields = dict(request.fields)
        index = int(fields["chunkIndex"])
        self.chunk_calls.append((request.url, index))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            for _ in range(self.yields):
                await asyncio.sleep(0)
            action = self._next_action(index)
        finally:
            self.in_flight -= 1

        if action == "timeout":
            raise TransferTimeoutError(int(deadline_s * 1000), request.url)
        if action == "network":
            raise NetworkError("connection refused", request.url)
        if action == "http500":
            return json_response(500, {"error": f"chunk {index} exploded"})
        if action == "app":
            return json_response(200, {"success": False, "error": f"chunk {index} rejected"})
        if "chunkId" in fields:
            return json_response(200, {"chunkId": fields["chunkId"], "chunkIndex": index})
        return json_response(200, {"success": True, "nextStep": "upload_next_chunk"})

    async def close(self) -> None:
        self.closed = True


async def no_sleep(seconds: float) -> None:
    """Stand-in for asyncio.sleep that returns immediately."""


class RecordingSleep:
    """Records requested delays without waiting."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 100.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def metadata() -> ProjectMetadata:
    return ProjectMetadata(
        project_name="summer-trip",
        description="Holiday footage",
        target_platforms=["tiktok"],
        ai_prompt="Best moments",
    )


@pytest.fixture
def fast_config() -> JobConfig:
    return JobConfig(chunk_size_bytes=10, max_concurrency=4, max_retries=2, base_backoff_ms=0)


@pytest.fixture
def fast_retry() -> RetryPolicy:
    return RetryPolicy(sleep=no_sleep)


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def client(fake_transport: FakeTransport) -> TransferClient:
    return TransferClient(BASE_URL, fake_transport)
