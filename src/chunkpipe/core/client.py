"""Client for the remote processing service's chunk endpoints."""

import base64
import logging
import time
from typing import Any, Dict

from .exceptions import ApplicationError, HttpError, TransferError
from .models import Chunk, ChunkForm, ProjectMetadata, TransferOutcome
from .transport import (
    CancellableTransport,
    FilePart,
    TransportRequest,
    TransportResponse,
)

logger = logging.getLogger(__name__)

ERROR_SNIPPET_LENGTH = 200


class TransferClient:
    """Send single chunks, or whole small files, to the processing service."""

    ENDPOINTS = {
        ChunkForm.ORDERED: "/api/frontend/upload-chunk",
        ChunkForm.INDEPENDENT: "/api/process-chunk",
    }
    WHOLE_FILE_ENDPOINT = "/api/frontend/process-project"
    HEALTH_ENDPOINT = "/api/health"
    STATUS_ENDPOINT = "/api/frontend/status"

    def __init__(self, base_url: str, transport: CancellableTransport):
        """Initialize the client.

        Args:
            base_url: Service root, e.g. ``http://localhost:5000``
            transport: Transport performing the actual requests
        """
        self.base_url = base_url.rstrip("/")
        self.transport = transport

    def _url(self, endpoint: str) -> str:
        return f"{self.base_url}{endpoint}"

    def build_request(
        self,
        chunk: Chunk,
        metadata: ProjectMetadata,
        form: ChunkForm = ChunkForm.ORDERED,
        file_name: str = "upload.bin",
    ) -> TransportRequest:
        """Build the multipart request for ``chunk`` in the given form."""
        request = TransportRequest(url=self._url(self.ENDPOINTS[form]))

        if form is ChunkForm.ORDERED:
            request.fields = [
                ("chunkIndex", str(chunk.index)),
                ("totalChunks", str(chunk.total_chunks)),
                ("fileName", file_name),
                ("projectId", metadata.project_name),
            ] + metadata.form_fields()
            request.files = [
                FilePart("chunkData", chunk.payload, filename=f"chunk_{chunk.index}.blob")
            ]
        else:
            request.fields = [
                ("chunkId", chunk.chunk_id or f"chunk_{chunk.index}"),
                ("chunkIndex", str(chunk.index)),
                ("totalChunks", str(chunk.total_chunks)),
                ("isLastChunk", "true" if chunk.is_last else "false"),
                ("projectData", metadata.model_dump_json(by_alias=True)),
            ]
            request.files = [FilePart("chunk", chunk.payload, filename="blob")]
        return request

    @staticmethod
    def _error_message(response: TransportResponse) -> str:
        """Extract a readable error from a failed response."""
        try:
            data = response.json()
        except ValueError:
            data = None
        if isinstance(data, dict):
            for key in ("error", "message", "detail"):
                if data.get(key):
                    return str(data[key])
        text = response.text.strip()
        if text:
            return text[:ERROR_SNIPPET_LENGTH]
        return response.reason or "request failed"

    def parse_response(self, response: TransportResponse, form: ChunkForm) -> Any:
        """Return the decoded payload of a successful response.

        Raises:
            HttpError: for non-2xx statuses
            ApplicationError: for an undecodable body, or an ordered-form body
                that does not report ``success: true``
        """
        if not response.ok:
            raise HttpError(response.status, self._error_message(response))

        try:
            data = response.json()
        except ValueError as exc:
            raise ApplicationError(
                f"Invalid JSON response: {response.text[:ERROR_SNIPPET_LENGTH]}",
                response.status,
            ) from exc

        if form is ChunkForm.ORDERED:
            if not isinstance(data, dict) or not data.get("success"):
                message = "Server reported failure"
                if isinstance(data, dict):
                    message = data.get("error") or data.get("message") or message
                raise ApplicationError(message, response.status)
        return data

    async def send(
        self,
        chunk: Chunk,
        metadata: ProjectMetadata,
        timeout_ms: int,
        form: ChunkForm = ChunkForm.ORDERED,
        file_name: str = "upload.bin",
    ) -> TransferOutcome:
        """Send one chunk and report the outcome. Never raises transfer errors."""
        request = self.build_request(chunk, metadata, form, file_name)
        started = time.monotonic()
        status = None
        try:
            response = await self.transport.send(request, timeout_ms / 1000)
            status = response.status
            payload = self.parse_response(response, form)
        except TransferError as exc:
            latency_ms = int((time.monotonic() - started) * 1000)
            logger.debug(f"Chunk {chunk.index}: {exc.kind.value} error: {exc.message}")
            outcome = TransferOutcome.from_error(chunk.index, exc, latency_ms, chunk.size)
            if outcome.http_status is None and status is not None:
                outcome = outcome.model_copy(update={"http_status": status})
            return outcome

        latency_ms = int((time.monotonic() - started) * 1000)
        if (
            form is ChunkForm.ORDERED
            and payload.get("processingStarted")
            and payload.get("nextStep") == "video_processing"
        ):
            logger.info(f"Chunk {chunk.index}: server started processing")

        return TransferOutcome(
            chunk_index=chunk.index,
            success=True,
            http_status=status,
            latency_ms=latency_ms,
            server_payload=payload,
            chunk_size=chunk.size,
        )

    async def send_whole_file(
        self,
        payload: bytes,
        file_name: str,
        metadata: ProjectMetadata,
        timeout_ms: int,
    ) -> TransferOutcome:
        """Submit a small file in a single JSON request."""
        body = metadata.as_payload()
        body["fileName"] = file_name
        body["videoFile"] = base64.b64encode(payload).decode("ascii")
        request = TransportRequest(url=self._url(self.WHOLE_FILE_ENDPOINT), json_body=body)

        started = time.monotonic()
        try:
            response = await self.transport.send(request, timeout_ms / 1000)
            data = self.parse_response(response, ChunkForm.ORDERED)
        except TransferError as exc:
            latency_ms = int((time.monotonic() - started) * 1000)
            return TransferOutcome.from_error(0, exc, latency_ms, len(payload))

        return TransferOutcome(
            chunk_index=0,
            success=True,
            http_status=response.status,
            latency_ms=int((time.monotonic() - started) * 1000),
            server_payload=data,
            chunk_size=len(payload),
        )

    async def check_connectivity(self, timeout_ms: int = 5000) -> bool:
        """Return True if the health endpoint answers with a 2xx status."""
        request = TransportRequest(url=self._url(self.HEALTH_ENDPOINT), method="GET")
        try:
            response = await self.transport.send(request, timeout_ms / 1000)
        except TransferError as exc:
            logger.warning(f"Connectivity check failed: {exc}")
            return False
        if not response.ok:
            logger.warning(f"Connectivity check returned HTTP {response.status}")
        return response.ok

    async def status(self, timeout_ms: int = 10_000) -> Dict[str, Any]:
        """Read the service status document.

        Raises:
            TransferError: if the request fails or the status is not 2xx
        """
        request = TransportRequest(url=self._url(self.STATUS_ENDPOINT), method="GET")
        response = await self.transport.send(request, timeout_ms / 1000)
        return self.parse_response(response, ChunkForm.INDEPENDENT)
