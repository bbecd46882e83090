"""
API routes for the chunkpipe development receiver.

Implements the chunk upload contract the client speaks, so uploads can be
exercised end to end without the real processing service. Received chunks
are acknowledged and counted, never processed.
"""

import base64
import binascii
import json
import logging
from typing import Dict, List

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile, status
from pydantic import Field, ValidationError

from .. import __version__
from ..core.models import (
    ChunkUploadResponse,
    HealthCheckResponse,
    ProcessChunkResponse,
    ProcessProjectResponse,
    ProjectMetadata,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api",
    tags=["Upload"],
    responses={
        400: {"description": "Malformed chunk or metadata"},
        500: {"description": "Internal server error"},
    },
)


class ChunkLedger:
    """Chunk sizes received per project, keyed by chunk index."""

    def __init__(self) -> None:
        self._projects: Dict[str, Dict[int, int]] = {}

    def record(self, project_id: str, chunk_index: int, size: int) -> int:
        """Record a chunk and return how many distinct chunks the project has."""
        chunks = self._projects.setdefault(project_id, {})
        chunks[chunk_index] = size
        return len(chunks)

    def received(self, project_id: str) -> Dict[int, int]:
        return dict(self._projects.get(project_id, {}))

    def is_complete(self, project_id: str, total_chunks: int) -> bool:
        received = self._projects.get(project_id, {})
        return all(i in received for i in range(total_chunks))

    def projects(self) -> List[str]:
        return sorted(self._projects)


class WholeFileRequest(ProjectMetadata):
    """Request model for a whole-file submission."""

    file_name: str = Field("upload.bin", alias="fileName")
    video_file: str = Field(..., alias="videoFile", description="Base64 encoded file")


def get_ledger(request: Request) -> ChunkLedger:
    return request.app.state.ledger


def _check_chunk_position(chunk_index: int, total_chunks: int) -> None:
    if total_chunks < 1:
        raise HTTPException(status_code=400, detail="totalChunks must be at least 1")
    if not 0 <= chunk_index < total_chunks:
        raise HTTPException(
            status_code=400,
            detail=f"chunkIndex {chunk_index} out of range for {total_chunks} chunks",
        )


def _parse_json_field(name: str, raw: str):
    try:
        return json.loads(raw)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"{name} is not valid JSON")


@router.get(
    "/health",
    response_model=HealthCheckResponse,
    summary="Health check",
    tags=["Health"],
)
async def health_check() -> HealthCheckResponse:
    """Health check endpoint."""
    return HealthCheckResponse(status="healthy", version=__version__)


@router.get("/frontend/status", summary="Receiver status")
async def frontend_status(ledger: ChunkLedger = Depends(get_ledger)) -> dict:
    """Report readiness and the projects seen so far."""
    return {"success": True, "status": "ready", "projects": ledger.projects()}


@router.post(
    "/frontend/upload-chunk",
    response_model=ChunkUploadResponse,
    summary="Upload an ordered chunk",
    description="Accept one chunk of a sequential upload. Processing starts once every chunk has arrived.",
)
async def upload_chunk(
    chunk_index: int = Form(..., alias="chunkIndex"),
    total_chunks: int = Form(..., alias="totalChunks"),
    chunk_data: UploadFile = File(..., alias="chunkData"),
    file_name: str = Form(..., alias="fileName"),
    project_id: str = Form(..., alias="projectId"),
    project_name: str = Form("", alias="projectName"),
    description: str = Form(""),
    source_type: str = Form("file", alias="sourceType"),
    target_platforms: str = Form("[]", alias="targetPlatforms"),
    ai_prompt: str = Form("", alias="aiPrompt"),
    processing_options: str = Form("{}", alias="processingOptions"),
    num_clips: int = Form(3, alias="numClips"),
    ledger: ChunkLedger = Depends(get_ledger),
) -> ChunkUploadResponse:
    """Accept one chunk of an ordered upload."""
    _check_chunk_position(chunk_index, total_chunks)
    _parse_json_field("targetPlatforms", target_platforms)
    _parse_json_field("processingOptions", processing_options)

    data = await chunk_data.read()
    if not data:
        return ChunkUploadResponse(
            success=False, message="Chunk rejected", error=f"Chunk {chunk_index} is empty"
        )

    ledger.record(project_id, chunk_index, len(data))
    logger.info(
        f"{project_id}: received chunk {chunk_index + 1}/{total_chunks} of {file_name} "
        f"({len(data)} bytes, {num_clips} clips requested)"
    )

    if ledger.is_complete(project_id, total_chunks):
        return ChunkUploadResponse(
            success=True,
            processing_started=True,
            next_step="video_processing",
            message=f"All {total_chunks} chunks received, processing started",
        )
    return ChunkUploadResponse(
        success=True,
        next_step="upload_next_chunk",
        message=f"Chunk {chunk_index + 1}/{total_chunks} received",
    )


@router.post(
    "/process-chunk",
    response_model=ProcessChunkResponse,
    summary="Upload an independent chunk",
    description="Accept one chunk of a parallel upload. Chunks may arrive in any order.",
)
async def process_chunk(
    chunk: UploadFile = File(...),
    chunk_id: str = Form(..., alias="chunkId"),
    chunk_index: int = Form(..., alias="chunkIndex"),
    total_chunks: int = Form(..., alias="totalChunks"),
    is_last_chunk: bool = Form(False, alias="isLastChunk"),
    project_data: str = Form(..., alias="projectData"),
    ledger: ChunkLedger = Depends(get_ledger),
) -> ProcessChunkResponse:
    """Accept one chunk of a parallel upload."""
    _check_chunk_position(chunk_index, total_chunks)
    try:
        metadata = ProjectMetadata.model_validate(_parse_json_field("projectData", project_data))
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid projectData: {e}")

    data = await chunk.read()
    received = ledger.record(metadata.project_name, chunk_index, len(data))
    return ProcessChunkResponse(
        chunk_id=chunk_id,
        chunk_index=chunk_index,
        bytes_received=len(data),
        is_last_chunk=is_last_chunk,
        chunks_received=received,
    )


@router.post(
    "/frontend/process-project",
    response_model=ProcessProjectResponse,
    status_code=status.HTTP_200_OK,
    summary="Submit a whole file",
)
async def process_project(body: WholeFileRequest) -> ProcessProjectResponse:
    """Accept a small file in one request."""
    try:
        data = base64.b64decode(body.video_file, validate=True)
    except (binascii.Error, ValueError):
        raise HTTPException(status_code=400, detail="videoFile is not valid base64")

    logger.info(f"{body.project_name}: received whole file {body.file_name} ({len(data)} bytes)")
    return ProcessProjectResponse(
        success=True,
        project_name=body.project_name,
        bytes_received=len(data),
        message=f"Received {body.file_name}",
    )
