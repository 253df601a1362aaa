"""Reel API endpoints - upload, batch generation and downloads."""

from typing import Optional

from fastapi import APIRouter, File, UploadFile
from fastapi.responses import FileResponse, StreamingResponse

from reel_captioner.api.deps import Orchestrator, Packager, Registry, Storage
from reel_captioner.exceptions import BatchNotFoundError, InvalidUploadError
from reel_captioner.render.batch import Batch, RenderJob, RenderStatus
from reel_captioner.schemas.render import (
    BatchResponse,
    GenerateReelsRequest,
    ReelResult,
    UploadedVideo,
    UploadVideoResponse,
)

router = APIRouter()


def _download_url(filename: str) -> str:
    return f"/api/download/{filename}"


def _archive_url(batch_id: str) -> str:
    return f"/api/download-batch/{batch_id}"


def _reel_result(job: RenderJob) -> ReelResult:
    succeeded = job.status is RenderStatus.SUCCESS
    return ReelResult(
        index=job.index,
        reel_number=job.index,
        filename=job.filename if succeeded else None,
        download_url=_download_url(job.filename) if succeeded else None,
        caption=job.caption.text,
        status=job.status.value,
        progress=job.progress,
        error=job.error_message,
    )


def _batch_response(batch: Batch) -> BatchResponse:
    return BatchResponse(
        batch_id=batch.batch_id,
        state=batch.state.value,
        results=[_reel_result(job) for job in batch.jobs],
        download_url=_archive_url(batch.batch_id),
        created_at=batch.created_at,
        completed_at=batch.completed_at,
    )


@router.post("/upload-video", response_model=UploadVideoResponse)
async def upload_video(
    storage: Storage,
    video: Optional[UploadFile] = File(None),
) -> UploadVideoResponse:
    """Receive a source video and store it for later batches."""
    if video is None:
        raise InvalidUploadError("No video file uploaded")

    stored = await storage.save_upload(video)
    return UploadVideoResponse(
        video=UploadedVideo(
            id=stored.id,
            filename=stored.filename,
            original_name=stored.original_name,
            path=str(stored.path),
            size=stored.size,
        )
    )


@router.post("/generate-reels", response_model=BatchResponse)
async def generate_reels(
    request: GenerateReelsRequest,
    orchestrator: Orchestrator,
) -> BatchResponse:
    """
    Render one reel per caption from the same source video.

    Returns when every reel has resolved; failed reels are reported in the
    result list, they do not fail the request.
    """
    batch = await orchestrator.generate(request.video_filename, request.captions)
    return _batch_response(batch)


@router.get("/batches/{batch_id}", response_model=BatchResponse)
async def get_batch(batch_id: str, registry: Registry) -> BatchResponse:
    """Current state of a batch started by this process."""
    batch = registry.get(batch_id)
    if batch is None:
        raise BatchNotFoundError(batch_id)
    return _batch_response(batch)


@router.get("/download/{filename}")
async def download_reel(filename: str, storage: Storage) -> FileResponse:
    """Raw bytes of one rendered reel."""
    path = storage.resolve_output(filename)
    return FileResponse(path=str(path), media_type="video/mp4", filename=path.name)


@router.get("/download-batch/{batch_id}")
async def download_batch(batch_id: str, packager: Packager) -> StreamingResponse:
    """Zip of every finished reel of a batch, streamed as it is built."""
    archive_name, chunks = packager.stream(batch_id)
    return StreamingResponse(
        chunks,
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{archive_name}"'},
    )
