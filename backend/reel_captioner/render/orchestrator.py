"""Batch orchestration.

Drives a batch from creation to fully resolved:
1. Validate the request once (source reference, captions, source file)
2. Create the batch and register its manifest
3. Fan the jobs out through a bounded pool of encoder slots
4. Collect one terminal status per caption, in caption order

A failed caption never fails the batch: partial success is a completed batch.
"""

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Sequence

from reel_captioner.config import get_settings
from reel_captioner.exceptions import (
    BatchTooLargeError,
    EmptyCaptionListError,
    MissingSourceReferenceError,
)
from reel_captioner.render.batch import Batch, BatchRegistry, BatchState, RenderJob
from reel_captioner.render.job_runner import RenderJobRunner
from reel_captioner.schemas.caption import CaptionSpec
from reel_captioner.services.storage_service import LocalStorageService
from reel_captioner.utils.media_info import probe_duration

logger = logging.getLogger(__name__)


class BatchOrchestrator:
    """Turns a caption list and one source video into a batch of reels."""

    def __init__(
        self,
        storage: LocalStorageService,
        runner: Optional[RenderJobRunner] = None,
        registry: Optional[BatchRegistry] = None,
        max_concurrent_renders: Optional[int] = None,
        max_captions_per_batch: Optional[int] = None,
    ):
        settings = get_settings()
        self.storage = storage
        self.runner = runner or RenderJobRunner()
        self.registry = registry or BatchRegistry()
        # 1 reproduces strictly sequential rendering
        self.max_concurrent_renders = max(
            1,
            max_concurrent_renders
            if max_concurrent_renders is not None
            else settings.max_concurrent_renders,
        )
        self.max_captions_per_batch = (
            max_captions_per_batch
            if max_captions_per_batch is not None
            else settings.max_captions_per_batch
        )

    def validate(self, video_filename: Optional[str], captions: Sequence[CaptionSpec]) -> Path:
        """Check the request before any job exists.

        Returns:
            Path of the source video

        Raises:
            MissingSourceReferenceError: No source reference
            EmptyCaptionListError: No captions
            BatchTooLargeError: More captions than ``max_captions_per_batch``
            SourceVideoNotFoundError: Source is not an uploaded file
        """
        if not video_filename:
            raise MissingSourceReferenceError()
        if not captions:
            raise EmptyCaptionListError()
        if 0 < self.max_captions_per_batch < len(captions):
            raise BatchTooLargeError(len(captions), self.max_captions_per_batch)
        return self.storage.resolve_source(video_filename)

    def create_batch(self, source_path: Path, captions: Sequence[CaptionSpec]) -> Batch:
        """Create and register a batch for an already validated request."""
        batch = Batch.create(source_path, list(captions), self.storage.output_dir)
        self.registry.add(batch)
        logger.info(
            f"[BATCH] Created batch {batch.batch_id} with {len(batch.jobs)} reels "
            f"from {source_path.name}"
        )
        return batch

    async def run_batch(self, batch: Batch) -> Batch:
        """Run every job of ``batch`` and mark it completed.

        Jobs run at most ``max_concurrent_renders`` at a time. Job failures
        are recorded on the job; this method only raises on cancellation.
        """
        batch.state = BatchState.RUNNING
        duration_s = await asyncio.to_thread(probe_duration, str(batch.source_path))
        semaphore = asyncio.Semaphore(self.max_concurrent_renders)

        async def run_one(job: RenderJob) -> None:
            async with semaphore:
                try:
                    await self.runner.run(job, batch.source_path, duration_s)
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.exception(f"[BATCH] Reel {job.index} of batch {batch.batch_id} crashed")
                    if not job.status.is_terminal:
                        job.mark_failed(f"Render failed: {e}")

        await asyncio.gather(*(run_one(job) for job in batch.jobs))

        batch.state = BatchState.COMPLETED
        batch.completed_at = datetime.now(timezone.utc)
        logger.info(
            f"[BATCH] Batch {batch.batch_id} completed: "
            f"{len(batch.succeeded)} succeeded, {len(batch.failed)} failed"
        )
        return batch

    async def generate(
        self,
        video_filename: Optional[str],
        captions: Sequence[CaptionSpec],
    ) -> Batch:
        """Validate, create and run a batch; returns once every job resolved."""
        source_path = self.validate(video_filename, captions)
        batch = self.create_batch(source_path, captions)
        return await self.run_batch(batch)

    def get_batch(self, batch_id: str) -> Optional[Batch]:
        return self.registry.get(batch_id)
