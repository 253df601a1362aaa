"""Batch and render job state.

A batch is the set of render jobs derived from one generate request against
one source video. Membership is fixed at creation; each job moves from
``Pending`` to exactly one terminal status.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Optional
from uuid import uuid4

from reel_captioner.config import get_settings
from reel_captioner.schemas.caption import CaptionSpec
from reel_captioner.services.storage_service import output_filename

logger = logging.getLogger(__name__)


class RenderStatus(Enum):
    """Render job status."""

    PENDING = "Pending"
    SUCCESS = "Success"
    FAILED = "Failed"

    @property
    def is_terminal(self) -> bool:
        return self is not RenderStatus.PENDING


class BatchState(Enum):
    """Batch lifecycle."""

    CREATED = "Created"
    RUNNING = "Running"
    COMPLETED = "Completed"


@dataclass
class RenderJob:
    """One caption rendered into one reel."""

    batch_id: str
    index: int
    caption: CaptionSpec
    output_path: Path
    status: RenderStatus = RenderStatus.PENDING
    error_message: Optional[str] = None
    progress: float = 0.0
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def filename(self) -> str:
        return self.output_path.name

    def mark_running(self) -> None:
        self.started_at = datetime.now(timezone.utc)

    def mark_success(self) -> None:
        if self.status.is_terminal:
            raise RuntimeError(f"Render job {self.filename} already resolved as {self.status.value}")
        self.status = RenderStatus.SUCCESS
        self.progress = 100.0
        self.completed_at = datetime.now(timezone.utc)

    def mark_failed(self, message: str) -> None:
        if self.status.is_terminal:
            raise RuntimeError(f"Render job {self.filename} already resolved as {self.status.value}")
        self.status = RenderStatus.FAILED
        self.error_message = message or "Render failed"
        self.completed_at = datetime.now(timezone.utc)


@dataclass
class Batch:
    """Jobs for one source video, in caption order."""

    batch_id: str
    source_path: Path
    jobs: list[RenderJob] = field(default_factory=list)
    state: BatchState = BatchState.CREATED
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None

    @classmethod
    def create(
        cls,
        source_path: Path,
        captions: list[CaptionSpec],
        output_dir: Path,
    ) -> "Batch":
        """Create a batch with one pending job per caption."""
        batch_id = str(uuid4())
        jobs = [
            RenderJob(
                batch_id=batch_id,
                index=i,
                caption=caption,
                output_path=output_dir / output_filename(batch_id, i),
            )
            for i, caption in enumerate(captions, start=1)
        ]
        return cls(batch_id=batch_id, source_path=source_path, jobs=jobs)

    @property
    def is_resolved(self) -> bool:
        return all(job.status.is_terminal for job in self.jobs)

    @property
    def succeeded(self) -> list[RenderJob]:
        return [job for job in self.jobs if job.status is RenderStatus.SUCCESS]

    @property
    def failed(self) -> list[RenderJob]:
        return [job for job in self.jobs if job.status is RenderStatus.FAILED]


class BatchRegistry:
    """In-memory manifest of batches (batch_id -> jobs).

    Lives for the process lifetime only and keeps at most ``max_batches``
    entries. The oldest completed batches are dropped first; batches that are
    still running are never dropped. Reels of a dropped batch stay on disk and
    are found again through the output naming scheme.
    """

    def __init__(self, max_batches: Optional[int] = None) -> None:
        # 0 disables the cap
        self.max_batches = (
            max_batches if max_batches is not None else get_settings().max_tracked_batches
        )
        self._batches: dict[str, Batch] = {}
        self._lock = threading.Lock()

    def add(self, batch: Batch) -> None:
        with self._lock:
            self._batches[batch.batch_id] = batch
            self._evict()

    def get(self, batch_id: str) -> Optional[Batch]:
        with self._lock:
            return self._batches.get(batch_id)

    def _evict(self) -> None:
        excess = len(self._batches) - self.max_batches
        if self.max_batches <= 0 or excess <= 0:
            return
        # Insertion order is creation order
        evictable = [
            batch_id
            for batch_id, batch in self._batches.items()
            if batch.state is BatchState.COMPLETED
        ][:excess]
        for batch_id in evictable:
            del self._batches[batch_id]
        if evictable:
            logger.info(f"[BATCH] Dropped {len(evictable)} completed batches from the manifest")
