"""Render job runner.

Wraps one encoder invocation as an observable unit of work. Whatever goes
wrong inside the encode ends up as a ``Failed`` status on the job, never as
an exception in the caller.
"""

import asyncio
import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional

from reel_captioner.exceptions import EncodeError
from reel_captioner.render.batch import RenderJob
from reel_captioner.render.encoder import Encoder, FfmpegEncoder
from reel_captioner.render.overlay_mapper import OverlayCanvas, map_caption
from reel_captioner.services.storage_service import PARTIAL_SUFFIX

logger = logging.getLogger(__name__)


class RenderEventType(Enum):
    """Lifecycle signals emitted for a render job."""

    STARTED = "started"
    PROGRESS = "progress"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class RenderEvent:
    """One lifecycle signal for a render job."""

    batch_id: str
    index: int
    event_type: RenderEventType
    percent: Optional[float] = None
    message: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "batch_id": self.batch_id,
            "index": self.index,
            "event": self.event_type.value,
            "percent": self.percent,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
        }


RenderListener = Callable[[RenderEvent], None]

_EVENT_LOG_LEVELS = {
    RenderEventType.STARTED: logging.INFO,
    RenderEventType.PROGRESS: logging.DEBUG,
    RenderEventType.SUCCEEDED: logging.INFO,
    RenderEventType.FAILED: logging.ERROR,
}


def log_render_event(event: RenderEvent) -> None:
    """Default listener: one log line per lifecycle event."""
    logger.log(_EVENT_LOG_LEVELS[event.event_type], f"[RENDER] {json.dumps(event.to_dict())}")


def partial_path_for(output_path: Path) -> Path:
    """Temporary path the encoder writes to before the final rename."""
    return output_path.with_name(output_path.name + PARTIAL_SUFFIX)


def _remove_quietly(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"[RENDER] Could not remove {path}: {e}")


class RenderJobRunner:
    """Runs a single render job against an encoder."""

    # Minimum change in percent between two progress events
    PROGRESS_STEP = 5.0

    def __init__(
        self,
        encoder: Optional[Encoder] = None,
        canvas: Optional[OverlayCanvas] = None,
        listener: Optional[RenderListener] = log_render_event,
    ):
        self.encoder = encoder or FfmpegEncoder()
        self.canvas = canvas or OverlayCanvas.from_settings()
        self._listener = listener

    def _emit(self, event: RenderEvent) -> None:
        if not self._listener:
            return
        try:
            self._listener(event)
        except Exception:
            logger.exception(f"[RENDER] Listener failed for {event.event_type.value} event")

    async def run(
        self,
        job: RenderJob,
        source_path: Path,
        duration_s: Optional[float] = None,
    ) -> RenderJob:
        """Render ``job`` and record its terminal status.

        Args:
            job: Pending job; mutated in place
            source_path: Source video, validated by the orchestrator
            duration_s: Source duration used to turn encoder time into percent

        Returns:
            The same job, now ``Success`` or ``Failed``
        """
        output_path = Path(job.output_path)
        partial_path = partial_path_for(output_path)

        job.mark_running()
        self._emit(RenderEvent(job.batch_id, job.index, RenderEventType.STARTED))

        last_reported = -self.PROGRESS_STEP

        def on_progress(encoded_s: float) -> None:
            nonlocal last_reported
            if not duration_s:
                return
            percent = max(0.0, min(99.0, encoded_s / duration_s * 100))
            job.progress = percent
            if percent >= last_reported + self.PROGRESS_STEP:
                last_reported = percent
                self._emit(
                    RenderEvent(job.batch_id, job.index, RenderEventType.PROGRESS, percent=percent)
                )

        try:
            params = map_caption(job.caption, self.canvas)
            await self.encoder.render(str(source_path), params, str(partial_path), on_progress)
            if not partial_path.exists() or partial_path.stat().st_size == 0:
                raise EncodeError("Encoder finished without producing an output file")
            os.replace(partial_path, output_path)
        except asyncio.CancelledError:
            _remove_quietly(partial_path)
            raise
        except EncodeError as e:
            self._fail(job, output_path, partial_path, str(e))
        except Exception as e:
            logger.exception(f"[RENDER] Unexpected error in reel {job.index} of batch {job.batch_id}")
            self._fail(job, output_path, partial_path, f"Render failed: {e}")
        else:
            job.mark_success()
            self._emit(
                RenderEvent(
                    job.batch_id, job.index, RenderEventType.SUCCEEDED,
                    percent=100.0, message=output_path.name,
                )
            )

        return job

    def _fail(self, job: RenderJob, output_path: Path, partial_path: Path, message: str) -> None:
        # A failed job must not leave a usable file behind
        _remove_quietly(partial_path)
        _remove_quietly(output_path)
        job.mark_failed(message)
        self._emit(RenderEvent(job.batch_id, job.index, RenderEventType.FAILED, message=message))
