from reel_captioner.render.archive import ArchivePackager, archive_filename
from reel_captioner.render.batch import Batch, BatchRegistry, BatchState, RenderJob, RenderStatus
from reel_captioner.render.encoder import Encoder, FfmpegEncoder
from reel_captioner.render.job_runner import RenderEvent, RenderEventType, RenderJobRunner
from reel_captioner.render.orchestrator import BatchOrchestrator
from reel_captioner.render.overlay_mapper import OverlayCanvas, OverlayParams, map_caption

__all__ = [
    "ArchivePackager",
    "archive_filename",
    "Batch",
    "BatchRegistry",
    "BatchState",
    "RenderJob",
    "RenderStatus",
    "Encoder",
    "FfmpegEncoder",
    "RenderEvent",
    "RenderEventType",
    "RenderJobRunner",
    "BatchOrchestrator",
    "OverlayCanvas",
    "OverlayParams",
    "map_caption",
]
