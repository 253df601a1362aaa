"""
Pytest fixtures for reel captioner backend tests.

Every test runs against its own temporary upload/output directories. The
encoder is replaced by ``FakeEncoder`` unless a test is marked
``requires_ffmpeg``, which is skipped when FFmpeg is not on PATH.
"""

import asyncio
import shutil
import subprocess
from pathlib import Path
from typing import Optional

import pytest

from reel_captioner.api.deps import get_batch_registry, get_storage_service
from reel_captioner.config import Settings, get_settings
from reel_captioner.exceptions import EncodeError
from reel_captioner.render.batch import BatchRegistry
from reel_captioner.render.encoder import ProgressCallback
from reel_captioner.render.job_runner import RenderJobRunner
from reel_captioner.render.orchestrator import BatchOrchestrator
from reel_captioner.render.overlay_mapper import OverlayParams
from reel_captioner.schemas.caption import CaptionSpec
from reel_captioner.services.storage_service import LocalStorageService


def pytest_configure(config):
    """Register custom markers for CI/CD test filtering."""
    config.addinivalue_line(
        "markers",
        "requires_ffmpeg: mark test as requiring the ffmpeg binary (skipped when missing)"
    )


def _ffmpeg_available() -> bool:
    return shutil.which("ffmpeg") is not None and shutil.which("ffprobe") is not None


def pytest_collection_modifyitems(config, items):
    """Skip tests that run the real encoder when FFmpeg is not installed."""
    if _ffmpeg_available():
        return
    skip_ffmpeg = pytest.mark.skip(reason="FFmpeg not available on PATH")
    for item in items:
        if "requires_ffmpeg" in item.keywords:
            item.add_marker(skip_ffmpeg)


class FakeEncoder:
    """In-process encoder that writes a small file per reel.

    Captions whose text is in ``fail_texts`` leave a partial file behind and
    raise ``EncodeError``, like a crashed FFmpeg would.
    """

    def __init__(self, fail_texts=(), delay: float = 0.0):
        self.fail_texts = set(fail_texts)
        self.delay = delay
        self.calls: list[OverlayParams] = []
        self.output_paths: list[str] = []
        self.active = 0
        self.max_active = 0

    async def render(
        self,
        source_path: str,
        params: OverlayParams,
        output_path: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        self.calls.append(params)
        self.output_paths.append(output_path)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if on_progress:
                on_progress(0.5)
            if self.delay:
                await asyncio.sleep(self.delay)
            if on_progress:
                on_progress(1.0)
            if params.text in self.fail_texts:
                Path(output_path).write_bytes(b"half-written")
                raise EncodeError(f"Encoder exited with code 1: cannot render '{params.text}'")
            Path(output_path).write_bytes(f"reel:{params.text}".encode())
        finally:
            self.active -= 1


@pytest.fixture(autouse=True)
def settings(tmp_path, monkeypatch) -> Settings:
    """Settings pointing at per-test directories."""
    monkeypatch.setenv("UPLOAD_DIR", str(tmp_path / "uploads"))
    monkeypatch.setenv("OUTPUT_DIR", str(tmp_path / "output"))
    monkeypatch.setenv("MAX_UPLOAD_SIZE_MB", "1")
    get_settings.cache_clear()
    get_storage_service.cache_clear()
    get_batch_registry.cache_clear()
    yield get_settings()
    get_settings.cache_clear()
    get_storage_service.cache_clear()
    get_batch_registry.cache_clear()


@pytest.fixture
def storage(settings) -> LocalStorageService:
    return LocalStorageService(settings)


@pytest.fixture
def registry() -> BatchRegistry:
    return BatchRegistry()


@pytest.fixture
def registered_batches(registry, monkeypatch) -> list:
    """Record every batch added to the test registry."""
    added = []
    add = registry.add

    def _add(batch):
        added.append(batch)
        add(batch)

    monkeypatch.setattr(registry, "add", _add)
    return added


@pytest.fixture
def source_video(storage) -> Path:
    """A stand-in source file in the upload directory."""
    path = storage.upload_dir / "source.mp4"
    path.write_bytes(b"not really a video")
    return path


@pytest.fixture
def fake_encoder() -> FakeEncoder:
    return FakeEncoder()


@pytest.fixture
def failing_encoder():
    """Build a fake encoder that fails for the given caption texts."""

    def _make(*fail_texts: str, delay: float = 0.0) -> FakeEncoder:
        return FakeEncoder(fail_texts=fail_texts, delay=delay)

    return _make


@pytest.fixture
def orchestrator_factory(storage, registry):
    """Build an orchestrator around a given fake encoder."""

    def _make(encoder: FakeEncoder, max_concurrent_renders: int = 1, **kwargs) -> BatchOrchestrator:
        return BatchOrchestrator(
            storage=storage,
            runner=RenderJobRunner(encoder=encoder),
            registry=registry,
            max_concurrent_renders=max_concurrent_renders,
            **kwargs,
        )

    return _make


@pytest.fixture
def make_captions():
    """One default-styled caption per text."""

    def _make(*texts: str) -> list[CaptionSpec]:
        return [CaptionSpec(id=f"c{i}", text=text) for i, text in enumerate(texts, start=1)]

    return _make


@pytest.fixture
def sample_video(tmp_path) -> Path:
    """A 2 second 320x240 test video with audio, generated by FFmpeg."""
    path = tmp_path / "sample.mp4"
    cmd = [
        "ffmpeg", "-y", "-hide_banner", "-loglevel", "error",
        "-f", "lavfi", "-i", "testsrc=duration=2:size=320x240:rate=25",
        "-f", "lavfi", "-i", "sine=frequency=440:duration=2",
        "-c:v", "libx264", "-pix_fmt", "yuv420p", "-c:a", "aac",
        "-shortest", str(path),
    ]
    subprocess.run(cmd, check=True, capture_output=True)
    return path
