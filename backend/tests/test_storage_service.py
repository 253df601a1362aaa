"""Tests for local storage of uploads and rendered reels."""

import io

import pytest
from fastapi import UploadFile
from starlette.datastructures import Headers

from reel_captioner.exceptions import (
    InvalidUploadError,
    OutputNotFoundError,
    SourceVideoNotFoundError,
    UploadTooLargeError,
)
from reel_captioner.services.storage_service import (
    LocalStorageService,
    output_filename,
    output_filename_pattern,
)


def _upload(data: bytes, filename: str = "clip.mp4", content_type: str = "video/mp4") -> UploadFile:
    return UploadFile(
        file=io.BytesIO(data),
        filename=filename,
        headers=Headers({"content-type": content_type}),
    )


class TestOutputNaming:
    """Tests for the output naming scheme."""

    def test_output_filename(self):
        """Names encode batch id and 1-based index."""
        assert output_filename("abc", 1) == "reel_abc_1.mp4"
        assert output_filename("abc", 12, "mov") == "reel_abc_12.mov"

    def test_pattern_matches_only_its_batch(self):
        """The pattern is anchored on both ends."""
        pattern = output_filename_pattern("abc")
        assert pattern.match("reel_abc_7.mp4").group(1) == "7"
        assert pattern.match("reel_abcd_7.mp4") is None
        assert pattern.match("reel_abc_7.mp4.part") is None
        assert pattern.match("xreel_abc_7.mp4") is None


class TestSaveUpload:
    """Tests for LocalStorageService.save_upload."""

    def test_creates_directories(self, settings):
        """Upload and output directories are created on construction."""
        service = LocalStorageService(settings)
        assert service.upload_dir.is_dir()
        assert service.output_dir.is_dir()

    @pytest.mark.asyncio
    async def test_saves_video(self, storage):
        """A valid video is written under a unique name."""
        stored = await storage.save_upload(_upload(b"video-bytes", "My Clip.mov", "video/quicktime"))

        assert stored.original_name == "My Clip.mov"
        assert stored.filename.endswith("-My Clip.mov")
        assert stored.size == len(b"video-bytes")
        assert stored.path.read_bytes() == b"video-bytes"
        assert storage.resolve_source(stored.filename) == stored.path

    @pytest.mark.asyncio
    async def test_same_name_twice_does_not_overwrite(self, storage):
        """Two uploads with the same name are stored separately."""
        first = await storage.save_upload(_upload(b"one"))
        second = await storage.save_upload(_upload(b"two"))

        assert first.filename != second.filename
        assert first.path.read_bytes() == b"one"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "filename,content_type",
        [
            ("notes.txt", "text/plain"),
            ("clip.mp4", "image/png"),
            ("clip.webm", "video/webm"),
            ("", "video/mp4"),
        ],
    )
    async def test_rejects_non_video(self, storage, filename, content_type):
        """Only allowed video extensions and content types are accepted."""
        with pytest.raises(InvalidUploadError):
            await storage.save_upload(_upload(b"data", filename, content_type))

        assert list(storage.upload_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_rejects_empty_file(self, storage):
        """An empty upload is rejected and not kept."""
        with pytest.raises(InvalidUploadError, match="empty"):
            await storage.save_upload(_upload(b""))

        assert list(storage.upload_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_rejects_oversized_file(self, storage, settings):
        """Uploads over the size ceiling are rejected and removed."""
        data = b"x" * (settings.max_upload_size_bytes + 1)

        with pytest.raises(UploadTooLargeError) as exc_info:
            await storage.save_upload(_upload(data))

        assert exc_info.value.status_code == 413
        assert list(storage.upload_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_file_at_limit_accepted(self, storage, settings):
        """A file exactly at the ceiling is accepted."""
        data = b"x" * settings.max_upload_size_bytes

        stored = await storage.save_upload(_upload(data))

        assert stored.size == settings.max_upload_size_bytes


class TestResolve:
    """Tests for source and output lookup."""

    def test_unknown_source(self, storage):
        """Unknown source names raise SourceVideoNotFoundError."""
        with pytest.raises(SourceVideoNotFoundError):
            storage.resolve_source("nope.mp4")

    @pytest.mark.parametrize("name", ["../secret.mp4", "a/b.mp4", "..", ".", "a\\b.mp4"])
    def test_rejects_paths(self, storage, name):
        """Only plain file names are resolved."""
        with pytest.raises(OutputNotFoundError):
            storage.resolve_output(name)

    def test_resolve_output(self, storage):
        """Existing reels resolve to their path."""
        path = storage.output_dir / "reel_abc_1.mp4"
        path.write_bytes(b"x")

        assert storage.resolve_output("reel_abc_1.mp4") == path

    def test_missing_output(self, storage):
        """Missing reels raise OutputNotFoundError."""
        with pytest.raises(OutputNotFoundError):
            storage.resolve_output("reel_abc_1.mp4")

    def test_partial_output_not_resolved(self, storage):
        """Encodes that are still being written are never served."""
        (storage.output_dir / "reel_abc_1.mp4.part").write_bytes(b"half-written")

        with pytest.raises(OutputNotFoundError):
            storage.resolve_output("reel_abc_1.mp4.part")
