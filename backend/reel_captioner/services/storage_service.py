"""Local file storage for uploaded sources and rendered reels.

Uploads land in ``upload_dir`` as ``{uuid}-{original name}``; reels are
written to one flat ``output_dir`` whose filenames encode batch and index.
"""

import logging
import re
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from fastapi import UploadFile

from reel_captioner.config import Settings, get_settings
from reel_captioner.exceptions import (
    InvalidUploadError,
    OutputNotFoundError,
    SourceVideoNotFoundError,
    UploadTooLargeError,
)

logger = logging.getLogger(__name__)

OUTPUT_EXTENSION = "mp4"
# Suffix of an encode that is still being written
PARTIAL_SUFFIX = ".part"


def output_filename(batch_id: str, index: int, ext: str = OUTPUT_EXTENSION) -> str:
    """Deterministic reel name; ``index`` is 1-based.

    The name is the only index of batch membership on disk.
    """
    return f"reel_{batch_id}_{index}.{ext}"


def output_filename_pattern(batch_id: str, ext: str = OUTPUT_EXTENSION) -> re.Pattern[str]:
    """Exact match for the reels of one batch."""
    return re.compile(rf"^reel_{re.escape(batch_id)}_(\d+)\.{re.escape(ext)}$")


@dataclass
class StoredVideo:
    """A source video saved by the upload handler."""

    id: str
    filename: str
    original_name: str
    path: Path
    size: int


def _safe_name(name: str) -> Optional[str]:
    """Return ``name`` if it is a plain file name, else None."""
    if not name or name in (".", ".."):
        return None
    if Path(name).name != name or "\\" in name or "\x00" in name:
        return None
    return name


class LocalStorageService:
    """Local directories for source uploads and rendered outputs."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()
        self.upload_dir = self.settings.upload_path
        self.output_dir = self.settings.output_path
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Uploads
    # ------------------------------------------------------------------

    def _validate_upload(self, upload: UploadFile) -> str:
        original_name = Path(upload.filename or "").name
        if not original_name:
            raise InvalidUploadError("No video file uploaded")

        ext = Path(original_name).suffix.lower()
        if ext not in self.settings.allowed_video_extensions:
            raise InvalidUploadError()

        content_type = (upload.content_type or "").lower()
        if content_type not in self.settings.allowed_video_types:
            raise InvalidUploadError()
        return original_name

    async def save_upload(self, upload: UploadFile) -> StoredVideo:
        """Stream an uploaded video to disk, enforcing type and size limits.

        Raises:
            InvalidUploadError: Missing file or not an allowed video type
            UploadTooLargeError: File exceeds ``max_upload_size_mb``
        """
        original_name = self._validate_upload(upload)
        limit = self.settings.max_upload_size_bytes
        filename = f"{uuid.uuid4()}-{original_name}"
        path = self.upload_dir / filename

        size = 0
        try:
            with open(path, "wb") as out:
                while True:
                    chunk = await upload.read(self.settings.upload_chunk_size)
                    if not chunk:
                        break
                    size += len(chunk)
                    if size > limit:
                        raise UploadTooLargeError(limit)
                    out.write(chunk)
        except BaseException:
            path.unlink(missing_ok=True)
            raise

        if size == 0:
            path.unlink(missing_ok=True)
            raise InvalidUploadError("Uploaded file is empty")

        logger.info(f"[UPLOAD] Saved {original_name} as {filename} ({size} bytes)")
        return StoredVideo(
            id=str(uuid.uuid4()),
            filename=filename,
            original_name=original_name,
            path=path,
            size=size,
        )

    def resolve_source(self, filename: str) -> Path:
        """Path of an uploaded source video.

        Raises:
            SourceVideoNotFoundError: Unknown name or not a plain file name
        """
        name = _safe_name(filename)
        if name is None:
            raise SourceVideoNotFoundError(filename)
        path = self.upload_dir / name
        if not path.is_file():
            raise SourceVideoNotFoundError(filename)
        return path

    # ------------------------------------------------------------------
    # Outputs
    # ------------------------------------------------------------------

    def resolve_output(self, filename: str) -> Path:
        """Path of a rendered reel for download.

        Raises:
            OutputNotFoundError: Unknown name, not a plain file name or an
                encode that has not finished
        """
        name = _safe_name(filename)
        if name is None or name.endswith(PARTIAL_SUFFIX):
            raise OutputNotFoundError(filename)
        path = self.output_dir / name
        if not path.is_file():
            raise OutputNotFoundError(filename)
        return path

    def find_batch_outputs(self, batch_id: str) -> list[Path]:
        """Finished reels of ``batch_id`` found on disk, in index order.

        Matches the exact output naming scheme, so temporary ``.part`` files
        and other batches are never included.
        """
        pattern = output_filename_pattern(batch_id)
        matches: list[tuple[int, Path]] = []
        for path in self.output_dir.iterdir():
            match = pattern.match(path.name)
            if match and path.is_file():
                matches.append((int(match.group(1)), path))
        return [path for _, path in sorted(matches)]
