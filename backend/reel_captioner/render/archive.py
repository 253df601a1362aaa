"""Zip packaging of a batch's finished reels.

The archive is built lazily at download time and streamed: members are read
in chunks and written to a zip on an unseekable sink, which is drained after
every chunk, so no member is ever held in memory whole.
"""

import io
import logging
import zipfile
from pathlib import Path
from typing import Iterable, Iterator, Optional

from reel_captioner.config import get_settings
from reel_captioner.exceptions import BatchNotFoundError, OutputNotFoundError
from reel_captioner.render.batch import BatchRegistry
from reel_captioner.services.storage_service import LocalStorageService

logger = logging.getLogger(__name__)


def archive_filename(batch_id: str) -> str:
    return f"reels_batch_{batch_id}.zip"


class _ChunkSink(io.RawIOBase):
    """Write-only, unseekable buffer that hands out what was written."""

    def __init__(self) -> None:
        super().__init__()
        self._chunks: list[bytes] = []

    def writable(self) -> bool:
        return True

    def write(self, b) -> int:
        self._chunks.append(bytes(b))
        return len(b)

    def drain(self) -> bytes:
        data = b"".join(self._chunks)
        self._chunks.clear()
        return data


class ArchivePackager:
    """Collects and streams the reels of one batch as a zip."""

    def __init__(
        self,
        storage: LocalStorageService,
        registry: BatchRegistry,
        chunk_size: Optional[int] = None,
    ):
        self.storage = storage
        self.registry = registry
        self.chunk_size = chunk_size or get_settings().archive_chunk_size

    def collect(self, batch_id: str) -> list[Path]:
        """Files that belong in the archive of ``batch_id``, in reel order.

        A batch known to this process contributes the outputs of its jobs
        that are already ``Success``; running jobs are not waited for. An
        unknown batch id falls back to the output naming scheme on disk.

        Raises:
            BatchNotFoundError: No finished reel belongs to the batch
            OutputNotFoundError: A finished reel is missing on disk
        """
        batch = self.registry.get(batch_id)
        if batch is not None:
            paths = [Path(job.output_path) for job in batch.succeeded]
            for path in paths:
                if not path.is_file():
                    raise OutputNotFoundError(path.name)
        else:
            paths = self.storage.find_batch_outputs(batch_id)

        if not paths:
            raise BatchNotFoundError(batch_id)
        return paths

    def iter_archive(self, paths: Iterable[Path]) -> Iterator[bytes]:
        """Yield the bytes of a zip holding ``paths`` under their base names.

        A read error on a member propagates and aborts this archive only.
        """
        sink = _ChunkSink()
        with zipfile.ZipFile(sink, mode="w", compression=zipfile.ZIP_DEFLATED) as archive:
            for path in paths:
                info = zipfile.ZipInfo.from_file(path, arcname=path.name)
                info.compress_type = zipfile.ZIP_DEFLATED
                with open(path, "rb") as src, archive.open(info, mode="w") as dest:
                    while True:
                        chunk = src.read(self.chunk_size)
                        if not chunk:
                            break
                        dest.write(chunk)
                        data = sink.drain()
                        if data:
                            yield data
                data = sink.drain()
                if data:
                    yield data
                logger.debug(f"[ARCHIVE] Added {path.name}")
        data = sink.drain()
        if data:
            yield data

    def stream(self, batch_id: str) -> tuple[str, Iterator[bytes]]:
        """Archive name and byte stream for ``batch_id``.

        Membership is resolved eagerly so a missing batch is reported before
        any byte is sent.
        """
        paths = self.collect(batch_id)
        logger.info(f"[ARCHIVE] Streaming {len(paths)} reels for batch {batch_id}")
        return archive_filename(batch_id), self.iter_archive(paths)
