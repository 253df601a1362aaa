"""External encoder capability.

The orchestrator and runner only see the ``Encoder`` protocol, so tests can
inject a fake. ``FfmpegEncoder`` is the real implementation: one FFmpeg
subprocess per call, progress read from ``-progress pipe:1``.
"""

import asyncio
import logging
from typing import Callable, Optional, Protocol

from reel_captioner.config import get_settings
from reel_captioner.exceptions import EncodeError
from reel_captioner.render.overlay_mapper import OverlayParams, build_filter_chain

logger = logging.getLogger(__name__)

# Called with the number of seconds of output encoded so far
ProgressCallback = Callable[[float], None]


class Encoder(Protocol):
    async def render(
        self,
        source_path: str,
        params: OverlayParams,
        output_path: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        """Render ``source_path`` with ``params`` into ``output_path``.

        Raises:
            EncodeError: On any failure of the encode
        """
        ...


class FfmpegEncoder:
    """Encoder backed by the ``ffmpeg`` binary."""

    def __init__(
        self,
        ffmpeg_path: Optional[str] = None,
        crf: Optional[int] = None,
        preset: Optional[str] = None,
        timeout_s: Optional[float] = None,
    ):
        settings = get_settings()
        self.ffmpeg_path = ffmpeg_path or settings.ffmpeg_path
        self.crf = crf if crf is not None else settings.render_crf
        self.preset = preset or settings.render_preset
        self.timeout_s = timeout_s if timeout_s is not None else settings.render_timeout_seconds

    def build_command(
        self,
        source_path: str,
        params: OverlayParams,
        output_path: str,
    ) -> list[str]:
        """Build the FFmpeg command for one reel without executing it.

        Video is re-encoded with a fixed quality/speed tradeoff, audio is
        copied untouched. The muxer is forced to mp4 so the output path may
        carry a temporary suffix.
        """
        return [
            self.ffmpeg_path,
            "-y",
            "-nostdin",
            "-hide_banner",
            "-i", source_path,
            "-vf", build_filter_chain(params),
            "-map", "0:v:0",
            "-map", "0:a?",
            "-c:v", "libx264",
            "-preset", self.preset,
            "-crf", str(self.crf),
            "-pix_fmt", "yuv420p",
            "-c:a", "copy",
            "-movflags", "+faststart",
            "-progress", "pipe:1",
            "-nostats",
            "-f", "mp4",
            output_path,
        ]

    async def render(
        self,
        source_path: str,
        params: OverlayParams,
        output_path: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        cmd = self.build_command(source_path, params, output_path)
        logger.info(f"[RENDER] FFmpeg command: {' '.join(cmd)}")

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise EncodeError(f"Could not start encoder '{self.ffmpeg_path}': {e}") from e

        try:
            stderr_output = await asyncio.wait_for(
                self._communicate(proc, on_progress),
                timeout=self.timeout_s if self.timeout_s > 0 else None,
            )
        except asyncio.TimeoutError as e:
            raise EncodeError(f"Encoder timed out after {self.timeout_s:g}s") from e
        finally:
            if proc.returncode is None:
                proc.kill()
                await proc.wait()

        if proc.returncode != 0:
            stderr_text = stderr_output.decode("utf-8", errors="replace").strip()
            logger.error(f"[RENDER] FFmpeg exited with {proc.returncode}. Stderr:\n{stderr_text}")
            lines = [line for line in stderr_text.splitlines() if line.strip()]
            last_line = lines[-1] if lines else "Unknown FFmpeg error"
            raise EncodeError(f"Encoder exited with code {proc.returncode}: {last_line}")

    async def _communicate(
        self,
        proc: asyncio.subprocess.Process,
        on_progress: Optional[ProgressCallback],
    ) -> bytes:
        """Read progress from stdout and stderr concurrently, then reap."""

        async def read_progress() -> None:
            async for raw_line in proc.stdout:
                line = raw_line.decode("utf-8", errors="replace").strip()
                if line.startswith("out_time_us=") and on_progress:
                    try:
                        on_progress(int(line.split("=", 1)[1]) / 1_000_000)
                    except ValueError:
                        # "N/A" before the first frame
                        continue

        _, stderr_output = await asyncio.gather(read_progress(), proc.stderr.read())
        await proc.wait()
        return stderr_output
