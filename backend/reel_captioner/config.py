import json
from functools import lru_cache
from pathlib import Path

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Application
    app_name: str = "Reel Captioner API"
    app_version: str = "0.1.0"
    log_level: str = "INFO"

    # CORS - stored as string, parsed via computed property
    cors_origins_raw: str = "http://localhost:5173,http://localhost:8080,http://localhost:3000"

    @computed_field
    @property
    def cors_origins(self) -> list[str]:
        """Parse CORS origins from pipe/comma-separated string or JSON array."""
        v = self.cors_origins_raw
        if v.startswith("["):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                pass
        if "|" in v:
            return [origin.strip() for origin in v.split("|") if origin.strip()]
        return [origin.strip() for origin in v.split(",") if origin.strip()]

    # Storage - one directory for uploaded sources, one flat directory for reels
    upload_dir: str = "uploads"
    output_dir: str = "output"

    # File Upload
    max_upload_size_mb: int = 100
    upload_chunk_size: int = 1024 * 1024
    allowed_video_extensions: list[str] = [".mp4", ".mov", ".avi", ".mkv"]
    allowed_video_types: list[str] = [
        "video/mp4",
        "video/quicktime",
        "video/x-msvideo",
        "video/avi",
        "video/x-matroska",
    ]

    # FFmpeg
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"

    # Render settings (vertical reel canvas)
    render_output_width: int = 1080
    render_output_height: int = 1920
    render_crf: int = 23
    render_preset: str = "fast"
    render_timeout_seconds: float = 600.0
    # 1 keeps the sequential behaviour; >1 runs a bounded pool of encoders
    max_concurrent_renders: int = 1
    # 0 disables the cap
    max_captions_per_batch: int = 100
    # Batches kept in the in-memory manifest; 0 disables the cap
    max_tracked_batches: int = 500

    # Caption fonts (empty = fontconfig default)
    font_path: str = ""
    bold_font_path: str = ""
    caption_box_border: int = 10

    # Archive download
    archive_chunk_size: int = 1024 * 1024

    @property
    def max_upload_size_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024

    @property
    def upload_path(self) -> Path:
        return Path(self.upload_dir)

    @property
    def output_path(self) -> Path:
        return Path(self.output_dir)


@lru_cache
def get_settings() -> Settings:
    return Settings()
