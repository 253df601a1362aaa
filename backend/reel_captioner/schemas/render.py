from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from reel_captioner.schemas.caption import CaptionSpec


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GenerateReelsRequest(BaseModel):
    video_filename: str | None = Field(
        None, validation_alias=AliasChoices("videoFilename", "video_filename")
    )
    captions: list[CaptionSpec] = Field(default_factory=list)


class ReelResult(CamelModel):
    index: int  # 1-based, same number as in the output filename
    reel_number: int
    filename: str | None  # None unless the reel rendered successfully
    download_url: str | None
    caption: str
    status: str  # "Pending" | "Success" | "Failed"
    progress: float = 0.0  # percent, 100 once the reel rendered
    error: str | None = None


class BatchResponse(CamelModel):
    success: bool = True
    batch_id: str
    state: str  # "Created" | "Running" | "Completed"
    results: list[ReelResult]
    download_url: str
    created_at: datetime
    completed_at: datetime | None = None


class UploadedVideo(CamelModel):
    id: str
    filename: str
    original_name: str
    path: str
    size: int


class UploadVideoResponse(CamelModel):
    success: bool = True
    video: UploadedVideo
    message: str = "Video uploaded successfully"
