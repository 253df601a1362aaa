from reel_captioner.schemas.caption import CaptionSpec
from reel_captioner.schemas.envelope import ErrorInfo, ErrorLocation, ErrorResponse
from reel_captioner.schemas.render import (
    BatchResponse,
    GenerateReelsRequest,
    ReelResult,
    UploadedVideo,
    UploadVideoResponse,
)

__all__ = [
    "CaptionSpec",
    "ErrorInfo",
    "ErrorLocation",
    "ErrorResponse",
    "GenerateReelsRequest",
    "ReelResult",
    "BatchResponse",
    "UploadedVideo",
    "UploadVideoResponse",
]
