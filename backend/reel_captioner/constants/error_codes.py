"""Error codes dictionary for the reel captioner API.

Single source of truth for error codes, their retryability and the fix a
client should try. Used by the exception handlers to build machine-readable
error responses.
"""

from typing import TypedDict


class ErrorCodeSpec(TypedDict, total=False):
    """Specification for an error code."""

    retryable: bool
    suggested_fix: str


ERROR_CODES: dict[str, ErrorCodeSpec] = {
    # ==========================================================================
    # Request-level errors (rejected before any render starts)
    # ==========================================================================
    "MISSING_SOURCE_REFERENCE": {
        "retryable": False,
        "suggested_fix": "Send videoFilename as returned by POST /api/upload-video",
    },
    "EMPTY_CAPTION_LIST": {
        "retryable": False,
        "suggested_fix": "Send at least one caption",
    },
    "BATCH_TOO_LARGE": {
        "retryable": False,
        "suggested_fix": "Split the captions into several smaller batches",
    },
    "SOURCE_VIDEO_NOT_FOUND": {
        "retryable": False,
        "suggested_fix": "Upload the video again with POST /api/upload-video",
    },
    # ==========================================================================
    # Upload errors
    # ==========================================================================
    "INVALID_UPLOAD": {
        "retryable": False,
        "suggested_fix": "Upload an mp4, mov, avi or mkv video in the 'video' field",
    },
    "UPLOAD_TOO_LARGE": {
        "retryable": False,
        "suggested_fix": "Upload a video smaller than the configured size limit",
    },
    # ==========================================================================
    # Download / packaging errors
    # ==========================================================================
    "BATCH_NOT_FOUND": {
        "retryable": True,
        "suggested_fix": "Check the batchId returned by POST /api/generate-reels",
    },
    "OUTPUT_NOT_FOUND": {
        "retryable": False,
        "suggested_fix": "Render the batch again",
    },
    # ==========================================================================
    # System errors
    # ==========================================================================
    "VALIDATION_ERROR": {
        "retryable": False,
        "suggested_fix": "Check the request body against the API schema",
    },
    "INTERNAL_ERROR": {
        "retryable": True,
    },
    "NOT_FOUND": {
        "retryable": False,
    },
}


def get_error_spec(code: str) -> ErrorCodeSpec:
    """Get error specification by code.

    Args:
        code: The error code

    Returns:
        ErrorCodeSpec with retryable flag and suggested fix
    """
    return ERROR_CODES.get(code, {"retryable": False})
