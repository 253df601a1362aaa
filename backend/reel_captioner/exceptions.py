"""Custom exceptions for the reel captioner backend.

Request-level and packaging-level errors are raised as ``ReelCaptionerError``
subclasses and rendered by the handler in ``main.py``. Job-level encoder
failures use ``EncodeError`` and never leave the job that raised them.
"""

from reel_captioner.constants.error_codes import get_error_spec
from reel_captioner.schemas.envelope import ErrorInfo, ErrorLocation


class ReelCaptionerError(Exception):
    """Base exception for all application errors.

    Carries an HTTP status and a stable code for API responses.
    """

    code: str = "INTERNAL_ERROR"
    status_code: int = 500
    message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: str | None = None,
        *,
        code: str | None = None,
        status_code: int | None = None,
        location: ErrorLocation | None = None,
        suggested_fix: str | None = None,
    ):
        self.message = message or self.__class__.message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.location = location
        self.suggested_fix = suggested_fix
        super().__init__(self.message)

    def to_error_info(self) -> ErrorInfo:
        """Convert exception to ErrorInfo for API response."""
        spec = get_error_spec(self.code)
        return ErrorInfo(
            code=self.code,
            message=self.message,
            location=self.location,
            retryable=spec.get("retryable", False),
            suggested_fix=self.suggested_fix or spec.get("suggested_fix"),
        )


# =============================================================================
# Validation Errors (400)
# =============================================================================


class ValidationError(ReelCaptionerError):
    """Base class for request validation errors."""

    code = "VALIDATION_ERROR"
    status_code = 400


class MissingSourceReferenceError(ValidationError):
    """No source video reference in the generate request."""

    code = "MISSING_SOURCE_REFERENCE"
    message = "Video filename and captions are required"

    def __init__(self) -> None:
        super().__init__(location=ErrorLocation(field="videoFilename"))


class EmptyCaptionListError(ValidationError):
    """Generate request without any caption."""

    code = "EMPTY_CAPTION_LIST"
    message = "Video filename and captions are required"

    def __init__(self) -> None:
        super().__init__(location=ErrorLocation(field="captions"))


class BatchTooLargeError(ValidationError):
    """Too many captions for one batch."""

    code = "BATCH_TOO_LARGE"
    message = "Too many captions in one batch"

    def __init__(self, count: int, limit: int):
        super().__init__(
            f"Batch has {count} captions, the limit is {limit}",
            location=ErrorLocation(field="captions"),
        )


class InvalidUploadError(ValidationError):
    """Uploaded file is missing or not an allowed video type."""

    code = "INVALID_UPLOAD"
    message = "Only video files are allowed"


class UploadTooLargeError(ReelCaptionerError):
    """Uploaded file exceeds the size ceiling."""

    code = "UPLOAD_TOO_LARGE"
    status_code = 413
    message = "Uploaded file is too large"

    def __init__(self, limit_bytes: int):
        super().__init__(f"Uploaded file exceeds the {limit_bytes // (1024 * 1024)}MB limit")


# =============================================================================
# Resource Not Found Errors (404)
# =============================================================================


class ResourceNotFoundError(ReelCaptionerError):
    """Base class for resource not found errors."""

    code = "NOT_FOUND"
    status_code = 404


class SourceVideoNotFoundError(ResourceNotFoundError):
    """Source video does not exist in the upload directory."""

    code = "SOURCE_VIDEO_NOT_FOUND"
    message = "Video file not found"

    def __init__(self, filename: str | None = None):
        message = f"Video file not found: {filename}" if filename else self.message
        super().__init__(message, location=ErrorLocation(field="videoFilename"))


class BatchNotFoundError(ResourceNotFoundError):
    """No rendered output belongs to the batch."""

    code = "BATCH_NOT_FOUND"
    message = "Batch not found"

    def __init__(self, batch_id: str | None = None):
        message = f"Batch not found: {batch_id}" if batch_id else self.message
        location = ErrorLocation(batch_id=batch_id) if batch_id else None
        super().__init__(message, location=location)


class OutputNotFoundError(ResourceNotFoundError):
    """Rendered output file is missing."""

    code = "OUTPUT_NOT_FOUND"
    message = "File not found"

    def __init__(self, filename: str | None = None):
        message = f"File not found: {filename}" if filename else self.message
        super().__init__(message)


# =============================================================================
# Job-level errors
# =============================================================================


class EncodeError(Exception):
    """A single render job failed inside the encoder.

    Recorded on the job as a ``Failed`` status; not an HTTP error.
    """
