from pydantic import BaseModel


class ErrorLocation(BaseModel):
    field: str | None = None
    batch_id: str | None = None
    index: int | None = None


class ErrorInfo(BaseModel):
    code: str
    message: str
    location: ErrorLocation | None = None
    retryable: bool = False
    suggested_fix: str | None = None  # Human-readable fix suggestion


class ErrorResponse(BaseModel):
    detail: str
    error: ErrorInfo
