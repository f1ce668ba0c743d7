"""Common schemas used across the API."""

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Normalized error body returned by every failing endpoint."""

    message: str
    code: str | None = None


class SuccessResponse(BaseModel):
    """Acknowledgement for operations without a payload."""

    success: bool = True
