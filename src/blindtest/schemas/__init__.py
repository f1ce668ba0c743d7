"""Pydantic schemas for API requests/responses."""

from blindtest.schemas.common import ErrorResponse, SuccessResponse

__all__ = [
    "ErrorResponse",
    "SuccessResponse",
]
