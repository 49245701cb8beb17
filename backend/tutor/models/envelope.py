"""Response envelope shared by every endpoint.

Successful calls return ``{"status": "success", "data": ..., "errors": [], "meta": {...}}``.
Failures keep the same shape with ``data`` null and one entry per problem in
``errors``, so a client can show every snapshot validation message at once.
"""

from enum import Enum

from pydantic import BaseModel


class ErrorCode(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    INVALID_SNAPSHOT = "INVALID_SNAPSHOT"
    INVALID_FORMAT = "INVALID_FORMAT"
    DECRYPTION_FAILED = "DECRYPTION_FAILED"
    CONFLICT = "CONFLICT"
    DUPLICATE = "DUPLICATE"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ApiError(BaseModel):
    """One problem with a request."""

    code: ErrorCode
    message: str
    field: str | None = None


def success_response(data: object, **meta: object) -> dict:
    """Wrap a payload; keyword arguments become ``meta`` (counts, periods)."""
    return {
        "status": "success",
        "data": data,
        "errors": [],
        "meta": meta,
    }


def error_response(errors: list[ApiError]) -> dict:
    return {
        "status": "error",
        "data": None,
        "errors": [e.model_dump(mode="json") for e in errors],
        "meta": {},
    }


def snapshot_errors(messages: list[str]) -> list[ApiError]:
    """One INVALID_SNAPSHOT entry per validation message."""
    return [ApiError(code=ErrorCode.INVALID_SNAPSHOT, message=message) for message in messages]
