"""Trackvault - Error taxonomy.

Every failure is terminal for the current request. The HTTP layer maps
error codes to status codes; the codes themselves are never serialized,
callers only see the prose message.
"""

from __future__ import annotations

from enum import StrEnum


class TrackErrorCode(StrEnum):
    """Internal error codes."""

    CLIENT_INPUT = "CLIENT_INPUT"
    UPLOAD_TOO_LARGE = "UPLOAD_TOO_LARGE"
    NOT_FOUND = "NOT_FOUND"
    IO_FAILURE = "IO_FAILURE"
    STORE_FAILURE = "STORE_FAILURE"


class TrackError(Exception):
    """Base exception for track service errors."""

    def __init__(self, error_code: str, message: str):
        self.error_code = error_code
        self.message = message
        super().__init__(f"{error_code}: {message}")


class ClientInputError(TrackError):
    """Missing required field or header, or no file part."""

    def __init__(self, message: str):
        super().__init__(TrackErrorCode.CLIENT_INPUT, message)


class UploadTooLargeError(ClientInputError):
    """Request body exceeded the configured upload limit."""

    def __init__(self, limit: int):
        self.limit = limit
        TrackError.__init__(
            self,
            TrackErrorCode.UPLOAD_TOO_LARGE,
            f"Upload exceeds the maximum size of {limit} bytes",
        )


class NotFoundError(TrackError):
    """Unknown filename or demo id."""

    def __init__(self, message: str):
        super().__init__(TrackErrorCode.NOT_FOUND, message)


class IOFailure(TrackError):
    """Directory or file create/write/delete failure."""

    def __init__(self, operation: str, path: str, reason: str):
        self.operation = operation
        self.path = path
        super().__init__(TrackErrorCode.IO_FAILURE, f"Failed to {operation}: {path}: {reason}")


class StoreFailure(TrackError):
    """Statement prepare/execute/query failure."""

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        super().__init__(TrackErrorCode.STORE_FAILURE, f"Database {operation} failed: {reason}")


def error_code_to_status(error_code: str) -> int:
    """Map error codes to HTTP status codes.

    - CLIENT_INPUT -> 400
    - UPLOAD_TOO_LARGE -> 413
    - NOT_FOUND -> 404
    - IO_FAILURE, STORE_FAILURE -> 500
    """
    if error_code == TrackErrorCode.CLIENT_INPUT:
        return 400
    if error_code == TrackErrorCode.UPLOAD_TOO_LARGE:
        return 413
    if error_code == TrackErrorCode.NOT_FOUND:
        return 404
    return 500


__all__ = [
    "TrackErrorCode",
    "TrackError",
    "ClientInputError",
    "UploadTooLargeError",
    "NotFoundError",
    "IOFailure",
    "StoreFailure",
    "error_code_to_status",
]
