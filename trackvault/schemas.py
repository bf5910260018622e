"""Trackvault - Pydantic models for API responses.

Used by FastAPI for response validation and OpenAPI docs.
"""

from pydantic import BaseModel, ConfigDict, Field

from trackvault.models import Track


class UploadResponse(BaseModel):
    """Response for a successful upload."""

    model_config = ConfigDict(extra="forbid")

    message: str = Field(default="File uploaded successfully", description="Confirmation")
    demo_id: str = Field(..., description="Public sharing handle for the new track")
    file_url: str = Field(..., description="URL path that streams the uploaded file")


class TrackResponse(BaseModel):
    """Public metadata for one track."""

    model_config = ConfigDict(extra="forbid")

    artist: str = Field(..., description="Artist name as uploaded")
    title: str = Field(..., description="Track title as uploaded")
    file_url: str = Field(..., description="URL path that streams the file")
    demo_id: str = Field(..., description="Public sharing handle")

    @classmethod
    def from_track(cls, track: Track) -> "TrackResponse":
        return cls(
            artist=track.artist,
            title=track.title,
            file_url=track.file_url,
            demo_id=track.demo_id,
        )


class ErrorResponse(BaseModel):
    """Response for failed operations. Prose only, no error codes."""

    model_config = ConfigDict(extra="forbid")

    status: str = Field(default="error", description="Operation status")
    message: str = Field(..., description="Human-readable error description")


__all__ = [
    "UploadResponse",
    "TrackResponse",
    "ErrorResponse",
]
