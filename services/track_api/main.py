"""Trackvault Track API - FastAPI application.

HTTP surface for uploading, listing, streaming and deleting demo tracks.
Business logic lives in services.track_api.service; this module wires the
store handle, the upload directory and the caller's user_id into it and
maps errors to status codes.

Run with:
    uvicorn services.track_api.main:app --reload  # dev server only
    python -m services.track_api.main
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Annotated

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse, PlainTextResponse, Response
from starlette.requests import ClientDisconnect

from trackvault import __version__, config
from trackvault.db import TrackStore
from trackvault.errors import ClientInputError, TrackError, error_code_to_status
from trackvault.schemas import ErrorResponse, TrackResponse, UploadResponse
from trackvault.utils.atomic_io import cleanup_orphan_temp_files
from trackvault.utils.paths import ensure_upload_dir
from services.track_api.multipart import iter_request_parts
from services.track_api.service import (
    delete_audio,
    get_demo_details,
    ingest_upload,
    list_tracks,
    stream_audio,
    stream_demo,
)

logger = logging.getLogger(__name__)


# --- Dependencies ---


def get_store(request: Request) -> TrackStore:
    """Dependency that provides the store handle opened by the lifespan.

    Raises:
        RuntimeError: If the store is not initialized (app lifespan not invoked).
    """
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise RuntimeError("Track store not initialized. App lifespan not invoked?")
    return store


def get_upload_dir() -> Path:
    """Dependency that provides the configured upload directory."""
    return config.UPLOAD_DIR


def get_user_id(request: Request) -> str | None:
    """Dependency that extracts the caller's owner identifier.

    The identifier is trusted as-is; authentication belongs in front of
    this service.
    """
    return request.headers.get(config.USER_ID_FIELD)


# --- Lifespan ---


def _cleanup_orphan_temp_files_safe() -> None:
    """Clean up orphan temp files on startup (best-effort, never fails)."""
    try:
        upload_dir = config.UPLOAD_DIR
        if upload_dir.exists():
            removed = cleanup_orphan_temp_files(upload_dir)
            if removed > 0:
                logger.info("Startup cleanup: removed %d orphan temp files", removed)
    except Exception:
        logger.warning("Startup cleanup failed (non-fatal)", exc_info=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler.

    Prepares the upload directory, sweeps interrupted uploads and opens the
    track store; closes the store on shutdown.
    """
    try:
        ensure_upload_dir()
    except TrackError:
        # Uploads will report the failure per request
        logger.warning("Upload directory unavailable at startup", exc_info=True)

    _cleanup_orphan_temp_files_safe()

    app.state.store = TrackStore.open(config.DB_PATH)
    logger.info("Track store opened at %s, uploads in %s", config.DB_PATH, config.UPLOAD_DIR)

    yield

    app.state.store.close()
    app.state.store = None


# --- FastAPI App ---


app = FastAPI(
    title="Trackvault - Track API",
    description="Upload, share and stream audio demos.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(config.CORS_ALLOW_ORIGINS),
    allow_methods=list(config.CORS_ALLOW_METHODS),
    allow_headers=list(config.CORS_ALLOW_HEADERS),
    allow_credentials=True,
)


# --- Error Handling ---


def make_error_response(status_code: int, message: str) -> JSONResponse:
    """Create a JSON error response."""
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(message=message).model_dump(),
    )


@app.exception_handler(TrackError)
async def track_error_handler(request: Request, exc: TrackError) -> JSONResponse:
    status_code = error_code_to_status(exc.error_code)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc.message)
    return make_error_response(status_code, exc.message)


# --- Endpoints ---


_ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Missing input"},
    404: {"model": ErrorResponse, "description": "Not found"},
    500: {"model": ErrorResponse, "description": "I/O or database failure"},
}


@app.post(
    "/upload",
    response_model=UploadResponse,
    responses={
        400: _ERROR_RESPONSES[400],
        413: {"model": ErrorResponse, "description": "Upload too large"},
        500: _ERROR_RESPONSES[500],
    },
    summary="Upload an audio file",
)
async def upload(
    request: Request,
    store: Annotated[TrackStore, Depends(get_store)],
    upload_dir: Annotated[Path, Depends(get_upload_dir)],
    user_id: Annotated[str | None, Depends(get_user_id)],
):
    """Upload one audio file with its metadata.

    Accepts either:
    - multipart/form-data with fields user_id, artist, title and file
    - an audio/* or application/octet-stream body holding the file, with
      metadata as query parameters

    Named parts override query parameters, which override the user_id header.
    """
    fields: dict[str, str | None] = {config.USER_ID_FIELD: user_id}
    for name in config.SCALAR_FIELDS:
        if name in request.query_params:
            fields[name] = request.query_params[name]

    parts = iter_request_parts(
        request.stream(),
        request.headers.get("content-type"),
        max_bytes=config.MAX_UPLOAD_BYTES,
    )
    try:
        result = await ingest_upload(store, parts, fields=fields, upload_dir=upload_dir)
    except TrackError:
        raise
    except ClientDisconnect as e:
        raise ClientInputError("Client disconnected during upload") from e
    except Exception:
        logger.exception("Unexpected error during upload")
        return make_error_response(500, "An unexpected error occurred during upload")

    return UploadResponse(demo_id=result.demo_id, file_url=result.file_url)


@app.get(
    "/tracks",
    response_model=list[TrackResponse],
    responses={400: _ERROR_RESPONSES[400], 500: _ERROR_RESPONSES[500]},
    summary="List the caller's tracks",
)
def get_tracks(
    store: Annotated[TrackStore, Depends(get_store)],
    user_id: Annotated[str | None, Depends(get_user_id)],
):
    """List every track uploaded with the caller's user_id header."""
    tracks = list_tracks(store, user_id)
    return [TrackResponse.from_track(track) for track in tracks]


@app.get(
    "/audio/{filename}",
    response_class=FileResponse,
    responses={404: _ERROR_RESPONSES[404]},
    summary="Stream an audio file by filename",
)
def get_audio(filename: str, upload_dir: Annotated[Path, Depends(get_upload_dir)]):
    path = stream_audio(filename, upload_dir)
    return FileResponse(path, media_type=config.AUDIO_MEDIA_TYPE)


@app.delete(
    "/audio/{filename}",
    response_class=PlainTextResponse,
    responses=_ERROR_RESPONSES,
    summary="Delete an audio file and its record",
)
def remove_audio(
    filename: str,
    store: Annotated[TrackStore, Depends(get_store)],
    upload_dir: Annotated[Path, Depends(get_upload_dir)],
):
    delete_audio(store, filename, upload_dir)
    return PlainTextResponse("File and record deleted successfully")


@app.get(
    "/demo/{demo_id}",
    response_class=FileResponse,
    responses={404: _ERROR_RESPONSES[404], 500: _ERROR_RESPONSES[500]},
    summary="Stream an audio file by demo id",
)
def get_demo(
    demo_id: str,
    store: Annotated[TrackStore, Depends(get_store)],
    upload_dir: Annotated[Path, Depends(get_upload_dir)],
):
    path = stream_demo(store, demo_id, upload_dir)
    return FileResponse(path, media_type=config.AUDIO_MEDIA_TYPE)


@app.get(
    "/demo_details/{demo_id}",
    response_model=TrackResponse,
    responses={404: _ERROR_RESPONSES[404], 500: _ERROR_RESPONSES[500]},
    summary="Get a demo's metadata",
)
def get_demo_metadata(demo_id: str, store: Annotated[TrackStore, Depends(get_store)]):
    return TrackResponse.from_track(get_demo_details(store, demo_id))


@app.options("/{path:path}", include_in_schema=False)
def handle_options(path: str, request: Request) -> Response:
    """Answer OPTIONS for any path.

    Real CORS pre-flights are answered by CORSMiddleware before reaching
    this handler.
    """
    origins = config.CORS_ALLOW_ORIGINS
    origin = request.headers.get("origin")
    if origin and ("*" in origins or origin in origins):
        allow_origin = origin
    else:
        allow_origin = origins[0]
    return Response(
        status_code=200,
        headers={
            "Access-Control-Allow-Origin": allow_origin,
            "Access-Control-Allow-Methods": ", ".join(config.CORS_ALLOW_METHODS),
            "Access-Control-Allow-Headers": ", ".join(config.CORS_ALLOW_HEADERS),
            "Access-Control-Allow-Credentials": "true",
        },
    )


@app.get("/health", summary="Health check")
def health_check():
    """Simple health check endpoint."""
    return {"status": "ok"}


if __name__ == "__main__":
    import os

    import uvicorn

    log_level = os.environ.get("TRACKVAULT_LOG_LEVEL", "info").lower()
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(app, host="0.0.0.0", port=8080, log_level=log_level)
