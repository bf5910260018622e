"""Trackvault Track API - Service logic.

Core business logic implementing:
- Ingest: streaming upload to a temp file, row insert + atomic publish
- Retrieval: list by owner, resolve by filename or demo id, demo details
- Lifecycle: delete a file and its rows together

The HTTP layer supplies the store handle, the upload directory and an
already-extracted owner identifier; nothing here reads raw headers.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import AsyncGenerator, Mapping
from contextlib import aclosing
from dataclasses import dataclass
from pathlib import Path

from starlette.concurrency import run_in_threadpool

from trackvault import config
from trackvault.db import TrackStore
from trackvault.errors import ClientInputError, IOFailure, NotFoundError, StoreFailure
from trackvault.models import Track
from trackvault.utils.atomic_io import AtomicFileWriter
from trackvault.utils.paths import (
    ensure_upload_dir,
    file_url_for,
    resolve_audio_path,
    track_filename,
)
from services.track_api.multipart import PartBegin, PartData, PartEnd, PartEvent

logger = logging.getLogger(__name__)


# --- Result Types ---


@dataclass
class IngestResult:
    """Result of a successful upload."""

    demo_id: str
    file_path: str
    file_url: str
    bytes_written: int


def generate_demo_id() -> str:
    """Generate a unique demo ID.

    Uses UUID4 (122 random bits from os.urandom). Format: canonical
    hyphenated string (36 chars).
    """
    return str(uuid.uuid4())


# --- Ingest ---


def _open_writer(temp_path: Path) -> AtomicFileWriter:
    try:
        return AtomicFileWriter(temp_path)
    except OSError as e:
        raise IOFailure("create file", str(temp_path), str(e)) from e


def _write_chunk(writer: AtomicFileWriter, chunk: bytes) -> None:
    try:
        writer.write(chunk)
    except OSError as e:
        raise IOFailure("write file", str(writer.temp_path), str(e)) from e


def _close_writer(writer: AtomicFileWriter) -> None:
    try:
        writer.close()
    except OSError as e:
        raise IOFailure("flush file", str(writer.temp_path), str(e)) from e


def _persist_track(
    store: TrackStore,
    writer: AtomicFileWriter,
    final_path: Path,
    metadata: Mapping[str, str],
    demo_id: str,
) -> Track:
    """Insert the row and publish the file as one unit.

    The row is flushed, the temp file renamed into place, then the
    transaction commits. A failed rename rolls the row back; a failed commit
    removes the published file.
    """
    track = Track(
        artist=metadata[config.ARTIST_FIELD],
        title=metadata[config.TITLE_FIELD],
        file_path=final_path.name,
        demo_id=demo_id,
        user_id=metadata[config.USER_ID_FIELD],
    )
    try:
        with store.transaction("insert") as session:
            session.add(track)
            session.flush()
            try:
                writer.publish(final_path)
            except OSError as e:
                raise IOFailure("publish file", str(final_path), str(e)) from e
    except StoreFailure:
        if writer.published:
            try:
                final_path.unlink(missing_ok=True)
            except OSError:
                logger.error("Could not remove %s after failed insert", final_path, exc_info=True)
        raise
    return track


async def ingest_upload(
    store: TrackStore,
    parts: AsyncGenerator[PartEvent, None],
    fields: Mapping[str, str | None] | None = None,
    upload_dir: str | Path | None = None,
) -> IngestResult:
    """Ingest one upload from a stream of part events.

    Steps:
    1. Ensure the upload directory exists
    2. Mint a demo id
    3. Consume parts in order: scalar fields are buffered (last value wins),
       the file part is streamed chunk by chunk to a temp file
    4. Derive the final filename from the final title
    5. Insert the row and publish the file together

    Args:
        store: Track store handle.
        parts: Part events in body order.
        fields: Scalar metadata supplied outside the body (owner identifier,
            query parameters). Named parts override these.
        upload_dir: Optional override for the upload directory.

    Returns:
        IngestResult with demo_id and file_url.

    Raises:
        ClientInputError: No file part, more than one file part, or a
            malformed body.
        IOFailure: Directory or file create/write failure.
        StoreFailure: Insert failed.

    Note:
        On any failure the temp file is removed; no file and no row remain.
    """
    upload_dir = await run_in_threadpool(ensure_upload_dir, upload_dir)
    demo_id = generate_demo_id()

    metadata = {name: "" for name in config.SCALAR_FIELDS}
    for name, value in (fields or {}).items():
        if name in metadata and value is not None:
            metadata[name] = value

    temp_path = upload_dir / f"{demo_id}.{config.AUDIO_EXTENSION}{config.TEMP_SUFFIX}"
    writer: AtomicFileWriter | None = None
    current: str | None = None
    buffer = bytearray()

    try:
        async with aclosing(parts):
            async for event in parts:
                if isinstance(event, PartBegin):
                    current = event.name
                    if current == config.FILE_FIELD:
                        if writer is not None:
                            raise ClientInputError("Only one file part is allowed")
                        writer = await run_in_threadpool(_open_writer, temp_path)
                    elif current in metadata:
                        buffer = bytearray()
                elif isinstance(event, PartData):
                    if current == config.FILE_FIELD:
                        await run_in_threadpool(_write_chunk, writer, event.data)
                    elif current in metadata:
                        buffer.extend(event.data)
                elif isinstance(event, PartEnd):
                    if current == config.FILE_FIELD:
                        await run_in_threadpool(_close_writer, writer)
                    elif current in metadata:
                        metadata[current] = buffer.decode("utf-8", errors="replace")
                    current = None

        if writer is None:
            raise ClientInputError("File upload failed: no file part in request")

        file_path = track_filename(metadata[config.TITLE_FIELD], demo_id)
        await run_in_threadpool(
            _persist_track, store, writer, upload_dir / file_path, metadata, demo_id
        )
    finally:
        if writer is not None:
            await run_in_threadpool(writer.discard)

    logger.info(
        "Stored upload demo_id=%s file=%s bytes=%d user_id=%s",
        demo_id,
        file_path,
        writer.bytes_written,
        metadata[config.USER_ID_FIELD],
    )
    return IngestResult(
        demo_id=demo_id,
        file_path=file_path,
        file_url=file_url_for(file_path),
        bytes_written=writer.bytes_written,
    )


# --- Retrieval ---


def list_tracks(store: TrackStore, user_id: str | None) -> list[Track]:
    """Return every track owned by user_id, in storage order.

    Raises:
        ClientInputError: If no owner identifier was supplied.
    """
    if user_id is None:
        raise ClientInputError("Missing user_id in headers")
    return store.list_tracks_for_user(user_id)


def stream_audio(file_path: str, upload_dir: str | Path | None = None) -> Path:
    """Resolve a stored filename to its file on disk.

    Pure filesystem lookup: no row is consulted.

    Raises:
        NotFoundError: If no such file exists.
    """
    path = resolve_audio_path(file_path, upload_dir)
    if path is None:
        raise NotFoundError("File not found")
    return path


def get_demo_details(store: TrackStore, demo_id: str) -> Track:
    """Return the track record for demo_id.

    Raises:
        NotFoundError: If no row matches.
    """
    track = store.get_track_by_demo_id(demo_id)
    if track is None:
        raise NotFoundError("Demo not found")
    return track


def stream_demo(store: TrackStore, demo_id: str, upload_dir: str | Path | None = None) -> Path:
    """Resolve a demo id to its file on disk.

    Raises:
        NotFoundError: If no row matches or the row's file is missing.
    """
    track = get_demo_details(store, demo_id)
    path = resolve_audio_path(track.file_path, upload_dir)
    if path is None:
        logger.warning("Demo %s references missing file %s", demo_id, track.file_path)
        raise NotFoundError("File not found")
    return path


# --- Lifecycle ---


def delete_audio(store: TrackStore, file_path: str, upload_dir: str | Path | None = None) -> int:
    """Delete a stored file, then every row referencing it.

    The file goes first: a failed unlink leaves the rows intact. A store
    failure after the unlink is reported even though the file is gone.

    Returns:
        Number of rows removed.

    Raises:
        NotFoundError: If the file does not exist (no rows are touched).
        IOFailure: If the file cannot be removed.
        StoreFailure: If the rows cannot be removed.
    """
    path = resolve_audio_path(file_path, upload_dir)
    if path is None:
        raise NotFoundError("File not found")

    try:
        path.unlink()
    except FileNotFoundError as e:
        raise NotFoundError("File not found") from e
    except OSError as e:
        raise IOFailure("delete file", str(path), str(e)) from e

    try:
        removed = store.delete_tracks_by_file_path(file_path)
    except StoreFailure:
        logger.error("Deleted %s but its rows remain in the store", file_path)
        raise

    logger.info("Deleted %s (%d rows)", file_path, removed)
    return removed
