"""Trackvault Track API - Streaming request body reader.

Turns a request body into an ordered sequence of part events
(PartBegin, PartData..., PartEnd) without buffering the body:

- multipart/form-data bodies are parsed incrementally with python-multipart;
  events produced by one network chunk are drained before the next chunk
  is read.
- audio/* and application/octet-stream bodies are the simplified variant:
  the whole body is a single file part. Other types are rejected.

The body size limit is enforced while reading.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, AsyncIterator
from dataclasses import dataclass

from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import MultipartParser, parse_options_header

from trackvault import config
from trackvault.errors import ClientInputError, UploadTooLargeError


@dataclass(frozen=True)
class PartBegin:
    """Start of a named part."""

    name: str
    filename: str | None = None
    content_type: str | None = None


@dataclass(frozen=True)
class PartData:
    """One chunk of the current part's body."""

    data: bytes


@dataclass(frozen=True)
class PartEnd:
    """End of the current part."""


PartEvent = PartBegin | PartData | PartEnd


def _decode(value: bytes) -> str:
    return value.decode("utf-8", errors="replace")


def is_multipart(content_type: str | None) -> bool:
    """True if the Content-Type header announces multipart/form-data."""
    if not content_type:
        return False
    media_type, _ = parse_options_header(content_type)
    return media_type == b"multipart/form-data"


class MultipartPartReader:
    """Incremental multipart/form-data parser emitting part events.

    feed() accepts body chunks in order and returns the events they
    completed; finish() must be called once the body is exhausted.
    """

    def __init__(self, content_type: str):
        _, params = parse_options_header(content_type)
        boundary = params.get(b"boundary")
        if not boundary:
            raise ClientInputError("Missing boundary in multipart Content-Type")

        self._events: list[PartEvent] = []
        self._headers: dict[bytes, bytes] = {}
        self._header_field = bytearray()
        self._header_value = bytearray()
        self._in_part = False

        callbacks = {
            "on_part_begin": self._on_part_begin,
            "on_header_field": self._on_header_field,
            "on_header_value": self._on_header_value,
            "on_header_end": self._on_header_end,
            "on_headers_finished": self._on_headers_finished,
            "on_part_data": self._on_part_data,
            "on_part_end": self._on_part_end,
        }
        self._parser = MultipartParser(boundary, callbacks)

    # --- parser callbacks ---

    def _on_part_begin(self) -> None:
        self._headers = {}
        self._in_part = True

    def _on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_field += data[start:end]

    def _on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value += data[start:end]

    def _on_header_end(self) -> None:
        self._headers[bytes(self._header_field).lower()] = bytes(self._header_value)
        self._header_field.clear()
        self._header_value.clear()

    def _on_headers_finished(self) -> None:
        disposition = self._headers.get(b"content-disposition")
        if disposition is None:
            raise ClientInputError("Multipart part is missing Content-Disposition")
        _, options = parse_options_header(disposition)
        name = options.get(b"name")
        if name is None:
            raise ClientInputError('Content-Disposition "name" must be provided')

        filename = options.get(b"filename")
        content_type = self._headers.get(b"content-type")
        self._events.append(
            PartBegin(
                name=_decode(name),
                filename=_decode(filename) if filename is not None else None,
                content_type=_decode(content_type) if content_type is not None else None,
            )
        )

    def _on_part_data(self, data: bytes, start: int, end: int) -> None:
        if end > start:
            self._events.append(PartData(bytes(data[start:end])))

    def _on_part_end(self) -> None:
        self._in_part = False
        self._events.append(PartEnd())

    # --- public API ---

    def _drain(self) -> list[PartEvent]:
        events, self._events = self._events, []
        return events

    def feed(self, chunk: bytes) -> list[PartEvent]:
        """Parse one body chunk.

        Raises:
            ClientInputError: If the body is not valid multipart.
        """
        try:
            self._parser.write(chunk)
        except MultipartParseError as e:
            raise ClientInputError(f"Malformed multipart body: {e}") from e
        return self._drain()

    def finish(self) -> list[PartEvent]:
        """Signal end of body.

        Raises:
            ClientInputError: If the body ended inside a part.
        """
        self._parser.finalize()
        if self._in_part:
            raise ClientInputError("Multipart body ended before the part was complete")
        return self._drain()


async def _limited(chunks: AsyncIterator[bytes], max_bytes: int | None) -> AsyncIterator[bytes]:
    received = 0
    async for chunk in chunks:
        received += len(chunk)
        if max_bytes is not None and received > max_bytes:
            raise UploadTooLargeError(max_bytes)
        yield chunk


async def iter_multipart_events(
    chunks: AsyncIterator[bytes],
    content_type: str,
    max_bytes: int | None = None,
) -> AsyncIterator[PartEvent]:
    """Yield part events from a multipart/form-data body."""
    reader = MultipartPartReader(content_type)
    async for chunk in _limited(chunks, max_bytes):
        for event in reader.feed(chunk):
            yield event
    for event in reader.finish():
        yield event


async def iter_raw_body_events(
    chunks: AsyncIterator[bytes],
    max_bytes: int | None = None,
) -> AsyncIterator[PartEvent]:
    """Yield the whole body as a single file part."""
    yield PartBegin(name=config.FILE_FIELD)
    async for chunk in _limited(chunks, max_bytes):
        if chunk:
            yield PartData(chunk)
    yield PartEnd()


async def _no_events() -> AsyncIterator[PartEvent]:
    for event in ():
        yield event


def is_raw_audio(content_type: str | None) -> bool:
    """True if the Content-Type announces a bare audio body."""
    if not content_type:
        return False
    media_type, _ = parse_options_header(content_type)
    return media_type.startswith(b"audio/") or media_type == b"application/octet-stream"


def iter_request_parts(
    chunks: AsyncIterator[bytes],
    content_type: str | None,
    max_bytes: int | None = None,
) -> AsyncGenerator[PartEvent, None]:
    """Pick the reader based on Content-Type.

    multipart/form-data is parsed into parts; audio/* and
    application/octet-stream bodies are a raw file; a body without
    Content-Type carries no parts at all.

    Raises:
        ClientInputError: For any other Content-Type.
    """
    if not content_type:
        return _no_events()
    if is_multipart(content_type):
        return iter_multipart_events(chunks, content_type, max_bytes)
    if is_raw_audio(content_type):
        return iter_raw_body_events(chunks, max_bytes)
    raise ClientInputError(f"Unsupported Content-Type for upload: {content_type}")


__all__ = [
    "MultipartPartReader",
    "PartBegin",
    "PartData",
    "PartEnd",
    "PartEvent",
    "is_multipart",
    "is_raw_audio",
    "iter_multipart_events",
    "iter_raw_body_events",
    "iter_request_parts",
]
