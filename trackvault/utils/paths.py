"""Trackvault - Upload directory and filename utilities.

The upload directory is flat: every stored file lives directly inside it
and is named <sanitized-title>-<demo-id>.mp3.
"""

from __future__ import annotations

import logging
from pathlib import Path

from pathvalidate import sanitize_filename

from trackvault import config
from trackvault.errors import IOFailure

logger = logging.getLogger(__name__)

# Longest filename most filesystems accept, in bytes
_MAX_FILENAME_BYTES = 255


def ensure_upload_dir(upload_dir: str | Path | None = None) -> Path:
    """Resolve the upload directory, creating it and its parents if absent.

    Idempotent.

    Args:
        upload_dir: Optional override. Defaults to config.UPLOAD_DIR.

    Returns:
        Path to the existing upload directory.

    Raises:
        IOFailure: If the directory cannot be created.
    """
    path = Path(upload_dir) if upload_dir is not None else config.UPLOAD_DIR
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.error("Cannot create upload directory %s: %s", path, e)
        raise IOFailure("create upload directory", str(path), str(e)) from e
    return path


def track_filename(title: str, demo_id: str) -> str:
    """Derive the stored filename for a track.

    Args:
        title: User-supplied title (may be empty).
        demo_id: The upload's demo identifier.

    Returns:
        "<sanitized-title>-<demo_id>.mp3", at most 255 bytes long.
    """
    suffix = f"-{demo_id}.{config.AUDIO_EXTENSION}"
    max_title_bytes = _MAX_FILENAME_BYTES - len(suffix.encode("utf-8"))
    safe_title = sanitize_filename(title, max_len=max_title_bytes) if title else ""
    return f"{safe_title}{suffix}"


def file_url_for(file_path: str) -> str:
    """Public URL path for a stored filename."""
    return f"{config.FILE_URL_PREFIX}{file_path}"


def resolve_audio_path(filename: str, upload_dir: str | Path | None = None) -> Path | None:
    """Resolve a stored filename against the upload directory.

    Only plain names of regular files directly inside the upload directory
    resolve. Path separators, "." and "..", and in-flight temp files do not.

    Args:
        filename: Name as it appears in a file_url.
        upload_dir: Optional override. Defaults to config.UPLOAD_DIR.

    Returns:
        Path to the existing file, or None.
    """
    base = Path(upload_dir) if upload_dir is not None else config.UPLOAD_DIR
    if not filename or filename in (".", ".."):
        return None
    if "/" in filename or "\\" in filename or "\x00" in filename:
        return None
    if filename.endswith(config.TEMP_SUFFIX):
        return None

    path = base / filename
    if not path.is_file():
        return None
    return path


__all__ = [
    "ensure_upload_dir",
    "file_url_for",
    "resolve_audio_path",
    "track_filename",
]
