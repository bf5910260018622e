"""Trackvault - Utility modules."""

from trackvault.utils.atomic_io import AtomicFileWriter, cleanup_orphan_temp_files
from trackvault.utils.paths import (
    ensure_upload_dir,
    file_url_for,
    resolve_audio_path,
    track_filename,
)

__all__ = [
    # atomic_io
    "AtomicFileWriter",
    "cleanup_orphan_temp_files",
    # paths
    "ensure_upload_dir",
    "file_url_for",
    "resolve_audio_path",
    "track_filename",
]
