"""Trackvault - Atomic I/O utilities.

Implements the atomic publish rule for uploaded files:
1. Write chunks, in arrival order, to a temp path in the upload directory
2. Flush + best-effort fsync
3. Rename temp -> final (the publish boundary)

The final path either contains a complete file or does not exist. Partial
writes only affect the temp file, which is removed on failure or swept at
startup by cleanup_orphan_temp_files.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from trackvault import config

logger = logging.getLogger(__name__)


def _write_all(fd: int, data: bytes) -> None:
    """Write all bytes to a file descriptor, handling partial writes.

    Loops until all bytes are written, handling short writes and EINTR.

    Args:
        fd: File descriptor to write to.
        data: Bytes to write.

    Raises:
        OSError: If write fails or returns 0 bytes unexpectedly.
    """
    total_written = 0
    data_len = len(data)

    while total_written < data_len:
        try:
            written = os.write(fd, data[total_written:])
            if written == 0:
                raise OSError("os.write() returned 0 bytes unexpectedly")
            total_written += written
        except InterruptedError:
            continue


def _fsync_directory(dir_path: Path) -> None:
    """Best-effort fsync on a directory so a rename survives power loss.

    Args:
        dir_path: Directory path to sync.
    """
    try:
        fd = os.open(dir_path, os.O_RDONLY | os.O_DIRECTORY)
        try:
            os.fsync(fd)
        finally:
            os.close(fd)
    except (OSError, AttributeError):
        # O_DIRECTORY is POSIX only
        pass


class AtomicFileWriter:
    """Sequential chunk writer that publishes by atomic rename.

    The writer is not thread-safe; callers must await each write before
    issuing the next one. All methods are blocking and meant to be run
    off the event loop.

    Usage:
        writer = AtomicFileWriter(temp_path)
        writer.write(b"...")
        writer.publish(final_path)  # or writer.discard()
    """

    def __init__(self, temp_path: str | Path):
        self.temp_path = Path(temp_path)
        self.bytes_written = 0
        self.published = False
        self._fd: int | None = os.open(
            self.temp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o644
        )

    @classmethod
    def for_final_path(cls, final_path: str | Path) -> AtomicFileWriter:
        """Open a writer whose temp file sits next to final_path."""
        final_path = Path(final_path)
        return cls(final_path.with_name(final_path.name + config.TEMP_SUFFIX))

    @property
    def closed(self) -> bool:
        return self._fd is None

    def write(self, chunk: bytes) -> int:
        """Append one chunk to the temp file.

        Returns:
            Number of bytes written.

        Raises:
            OSError: If the writer is closed or the write fails.
        """
        if self._fd is None:
            raise OSError(f"write to closed temp file: {self.temp_path}")
        if chunk:
            _write_all(self._fd, chunk)
            self.bytes_written += len(chunk)
        return len(chunk)

    def close(self) -> None:
        """Flush and close the temp file. Idempotent."""
        if self._fd is None:
            return
        fd, self._fd = self._fd, None
        try:
            os.fsync(fd)
        finally:
            os.close(fd)

    def publish(self, final_path: str | Path) -> Path:
        """Close the temp file and atomically rename it to final_path.

        Returns:
            The published path.

        Raises:
            OSError: If flushing or renaming fails. The temp file is left in
                place for discard().
        """
        final_path = Path(final_path)
        self.close()
        os.replace(self.temp_path, final_path)
        self.published = True
        _fsync_directory(final_path.parent)
        return final_path

    def discard(self) -> None:
        """Close and remove the temp file. No-op after publish.

        Never raises: failures are logged and the file is left for the
        startup sweep.
        """
        if self.published:
            return
        try:
            self.close()
        except OSError:
            logger.warning("Failed to close temp file %s", self.temp_path, exc_info=True)
        try:
            self.temp_path.unlink(missing_ok=True)
        except OSError:
            logger.warning("Failed to remove temp file %s", self.temp_path, exc_info=True)


def cleanup_orphan_temp_files(directory: str | Path, temp_suffix: str | None = None) -> int:
    """Clean up orphan temp files in a directory.

    Called during startup to remove uploads interrupted by a crash.

    Args:
        directory: Directory to scan for temp files.
        temp_suffix: Suffix pattern to match (default: config.TEMP_SUFFIX).

    Returns:
        Number of files removed.
    """
    directory = Path(directory)
    suffix = temp_suffix if temp_suffix is not None else config.TEMP_SUFFIX
    removed = 0

    if not directory.exists():
        return 0

    for temp_file in directory.glob(f"*{suffix}"):
        try:
            temp_file.unlink()
            removed += 1
        except OSError:
            logger.warning("Could not remove orphan temp file %s", temp_file)

    return removed
