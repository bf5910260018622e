"""Tests for trackvault.utils.atomic_io module."""

import pytest

from trackvault.utils.atomic_io import AtomicFileWriter


@pytest.fixture
def temp_path(tmp_path):
    return tmp_path / "demo.mp3.tmp"


class TestAtomicFileWriter:
    """Tests for AtomicFileWriter."""

    def test_writes_chunks_in_order(self, tmp_path, temp_path):
        writer = AtomicFileWriter(temp_path)
        for chunk in (b"first ", b"second ", b"third"):
            writer.write(chunk)

        final = writer.publish(tmp_path / "demo.mp3")

        assert final.read_bytes() == b"first second third"
        assert writer.bytes_written == len(b"first second third")
        assert writer.published

    def test_final_path_absent_until_publish(self, tmp_path, temp_path):
        """The final path only appears at the rename."""
        final = tmp_path / "demo.mp3"
        writer = AtomicFileWriter(temp_path)
        writer.write(b"data")
        writer.close()

        assert temp_path.exists()
        assert not final.exists()

        writer.publish(final)

        assert final.exists()
        assert not temp_path.exists()

    def test_empty_file(self, tmp_path, temp_path):
        writer = AtomicFileWriter(temp_path)
        writer.write(b"")
        final = writer.publish(tmp_path / "empty.mp3")

        assert final.read_bytes() == b""
        assert writer.bytes_written == 0

    def test_large_payload(self, tmp_path, temp_path):
        payload = bytes(range(256)) * 4096
        writer = AtomicFileWriter(temp_path)
        for i in range(0, len(payload), 65536):
            writer.write(payload[i : i + 65536])

        assert writer.publish(tmp_path / "big.mp3").read_bytes() == payload

    def test_write_after_close_fails(self, temp_path):
        writer = AtomicFileWriter(temp_path)
        writer.close()

        assert writer.closed
        with pytest.raises(OSError):
            writer.write(b"late")

    def test_close_idempotent(self, temp_path):
        writer = AtomicFileWriter(temp_path)
        writer.close()
        writer.close()
        assert writer.closed

    def test_discard_removes_temp_file(self, temp_path):
        writer = AtomicFileWriter(temp_path)
        writer.write(b"partial")

        writer.discard()

        assert writer.closed
        assert not temp_path.exists()

    def test_discard_after_publish_is_noop(self, tmp_path, temp_path):
        writer = AtomicFileWriter(temp_path)
        writer.write(b"data")
        final = writer.publish(tmp_path / "demo.mp3")

        writer.discard()

        assert final.read_bytes() == b"data"

    def test_discard_twice(self, temp_path):
        writer = AtomicFileWriter(temp_path)
        writer.discard()
        writer.discard()
        assert not temp_path.exists()

    def test_failed_publish_leaves_temp_for_discard(self, tmp_path, temp_path):
        """A failed rename leaves the temp file; discard removes it."""
        writer = AtomicFileWriter(temp_path)
        writer.write(b"data")

        with pytest.raises(OSError):
            writer.publish(tmp_path / "missing-dir" / "demo.mp3")

        assert not writer.published
        assert temp_path.exists()

        writer.discard()
        assert not temp_path.exists()

    def test_for_final_path(self, tmp_path):
        writer = AtomicFileWriter.for_final_path(tmp_path / "demo.mp3")
        try:
            assert writer.temp_path == tmp_path / "demo.mp3.tmp"
        finally:
            writer.discard()

    def test_open_in_missing_directory_fails(self, tmp_path):
        with pytest.raises(OSError):
            AtomicFileWriter(tmp_path / "missing" / "x.tmp")
