"""Tests for startup temp file cleanup.

Uploads interrupted by a crash leave <demo_id>.mp3.tmp files behind; the
app lifespan sweeps them before serving requests.
"""

import logging
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from trackvault import config
from trackvault.utils.atomic_io import cleanup_orphan_temp_files
from services.track_api import main as main_module


@pytest.fixture
def populated_upload_dir(upload_dir):
    """Upload directory holding two orphan temp files and one real track."""
    upload_dir.mkdir()
    (upload_dir / "0a1b.mp3.tmp").write_bytes(b"orphan1")
    (upload_dir / "2c3d.mp3.tmp").write_bytes(b"orphan2")
    (upload_dir / "Song-0a1b.mp3").write_bytes(b"real file")
    return upload_dir


class TestOrphanTempCleanup:
    """Tests for cleanup_orphan_temp_files function."""

    def test_cleanup_removes_tmp_files(self, populated_upload_dir):
        """Should remove .tmp files from directory."""
        removed = cleanup_orphan_temp_files(populated_upload_dir)

        assert removed == 2
        assert not (populated_upload_dir / "0a1b.mp3.tmp").exists()
        assert not (populated_upload_dir / "2c3d.mp3.tmp").exists()
        assert (populated_upload_dir / "Song-0a1b.mp3").exists()  # Real file preserved

    def test_cleanup_handles_empty_directory(self, upload_dir):
        upload_dir.mkdir()
        assert cleanup_orphan_temp_files(upload_dir) == 0

    def test_cleanup_handles_nonexistent_directory(self, tmp_path):
        assert cleanup_orphan_temp_files(tmp_path / "missing") == 0

    def test_cleanup_custom_suffix(self, populated_upload_dir):
        """Only files with the given suffix are removed."""
        (populated_upload_dir / "x.partial").write_bytes(b"orphan")

        removed = cleanup_orphan_temp_files(populated_upload_dir, temp_suffix=".partial")

        assert removed == 1
        assert (populated_upload_dir / "0a1b.mp3.tmp").exists()


class TestStartupCleanupHook:
    """Tests for the startup cleanup hook used by the lifespan."""

    def test_startup_cleanup_invoked(self, populated_upload_dir, monkeypatch):
        monkeypatch.setattr(config, "UPLOAD_DIR", populated_upload_dir)

        main_module._cleanup_orphan_temp_files_safe()

        assert list(populated_upload_dir.glob("*.tmp")) == []

    def test_startup_cleanup_never_crashes(self, monkeypatch):
        """Startup cleanup should never crash even on errors."""
        mock_dir = MagicMock()
        mock_dir.exists.side_effect = PermissionError("Access denied")
        monkeypatch.setattr(config, "UPLOAD_DIR", mock_dir)

        # Should not raise
        main_module._cleanup_orphan_temp_files_safe()

    def test_startup_cleanup_logs_count(self, populated_upload_dir, monkeypatch, caplog):
        monkeypatch.setattr(config, "UPLOAD_DIR", populated_upload_dir)

        with caplog.at_level(logging.INFO):
            main_module._cleanup_orphan_temp_files_safe()

        assert any(
            "removed 2" in record.message and "orphan temp files" in record.message
            for record in caplog.records
        )


class TestStartupCleanupIntegration:
    """Integration tests for startup cleanup with the FastAPI lifespan."""

    def test_lifespan_includes_cleanup(self, tmp_path, populated_upload_dir, monkeypatch):
        monkeypatch.setattr(config, "UPLOAD_DIR", populated_upload_dir)
        monkeypatch.setattr(config, "DB_PATH", tmp_path / "test.db")

        # TestClient invokes lifespan
        with TestClient(main_module.app):
            assert list(populated_upload_dir.glob("*.tmp")) == []

        assert (populated_upload_dir / "Song-0a1b.mp3").exists()

    def test_lifespan_creates_upload_dir(self, tmp_path, monkeypatch):
        upload_dir = tmp_path / "nested" / "uploads"
        monkeypatch.setattr(config, "UPLOAD_DIR", upload_dir)
        monkeypatch.setattr(config, "DB_PATH", tmp_path / "test.db")

        with TestClient(main_module.app):
            assert upload_dir.is_dir()

    def test_lifespan_survives_unusable_upload_dir(self, tmp_path, monkeypatch):
        """An uncreatable upload directory does not stop the service."""
        blocker = tmp_path / "blocker"
        blocker.write_bytes(b"not a directory")
        monkeypatch.setattr(config, "UPLOAD_DIR", blocker / "uploads")
        monkeypatch.setattr(config, "DB_PATH", tmp_path / "test.db")

        with TestClient(main_module.app) as client:
            assert client.get("/health").status_code == 200
            response = client.post("/upload", content=b"data", headers={"Content-Type": "audio/mpeg"})
            assert response.status_code == 500
            assert response.json()["status"] == "error"
