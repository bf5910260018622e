"""Shared pytest fixtures for Trackvault tests.

This module contains common fixtures used across multiple test files,
reducing duplication and improving test maintainability.
"""

import pytest
from fastapi.testclient import TestClient

from trackvault import config
from trackvault.db import TrackStore
from services.track_api.main import app


@pytest.fixture
def sample_audio():
    """Bytes of a small fake MP3 (ID3 header followed by frame sync words)."""
    return b"ID3\x04\x00\x00\x00\x00\x00\x00" + b"\xff\xfb\x90\x00" * 256


@pytest.fixture
def upload_dir(tmp_path):
    """Path of an isolated upload directory (not created yet)."""
    return tmp_path / "uploads"


@pytest.fixture
def temp_store(tmp_path):
    """Create a store on an isolated SQLite database.

    Yields:
        TrackStore: Open store, closed after the test.
    """
    store = TrackStore.open(tmp_path / "test.db")
    yield store
    store.close()


@pytest.fixture
def client(tmp_path, upload_dir, monkeypatch):
    """Create a FastAPI test client with temp database and upload directory.

    Patches the configured paths so the app lifespan opens an isolated
    store and writes uploads under tmp_path.

    Yields:
        tuple: (test_client, store, upload_dir)
    """
    monkeypatch.setattr(config, "UPLOAD_DIR", upload_dir)
    monkeypatch.setattr(config, "DB_PATH", tmp_path / "tracks.db")

    with TestClient(app) as test_client:
        yield test_client, app.state.store, upload_dir

    app.dependency_overrides.clear()


@pytest.fixture
def upload(client, sample_audio):
    """Return a helper that uploads a track through POST /upload."""
    test_client, _, _ = client

    def _upload(
        title="Song",
        artist="Jane",
        data=None,
        user_id="user-1",
        filename="song.mp3",
    ):
        if data is None:
            data = sample_audio
        form = {"artist": artist, "title": title}
        if user_id is not None:
            form["user_id"] = user_id
        return test_client.post(
            "/upload",
            data=form,
            files={"file": (filename, data, "audio/mpeg")},
        )

    return _upload
