"""Trackvault - Configuration constants.

No external config libraries. Paths are relative to the repository root by
default and can be overridden through TRACKVAULT_* environment variables.
"""

import os
from pathlib import Path

# Repository root (parent of trackvault/)
REPO_ROOT = Path(__file__).parent.parent.resolve()


def _get_path(env_name: str, default: Path) -> Path:
    """Get a filesystem path from environment or use default.

    Args:
        env_name: Environment variable to consult.
        default: Path used when the variable is unset or empty.

    Returns:
        Resolved Path.
    """
    env_val = os.environ.get(env_name)
    if env_val:
        return Path(env_val).expanduser().resolve()
    return default


def _get_max_upload_bytes() -> int:
    """Get the upload size limit from environment or use default.

    Environment variable TRACKVAULT_MAX_UPLOAD_BYTES allows override.
    Default is 100 MiB.

    Returns:
        Maximum accepted request body size in bytes.
    """
    env_val = os.environ.get("TRACKVAULT_MAX_UPLOAD_BYTES")
    if env_val:
        try:
            limit = int(env_val)
            if limit > 0:
                return limit
        except ValueError:
            pass
    return 100 * 1024 * 1024


def _get_cors_origins() -> list[str]:
    """Get allowed CORS origins (comma separated) or allow any origin."""
    env_val = os.environ.get("TRACKVAULT_CORS_ORIGINS", "")
    origins = [origin.strip() for origin in env_val.split(",") if origin.strip()]
    return origins or ["*"]


# Directory holding uploaded audio files
UPLOAD_DIR = _get_path("TRACKVAULT_UPLOAD_DIR", REPO_ROOT / "uploads")

# Database path
DB_PATH = _get_path("TRACKVAULT_DB_PATH", REPO_ROOT / "tracks.db")

# Largest accepted request body
MAX_UPLOAD_BYTES = _get_max_upload_bytes()

# Stored format is fixed; no content sniffing
AUDIO_EXTENSION = "mp3"
AUDIO_MEDIA_TYPE = "audio/mpeg"
FILE_URL_PREFIX = "/audio/"

# Suffix for in-flight upload files
TEMP_SUFFIX = ".tmp"

# Multipart field names
USER_ID_FIELD = "user_id"
ARTIST_FIELD = "artist"
TITLE_FIELD = "title"
FILE_FIELD = "file"
SCALAR_FIELDS = (USER_ID_FIELD, ARTIST_FIELD, TITLE_FIELD)

# Cross-origin policy
CORS_ALLOW_ORIGINS = _get_cors_origins()
CORS_ALLOW_METHODS = ("GET", "POST", "DELETE", "OPTIONS")
CORS_ALLOW_HEADERS = ("Content-Type", "Authorization", "Accept", USER_ID_FIELD)
