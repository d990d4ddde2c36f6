"""
Pytest configuration for tubelist tests.

Provides:
- `backend` fixture, parametrized over both storage adapters so store
  behavior is checked against SQLite and the JSON file alike
- @pytest.mark.youtube marker for tests that talk to the real YouTube API
  (skipped unless TUBELIST_YOUTUBE_API_KEY is set)
"""

import os
import tempfile

import pytest

from tubelist.database import Database, SQLiteBackend
from tubelist.json_store import JsonFileBackend


@pytest.fixture(params=["sqlite", "json"])
def backend(request):
    """Create an empty storage backend in a temporary file."""
    suffix = ".db" if request.param == "sqlite" else ".json"
    fd, path = tempfile.mkstemp(suffix=suffix)
    os.close(fd)
    if request.param == "sqlite":
        store = SQLiteBackend(Database(db_path=path))
    else:
        # The JSON adapter treats a missing file as empty
        os.unlink(path)
        store = JsonFileBackend(path)
    yield store
    store.close()
    if os.path.exists(path):
        os.unlink(path)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "youtube: marks tests as requiring a real YouTube API key (skipped if unset)"
    )


def pytest_collection_modifyitems(config, items):
    """Auto-skip live YouTube tests when no API key is configured."""
    if os.environ.get("TUBELIST_YOUTUBE_API_KEY"):
        return

    skip_youtube = pytest.mark.skip(reason="TUBELIST_YOUTUBE_API_KEY not set")
    for item in items:
        if item.get_closest_marker("youtube"):
            item.add_marker(skip_youtube)
