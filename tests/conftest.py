import os
import shutil
import tempfile

import pytest

from marklog import fts
from marklog.config import MarklogConfig
from marklog.db import BookmarkStore
from marklog.models import Flag
from marklog.plugins import PluginRegistry


@pytest.fixture
def sample_bookmarks():
    """Sample bookmark data for testing."""
    return [
        {
            "url": "https://www.rust-lang.org",
            "title": "Rust Programming Language",
            "tags": ["lang", "systems"],
            "description": "A language empowering everyone",
        },
        {
            "url": "https://docs.python.org",
            "title": "Python Documentation",
            "tags": ["lang", "python", "docs"],
            "description": "Official Python documentation",
        },
        {
            "url": "https://rustacean.net",
            "title": "Rustacean mascot",
            "tags": ["fun"],
            "description": "Ferris the crab",
        },
        {
            "url": "https://blog.example.com/rust-tips",
            "title": "Ten tips",
            "tags": ["blog"],
            "description": "Things I learned writing Rust",
        },
        {
            "url": "https://diary.example.com",
            "title": "My rust diary",
            "tags": ["personal"],
            "description": "",
            "flags": int(Flag.PRIVATE),
        },
    ]


@pytest.fixture
def temp_db():
    """Create a temporary database file path."""
    temp_dir = tempfile.mkdtemp(prefix="marklog_test_db_")
    db_path = os.path.join(temp_dir, "test.db")
    yield db_path
    shutil.rmtree(temp_dir)


@pytest.fixture
def config():
    """Default configuration, independent of files and environment."""
    return MarklogConfig()


@pytest.fixture
def registry():
    return PluginRegistry()


@pytest.fixture
def store(temp_db, config, registry):
    """An empty store on a temporary SQLite file."""
    return BookmarkStore(path=temp_db, config=config, plugins=registry)


@pytest.fixture
def fallback_store(temp_db, config, monkeypatch):
    """An empty store with the full-text index disabled."""
    monkeypatch.setattr(fts, "install", lambda engine: False)
    return BookmarkStore(path=temp_db, config=config)


@pytest.fixture
def populated_store(store, sample_bookmarks):
    """A store holding sample_bookmarks with ids 1..5, undo log cleared."""
    for record in sample_bookmarks:
        store.add(**record)
    store.clear_undo_log()
    return store


@pytest.fixture
def clean_marklog_env(monkeypatch, tmp_path):
    """
    Fixture to create a clean marklog environment without affecting real config.

    Removes MARKLOG_ environment variables and sets HOME to a temp directory.
    """
    for key in list(os.environ.keys()):
        if key.startswith("MARKLOG_"):
            monkeypatch.delenv(key, raising=False)

    mock_home = tmp_path / "home"
    mock_home.mkdir()
    monkeypatch.setenv("HOME", str(mock_home))
    monkeypatch.chdir(tmp_path)

    return tmp_path


@pytest.fixture
def make_rows():
    """
    Factory adding plain bookmarks to a store.

    Usage:
        def test_something(store, make_rows):
            ids = make_rows(store, 10)
    """
    def _make(store, count, prefix="https://example.com/page"):
        return [store.add(f"{prefix}{i}", title=f"Page {i}").id for i in range(count)]
    return _make
