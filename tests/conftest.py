import logging
import pytest
import sqlite3
from pathlib import Path
from media_dedup.database.schema import init_schema
from media_dedup.database.ops import CacheOperations

@pytest.fixture
def conn():
    """Returns an in-memory SQLite connection with the schema initialized."""
    c = sqlite3.connect(":memory:")
    init_schema(c)
    try:
        yield c
    finally:
        c.close()

@pytest.fixture
def cache_ops(conn):
    """Returns a CacheOperations instance attached to the in-memory DB."""
    return CacheOperations(conn)

@pytest.fixture
def write_file():
    """Returns a helper that writes bytes to a path, creating parent dirs."""
    def _write(path: Path, data: bytes) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return path
    return _write

@pytest.fixture
def scenario_tree(tmp_path, write_file):
    """
    root/A/x.mp4, root/A/x (1).mp4 and root/B/x.mp4 share content;
    root/A/other.mp4 is unique.
    """
    root = tmp_path / "media"
    data = b"same video bytes" * 100
    write_file(root / "A" / "x.mp4", data)
    write_file(root / "A" / "x (1).mp4", data)
    write_file(root / "B" / "x.mp4", data)
    write_file(root / "A" / "other.mp4", b"something else entirely")
    return root

@pytest.fixture
def restore_logging():
    """main() reconfigures the root logger; put the original handlers back."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    try:
        yield
    finally:
        for h in root.handlers:
            if h not in handlers:
                h.close()
        root.handlers = handlers
        root.setLevel(level)
