"""
Persistent checksum cache.

Entries are loaded from SQLite once at run start and kept in memory; new
digests are queued and committed in batches. The cache is an optimization:
any failure to read or write it degrades to rehashing, never to a failed run.
"""
import logging
import os
import sqlite3
import threading
from pathlib import Path
from typing import Dict, List, Optional

from . import config
from .database.db import DBManager
from .database.ops import CacheOperations
from .exceptions import CacheError
from .models import CacheEntry, RunWarning


class ChecksumCache:
    def __init__(self, db_path: Optional[Path], flush_every: int = config.CACHE_FLUSH_EVERY):
        self.db_path = db_path
        self.flush_every = flush_every
        self.warnings: List[RunWarning] = []

        self._entries: Dict[str, CacheEntry] = {}
        self._pending: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._db: Optional[DBManager] = None
        self._ops: Optional[CacheOperations] = None

    # --- Lifecycle ---

    def load(self) -> int:
        """Reads persisted entries. Returns how many were loaded."""
        if self.db_path is None:
            logging.info("Checksum cache disabled; running in memory only.")
            return 0

        try:
            entries = self._open_and_fetch()
        except CacheError as e:
            self._warn(f"Unreadable checksum cache ({e}); starting with an empty cache.")
            self._discard_corrupt_file()
            try:
                entries = self._open_and_fetch()
            except CacheError as e2:
                self._warn(f"Cannot create checksum cache ({e2}); running in memory only.")
                self._close_db()
                entries = []

        with self._lock:
            self._entries = {e.path: e for e in entries}
        logging.info(f"Loaded {len(entries)} cached checksums.")
        return len(entries)

    def flush(self):
        """Commits queued entries. Failures are logged, never raised."""
        with self._lock:
            pending = list(self._pending.values())
            self._pending.clear()
        self._write(pending)

    def close(self):
        self.flush()
        self._close_db()

    def __enter__(self):
        self.load()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # --- Lookup / Store ---

    def lookup(self, path: str, size_bytes: int, modified_time: int) -> Optional[str]:
        with self._lock:
            entry = self._entries.get(path)
        if entry is None or not entry.matches(size_bytes, modified_time):
            return None
        return entry.digest

    def store(self, path: str, size_bytes: int, modified_time: int, digest: str):
        entry = CacheEntry(path=path, size_bytes=size_bytes, modified_time=modified_time, digest=digest)
        batch: List[CacheEntry] = []
        with self._lock:
            self._entries[path] = entry
            if self._ops is None:
                return
            self._pending[path] = entry
            if len(self._pending) >= self.flush_every:
                batch = list(self._pending.values())
                self._pending.clear()
        if batch:
            self._write(batch)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def prune_missing(self) -> int:
        """Removes entries for paths that no longer exist on disk."""
        with self._lock:
            stale = [p for p in self._entries if not os.path.lexists(p)]
            for p in stale:
                self._entries.pop(p, None)
                self._pending.pop(p, None)

        if stale and self._ops is not None:
            try:
                with self._db.write_lock:
                    self._ops.delete_paths(stale)
            except sqlite3.Error as e:
                self._warn(f"Failed to prune checksum cache: {e}")
        logging.info(f"Pruned {len(stale)} stale cache entries.")
        return len(stale)

    # --- Internals ---

    def _open_and_fetch(self) -> List[CacheEntry]:
        """Raises CacheError when the file cannot be opened as a checksum cache."""
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._db = DBManager(self.db_path)
            self._ops = CacheOperations(self._db.connect())
            return self._ops.fetch_all_entries()
        except (sqlite3.DatabaseError, OSError) as e:
            self._close_db()
            raise CacheError(str(e)) from e

    def _write(self, entries: List[CacheEntry]):
        if not entries or self._ops is None:
            return
        try:
            with self._db.write_lock:
                written = self._ops.upsert_entries(entries)
            logging.debug(f"Flushed {written} checksum entries.")
        except sqlite3.Error as e:
            self._warn(f"Failed to persist {len(entries)} checksum entries: {e}")

    def _discard_corrupt_file(self):
        """Moves a broken cache file (and its WAL companions) out of the way."""
        for suffix in ("", "-wal", "-shm"):
            src = Path(f"{self.db_path}{suffix}")
            if not src.exists():
                continue
            try:
                os.replace(src, Path(f"{self.db_path}.corrupt{suffix}"))
            except OSError as e:
                logging.warning(f"Could not move aside {src}: {e}")

    def _close_db(self):
        if self._db is not None:
            self._db.close()
        self._db = None
        self._ops = None

    def _warn(self, message: str):
        logging.warning(message)
        self.warnings.append(RunWarning(path=Path(str(self.db_path)), stage="cache", message=message))
