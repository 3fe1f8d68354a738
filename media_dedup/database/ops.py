import sqlite3
from datetime import datetime, UTC
from typing import Iterable, List

from ..models import CacheEntry

class CacheOperations:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def fetch_all_entries(self) -> List[CacheEntry]:
        """Loads every persisted entry. Used once at run start."""
        cur = self.conn.cursor()
        cur.execute("SELECT path, size_bytes, mtime_ns, digest FROM checksum_cache")
        return [
            CacheEntry(path=row[0], size_bytes=int(row[1]), modified_time=int(row[2]), digest=row[3])
            for row in cur.fetchall()
        ]

    def upsert_entries(self, entries: Iterable[CacheEntry]) -> int:
        """
        Inserts or replaces entries keyed by path inside a single transaction.
        Either every row lands or none does.
        """
        now_iso = datetime.now(UTC).isoformat()
        rows = [
            (e.path, e.size_bytes, e.modified_time, e.digest, now_iso)
            for e in entries
        ]
        if not rows:
            return 0

        with self.conn:
            self.conn.executemany("""
                INSERT INTO checksum_cache (path, size_bytes, mtime_ns, digest, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(path) DO UPDATE SET
                    size_bytes = excluded.size_bytes,
                    mtime_ns = excluded.mtime_ns,
                    digest = excluded.digest,
                    updated_at = excluded.updated_at
            """, rows)
        return len(rows)

    def delete_paths(self, paths: Iterable[str]) -> int:
        rows = [(p,) for p in paths]
        if not rows:
            return 0
        with self.conn:
            self.conn.executemany("DELETE FROM checksum_cache WHERE path = ?", rows)
        return len(rows)
