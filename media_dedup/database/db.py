"""
Database connection management.
"""
import sqlite3
import logging
import threading
from pathlib import Path
from typing import Optional

from .schema import init_schema

class DBManager:
    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._conn: Optional[sqlite3.Connection] = None
        # Hasher workers may trigger incremental flushes, so writes are serialized here
        self._write_lock = threading.Lock()

    def connect(self) -> sqlite3.Connection:
        """
        Connects to the SQLite database and configures pragmas.
        Raises sqlite3.DatabaseError if the file is not a usable database.
        """
        if self._conn:
            return self._conn

        logging.info(f"Opening checksum cache: {self.db_path}")
        conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        try:
            # WAL keeps the last committed state readable if a run is killed mid-write
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA synchronous=NORMAL;")
            conn.execute("PRAGMA temp_store=MEMORY;")

            init_schema(conn)
        except sqlite3.DatabaseError:
            conn.close()
            raise

        self._conn = conn
        return self._conn

    def close(self):
        if self._conn:
            self._conn.close()
            self._conn = None

    @property
    def write_lock(self) -> threading.Lock:
        """Returns the write lock for thread-safe database operations."""
        return self._write_lock
