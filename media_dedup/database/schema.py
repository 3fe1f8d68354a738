"""
Database schema definitions for the checksum cache.
"""
import sqlite3
import logging

CURRENT_SCHEMA_VERSION = 1

def init_schema(conn: sqlite3.Connection):
    """
    Applies the cache schema to the database.
    Idempotent: safe to run on every startup.
    """
    with conn:
        # 1. Version Tracking (For future migrations)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY
            );
        """)

        cur = conn.cursor()
        cur.execute("SELECT version FROM schema_version")
        if not cur.fetchone():
            conn.execute("INSERT INTO schema_version (version) VALUES (?)", (CURRENT_SCHEMA_VERSION,))

        # 2. Checksum Cache
        # One row per path; a row only counts while size and mtime still match.
        conn.execute("""
        CREATE TABLE IF NOT EXISTS checksum_cache (
            path            TEXT PRIMARY KEY,
            size_bytes      INTEGER NOT NULL,
            mtime_ns        INTEGER NOT NULL,
            digest          TEXT NOT NULL,
            updated_at      TEXT NOT NULL
        );
        """)

        conn.execute("CREATE INDEX IF NOT EXISTS idx_checksum_cache_digest ON checksum_cache(digest);")

    logging.debug("Cache schema initialized.")
