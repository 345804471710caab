"""DuckDB connection and schema for Vinyl Vault records.

Database Schema:
    users:             id, username, email, password_hash,
                       is_admin, created_at, updated_at
    albums:            id, user_id, metadata_* columns, created_at, updated_at
    tracks:            id, album_id, track_number, title, duration, file_path,
                       audio_* columns, created_at, updated_at
    registration_keys: id, key (unique), created_by, used_by, is_used,
                       expires_at, used_at, created_at, updated_at

Thread Safety:
    A DuckDB connection is NOT thread-safe. FastAPI runs sync endpoints in a
    thread pool, so every statement goes through ``Database.execute`` which
    holds a lock for the duration of the statement and its fetch.

Uniqueness of usernames and emails is enforced by UserRepository inside a
transaction, not by UNIQUE constraints: DuckDB turns an UPDATE of an
indexed column into delete+insert, which trips its unique-key check.
"""
import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator, List, Optional, Sequence

import duckdb

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Naive UTC timestamp, the form stored in TIMESTAMP columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


_SCHEMA = [
    "CREATE SEQUENCE IF NOT EXISTS users_seq START 1",
    "CREATE SEQUENCE IF NOT EXISTS albums_seq START 1",
    "CREATE SEQUENCE IF NOT EXISTS tracks_seq START 1",
    "CREATE SEQUENCE IF NOT EXISTS registration_keys_seq START 1",
    """
    CREATE TABLE IF NOT EXISTS users (
        id            BIGINT DEFAULT nextval('users_seq') PRIMARY KEY,
        username      VARCHAR NOT NULL,
        email         VARCHAR NOT NULL,
        password_hash VARCHAR NOT NULL,
        is_admin      BOOLEAN NOT NULL DEFAULT FALSE,
        created_at    TIMESTAMP NOT NULL,
        updated_at    TIMESTAMP NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS albums (
        id                      BIGINT DEFAULT nextval('albums_seq') PRIMARY KEY,
        user_id                 BIGINT NOT NULL,
        metadata_artist         VARCHAR NOT NULL DEFAULT '',
        metadata_album          VARCHAR NOT NULL DEFAULT '',
        metadata_format         VARCHAR NOT NULL DEFAULT '',
        metadata_release_date   VARCHAR NOT NULL DEFAULT '',
        metadata_label          VARCHAR,
        metadata_country        VARCHAR,
        metadata_length         INTEGER NOT NULL DEFAULT 0,
        metadata_cover_art_path VARCHAR NOT NULL DEFAULT '',
        created_at              TIMESTAMP NOT NULL,
        updated_at              TIMESTAMP NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_albums_user ON albums(user_id)",
    """
    CREATE TABLE IF NOT EXISTS tracks (
        id                BIGINT DEFAULT nextval('tracks_seq') PRIMARY KEY,
        album_id          BIGINT NOT NULL,
        track_number      INTEGER NOT NULL,
        title             VARCHAR NOT NULL,
        duration          INTEGER NOT NULL DEFAULT 0,
        file_path         VARCHAR NOT NULL,
        audio_format      VARCHAR NOT NULL DEFAULT '',
        audio_bitrate     INTEGER NOT NULL DEFAULT 0,
        audio_sample_rate INTEGER NOT NULL DEFAULT 0,
        audio_bit_depth   INTEGER NOT NULL DEFAULT 0,
        audio_channels    INTEGER NOT NULL DEFAULT 0,
        created_at        TIMESTAMP NOT NULL,
        updated_at        TIMESTAMP NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_tracks_album ON tracks(album_id)",
    """
    CREATE TABLE IF NOT EXISTS registration_keys (
        id         BIGINT DEFAULT nextval('registration_keys_seq') PRIMARY KEY,
        key        VARCHAR NOT NULL UNIQUE,
        created_by BIGINT NOT NULL,
        used_by    BIGINT,
        is_used    BOOLEAN NOT NULL DEFAULT FALSE,
        expires_at TIMESTAMP NOT NULL,
        used_at    TIMESTAMP,
        created_at TIMESTAMP NOT NULL,
        updated_at TIMESTAMP NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_keys_creator ON registration_keys(created_by)",
]


class Database:
    """Owns the DuckDB connection shared by all repositories.

    Args:
        path: Database file, or ":memory:".
    """

    def __init__(self, path: str = ":memory:") -> None:
        self._path = path
        self._lock = threading.RLock()
        self._conn: Optional[duckdb.DuckDBPyConnection] = duckdb.connect(path)
        self._initialize()
        logger.info("[db] Initialized with db=%s", path)

    @property
    def path(self) -> str:
        return self._path

    def _initialize(self) -> None:
        """Create sequences, tables and indexes. Safe to call repeatedly."""
        for statement in _SCHEMA:
            self.execute(statement)

    def _connection(self) -> duckdb.DuckDBPyConnection:
        if self._conn is None:
            raise RuntimeError("database is closed")
        return self._conn

    def _run(self, sql: str, params: Sequence[Any]) -> duckdb.DuckDBPyConnection:
        conn = self._connection()
        if params:
            return conn.execute(sql, list(params))
        return conn.execute(sql)

    def execute(self, sql: str, params: Sequence[Any] = ()) -> None:
        with self._lock:
            self._run(sql, params)

    def fetchone(self, sql: str, params: Sequence[Any] = ()) -> Optional[tuple]:
        with self._lock:
            return self._run(sql, params).fetchone()

    def fetchall(self, sql: str, params: Sequence[Any] = ()) -> List[tuple]:
        with self._lock:
            return self._run(sql, params).fetchall()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Run the enclosed statements atomically; rolls back on any exception."""
        with self._lock:
            conn = self._connection()
            conn.begin()
            try:
                yield
            except BaseException:
                conn.rollback()
                raise
            conn.commit()

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
                logger.info("[db] Closed %s", self._path)
