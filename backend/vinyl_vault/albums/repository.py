"""DuckDB-backed album repository. Rows carry metadata only; tracks are loaded by the service."""
from typing import List, Optional

from vinyl_vault.db import Database, utcnow
from vinyl_vault.errors import AlbumNotFoundError

from .schemas import Album, Metadata

_METADATA_FIELDS = list(Metadata.model_fields)
_COLUMNS = ["id", "user_id", *[f"metadata_{f}" for f in _METADATA_FIELDS], "created_at", "updated_at"]
_SELECT = f"SELECT {', '.join(_COLUMNS)} FROM albums"


def _to_model(row: tuple) -> Album:
    data = dict(zip(_COLUMNS, row))
    metadata = Metadata(**{f: data.pop(f"metadata_{f}") for f in _METADATA_FIELDS})
    return Album(metadata=metadata, **data)


class AlbumRepository:
    def __init__(self, db: Database) -> None:
        self._db = db

    def find_by_id(self, album_id: int) -> Optional[Album]:
        row = self._db.fetchone(f"{_SELECT} WHERE id = ?", [album_id])
        return _to_model(row) if row else None

    def find_by_user_id(self, user_id: int) -> List[Album]:
        rows = self._db.fetchall(f"{_SELECT} WHERE user_id = ? ORDER BY id", [user_id])
        return [_to_model(r) for r in rows]

    def find_by_artist(self, artist: str) -> List[Album]:
        rows = self._db.fetchall(
            f"{_SELECT} WHERE lower(metadata_artist) = lower(?) ORDER BY id", [artist]
        )
        return [_to_model(r) for r in rows]

    def save(self, album: Album) -> Album:
        now = utcnow()
        values = [getattr(album.metadata, f) for f in _METADATA_FIELDS]
        if album.id is None:
            columns = ", ".join(f"metadata_{f}" for f in _METADATA_FIELDS)
            placeholders = ", ".join("?" for _ in range(len(values) + 3))
            row = self._db.fetchone(
                f"INSERT INTO albums (user_id, {columns}, created_at, updated_at) "
                f"VALUES ({placeholders}) RETURNING id",
                [album.user_id, *values, now, now],
            )
            album_id = row[0]
        else:
            assignments = ", ".join(f"metadata_{f} = ?" for f in _METADATA_FIELDS)
            self._db.execute(
                f"UPDATE albums SET {assignments}, updated_at = ? WHERE id = ?",
                [*values, now, album.id],
            )
            album_id = album.id
        saved = self.find_by_id(album_id)
        if saved is None:
            raise AlbumNotFoundError(f"album with id {album_id} not found")
        return saved

    def delete(self, album_id: int) -> bool:
        """Delete an album and its track rows."""
        with self._db.transaction():
            self._db.execute("DELETE FROM tracks WHERE album_id = ?", [album_id])
            row = self._db.fetchone("DELETE FROM albums WHERE id = ? RETURNING id", [album_id])
        return row is not None
