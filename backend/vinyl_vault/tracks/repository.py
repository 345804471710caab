"""DuckDB-backed track repository."""
from typing import List, Optional

from vinyl_vault.db import Database, utcnow
from vinyl_vault.errors import TrackNotFoundError

from .schemas import AudioQuality, Track

_COLUMNS = [
    "id", "album_id", "track_number", "title", "duration", "file_path",
    "audio_format", "audio_bitrate", "audio_sample_rate", "audio_bit_depth", "audio_channels",
    "created_at", "updated_at",
]
_SELECT = f"SELECT {', '.join(_COLUMNS)} FROM tracks"


def _to_model(row: tuple) -> Track:
    data = dict(zip(_COLUMNS, row))
    quality = AudioQuality(
        format=data.pop("audio_format"),
        bitrate=data.pop("audio_bitrate"),
        sample_rate=data.pop("audio_sample_rate"),
        bit_depth=data.pop("audio_bit_depth"),
        channels=data.pop("audio_channels"),
    )
    return Track(audio_quality=quality, **data)


class TrackRepository:
    def __init__(self, db: Database) -> None:
        self._db = db

    def find_by_id(self, track_id: int) -> Optional[Track]:
        row = self._db.fetchone(f"{_SELECT} WHERE id = ?", [track_id])
        return _to_model(row) if row else None

    def find_by_album_id(self, album_id: int) -> List[Track]:
        rows = self._db.fetchall(
            f"{_SELECT} WHERE album_id = ? ORDER BY track_number, id", [album_id]
        )
        return [_to_model(r) for r in rows]

    def find_by_album_and_number(self, album_id: int, track_number: int) -> Optional[Track]:
        row = self._db.fetchone(
            f"{_SELECT} WHERE album_id = ? AND track_number = ? LIMIT 1", [album_id, track_number]
        )
        return _to_model(row) if row else None

    def count_by_file_path(self, file_path: str) -> int:
        row = self._db.fetchone("SELECT count(*) FROM tracks WHERE file_path = ?", [file_path])
        return row[0]

    def save(self, track: Track) -> Track:
        now = utcnow()
        q = track.audio_quality
        if track.id is None:
            row = self._db.fetchone(
                """
                INSERT INTO tracks
                  (album_id, track_number, title, duration, file_path,
                   audio_format, audio_bitrate, audio_sample_rate, audio_bit_depth, audio_channels,
                   created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                RETURNING id
                """,
                [track.album_id, track.track_number, track.title, track.duration, track.file_path,
                 q.format, q.bitrate, q.sample_rate, q.bit_depth, q.channels, now, now],
            )
            track_id = row[0]
        else:
            self._db.execute(
                """
                UPDATE tracks
                SET track_number = ?, title = ?, duration = ?, file_path = ?,
                    audio_format = ?, audio_bitrate = ?, audio_sample_rate = ?,
                    audio_bit_depth = ?, audio_channels = ?, updated_at = ?
                WHERE id = ?
                """,
                [track.track_number, track.title, track.duration, track.file_path,
                 q.format, q.bitrate, q.sample_rate, q.bit_depth, q.channels, now, track.id],
            )
            track_id = track.id
        saved = self.find_by_id(track_id)
        if saved is None:
            raise TrackNotFoundError(f"track with id {track_id} not found")
        return saved

    def delete(self, track_id: int) -> bool:
        row = self._db.fetchone("DELETE FROM tracks WHERE id = ? RETURNING id", [track_id])
        return row is not None

    def delete_by_album_id(self, album_id: int) -> int:
        rows = self._db.fetchall("DELETE FROM tracks WHERE album_id = ? RETURNING id", [album_id])
        return len(rows)
