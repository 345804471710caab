"""TrackService: ownership-checked track CRUD.

A track owns exactly one audio file. The file is written before the row
and removed again if the row cannot be persisted, so no record points at a
missing upload and no upload outlives a failed create.
"""
import logging
from pathlib import Path
from typing import List, Optional

from vinyl_vault.albums.repository import AlbumRepository
from vinyl_vault.errors import (
    AlbumNotFoundError,
    ConflictError,
    NotOwnerError,
    TrackNotFoundError,
    ValidationError,
    VinylVaultError,
)
from vinyl_vault.files.schemas import UploadedFile
from vinyl_vault.files.service import FileStorageService

from .repository import TrackRepository
from .schemas import AudioQuality, Track, TrackUpdate

logger = logging.getLogger(__name__)


class TrackService:
    def __init__(
        self,
        tracks: TrackRepository,
        albums: AlbumRepository,
        storage: FileStorageService,
    ) -> None:
        self._tracks = tracks
        self._albums = albums
        self._storage = storage

    def _check_owner(self, user_id: int, album_id: int) -> None:
        album = self._albums.find_by_id(album_id)
        if album is None:
            raise AlbumNotFoundError(f"album with id {album_id} not found")
        if album.user_id != user_id:
            logger.info("[tracks] User %s denied access to album %s", user_id, album_id)
            raise NotOwnerError(f"user {user_id} does not own album {album_id}")

    def _check_number_free(self, album_id: int, track_number: int) -> None:
        if self._tracks.find_by_album_and_number(album_id, track_number) is not None:
            raise ConflictError(f"track number {track_number} already in use")

    def create_track(
        self,
        user_id: int,
        album_id: int,
        track_number: int,
        title: str,
        audio: UploadedFile,
        duration: int = 0,
        audio_quality: Optional[AudioQuality] = None,
    ) -> Track:
        """Upload a track's audio and create its record.

        Ownership is checked before a single byte is written.

        Raises:
            AlbumNotFoundError / NotOwnerError: Album missing or not the caller's.
            ValidationError: Bad track number, title, extension or size.
            StorageIOError: The audio could not be written.
        """
        if track_number < 1:
            raise ValidationError("track_number", "must be at least 1")
        self._check_owner(user_id, album_id)
        self._check_number_free(album_id, track_number)

        title = (title or "").strip()
        result = self._storage.save_track_audio(
            audio.stream, audio.filename, audio.size, album_id, track_number, title
        )
        quality = audio_quality or AudioQuality()
        if not quality.format:
            quality = quality.model_copy(update={"format": result.path.suffix.lstrip(".")})

        try:
            stored_path = self._storage.to_stored_path(result.path)
            track = self._tracks.save(
                Track(
                    album_id=album_id,
                    track_number=track_number,
                    title=title,
                    duration=max(0, duration),
                    file_path=stored_path,
                    audio_quality=quality,
                )
            )
        except Exception:
            logger.error("[tracks] Failed to persist track for %s; removing upload", result.path)
            self._purge(result.path)
            raise

        logger.info("[tracks] Created track %s (album %s, #%d)", track.id, album_id, track_number)
        return track

    def get_track(self, track_id: int) -> Track:
        track = self._tracks.find_by_id(track_id)
        if track is None:
            raise TrackNotFoundError(f"track with id {track_id} not found")
        return track

    def get_tracks_by_album(self, album_id: int) -> List[Track]:
        if self._albums.find_by_id(album_id) is None:
            raise AlbumNotFoundError(f"album with id {album_id} not found")
        return self._tracks.find_by_album_id(album_id)

    def update_track(self, user_id: int, track_id: int, update: TrackUpdate) -> Track:
        track = self.get_track(track_id)
        self._check_owner(user_id, track.album_id)

        changes = update.model_dump(exclude_none=True, exclude={"audio_quality"})
        if update.audio_quality is not None:
            changes["audio_quality"] = update.audio_quality
        if "title" in changes:
            changes["title"] = changes["title"].strip()
            if not changes["title"]:
                raise ValidationError("title", "required field missing")
        if changes.get("track_number", track.track_number) != track.track_number:
            self._check_number_free(track.album_id, changes["track_number"])
        return self._tracks.save(track.model_copy(update=changes))

    def delete_track(self, user_id: int, track_id: int) -> None:
        """Delete a track; its audio is purged unless another track still uses it."""
        track = self.get_track(track_id)
        self._check_owner(user_id, track.album_id)
        self._tracks.delete(track_id)
        if self._tracks.count_by_file_path(track.file_path):
            logger.info("[tracks] Keeping %s, still referenced", track.file_path)
        else:
            self._purge(track.file_path)
        logger.info("[tracks] Deleted track %s", track_id)

    def audio_file(self, track_id: int) -> Path:
        """Absolute path of a track's audio, confined to the managed roots."""
        return self._storage.resolve_stored_path(self.get_track(track_id).file_path)

    def _purge(self, path) -> None:
        try:
            self._storage.delete_stored_file(path)
        except VinylVaultError as exc:
            logger.error("[tracks] Failed to delete audio file %s: %s", path, exc)
