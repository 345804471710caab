"""AlbumService: album records plus the cover art and archives they own.

Cover art lives under the cover-art root and is referenced from the album
by a stored (relative) path. Replacing or deleting an album purges files
that no record points at anymore.
"""
import logging
from pathlib import Path
from typing import List, Optional, Tuple

from vinyl_vault.errors import AlbumNotFoundError, NoFilesToArchiveError, NotOwnerError, VinylVaultError
from vinyl_vault.files.naming import random_hex, sanitize_filename
from vinyl_vault.files.schemas import UploadedFile
from vinyl_vault.files.service import FileStorageService
from vinyl_vault.tracks.repository import TrackRepository

from .repository import AlbumRepository
from .schemas import Album, Metadata

logger = logging.getLogger(__name__)


class AlbumService:
    def __init__(
        self,
        albums: AlbumRepository,
        tracks: TrackRepository,
        storage: FileStorageService,
    ) -> None:
        self._albums = albums
        self._tracks = tracks
        self._storage = storage

    # -----------------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------------

    def _with_tracks(self, album: Album) -> Album:
        return album.model_copy(update={"tracks": self._tracks.find_by_album_id(album.id)})

    def _find(self, album_id: int) -> Album:
        album = self._albums.find_by_id(album_id)
        if album is None:
            raise AlbumNotFoundError(f"album with id {album_id} not found")
        return album

    def _find_owned(self, user_id: int, album_id: int) -> Album:
        album = self._find(album_id)
        if album.user_id != user_id:
            logger.info("[albums] User %s denied access to album %s", user_id, album_id)
            raise NotOwnerError(f"user {user_id} does not own album {album_id}")
        return album

    def get_album(self, album_id: int) -> Album:
        return self._with_tracks(self._find(album_id))

    def get_albums_by_user(self, user_id: int) -> List[Album]:
        return [self._with_tracks(a) for a in self._albums.find_by_user_id(user_id)]

    def get_albums_by_artist(self, artist: str) -> List[Album]:
        return [self._with_tracks(a) for a in self._albums.find_by_artist(artist)]

    def is_owner(self, album_id: int, user_id: int) -> bool:
        return self._find(album_id).user_id == user_id

    # -----------------------------------------------------------------------
    # Mutations
    # -----------------------------------------------------------------------

    def create_album(
        self,
        user_id: int,
        metadata: Metadata,
        cover: Optional[UploadedFile] = None,
    ) -> Album:
        """Create an album, optionally with cover art.

        The record is inserted first because cover filenames carry the album
        id. If the cover cannot be stored, the record is removed again and
        the error propagates.
        """
        album = self._albums.save(
            Album(user_id=user_id, metadata=metadata.model_copy(update={"cover_art_path": ""}))
        )
        logger.info("[albums] Created album %s for user %s", album.id, user_id)
        if cover is None:
            return self._with_tracks(album)

        cover_path = ""
        try:
            cover_path = self._store_cover(album.id, cover)
            album = self._albums.save(
                album.model_copy(
                    update={"metadata": album.metadata.model_copy(update={"cover_art_path": cover_path})}
                )
            )
        except Exception:
            if cover_path:
                self._purge(cover_path)
            self._albums.delete(album.id)
            raise
        return self._with_tracks(album)

    def update_album(
        self,
        user_id: int,
        album_id: int,
        metadata: Metadata,
        cover: Optional[UploadedFile] = None,
    ) -> Album:
        """Replace an album's metadata; a new cover replaces and purges the old one.

        ``metadata.cover_art_path`` from the caller is ignored: the cover
        reference only ever changes through an upload.
        """
        album = self._find_owned(user_id, album_id)
        old_cover = album.metadata.cover_art_path
        new_cover = self._store_cover(album_id, cover) if cover is not None else ""

        updated_metadata = metadata.model_copy(update={"cover_art_path": new_cover or old_cover})
        try:
            saved = self._albums.save(album.model_copy(update={"metadata": updated_metadata}))
        except Exception:
            if new_cover:
                self._purge(new_cover)
            raise

        if new_cover and old_cover and old_cover != new_cover:
            self._purge(old_cover)
        logger.info("[albums] Updated album %s", album_id)
        return self._with_tracks(saved)

    def delete_album(self, user_id: int, album_id: int) -> None:
        """Delete an album with its tracks, then purge the files they referenced."""
        album = self._find_owned(user_id, album_id)
        tracks = self._tracks.find_by_album_id(album_id)
        self._albums.delete(album_id)

        if album.metadata.cover_art_path:
            self._purge(album.metadata.cover_art_path)
        for track in tracks:
            self._purge(track.file_path)
        logger.info("[albums] Deleted album %s (%d track(s))", album_id, len(tracks))

    # -----------------------------------------------------------------------
    # Files
    # -----------------------------------------------------------------------

    def cover_art_file(self, album_id: int) -> Path:
        """Absolute path of an album's cover art.

        Raises:
            AlbumNotFoundError: Unknown album.
            PathEscapeError: No cover, or the stored reference is unusable.
        """
        album = self._find(album_id)
        return self._storage.resolve_stored_path(album.metadata.cover_art_path)

    def build_album_archive(self, user_id: int, album_id: int) -> Tuple[Path, str]:
        """Zip every track of an album the caller owns.

        The file on disk carries a random suffix so concurrent downloads of
        the same album never share an archive; the returned filename does not.

        Returns:
            (archive path, archive filename). The caller deletes the archive
            once it has been sent.
        """
        album = self._find_owned(user_id, album_id)
        tracks = self._tracks.find_by_album_id(album_id)
        if not tracks:
            raise NoFilesToArchiveError()

        paths = self._storage.resolve_many([t.file_path for t in tracks])
        stem = f"album_{album_id}_{sanitize_filename(album.metadata.album)}"
        zip_path = self._storage.build_archive(paths, f"{stem}_{random_hex(8)}.zip")
        return zip_path, f"{stem}.zip"

    def _store_cover(self, album_id: int, cover: UploadedFile) -> str:
        result = self._storage.save_cover_art(cover.stream, cover.filename, cover.size, album_id)
        try:
            return self._storage.to_stored_path(result.path)
        except Exception:
            logger.error("[albums] Cover %s cannot be referenced; removing it", result.path)
            self._purge(str(result.path))
            raise

    def _purge(self, stored_path: str) -> None:
        try:
            self._storage.delete_stored_file(stored_path)
        except VinylVaultError as exc:
            logger.error("[albums] Failed to purge %s: %s", stored_path, exc)
