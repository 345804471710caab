"""File storage service for Vinyl Vault.

Facade over the storage core. Handlers and record services only talk to
this class; it owns no state beyond the configured roots and policies, so
one instance is safely shared across concurrent requests.

Files are stored in:
    {upload_dir}/audio/{album_id}_{track:02d}_{title}{ext}
    {upload_dir}/covers/{album_id}_{random8}{ext}
    {upload_dir}/{archive}.zip            (transient)
"""
import logging
from pathlib import Path
from typing import BinaryIO, List, Sequence, Union

from vinyl_vault.config import StorageSettings
from vinyl_vault.errors import PathEscapeError, StorageIOError

from .archive import ArchiveBuilder
from .paths import PathGuard
from .schemas import FileUploadResult, UploadKind, UploadPolicy, UploadTarget
from .uploads import DIR_PERMISSIONS, UploadPipeline

logger = logging.getLogger(__name__)


class FileStorageService:
    """Stateless storage operations parameterized by configured roots."""

    def __init__(self, settings: StorageSettings) -> None:
        self._settings = settings
        self._upload_dir = Path(settings.upload_dir).absolute()
        self._audio_dir = Path(settings.audio_dir).absolute()
        self._cover_art_dir = Path(settings.cover_art_dir).absolute()

        self._guard = PathGuard(self._upload_dir, [self._audio_dir, self._cover_art_dir])
        self._pipeline = UploadPipeline(
            guard=self._guard,
            policies={
                UploadKind.AUDIO: UploadPolicy.audio(settings.max_audio_file_size),
                UploadKind.COVER_ART: UploadPolicy.cover_art(settings.max_cover_art_size),
            },
            directories={
                UploadKind.AUDIO: self._audio_dir,
                UploadKind.COVER_ART: self._cover_art_dir,
            },
        )
        self._archives = ArchiveBuilder(self._upload_dir, settings.max_archive_files)

    @property
    def upload_dir(self) -> Path:
        return self._upload_dir

    @property
    def audio_dir(self) -> Path:
        return self._audio_dir

    @property
    def cover_art_dir(self) -> Path:
        return self._cover_art_dir

    @property
    def guard(self) -> PathGuard:
        return self._guard

    def ensure_directories(self) -> None:
        """Create every managed root (idempotent)."""
        for directory in (self._upload_dir, self._audio_dir, self._cover_art_dir):
            try:
                directory.mkdir(mode=DIR_PERMISSIONS, parents=True, exist_ok=True)
            except OSError as exc:
                raise StorageIOError(f"failed to create directory {directory}: {exc}") from exc
        logger.info("Storage roots ready under %s", self._upload_dir)

    # -----------------------------------------------------------------------
    # Uploads
    # -----------------------------------------------------------------------

    def save_upload(
        self,
        stream: BinaryIO,
        original_filename: str,
        declared_size: int,
        kind: UploadKind,
        target: UploadTarget,
    ) -> FileUploadResult:
        return self._pipeline.save(stream, original_filename, declared_size, kind, target)

    def save_track_audio(
        self,
        stream: BinaryIO,
        original_filename: str,
        declared_size: int,
        album_id: int,
        track_number: int,
        title: str,
    ) -> FileUploadResult:
        target = UploadTarget(album_id=album_id, track_number=track_number, title=title)
        return self.save_upload(stream, original_filename, declared_size, UploadKind.AUDIO, target)

    def save_cover_art(
        self,
        stream: BinaryIO,
        original_filename: str,
        declared_size: int,
        album_id: int,
    ) -> FileUploadResult:
        target = UploadTarget(album_id=album_id)
        return self.save_upload(
            stream, original_filename, declared_size, UploadKind.COVER_ART, target
        )

    # -----------------------------------------------------------------------
    # Stored references
    # -----------------------------------------------------------------------

    def resolve_stored_path(self, relative_path: str) -> Path:
        """Stored reference -> canonical absolute path (PathEscapeError if unusable)."""
        return self._guard.resolve_for_read(relative_path)

    def to_stored_path(self, absolute_path: Union[str, Path]) -> str:
        """Absolute path -> stored reference relative to the upload root."""
        return self._guard.to_relative(absolute_path)

    def delete_stored_file(self, path: Union[str, Path]) -> None:
        """Delete a stored file given its relative or absolute path.

        The containing directory must be confined to a managed root. A file
        that is already gone counts as deleted.

        Raises:
            PathEscapeError: Path outside every managed root.
            StorageIOError: The file exists but could not be removed.
        """
        if not str(path):
            return
        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = self._guard.to_absolute(str(path))

        # The file may already be gone; confinement is proven on its directory.
        try:
            parent = self._guard.validate_confinement(candidate.parent)
        except PathEscapeError:
            if not candidate.parent.exists():
                logger.debug("Stored file directory already gone: %s", candidate)
                return
            raise
        target = parent / candidate.name
        # A symlink is unlinked itself; its target is never touched.
        if candidate.name in ("", ".", "..") or (target.is_dir() and not target.is_symlink()):
            raise PathEscapeError(f"not a file: {path}")

        try:
            target.unlink(missing_ok=True)
        except OSError as exc:
            logger.error("Failed to delete stored file %s: %s", target, exc)
            raise StorageIOError(f"failed to delete file: {exc}") from exc
        logger.info("Deleted stored file %s", target)

    def file_size(self, path: Path) -> int:
        try:
            return path.stat().st_size
        except OSError as exc:
            raise StorageIOError(f"failed to get file info: {exc}") from exc

    # -----------------------------------------------------------------------
    # Archives
    # -----------------------------------------------------------------------

    def build_archive(self, absolute_paths: Sequence[Union[str, Path]], name: str) -> Path:
        return self._archives.build(absolute_paths, name)

    def delete_archive(self, archive_path: Union[str, Path]) -> None:
        self._archives.delete(archive_path)

    def resolve_many(self, relative_paths: Sequence[str]) -> List[Path]:
        """Resolve several stored references, failing on the first bad one."""
        return [self.resolve_stored_path(p) for p in relative_paths]
