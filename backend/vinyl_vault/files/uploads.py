"""Upload pipeline: validate an inbound file and materialize it once on disk.

Audio files are named ``{album_id}_{track:02d}_{title}{ext}`` so the same
(album, track number) always maps to the same file. Cover art gets a random
suffix instead, because an album can have several covers over its lifetime
and a new one must never overwrite a file a live record still points at.
"""
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import BinaryIO, Dict

from vinyl_vault.errors import (
    FileTooLargeError,
    RequiredFieldError,
    StorageIOError,
    UnsupportedFormatError,
    ValidationError,
)

from .naming import random_hex, sanitize_filename
from .paths import PathGuard
from .schemas import FileUploadResult, UploadKind, UploadPolicy, UploadTarget

logger = logging.getLogger(__name__)

DIR_PERMISSIONS = 0o755
FILE_PERMISSIONS = 0o644

COPY_BUFFER_SIZE = 1 << 20


def file_extension(filename: str) -> str:
    """Lower-cased extension of the original upload name, with its dot."""
    return Path(filename).suffix.lower()


class _SizeLimitedWriter:
    """Write-through wrapper that stops once more than ``limit`` bytes arrive."""

    def __init__(self, fh: BinaryIO, limit: int) -> None:
        self._fh = fh
        self._limit = limit
        self.written = 0

    def write(self, data: bytes) -> int:
        self.written += len(data)
        if self.written > self._limit:
            raise FileTooLargeError(self.written, self._limit)
        return self._fh.write(data)


class UploadPipeline:
    """Validates uploads against a policy and persists them under a managed root.

    Args:
        guard: PathGuard covering the destination directories.
        policies: Policy per upload kind.
        directories: Destination directory per upload kind.
    """

    def __init__(
        self,
        guard: PathGuard,
        policies: Dict[UploadKind, UploadPolicy],
        directories: Dict[UploadKind, Path],
    ) -> None:
        self._guard = guard
        self._policies = dict(policies)
        self._directories = {kind: Path(path) for kind, path in directories.items()}

    def policy(self, kind: UploadKind) -> UploadPolicy:
        return self._policies[kind]

    def validate(self, original_filename: str, declared_size: int, kind: UploadKind) -> str:
        """Check an upload against its policy before any byte is written.

        Returns:
            The normalized extension.

        Raises:
            UnsupportedFormatError: Extension not in the allow-list.
            FileTooLargeError: Declared size above the ceiling.
        """
        policy = self._policies[kind]
        ext = file_extension(original_filename or "")
        if not policy.allows(ext):
            raise UnsupportedFormatError(ext, policy.allowed_names())
        if declared_size < 0:
            raise ValidationError("file", "invalid file size")
        if declared_size > policy.max_size:
            raise FileTooLargeError(declared_size, policy.max_size)
        return ext

    def target_filename(self, kind: UploadKind, target: UploadTarget, ext: str) -> str:
        if kind is UploadKind.AUDIO:
            if not target.title or not target.title.strip():
                raise RequiredFieldError("title")
            if target.track_number is None:
                raise RequiredFieldError("track_number")
            safe_title = sanitize_filename(target.title.strip())
            return f"{target.album_id}_{target.track_number:02d}_{safe_title}{ext}"

        if target.album_id <= 0:
            raise ValidationError("album_id", "invalid album ID")
        return f"{target.album_id}_{random_hex(8)}{ext}"

    def save(
        self,
        stream: BinaryIO,
        original_filename: str,
        declared_size: int,
        kind: UploadKind,
        target: UploadTarget,
    ) -> FileUploadResult:
        """Validate and write one uploaded file.

        Args:
            stream: Readable binary stream with the upload's content.
            original_filename: Name the client sent; only its extension is used.
            declared_size: Size the client declared, checked before copying.
            kind: Which policy applies.
            target: Record identity the filename is derived from.

        Returns:
            FileUploadResult with the absolute path, filename and size.

        Raises:
            ValidationError: Policy or identity rejected.
            StorageIOError: The file could not be written. No partial file
                is left behind.
        """
        ext = self.validate(original_filename, declared_size, kind)
        filename = self.target_filename(kind, target, ext)
        directory = self._directories[kind]

        try:
            directory.mkdir(mode=DIR_PERMISSIONS, parents=True, exist_ok=True)
        except OSError as exc:
            logger.error("Failed to create upload directory %s: %s", directory, exc)
            raise StorageIOError(f"failed to create directory: {exc}") from exc
        self._guard.validate_confinement(directory)

        dest_path = directory / filename
        self._write(stream, dest_path, self._policies[kind].max_size)

        logger.info(
            "Saved %s upload: %s (%d bytes declared)", kind.value, dest_path, declared_size
        )
        return FileUploadResult(path=dest_path, filename=filename, size=declared_size)

    def _write(self, stream: BinaryIO, dest_path: Path, limit: int) -> None:
        """Write to a scratch file beside ``dest_path`` and rename it into place.

        An existing file at ``dest_path`` is only replaced once every byte has
        arrived, so a rejected re-upload leaves the previous file untouched.
        """
        try:
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{dest_path.name}.", suffix=".part", dir=dest_path.parent
            )
        except OSError as exc:
            logger.error("Failed to create destination file %s: %s", dest_path, exc)
            raise StorageIOError(f"failed to create destination file: {exc}") from exc

        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as dst:
                # mkstemp creates the file 0o600.
                os.fchmod(dst.fileno(), FILE_PERMISSIONS)
                shutil.copyfileobj(stream, _SizeLimitedWriter(dst, limit), COPY_BUFFER_SIZE)
            os.replace(tmp_path, dest_path)
        except FileTooLargeError:
            self._discard(tmp_path)
            raise
        except Exception as exc:
            self._discard(tmp_path)
            logger.error("Failed to save file %s: %s", dest_path, exc)
            raise StorageIOError(f"failed to save file: {exc}") from exc

    @staticmethod
    def _discard(path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            logger.error("Failed to remove partial upload %s: %s", path, exc)
