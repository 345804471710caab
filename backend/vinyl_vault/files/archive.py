"""On-demand ZIP archives of existing files.

Archives are built synchronously, so the input count is capped; an unbounded
number of concurrent large archives would be an easy way to exhaust the
server. A failed build never leaves a truncated archive behind.
"""
import logging
import os
import shutil
import zipfile
from pathlib import Path
from typing import Sequence, Union

from vinyl_vault.errors import (
    NoFilesToArchiveError,
    NotAZipFileError,
    StorageIOError,
    StoredFileNotFoundError,
    TooManyFilesError,
    ValidationError,
)

from .naming import sanitize_filename
from .schemas import MAX_ARCHIVE_FILES, ArchiveRequest

logger = logging.getLogger(__name__)

COPY_BUFFER_SIZE = 1 << 20


class ArchiveBuilder:
    """Builds ZIP archives directly under ``archive_dir``.

    Args:
        archive_dir: Directory the archives are created in (the upload root).
        max_files: Upper bound on inputs per archive.
    """

    def __init__(self, archive_dir: Path, max_files: int = MAX_ARCHIVE_FILES) -> None:
        self._archive_dir = Path(archive_dir)
        self._max_files = max_files

    @property
    def max_files(self) -> int:
        return self._max_files

    def build(self, paths: Sequence[Union[str, Path]], name: str) -> Path:
        """Zip ``paths`` into ``{archive_dir}/{name}.zip``.

        Each file becomes one deflated entry named by its base filename only.
        Bytes are streamed from source to entry.

        Returns:
            Absolute path of the archive.

        Raises:
            NoFilesToArchiveError: ``paths`` is empty.
            TooManyFilesError: More than ``max_files`` inputs.
            StoredFileNotFoundError: An input is missing.
            StorageIOError: Reading an input or writing the archive failed.
        """
        request = ArchiveRequest(paths=[Path(p) for p in paths], name=name or "archive")
        if not request.paths:
            raise NoFilesToArchiveError()
        if len(request.paths) > self._max_files:
            raise TooManyFilesError(len(request.paths), self._max_files)

        archive_name = request.archive_name
        if Path(archive_name).name != archive_name:
            archive_name = sanitize_filename(archive_name)
        if not archive_name or archive_name.startswith("."):
            raise ValidationError("name", "invalid archive name")

        try:
            self._archive_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageIOError(f"failed to create archive directory: {exc}") from exc

        zip_path = self._archive_dir / archive_name
        try:
            with zipfile.ZipFile(zip_path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
                for path in request.paths:
                    if not path.is_file():
                        raise StoredFileNotFoundError(str(path))
                    self._add_file(zf, path)
        except StoredFileNotFoundError:
            self._discard(zip_path)
            logger.warning("Archive %s aborted: input missing", zip_path)
            raise
        except Exception as exc:
            self._discard(zip_path)
            logger.error("Failed to build archive %s: %s", zip_path, exc)
            raise StorageIOError(f"failed to create archive: {exc}") from exc

        logger.info("Built archive %s with %d file(s)", zip_path, len(request.paths))
        return zip_path

    def delete(self, zip_path: Union[str, Path]) -> None:
        """Delete an archive. Refuses anything not ending in ``.zip``.

        A missing archive counts as deleted.

        Raises:
            NotAZipFileError: Path does not end in ``.zip`` (case-insensitive).
            StorageIOError: The file exists but could not be removed.
        """
        if not str(zip_path).lower().endswith(".zip"):
            raise NotAZipFileError()
        try:
            Path(zip_path).unlink(missing_ok=True)
        except OSError as exc:
            logger.error("Failed to delete archive %s: %s", zip_path, exc)
            raise StorageIOError(f"failed to delete archive: {exc}") from exc
        logger.debug("Deleted archive %s", zip_path)

    @staticmethod
    def _add_file(zf: zipfile.ZipFile, path: Path) -> None:
        info = zipfile.ZipInfo.from_file(
            path, arcname=os.path.basename(path), strict_timestamps=False
        )
        info.compress_type = zipfile.ZIP_DEFLATED
        with path.open("rb") as src, zf.open(info, "w", force_zip64=True) as dst:
            shutil.copyfileobj(src, dst, COPY_BUFFER_SIZE)

    @staticmethod
    def _discard(path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            logger.error("Failed to remove partial archive %s: %s", path, exc)
