"""Path confinement for the managed storage roots.

Stored records only ever hold paths relative to the upload root. Before any
read, delete or write-back, the path is canonicalized with symlinks resolved
and compared segment by segment against the canonical managed roots. Plain
string prefixes are never used: ``/data/uploads-evil`` is not inside
``/data/uploads``.
"""
import logging
import os
from pathlib import Path
from typing import Iterable, List, Union

from vinyl_vault.errors import PathEscapeError

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]


def _canonical(path: PathLike) -> Path:
    """Absolute path with every symlink resolved. Raises if any part is missing."""
    return Path(os.path.abspath(path)).resolve(strict=True)


def _is_within(candidate: Path, root: Path) -> bool:
    return candidate == root or root in candidate.parents


class PathGuard:
    """Confines file access to a fixed set of managed roots.

    Args:
        upload_root: Root that stored (relative) references are expressed
            against. Always one of the managed roots.
        extra_roots: Further managed roots (audio, cover art).
    """

    def __init__(self, upload_root: PathLike, extra_roots: Iterable[PathLike] = ()) -> None:
        self._upload_root = Path(os.path.abspath(upload_root))
        roots = [self._upload_root]
        for root in extra_roots:
            absolute = Path(os.path.abspath(root))
            if absolute not in roots:
                roots.append(absolute)
        self._roots: List[Path] = roots

    @property
    def upload_root(self) -> Path:
        return self._upload_root

    @property
    def roots(self) -> List[Path]:
        return list(self._roots)

    def _canonical_roots(self) -> List[Path]:
        resolved = []
        for root in self._roots:
            try:
                resolved.append(_canonical(root))
            except (OSError, RuntimeError):
                # A root that does not exist yet cannot contain anything.
                continue
        return resolved

    def to_absolute(self, relative_path: str) -> Path:
        """Join a stored reference onto the upload root without resolving it."""
        if not relative_path:
            raise PathEscapeError("empty stored path")
        if os.path.isabs(relative_path):
            logger.warning("[paths] Absolute path given as stored reference: %s", relative_path)
            raise PathEscapeError(f"stored path must be relative: {relative_path}")
        return self._upload_root / relative_path

    def resolve_for_read(self, relative_path: str) -> Path:
        """Resolve a stored reference to a canonical absolute path.

        Symlinks are followed, so the result is where the bytes really are.
        A dangling or missing reference is reported as PathEscapeError and
        callers treat it as "not found".

        Raises:
            PathEscapeError: If the path is missing, a broken symlink, or
                resolves outside every managed root.
        """
        joined = self.to_absolute(relative_path)
        try:
            resolved = _canonical(joined)
        except (OSError, RuntimeError) as exc:
            logger.info("[paths] Stored path does not resolve: %s (%s)", relative_path, exc)
            raise PathEscapeError(f"cannot resolve stored path: {relative_path}") from exc
        self._require_confined(resolved, original=relative_path)
        return resolved

    def validate_confinement(self, absolute_path: PathLike) -> Path:
        """Prove that ``absolute_path`` lies at or below a managed root.

        Returns:
            The canonical form of the path.

        Raises:
            PathEscapeError: If the path cannot be canonicalized or escapes.
        """
        try:
            resolved = _canonical(absolute_path)
        except (OSError, RuntimeError) as exc:
            logger.info("[paths] Path does not resolve: %s (%s)", absolute_path, exc)
            raise PathEscapeError(f"cannot resolve path: {absolute_path}") from exc
        self._require_confined(resolved, original=str(absolute_path))
        return resolved

    def is_confined(self, absolute_path: PathLike) -> bool:
        try:
            self.validate_confinement(absolute_path)
        except PathEscapeError:
            return False
        return True

    def is_file(self, relative_path: str) -> bool:
        """True when a stored reference resolves to a regular file inside the roots."""
        try:
            return self.resolve_for_read(relative_path).is_file()
        except PathEscapeError:
            return False

    def to_relative(self, absolute_path: PathLike) -> str:
        """Convert an absolute path into a stored reference.

        Both sides are canonicalized first, so confinement is checked on the
        write-back direction too.

        Raises:
            PathEscapeError: If either side does not resolve or the path is
                not below the upload root.
        """
        if not str(absolute_path):
            raise PathEscapeError("path cannot be empty")
        try:
            resolved = _canonical(absolute_path)
            root = _canonical(self._upload_root)
        except (OSError, RuntimeError) as exc:
            raise PathEscapeError(f"cannot resolve path: {absolute_path}") from exc

        relative = os.path.relpath(resolved, root)
        if relative == os.pardir or relative.startswith(os.pardir + os.sep):
            logger.warning(
                "[paths] Refusing to store path outside upload root: %s", absolute_path
            )
            raise PathEscapeError(f"path is outside upload dir: {absolute_path}")
        return Path(relative).as_posix()

    def _require_confined(self, resolved: Path, original: str) -> None:
        for root in self._canonical_roots():
            if _is_within(resolved, root):
                return
        logger.warning(
            "[paths] Path escapes managed roots: %s -> %s", original, resolved
        )
        raise PathEscapeError(f"file path is outside allowed directories: {original}")
