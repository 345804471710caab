"""File storage core for Vinyl Vault.

Accepts untrusted uploads, places them under the managed roots, converts
between stored (relative) and absolute paths, and builds bounded ZIP
archives. Every path is confined to a managed root with symlinks resolved.

Audio: wav, aiff, flac, alac, mp3, m4a, opus (up to 500MB)
Cover art: jpg, jpeg, png, webp (up to 10MB)
"""
from .archive import ArchiveBuilder
from .naming import sanitize_filename
from .paths import PathGuard
from .schemas import FileUploadResult, UploadedFile, UploadKind, UploadPolicy, UploadTarget
from .service import FileStorageService
from .uploads import UploadPipeline

__all__ = [
    "ArchiveBuilder",
    "FileStorageService",
    "FileUploadResult",
    "PathGuard",
    "UploadKind",
    "UploadPipeline",
    "UploadPolicy",
    "UploadTarget",
    "UploadedFile",
    "sanitize_filename",
]
