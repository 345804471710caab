"""Pydantic schemas for file storage.

This module defines the data shapes used by the storage core:
- UploadKind: which policy governs an upload (audio, cover art)
- UploadPolicy: allowed extensions + size ceiling, immutable
- UploadTarget: identity the stored filename is derived from
- UploadedFile: an inbound stream with its client-side name and size
- FileUploadResult: ephemeral result of persisting an upload
- ArchiveRequest: bounded list of files to zip, plus the archive name
- ChunkManifest / ChunkInfo / DownloadProgress: resumable-transfer shapes.
  They are data only; nothing in the service produces or consumes them yet.

Layout on disk: {upload_dir}/audio/, {upload_dir}/covers/, with archives
created transiently directly under {upload_dir}/.
"""
from enum import Enum
from pathlib import Path
from typing import BinaryIO, FrozenSet, List, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

MIB = 1 << 20

MAX_ARCHIVE_FILES = 100

AUDIO_EXTENSIONS = frozenset({".wav", ".aiff", ".flac", ".alac", ".mp3", ".m4a", ".opus"})
COVER_ART_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".webp"})

AUDIO_CONTENT_TYPES = {
    ".mp3": "audio/mpeg",
    ".flac": "audio/flac",
    ".wav": "audio/wav",
    ".m4a": "audio/mp4",
    ".alac": "audio/mp4",
    ".aiff": "audio/aiff",
    ".opus": "audio/opus",
}

IMAGE_CONTENT_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
}


class UploadKind(str, Enum):
    """Upload categories, one policy each."""
    AUDIO = "audio"
    COVER_ART = "cover_art"


class UploadPolicy(BaseModel):
    """Content policy for one kind of upload.

    Extensions are stored lower-case with a leading dot and compared
    case-insensitively.
    """
    model_config = ConfigDict(frozen=True)

    allowed_extensions: FrozenSet[str]
    max_size: int = Field(..., gt=0, description="Maximum size in bytes")

    @field_validator("allowed_extensions", mode="before")
    @classmethod
    def _normalize(cls, value):
        return frozenset(
            ext.lower() if ext.startswith(".") else f".{ext.lower()}" for ext in value
        )

    def allows(self, extension: str) -> bool:
        return extension.lower() in self.allowed_extensions

    def allowed_names(self) -> List[str]:
        return sorted(ext.lstrip(".") for ext in self.allowed_extensions)

    @classmethod
    def audio(cls, max_size: int = 500 * MIB) -> "UploadPolicy":
        return cls(allowed_extensions=AUDIO_EXTENSIONS, max_size=max_size)

    @classmethod
    def cover_art(cls, max_size: int = 10 * MIB) -> "UploadPolicy":
        return cls(allowed_extensions=COVER_ART_EXTENSIONS, max_size=max_size)


class UploadTarget(BaseModel):
    """Identity of the record an upload belongs to.

    Audio needs album_id, track_number and title; cover art needs album_id.
    """
    model_config = ConfigDict(frozen=True)

    album_id: int
    track_number: Optional[int] = Field(default=None, ge=0)
    title: Optional[str] = None


class UploadedFile(NamedTuple):
    """An inbound upload as handed over by the HTTP layer."""
    stream: BinaryIO
    filename: str
    size: int


class FileUploadResult(BaseModel):
    """Result of persisting an upload. Not stored itself.

    The caller turns ``path`` into a stored reference before saving it.
    """
    path: Path = Field(..., description="Absolute path on disk")
    filename: str = Field(..., description="Generated filename")
    size: int = Field(..., ge=0, description="Size in bytes")


class ArchiveRequest(BaseModel):
    """Files to zip and the desired archive name. Used once."""
    paths: List[Path] = Field(default_factory=list)
    name: str = Field(..., min_length=1)

    @property
    def archive_name(self) -> str:
        """Name with a ``.zip`` suffix, added unless already present."""
        if self.name.lower().endswith(".zip"):
            return self.name
        return f"{self.name}.zip"


# =============================================================================
# Resumable transfer (data only)
# =============================================================================


class ChunkInfo(BaseModel):
    index: int = Field(..., ge=0)
    offset: int = Field(..., ge=0)
    size: int = Field(..., ge=0)
    checksum: str = Field(..., description="SHA-256 of this chunk")


class ChunkManifest(BaseModel):
    track_id: int
    filename: str
    total_size: int = Field(..., ge=0)
    chunk_size: int = Field(..., gt=0)
    total_chunks: int = Field(..., ge=0)
    checksum: str = Field(..., description="SHA-256 of the full file")
    chunks: List[ChunkInfo] = Field(default_factory=list)


class DownloadProgress(BaseModel):
    track_id: int
    completed_chunks: List[int] = Field(default_factory=list)
    total_chunks: int = Field(..., ge=0)
    percentage: float = Field(default=0.0, ge=0.0, le=100.0)


def audio_content_type(path: Path) -> str:
    return AUDIO_CONTENT_TYPES.get(path.suffix.lower(), "application/octet-stream")


def image_content_type(path: Path) -> str:
    return IMAGE_CONTENT_TYPES.get(path.suffix.lower(), "application/octet-stream")
