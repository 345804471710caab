"""File serving endpoints.

Endpoints:
    GET /track/{id}/stream            - Stream a track (Range requests supported)
    GET /track/{id}/download          - Download a track, optionally ?format= transcoded
    GET /album/{id}/cover             - Album cover art (public, cacheable)
    GET /album/{id}/download          - ZIP of every track of an owned album

Every path served here comes out of PathGuard; stored references never
reach the filesystem unchecked. Transient files (transcodes, archives) are
removed by a background task after the response, whether or not the
transfer completed.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse
from starlette.background import BackgroundTask

from vinyl_vault.auth.dependencies import require_user
from vinyl_vault.container import Container
from vinyl_vault.conversion import parse_format
from vinyl_vault.dependencies import get_container
from vinyl_vault.users.schemas import User

from .naming import sanitize_filename
from .schemas import audio_content_type, image_content_type

logger = logging.getLogger(__name__)

router = APIRouter(tags=["files"])


@router.get("/track/{track_id}/stream")
def stream_track(
    track_id: int,
    user: User = Depends(require_user),
    container: Container = Depends(get_container),
) -> FileResponse:
    path = container.tracks.audio_file(track_id)
    return FileResponse(
        path,
        media_type=audio_content_type(path),
        headers={"Accept-Ranges": "bytes", "Cache-Control": "no-cache"},
    )


@router.get("/track/{track_id}/download")
def download_track(
    track_id: int,
    format: Optional[str] = None,
    user: User = Depends(require_user),
    container: Container = Depends(get_container),
) -> FileResponse:
    """Download a track as an attachment named after its title.

    Args:
        format: Optional target format (wav, aiff, flac, alac, mp3, opus).
            The converted copy is deleted once the response is sent.
    """
    track = container.tracks.get_track(track_id)
    path = container.storage.resolve_stored_path(track.file_path)
    title = sanitize_filename(track.title)

    if not format:
        return FileResponse(
            path, media_type=audio_content_type(path), filename=f"{title}{path.suffix}"
        )

    target = parse_format(format)
    converted = container.conversion.convert(path, target)
    logger.info("[files] Serving track %s converted to %s", track_id, target.value)
    return FileResponse(
        converted,
        media_type=audio_content_type(converted),
        filename=f"{title}.{target.extension}",
        background=BackgroundTask(container.conversion.cleanup, converted),
    )


@router.get("/album/{album_id}/cover")
def album_cover(
    album_id: int,
    container: Container = Depends(get_container),
) -> FileResponse:
    path = container.albums.cover_art_file(album_id)
    return FileResponse(
        path,
        media_type=image_content_type(path),
        headers={"Cache-Control": "public, max-age=86400"},
    )


@router.get("/album/{album_id}/download")
def download_album(
    album_id: int,
    user: User = Depends(require_user),
    container: Container = Depends(get_container),
) -> FileResponse:
    zip_path, zip_name = container.albums.build_album_archive(user.id, album_id)
    return FileResponse(
        zip_path,
        media_type="application/zip",
        filename=zip_name,
        background=BackgroundTask(container.storage.delete_archive, zip_path),
    )
