"""Album endpoints.

Create and update take multipart forms: ``metadata`` is a JSON object and
``cover_art`` an optional image file.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from pydantic import ValidationError as PydanticValidationError

from vinyl_vault.auth.dependencies import require_user
from vinyl_vault.container import Container
from vinyl_vault.dependencies import as_uploaded_file, get_container
from vinyl_vault.errors import ValidationError
from vinyl_vault.tracks.schemas import Track
from vinyl_vault.users.schemas import User

from .schemas import Album, Metadata

logger = logging.getLogger(__name__)

router = APIRouter(tags=["albums"])


def _parse_metadata(raw: str) -> Metadata:
    try:
        return Metadata.model_validate_json(raw or "{}")
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        loc = ".".join(str(p) for p in first.get("loc", ()))
        raise ValidationError(f"metadata.{loc}" if loc else "metadata", first["msg"]) from None


@router.post("/album", status_code=201, response_model=Album)
def create_album(
    metadata: str = Form("{}"),
    cover_art: Optional[UploadFile] = File(None),
    user: User = Depends(require_user),
    container: Container = Depends(get_container),
) -> Album:
    return container.albums.create_album(
        user.id, _parse_metadata(metadata), as_uploaded_file(cover_art)
    )


@router.get("/album/{album_id}", response_model=Album)
def get_album(
    album_id: int,
    user: User = Depends(require_user),
    container: Container = Depends(get_container),
) -> Album:
    return container.albums.get_album(album_id)


@router.get("/albums/me", response_model=List[Album])
def my_albums(
    user: User = Depends(require_user),
    container: Container = Depends(get_container),
) -> List[Album]:
    return container.albums.get_albums_by_user(user.id)


@router.get("/albums", response_model=List[Album])
def albums_by_artist(
    artist: str,
    user: User = Depends(require_user),
    container: Container = Depends(get_container),
) -> List[Album]:
    return container.albums.get_albums_by_artist(artist)


@router.put("/album/{album_id}", response_model=Album)
def update_album(
    album_id: int,
    metadata: str = Form("{}"),
    cover_art: Optional[UploadFile] = File(None),
    user: User = Depends(require_user),
    container: Container = Depends(get_container),
) -> Album:
    return container.albums.update_album(
        user.id, album_id, _parse_metadata(metadata), as_uploaded_file(cover_art)
    )


@router.delete("/album/{album_id}")
def delete_album(
    album_id: int,
    user: User = Depends(require_user),
    container: Container = Depends(get_container),
) -> dict:
    container.albums.delete_album(user.id, album_id)
    return {"message": "album deleted"}


@router.get("/album/{album_id}/tracks", response_model=List[Track])
def album_tracks(
    album_id: int,
    user: User = Depends(require_user),
    container: Container = Depends(get_container),
) -> List[Track]:
    return container.tracks.get_tracks_by_album(album_id)
