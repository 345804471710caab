"""Track endpoints. Create takes a multipart form with the ``audio_file`` upload."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from pydantic import ValidationError as PydanticValidationError

from vinyl_vault.auth.dependencies import require_user
from vinyl_vault.container import Container
from vinyl_vault.dependencies import as_uploaded_file, get_container
from vinyl_vault.errors import RequiredFieldError, ValidationError
from vinyl_vault.users.schemas import User

from .schemas import AudioQuality, Track, TrackUpdate

logger = logging.getLogger(__name__)

router = APIRouter(tags=["tracks"])


def _parse_quality(raw: Optional[str]) -> Optional[AudioQuality]:
    if not raw:
        return None
    try:
        return AudioQuality.model_validate_json(raw)
    except PydanticValidationError as exc:
        raise ValidationError("audio_quality", exc.errors()[0]["msg"]) from None


@router.post("/track", status_code=201, response_model=Track)
def create_track(
    album_id: int = Form(...),
    track_number: int = Form(...),
    title: str = Form(...),
    duration: int = Form(0),
    audio_quality: Optional[str] = Form(None),
    audio_file: Optional[UploadFile] = File(None),
    user: User = Depends(require_user),
    container: Container = Depends(get_container),
) -> Track:
    """Upload an audio file and create its track record."""
    audio = as_uploaded_file(audio_file)
    if audio is None:
        raise RequiredFieldError("audio_file")
    return container.tracks.create_track(
        user.id,
        album_id,
        track_number,
        title,
        audio,
        duration=duration,
        audio_quality=_parse_quality(audio_quality),
    )


@router.get("/track/{track_id}", response_model=Track)
def get_track(
    track_id: int,
    user: User = Depends(require_user),
    container: Container = Depends(get_container),
) -> Track:
    return container.tracks.get_track(track_id)


@router.put("/track/{track_id}", response_model=Track)
def update_track(
    track_id: int,
    body: TrackUpdate,
    user: User = Depends(require_user),
    container: Container = Depends(get_container),
) -> Track:
    return container.tracks.update_track(user.id, track_id, body)


@router.delete("/track/{track_id}")
def delete_track(
    track_id: int,
    user: User = Depends(require_user),
    container: Container = Depends(get_container),
) -> dict:
    container.tracks.delete_track(user.id, track_id)
    return {"message": "track deleted"}
