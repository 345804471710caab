"""Pydantic schemas for albums."""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from vinyl_vault.tracks.schemas import Track


class Metadata(BaseModel):
    artist: str = ""
    album: str = ""
    format: str = ""
    release_date: str = ""
    label: Optional[str] = None
    country: Optional[str] = None
    length: int = Field(default=0, ge=0)  # seconds
    cover_art_path: str = ""


class Album(BaseModel):
    id: Optional[int] = None
    user_id: int
    metadata: Metadata = Field(default_factory=Metadata)
    tracks: List[Track] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
