"""Pydantic schemas for tracks."""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class AudioQuality(BaseModel):
    format: str = ""
    bitrate: int = Field(default=0, ge=0)
    sample_rate: int = Field(default=0, ge=0)
    bit_depth: int = Field(default=0, ge=0)
    channels: int = Field(default=0, ge=0)


class Track(BaseModel):
    """Stored track. ``file_path`` is relative to the upload root."""
    id: Optional[int] = None
    album_id: int
    track_number: int
    title: str
    duration: int = 0
    file_path: str
    audio_quality: AudioQuality = Field(default_factory=AudioQuality)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TrackUpdate(BaseModel):
    """Request body for updating a track (all fields optional)."""
    track_number: Optional[int] = Field(default=None, ge=1)
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    duration: Optional[int] = Field(default=None, ge=0)
    audio_quality: Optional[AudioQuality] = None
