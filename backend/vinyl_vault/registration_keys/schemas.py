"""Pydantic schemas for registration keys."""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

MAX_EXPIRATION_HOURS = 8760


class RegistrationKey(BaseModel):
    id: Optional[int] = None
    key: str
    created_by: int
    used_by: Optional[int] = None
    is_used: bool = False
    expires_at: datetime
    used_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class GenerateKeyRequest(BaseModel):
    """Request body for minting a key; defaults to one week."""
    expiration_hours: int = Field(default=168, ge=1, le=MAX_EXPIRATION_HOURS)


class ValidateKeyRequest(BaseModel):
    key: str = Field(..., min_length=1)
