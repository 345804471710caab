"""Registration key endpoints.

Endpoints:
    POST   /validate-key                 - Check a key before registering (public)
    POST   /admin/registration-key       - Mint a key (admin)
    GET    /admin/registration-keys      - Keys minted by the caller (admin)
    DELETE /admin/registration-key/{id}  - Delete a key (admin)
"""
import logging
from typing import List

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from vinyl_vault.auth.dependencies import require_admin
from vinyl_vault.container import Container
from vinyl_vault.dependencies import get_container
from vinyl_vault.errors import RegistrationKeyError
from vinyl_vault.users.schemas import User

from .schemas import GenerateKeyRequest, RegistrationKey, ValidateKeyRequest

logger = logging.getLogger(__name__)

router = APIRouter(tags=["registration-keys"])


@router.post("/validate-key")
def validate_key(
    body: ValidateKeyRequest,
    container: Container = Depends(get_container),
) -> JSONResponse:
    """Report whether a key can be used; never consumes it."""
    try:
        key = container.registration_keys.validate_key(body.key)
    except RegistrationKeyError as exc:
        return JSONResponse({"error": exc.public_message, "valid": False}, status_code=400)
    return JSONResponse({
        "valid": True,
        "expires_at": key.expires_at.isoformat(),
        "message": "Registration key is valid. You can proceed with registration.",
    })


@router.post("/admin/registration-key", status_code=201, response_model=RegistrationKey)
def generate_key(
    body: GenerateKeyRequest,
    admin: User = Depends(require_admin),
    container: Container = Depends(get_container),
) -> RegistrationKey:
    return container.registration_keys.generate_key(admin.id, body.expiration_hours)


@router.get("/admin/registration-keys", response_model=List[RegistrationKey])
def list_keys(
    admin: User = Depends(require_admin),
    container: Container = Depends(get_container),
) -> List[RegistrationKey]:
    return container.registration_keys.get_keys_by_creator(admin.id)


@router.delete("/admin/registration-key/{key_id}")
def delete_key(
    key_id: int,
    admin: User = Depends(require_admin),
    container: Container = Depends(get_container),
) -> dict:
    container.registration_keys.delete_key(key_id, admin.id)
    return {"message": "registration key deleted"}
