"""RegistrationKeyService: admin-minted, single-use invitation keys."""
import logging
import secrets
from datetime import timedelta
from typing import List

from vinyl_vault.db import utcnow
from vinyl_vault.errors import (
    AdminOnlyError,
    InvalidRegistrationKeyError,
    RegistrationKeyExpiredError,
    RegistrationKeyNotFoundError,
    RegistrationKeyUsedError,
    UserNotFoundError,
    ValidationError,
)
from vinyl_vault.users.repository import UserRepository

from .repository import RegistrationKeyRepository
from .schemas import MAX_EXPIRATION_HOURS, RegistrationKey

logger = logging.getLogger(__name__)

KEY_BYTES = 32


class RegistrationKeyService:
    def __init__(self, keys: RegistrationKeyRepository, users: UserRepository) -> None:
        self._keys = keys
        self._users = users

    def _require_admin(self, user_id: int) -> None:
        user = self._users.find_by_id(user_id)
        if user is None:
            raise UserNotFoundError(f"user with id {user_id} not found")
        if not user.is_admin:
            raise AdminOnlyError(f"user {user_id} is not an admin")

    def generate_key(self, creator_id: int, expiration_hours: int) -> RegistrationKey:
        """Mint a new key valid for ``expiration_hours`` (1..8760).

        Raises:
            AdminOnlyError: The creator is not an admin.
            ValidationError: Expiration out of range.
        """
        if not 1 <= expiration_hours <= MAX_EXPIRATION_HOURS:
            raise ValidationError(
                "expiration_hours", f"must be between 1 and {MAX_EXPIRATION_HOURS}"
            )
        self._require_admin(creator_id)

        key = RegistrationKey(
            key=secrets.token_hex(KEY_BYTES),
            created_by=creator_id,
            expires_at=utcnow() + timedelta(hours=expiration_hours),
        )
        saved = self._keys.save(key)
        logger.info(
            "[keys] Admin %s generated key id=%s (expires %s)",
            creator_id, saved.id, saved.expires_at,
        )
        return saved

    def validate_key(self, key: str) -> RegistrationKey:
        record = self._keys.find_by_key(key or "")
        if record is None:
            raise InvalidRegistrationKeyError()
        if record.is_used:
            raise RegistrationKeyUsedError()
        if utcnow() > record.expires_at:
            raise RegistrationKeyExpiredError()
        return record

    def mark_used(self, key: str, user_id: int) -> RegistrationKey:
        record = self._keys.find_by_key(key)
        if record is None:
            raise RegistrationKeyNotFoundError(f"registration key not found: {key[:8]}...")
        used = self._keys.save(
            record.model_copy(update={"is_used": True, "used_by": user_id, "used_at": utcnow()})
        )
        logger.info("[keys] Key id=%s used by user %s", used.id, user_id)
        return used

    def get_keys_by_creator(self, creator_id: int) -> List[RegistrationKey]:
        self._require_admin(creator_id)
        return self._keys.find_by_creator(creator_id)

    def delete_key(self, key_id: int, admin_id: int) -> None:
        self._require_admin(admin_id)
        if not self._keys.delete(key_id):
            raise RegistrationKeyNotFoundError(f"registration key {key_id} not found")
        logger.info("[keys] Admin %s deleted key id=%s", admin_id, key_id)
