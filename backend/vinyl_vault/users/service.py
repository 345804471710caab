"""UserService: account registration, login and profile management.

Passwords are hashed with werkzeug's ``generate_password_hash``; the hash
never leaves this module or the repository.
"""
import logging
import re
from typing import TYPE_CHECKING, Optional

from werkzeug.security import check_password_hash, generate_password_hash

from vinyl_vault.errors import (
    InvalidCredentialsError,
    RequiredFieldError,
    UserNotFoundError,
    ValidationError,
)

from .repository import UserRepository
from .schemas import User

if TYPE_CHECKING:
    from vinyl_vault.registration_keys.service import RegistrationKeyService

logger = logging.getLogger(__name__)

PASSWORD_MIN_LENGTH = 8

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class UserService:
    def __init__(
        self,
        repository: UserRepository,
        password_min_length: int = PASSWORD_MIN_LENGTH,
    ) -> None:
        self._repo = repository
        self._password_min_length = password_min_length

    # -----------------------------------------------------------------------
    # Registration / login
    # -----------------------------------------------------------------------

    def register(self, username: str, email: str, password: str) -> User:
        """Create an account.

        Raises:
            ValidationError: Empty username, malformed email or short password.
            ConflictError: Username or email already taken.
        """
        username = self._check_username(username)
        email = self._check_email(email)
        self._check_password(password)

        user = User(
            username=username,
            email=email,
            password_hash=generate_password_hash(password),
        )
        saved = self._repo.save(user)
        logger.info("[users] Registered user %s (id=%s)", saved.username, saved.id)
        return saved

    def register_with_key(
        self,
        username: str,
        email: str,
        password: str,
        registration_key: str,
        key_service: "RegistrationKeyService",
    ) -> User:
        """Validate a registration key, create the account, then consume the key."""
        key_service.validate_key(registration_key)
        user = self.register(username, email, password)
        key_service.mark_used(registration_key, user.id)
        return user

    def login(self, username: str, password: str) -> User:
        user = self._repo.find_by_username(username or "")
        if user is None or not check_password_hash(user.password_hash, password or ""):
            logger.info("[users] Failed login for %s", username)
            raise InvalidCredentialsError()
        return user

    # -----------------------------------------------------------------------
    # Profile
    # -----------------------------------------------------------------------

    def get_user(self, user_id: int) -> User:
        user = self._repo.find_by_id(user_id)
        if user is None:
            raise UserNotFoundError(f"user with id {user_id} not found")
        return user

    def find_by_username(self, username: str) -> Optional[User]:
        return self._repo.find_by_username(username)

    def update_username(self, user_id: int, username: str) -> User:
        user = self.get_user(user_id)
        return self._repo.save(user.model_copy(update={"username": self._check_username(username)}))

    def update_email(self, user_id: int, email: str) -> User:
        user = self.get_user(user_id)
        return self._repo.save(user.model_copy(update={"email": self._check_email(email)}))

    def change_password(self, user_id: int, old_password: str, new_password: str) -> None:
        """Replace the password after verifying the current one.

        Raises:
            InvalidCredentialsError: ``old_password`` does not match.
            ValidationError: ``new_password`` is too short.
        """
        user = self.get_user(user_id)
        if not check_password_hash(user.password_hash, old_password or ""):
            raise InvalidCredentialsError("incorrect current password")
        self._check_password(new_password)
        self._repo.save(user.model_copy(update={"password_hash": generate_password_hash(new_password)}))
        logger.info("[users] Password changed for user %s", user_id)

    def delete_user(self, user_id: int) -> None:
        self.get_user(user_id)
        self._repo.delete(user_id)
        logger.info("[users] Deleted user %s", user_id)

    def promote_to_admin(self, user_id: int) -> User:
        user = self.get_user(user_id)
        if user.is_admin:
            return user
        promoted = self._repo.save(user.model_copy(update={"is_admin": True}))
        logger.info("[users] Promoted user %s to admin", promoted.username)
        return promoted

    # -----------------------------------------------------------------------
    # Validation helpers
    # -----------------------------------------------------------------------

    @staticmethod
    def _check_username(username: str) -> str:
        username = (username or "").strip()
        if not username:
            raise RequiredFieldError("username")
        return username

    @staticmethod
    def _check_email(email: str) -> str:
        email = (email or "").strip()
        if not email:
            raise RequiredFieldError("email")
        if not _EMAIL_RE.match(email):
            raise ValidationError("email", "invalid email address")
        return email

    def _check_password(self, password: str) -> None:
        if len(password or "") < self._password_min_length:
            raise ValidationError(
                "password",
                f"password needs at least {self._password_min_length} characters",
            )
