"""DuckDB-backed user repository."""
import logging
from typing import Optional

from vinyl_vault.db import Database, utcnow
from vinyl_vault.errors import ConflictError, UserNotFoundError

from .schemas import User

logger = logging.getLogger(__name__)

_COLUMNS = ["id", "username", "email", "password_hash", "is_admin", "created_at", "updated_at"]
_SELECT = f"SELECT {', '.join(_COLUMNS)} FROM users"


class UserRepository:
    def __init__(self, db: Database) -> None:
        self._db = db

    def find_by_id(self, user_id: int) -> Optional[User]:
        return self._one(f"{_SELECT} WHERE id = ?", [user_id])

    def find_by_username(self, username: str) -> Optional[User]:
        return self._one(f"{_SELECT} WHERE username = ?", [username])

    def find_by_email(self, email: str) -> Optional[User]:
        return self._one(f"{_SELECT} WHERE lower(email) = lower(?)", [email])

    def save(self, user: User) -> User:
        """Insert a new user or update an existing one.

        Raises:
            ConflictError: username or email already taken by another user.
        """
        now = utcnow()
        with self._db.transaction():
            taken = self._db.fetchone(
                """
                SELECT username = ? FROM users
                WHERE (username = ? OR lower(email) = lower(?)) AND id IS DISTINCT FROM ?
                LIMIT 1
                """,
                [user.username, user.username, user.email, user.id],
            )
            if taken is not None:
                field = "username" if taken[0] else "email"
                logger.info("[users] Rejected duplicate %s for %s", field, user.username)
                raise ConflictError(f"{field} already in use")

            if user.id is None:
                row = self._db.fetchone(
                    """
                    INSERT INTO users (username, email, password_hash, is_admin, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    RETURNING id
                    """,
                    [user.username, user.email, user.password_hash, user.is_admin, now, now],
                )
                user_id = row[0]
            else:
                self._db.execute(
                    """
                    UPDATE users
                    SET username = ?, email = ?, password_hash = ?, is_admin = ?, updated_at = ?
                    WHERE id = ?
                    """,
                    [user.username, user.email, user.password_hash, user.is_admin, now, user.id],
                )
                user_id = user.id

        saved = self.find_by_id(user_id)
        if saved is None:
            raise UserNotFoundError(f"user with id {user_id} not found")
        return saved

    def delete(self, user_id: int) -> bool:
        row = self._db.fetchone("DELETE FROM users WHERE id = ? RETURNING id", [user_id])
        return row is not None

    def _one(self, sql: str, params: list) -> Optional[User]:
        row = self._db.fetchone(sql, params)
        return User(**dict(zip(_COLUMNS, row))) if row else None
