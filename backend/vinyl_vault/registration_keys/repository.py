"""DuckDB-backed registration key repository."""
from typing import List, Optional

from vinyl_vault.db import Database, utcnow
from vinyl_vault.errors import RegistrationKeyNotFoundError

from .schemas import RegistrationKey

_COLUMNS = [
    "id", "key", "created_by", "used_by", "is_used",
    "expires_at", "used_at", "created_at", "updated_at",
]
_SELECT = f"SELECT {', '.join(_COLUMNS)} FROM registration_keys"


class RegistrationKeyRepository:
    def __init__(self, db: Database) -> None:
        self._db = db

    def find_by_id(self, key_id: int) -> Optional[RegistrationKey]:
        return self._one(f"{_SELECT} WHERE id = ?", [key_id])

    def find_by_key(self, key: str) -> Optional[RegistrationKey]:
        return self._one(f"{_SELECT} WHERE key = ?", [key])

    def find_by_creator(self, creator_id: int) -> List[RegistrationKey]:
        rows = self._db.fetchall(
            f"{_SELECT} WHERE created_by = ? ORDER BY created_at DESC, id DESC", [creator_id]
        )
        return [self._to_model(r) for r in rows]

    def save(self, key: RegistrationKey) -> RegistrationKey:
        now = utcnow()
        if key.id is None:
            row = self._db.fetchone(
                """
                INSERT INTO registration_keys
                  (key, created_by, used_by, is_used, expires_at, used_at, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                RETURNING id
                """,
                [key.key, key.created_by, key.used_by, key.is_used,
                 key.expires_at, key.used_at, now, now],
            )
            key_id = row[0]
        else:
            self._db.execute(
                """
                UPDATE registration_keys
                SET used_by = ?, is_used = ?, expires_at = ?, used_at = ?, updated_at = ?
                WHERE id = ?
                """,
                [key.used_by, key.is_used, key.expires_at, key.used_at, now, key.id],
            )
            key_id = key.id
        saved = self.find_by_id(key_id)
        if saved is None:
            raise RegistrationKeyNotFoundError(f"registration key {key_id} not found")
        return saved

    def delete(self, key_id: int) -> bool:
        row = self._db.fetchone("DELETE FROM registration_keys WHERE id = ? RETURNING id", [key_id])
        return row is not None

    def _one(self, sql: str, params: list) -> Optional[RegistrationKey]:
        row = self._db.fetchone(sql, params)
        return self._to_model(row) if row else None

    @staticmethod
    def _to_model(row: tuple) -> RegistrationKey:
        return RegistrationKey(**dict(zip(_COLUMNS, row)))
