from .repository import UserRepository
from .schemas import User
from .service import UserService

__all__ = ["User", "UserRepository", "UserService"]
