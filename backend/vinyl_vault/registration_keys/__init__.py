from .repository import RegistrationKeyRepository
from .schemas import RegistrationKey
from .service import RegistrationKeyService

__all__ = ["RegistrationKey", "RegistrationKeyRepository", "RegistrationKeyService"]
