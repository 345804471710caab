"""Session helpers and the ``require_user`` / ``require_admin`` dependencies.

The session cookie is signed by Starlette's SessionMiddleware and carries
``user_id`` plus a cached ``is_admin`` flag. The flag is informational; the
admin check always reads the stored user.
"""
import logging

from fastapi import Depends, Request

from vinyl_vault.container import Container
from vinyl_vault.dependencies import get_container
from vinyl_vault.errors import AdminAccessRequiredError, AuthenticationRequiredError, NotFoundError
from vinyl_vault.users.schemas import User

logger = logging.getLogger(__name__)

SESSION_USER_ID = "user_id"
SESSION_IS_ADMIN = "is_admin"


def start_session(request: Request, user: User) -> None:
    request.session.clear()
    request.session[SESSION_USER_ID] = user.id
    request.session[SESSION_IS_ADMIN] = user.is_admin


def end_session(request: Request) -> None:
    request.session.clear()


def require_user(request: Request, container: Container = Depends(get_container)) -> User:
    user_id = request.session.get(SESSION_USER_ID)
    if user_id is None:
        raise AuthenticationRequiredError()
    try:
        return container.users.get_user(int(user_id))
    except NotFoundError:
        logger.info("[auth] Session refers to missing user %s; clearing", user_id)
        end_session(request)
        raise AuthenticationRequiredError() from None


def require_admin(user: User = Depends(require_user)) -> User:
    if not user.is_admin:
        raise AdminAccessRequiredError(f"user {user.id} is not an admin")
    return user
