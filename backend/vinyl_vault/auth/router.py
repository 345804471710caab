"""Account endpoints.

Endpoints:
    POST   /auth/register  - Create an account with a registration key
    POST   /auth/login     - Start a session
    POST   /auth/logout    - End the session
    GET    /auth/me        - Current user
    PUT    /auth/me        - Change username and/or email
    DELETE /auth/me        - Delete the current account
    PUT    /auth/password  - Change password
"""
import logging

from fastapi import APIRouter, Depends, Request

from vinyl_vault.container import Container
from vinyl_vault.dependencies import get_container
from vinyl_vault.users.schemas import (
    ChangePasswordRequest,
    LoginRequest,
    RegisterRequest,
    UpdateUserRequest,
    User,
)

from .dependencies import end_session, require_user, start_session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", status_code=201, response_model=User)
def register(
    body: RegisterRequest,
    request: Request,
    container: Container = Depends(get_container),
) -> User:
    """Register with a one-time key and sign the new user in."""
    user = container.users.register_with_key(
        body.username,
        body.email,
        body.password,
        body.registration_key,
        container.registration_keys,
    )
    start_session(request, user)
    return user


@router.post("/login", response_model=User)
def login(
    body: LoginRequest,
    request: Request,
    container: Container = Depends(get_container),
) -> User:
    user = container.users.login(body.username, body.password)
    start_session(request, user)
    logger.info("[auth] User %s logged in", user.id)
    return user


@router.post("/logout")
def logout(request: Request) -> dict:
    end_session(request)
    return {"message": "logged out"}


@router.get("/me", response_model=User)
def me(user: User = Depends(require_user)) -> User:
    return user


@router.put("/me", response_model=User)
def update_me(
    body: UpdateUserRequest,
    request: Request,
    user: User = Depends(require_user),
    container: Container = Depends(get_container),
) -> User:
    if body.username is not None:
        user = container.users.update_username(user.id, body.username)
    if body.email is not None:
        user = container.users.update_email(user.id, body.email)
    start_session(request, user)
    return user


@router.delete("/me")
def delete_me(
    request: Request,
    user: User = Depends(require_user),
    container: Container = Depends(get_container),
) -> dict:
    container.users.delete_user(user.id)
    end_session(request)
    return {"message": "account deleted"}


@router.put("/password")
def change_password(
    body: ChangePasswordRequest,
    user: User = Depends(require_user),
    container: Container = Depends(get_container),
) -> dict:
    container.users.change_password(user.id, body.old_password, body.new_password)
    return {"message": "password updated"}
