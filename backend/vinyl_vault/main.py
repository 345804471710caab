"""Vinyl Vault Backend Application.

Entry point for the Vinyl Vault HTTP service: a personal music archive
where users upload albums and tracks, stream or download them, and fetch
whole albums as ZIP archives.

Modules:
    - auth: cookie sessions, registration and login
    - registration_keys: admin-minted one-time invitation keys
    - albums / tracks: records and the files they own
    - files: storage core and file-serving routes
    - conversion: ffmpeg transcoding on download
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware

from vinyl_vault import __version__
from vinyl_vault.albums.router import router as albums_router
from vinyl_vault.auth.router import router as auth_router
from vinyl_vault.config import AppConfig, load_config
from vinyl_vault.container import build_container
from vinyl_vault.errors import (
    AdminOnlyError,
    ConflictError,
    ConversionUnavailableError,
    FileTooLargeError,
    NotFoundError,
    NotOwnerError,
    PathEscapeError,
    RegistrationKeyError,
    ResourceLimitExceededError,
    StoredFileNotFoundError,
    UnauthorizedError,
    ValidationError,
    VinylVaultError,
)
from vinyl_vault.files.router import router as files_router
from vinyl_vault.registration_keys.router import router as keys_router
from vinyl_vault.tracks.router import router as tracks_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

for _noisy in ("httpx", "httpcore", "multipart", "python_multipart"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

# Most specific first; the first match wins.
_STATUS_BY_ERROR = [
    (FileTooLargeError, 413),
    (ValidationError, 400),
    (RegistrationKeyError, 400),
    (ResourceLimitExceededError, 400),
    (PathEscapeError, 404),
    (StoredFileNotFoundError, 404),
    (NotFoundError, 404),
    (NotOwnerError, 403),
    (AdminOnlyError, 403),
    (UnauthorizedError, 401),
    (ConflictError, 409),
    (ConversionUnavailableError, 503),
]


def status_for(exc: VinylVaultError) -> int:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 500


async def _vinyl_vault_error_handler(request: Request, exc: VinylVaultError) -> JSONResponse:
    status = status_for(exc)
    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc, exc_info=exc)
    elif isinstance(exc, PathEscapeError):
        logger.warning("%s %s: %s", request.method, request.url.path, exc)
    else:
        logger.info("%s %s -> %d: %s", request.method, request.url.path, status, exc)
    return JSONResponse({"error": exc.public_message}, status_code=status)


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        loc = [str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path", "form")]
        detail = first.get("msg", "invalid value")
        message = f"{'.'.join(loc)}: {detail}" if loc else detail
    else:
        message = "invalid request"
    logger.info("%s %s -> 400: %s", request.method, request.url.path, message)
    return JSONResponse({"error": message}, status_code=400)


def create_app(config: Optional[AppConfig] = None) -> FastAPI:
    """Build the FastAPI application.

    Args:
        config: Settings to use. Loaded from the settings file when omitted.
    """
    if config is None:
        config = load_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager for startup/shutdown events."""
        # Apply configured log level to the root logger.
        configured_level = getattr(logging, config.logging.level.upper(), None)
        if configured_level is not None:
            logging.getLogger().setLevel(configured_level)
            logger.info("Root logger level set to %s", config.logging.level.upper())

        container = build_container(config)
        app.state.container = container
        logger.info(
            "Vinyl Vault ready on http://%s:%s (uploads in %s)",
            config.server.host,
            config.server.port,
            container.storage.upload_dir,
        )

        yield  # Application runs here

        container.close()
        logger.info("Application shutdown complete")

    app = FastAPI(
        title="Vinyl Vault API",
        description="Personal music archive: albums, tracks, streaming and downloads",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        SessionMiddleware,
        secret_key=config.auth.session_secret,
        session_cookie="vinylvault_session",
        max_age=config.auth.session_max_age,
        same_site="lax",
    )
    if config.server.allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.server.allowed_origins,
            allow_credentials="*" not in config.server.allowed_origins,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.add_exception_handler(VinylVaultError, _vinyl_vault_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)

    # Register all routers
    app.include_router(auth_router)
    app.include_router(keys_router)
    app.include_router(albums_router)
    app.include_router(tracks_router)
    app.include_router(files_router)

    @app.get("/health")
    async def health() -> dict:
        """Health check endpoint.

        Returns:
            dict: Status object indicating the server is running.
        """
        return {"status": "ok"}

    return app


def run() -> None:
    """Serve the application with uvicorn using the loaded settings."""
    import uvicorn

    config = load_config()
    uvicorn.run(create_app(config), host=config.server.host, port=config.server.port)


if __name__ == "__main__":
    run()
