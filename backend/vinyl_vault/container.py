"""Service container: every long-lived component, wired from one AppConfig.

Built once by the application lifespan (or by the admin CLI) and stored on
``app.state.container``. Request handlers reach services only through it.
"""
import logging
from dataclasses import dataclass
from pathlib import Path

from vinyl_vault.albums.repository import AlbumRepository
from vinyl_vault.albums.service import AlbumService
from vinyl_vault.config import AppConfig
from vinyl_vault.conversion import ConversionService
from vinyl_vault.db import Database
from vinyl_vault.files import FileStorageService
from vinyl_vault.registration_keys import RegistrationKeyRepository, RegistrationKeyService
from vinyl_vault.tracks.repository import TrackRepository
from vinyl_vault.tracks.service import TrackService
from vinyl_vault.users import UserRepository, UserService

logger = logging.getLogger(__name__)


@dataclass
class Container:
    config: AppConfig
    db: Database
    storage: FileStorageService
    conversion: ConversionService
    users: UserService
    albums: AlbumService
    tracks: TrackService
    registration_keys: RegistrationKeyService

    def close(self) -> None:
        self.db.close()


def build_container(config: AppConfig) -> Container:
    """Open the database, create the managed roots and wire the services."""
    db_path = config.database.path
    if db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    db = Database(db_path)

    storage = FileStorageService(config.storage)
    storage.ensure_directories()

    conversion = ConversionService(
        temp_dir=config.conversion_temp_dir,
        ffmpeg_binary=config.conversion.ffmpeg_binary,
        timeout_seconds=config.conversion.timeout_seconds,
    )
    if not conversion.is_available():
        logger.warning("ffmpeg not found; format conversion on download is disabled")

    user_repo = UserRepository(db)
    album_repo = AlbumRepository(db)
    track_repo = TrackRepository(db)
    key_repo = RegistrationKeyRepository(db)

    return Container(
        config=config,
        db=db,
        storage=storage,
        conversion=conversion,
        users=UserService(user_repo, config.auth.password_min_length),
        albums=AlbumService(album_repo, track_repo, storage),
        tracks=TrackService(track_repo, album_repo, storage),
        registration_keys=RegistrationKeyService(key_repo, user_repo),
    )
