"""Shared test fixtures and configuration for backend tests."""
import pytest
from fastapi.testclient import TestClient

from vinyl_vault.config import (
    AppConfig,
    AuthSettings,
    ConversionSettings,
    DatabaseSettings,
    ServerSettings,
    StorageSettings,
)
from vinyl_vault.db import Database
from vinyl_vault.files import FileStorageService
from vinyl_vault.main import create_app

TEST_PASSWORD = "correct horse battery"


@pytest.fixture
def app_config(tmp_path):
    """Config with every root, the database and the scratch dir under tmp_path."""
    return AppConfig(
        server=ServerSettings(allowed_origins=[]),
        database=DatabaseSettings(path=str(tmp_path / "vinylvault.duckdb")),
        storage=StorageSettings(upload_dir=str(tmp_path / "uploads")),
        auth=AuthSettings(session_secret="test-secret"),
        conversion=ConversionSettings(temp_dir=str(tmp_path / "convert-tmp")),
    )


@pytest.fixture
def storage(app_config):
    service = FileStorageService(app_config.storage)
    service.ensure_directories()
    return service


@pytest.fixture
def db():
    database = Database(":memory:")
    yield database
    database.close()


@pytest.fixture
def client(app_config):
    """TestClient with the lifespan running, so app.state.container exists."""
    with TestClient(create_app(app_config)) as test_client:
        yield test_client


@pytest.fixture
def container(client):
    return client.app.state.container


@pytest.fixture
def admin(container):
    user = container.users.register("admin", "admin@example.com", TEST_PASSWORD)
    return container.users.promote_to_admin(user.id)


def login(test_client: TestClient, username: str, password: str = TEST_PASSWORD) -> None:
    response = test_client.post("/auth/login", json={"username": username, "password": password})
    assert response.status_code == 200, response.text


@pytest.fixture
def user_client(client, container):
    """Client signed in as a regular user named ``alice``."""
    container.users.register("alice", "alice@example.com", TEST_PASSWORD)
    login(client, "alice")
    return client
