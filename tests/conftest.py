import pytest
from fastapi.testclient import TestClient

from image_api.core.config import Settings
from image_api.main import create_app

TEST_SECRET = "test-secret-key-with-enough-length-1234"


@pytest.fixture
def settings(tmp_path):
    return Settings(
        jwt_secret=TEST_SECRET,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        images_dir=tmp_path / "images",
        log_level="WARNING",
    )


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def images_dir(settings):
    return settings.images_dir


def register_and_login(client, email="ana@example.com", password="s3cret!", username="ana"):
    r = client.post("/api/users/register", json={"username": username, "email": email, "password": password})
    assert r.status_code == 201, r.text
    user_id = r.json()["userId"]
    r = client.post("/api/users/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.text
    return user_id, r.json()["token"]


@pytest.fixture
def user(client):
    """(user_id, token) for a freshly registered user."""
    return register_and_login(client)
