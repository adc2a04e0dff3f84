import pytest
from typing import Generator, List
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# It is important to set environment variables before importing app modules
import os
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["ENVIRONMENT"] = "testing"

from app import models  # noqa: F401
from app.core.exceptions import ImageHostError
from app.db.session import Base, get_db, make_engine
from app.images import StoredImage, get_image_host
from app.main import app
from tests.utils import signup

# One shared in-memory database for the whole test run
engine = make_engine("sqlite://", poolclass=StaticPool)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class FakeImageHost:
    """
    In-memory stand-in for the Cloudinary client. Records every call and can be
    told to fail uploads or deletes.
    """

    def __init__(self):
        self.uploads: List[str] = []
        self.destroyed: List[str] = []
        self.fail_upload = False
        self.fail_destroy = False
        self._counter = 0

    def upload(self, data: bytes, filename: str = "image", content_type: str = "image/jpeg") -> StoredImage:
        if self.fail_upload:
            raise ImageHostError("Failed to upload image")
        self._counter += 1
        public_id = f"recipes/test-{self._counter}"
        self.uploads.append(public_id)
        return StoredImage(url=f"https://images.example.com/{public_id}.png", public_id=public_id)

    def destroy(self, public_id: str) -> None:
        if self.fail_destroy:
            raise ImageHostError(f"Failed to delete image {public_id}")
        self.destroyed.append(public_id)


@pytest.fixture(scope="function", autouse=True)
def reset_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture(scope="function")
def db() -> Generator:
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture(scope="function")
def image_host() -> FakeImageHost:
    return FakeImageHost()


@pytest.fixture(scope="function")
def client(image_host) -> Generator:
    def override_get_db():
        session = TestingSessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_image_host] = lambda: image_host
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def alice(client):
    return signup(client, name="Alice", email="alice@example.com")


@pytest.fixture
def bob(client):
    return signup(client, name="Bob", email="bob@example.com")


@pytest.fixture
def carol(client):
    return signup(client, name="Carol", email="carol@example.com")
