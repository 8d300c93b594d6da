"""pytest configuration and shared fixtures."""
import os

# In-memory database; must be set before `models` creates the storage singleton
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["APP_ENV"] = "test"

from datetime import timedelta

import pytest

from api import create_app
from models import storage
from services.auth_service import AuthService
from services.token_service import TokenService
from services.user_store import UserStore

ACCESS_SECRET = "test-access-secret-0123456789abcdef"
REFRESH_SECRET = "test-refresh-secret-0123456789abcdef"


@pytest.fixture(autouse=True)
def fresh_db():
    """Empty schema for every test."""
    storage.reset()
    yield
    storage.close()


@pytest.fixture
def app():
    return create_app("test")


@pytest.fixture
def client(app):
    with app.test_client() as c:
        yield c


def make_token_service(access_expires=timedelta(minutes=15), refresh_expires=timedelta(days=1)):
    return TokenService(
        access_secret=ACCESS_SECRET,
        access_expires=access_expires,
        refresh_secret=REFRESH_SECRET,
        refresh_expires=refresh_expires,
    )


@pytest.fixture
def token_service_factory():
    return make_token_service


@pytest.fixture
def token_service():
    return make_token_service()


@pytest.fixture
def store():
    return UserStore(storage)


@pytest.fixture
def auth_service(token_service, store):
    return AuthService(token_service, store)


@pytest.fixture
def alice(auth_service):
    """Registered client account alice / pw1234567."""
    return auth_service.register("alice", "pw1234567")
