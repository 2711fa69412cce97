"""
Pytest configuration and shared fixtures.
"""

import time

import pytest
from fastapi.testclient import TestClient

from dusty_shelf.auth import create_access_token
from dusty_shelf.config import Settings
from dusty_shelf.main import create_app
from dusty_shelf.models import UserClaims

TEST_SECRET = "dusty-test-secret"


@pytest.fixture
def settings():
    """Settings backed by a private in-memory SQLite database."""
    return Settings(
        jwt_secret=TEST_SECRET,
        database_url="sqlite://",
        db_pool_size=1,
        db_pool_timeout=1.0,
        dusty_profile="debug",
        log_level="WARNING",
        _env_file=None,
    )


@pytest.fixture
def app(settings):
    """Create the application under test."""
    return create_app(settings)


@pytest.fixture
def client(app):
    """Create test client with the lifespan running."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def claims():
    """Claims of an authenticated reader."""
    return UserClaims(id=1, aud="dusty-shelf", sub="reader", exp=int(time.time()) + 3600)


@pytest.fixture
def make_token():
    """Factory signing claims with the test secret (or another one)."""
    def _make_token(user_id=1, expires_in=3600, aud="dusty-shelf", sub="reader", secret=TEST_SECRET):
        claims = UserClaims(id=user_id, aud=aud, sub=sub, exp=int(time.time()) + expires_in)
        return create_access_token(claims, secret)
    return _make_token


@pytest.fixture
def token(claims):
    """A valid bearer token."""
    return create_access_token(claims, TEST_SECRET)


@pytest.fixture
def auth_headers(token):
    """Authorization headers carrying a valid bearer token."""
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def sample_book():
    """Create sample book data for testing."""
    return {
        "id": 10,
        "title": "test book",
        "author": "test author",
        "description": "test description",
        "published": True,
        "encoded": [0],
    }
