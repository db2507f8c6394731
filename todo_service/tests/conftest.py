import os
from typing import Callable, Dict

import pytest
from fastapi.testclient import TestClient

# Ensure we default to in-memory backends for tests to avoid external services
os.environ.setdefault("PERSISTENCE_BACKEND", "memory")
os.environ.setdefault("CACHE_BACKEND", "memory")

from src.todo_api.main import create_app  # noqa: E402
from src.todo_api.settings import Settings  # noqa: E402

TEST_SECRET = "test-jwt-secret-that-is-long-enough-for-hs256"


@pytest.fixture
def settings() -> Settings:
    # bcrypt's minimum cost keeps the suite fast
    return Settings(environment="test", jwt_secret=TEST_SECRET, bcrypt_rounds=4, log_level="WARNING")


@pytest.fixture
def client(settings):
    with TestClient(create_app(settings)) as c:
        yield c


@pytest.fixture
def register(client) -> Callable[..., Dict]:
    """Register a user through the API and return the response body."""

    def _register(username: str = "alice", email: str = None, password: str = "password123") -> Dict:
        res = client.post(
            "/auth/register",
            json={"username": username, "email": email or f"{username}@example.com", "password": password},
        )
        assert res.status_code == 201, res.text
        return res.json()

    return _register


def bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def alice(register) -> Dict:
    body = register("alice")
    return {"user": body["user"], "headers": bearer(body["token"])}


@pytest.fixture
def bob(register) -> Dict:
    body = register("bob")
    return {"user": body["user"], "headers": bearer(body["token"])}
