"""Global pytest configuration and fixtures.

Provides an isolated application per test: its own SQLite file, response
cache and connection registry.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from pathlib import Path

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from momento.api.app import create_app
from momento.config import Settings


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        env="test",
        database_url=f"sqlite+aiosqlite:///{tmp_path}/test.db",
        log_json=False,
        log_level="WARNING",
        cache_sweep_interval=3600,
    )


@pytest.fixture
def app(settings: Settings) -> FastAPI:
    return create_app(settings)


@pytest.fixture
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def make_user(client: TestClient) -> Callable[[str], dict]:
    """Create a user through the API and return its JSON body."""

    def _make(username: str) -> dict:
        response = client.post(
            "/api/users", json={"username": username, "fullName": username.title()}
        )
        assert response.status_code == 201, response.text
        return response.json()

    return _make


@pytest.fixture
def make_post(client: TestClient) -> Callable[..., dict]:
    """Create a post as user_id and return its JSON body."""

    def _make(user_id: str, caption: str = "hello", **fields) -> dict:
        response = client.post(
            "/api/posts",
            json={"caption": caption, **fields},
            headers={"X-User-Id": user_id},
        )
        assert response.status_code == 201, response.text
        return response.json()

    return _make
