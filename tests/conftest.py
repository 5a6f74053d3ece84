"""Shared fixtures: a fresh SQLite file per test and helpers to create users."""
from __future__ import annotations

import os
import tempfile
from typing import Callable, Iterator

os.environ.setdefault("DATABASE_PATH", os.path.join(tempfile.gettempdir(), "knowledge_hub_import.sqlite3"))
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

import database  # noqa: E402
from main import app  # noqa: E402


@pytest.fixture(autouse=True)
def _fresh_database(tmp_path, monkeypatch) -> Iterator[str]:
    db_path = str(tmp_path / "test.sqlite3")
    monkeypatch.setattr(database, "DB_NAME", db_path)
    database.init_db()
    yield db_path


@pytest.fixture
def db_path(_fresh_database: str) -> str:
    return _fresh_database


@pytest.fixture
def client() -> Iterator[TestClient]:
    with TestClient(app) as test_client:
        yield test_client


def _signup(client: TestClient, username: str, password: str = "password123", full_name: str | None = None) -> int:
    payload = {"username": username, "password": password}
    if full_name:
        payload["full_name"] = full_name
    response = client.post("/signup", json=payload)
    assert response.status_code == 201, response.text
    return response.json()["user_id"]


def _login(client: TestClient, username: str, password: str = "password123") -> dict:
    response = client.post("/login", json={"username": username, "password": password})
    assert response.status_code == 200, response.text
    return response.json()


@pytest.fixture
def make_user(client: TestClient) -> Callable[..., dict]:
    """Sign a user up and log them in; returns user_id and Bearer headers."""

    def _make(username: str, password: str = "password123", full_name: str | None = None) -> dict:
        user_id = _signup(client, username, password, full_name)
        token = _login(client, username, password)["access_token"]
        return {"user_id": user_id, "headers": {"Authorization": f"Bearer {token}"}}

    return _make


def backdate_presence(user_id: int, minutes: int) -> None:
    with database.get_db() as conn:
        conn.execute(
            "UPDATE profiles SET last_active = datetime('now', ?) WHERE user_id = ?",
            (f"-{minutes} minutes", user_id),
        )
        conn.commit()


@pytest.fixture
def backdate() -> Callable[[int, int], None]:
    return backdate_presence
