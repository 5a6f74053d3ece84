"""Presence heartbeat and the trailing-window active user list."""
from __future__ import annotations

from typing import Callable

from fastapi.testclient import TestClient


def test_heartbeat_marks_user_active(client: TestClient, make_user: Callable[..., dict], backdate) -> None:
    alice = make_user("alice", full_name="Alice A")
    backdate(alice["user_id"], 30)
    assert client.get("/presence/active", headers=alice["headers"]).json() == []

    assert client.post("/status", json={"status": "active"}, headers=alice["headers"]).status_code == 200

    active = client.get("/presence/active", headers=alice["headers"]).json()
    assert [(u["user_id"], u["full_name"]) for u in active] == [(alice["user_id"], "Alice A")]


def test_stale_users_are_excluded(client: TestClient, make_user: Callable[..., dict], backdate) -> None:
    alice = make_user("alice")
    bob = make_user("bob")
    carol = make_user("carol")
    backdate(bob["user_id"], 6)
    backdate(carol["user_id"], 4)

    active = client.get("/presence/active", headers=alice["headers"]).json()
    ids = [u["user_id"] for u in active]
    assert bob["user_id"] not in ids
    # Newest heartbeat first
    assert ids == [alice["user_id"], carol["user_id"]]


def test_active_list_respects_limit(client: TestClient, make_user: Callable[..., dict]) -> None:
    users = [make_user(f"user{i}") for i in range(3)]
    active = client.get("/presence/active", params={"limit": 2}, headers=users[0]["headers"]).json()
    assert len(active) == 2


def test_status_requires_session(client: TestClient) -> None:
    assert client.post("/status", json={"status": "active"}).status_code == 401
