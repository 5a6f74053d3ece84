"""Presence tracker scheduling, cancellation and late-result handling."""
from __future__ import annotations

import threading
import time
from datetime import datetime

import pytest

from feed_client import ClientSession, GatewayError, NotAuthenticatedError, PresenceTracker, ScheduledTask
from schemas import ActiveUser


class FakeGateway:
    def __init__(self) -> None:
        self.heartbeats = 0
        self.polls = 0
        self.fail_heartbeat = False
        self.block_next_poll = False
        self.poll_started = threading.Event()
        self.release_poll = threading.Event()
        self.logged_out = False

    def login(self, username: str, password: str) -> int:
        return 1

    def logout(self) -> None:
        self.logged_out = True

    def heartbeat(self, status: str = "active") -> None:
        self.heartbeats += 1
        if self.fail_heartbeat:
            raise GatewayError("HTTP 500", 500)

    def list_active_users(self, window_seconds=None, limit=None):
        self.polls += 1
        username = "alice"
        if self.block_next_poll:
            self.block_next_poll = False
            self.poll_started.set()
            self.release_poll.wait(5)
            username = "late"
        return [ActiveUser(user_id=1, username=username, full_name=username, last_active=datetime(2024, 1, 1))]


def _wait_for(predicate, timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


@pytest.fixture
def session() -> ClientSession:
    session = ClientSession(FakeGateway())
    session.login("alice", "password123")
    return session


def test_scheduled_task_runs_until_cancelled() -> None:
    calls = []
    task = ScheduledTask("tick", 0.01, lambda: calls.append(1))
    task.start()
    assert _wait_for(lambda: len(calls) >= 3)
    task.cancel()
    assert not task.running
    count = len(calls)
    time.sleep(0.05)
    assert len(calls) == count


def test_scheduled_task_rejects_bad_interval() -> None:
    with pytest.raises(ValueError):
        ScheduledTask("bad", 0, lambda: None)


def test_tracker_requires_a_session() -> None:
    with pytest.raises(NotAuthenticatedError):
        PresenceTracker(ClientSession(FakeGateway())).start()


def test_start_sends_heartbeat_and_polls_immediately(session: ClientSession) -> None:
    updates = []
    tracker = PresenceTracker(session, heartbeat_interval=60, poll_interval=60, on_update=updates.append)
    tracker.start()
    try:
        assert _wait_for(lambda: session.gateway.heartbeats == 1 and len(updates) == 1)
        assert [u.username for u in tracker.active_users] == ["alice"]
    finally:
        tracker.stop()


def test_heartbeat_failures_do_not_stop_the_schedule(session: ClientSession) -> None:
    session.gateway.fail_heartbeat = True
    tracker = PresenceTracker(session, heartbeat_interval=0.01, poll_interval=60)
    tracker.start()
    try:
        assert _wait_for(lambda: session.gateway.heartbeats >= 3)
    finally:
        tracker.stop()


def test_logout_cancels_the_timers(session: ClientSession) -> None:
    tracker = PresenceTracker(session, heartbeat_interval=0.01, poll_interval=0.01)
    tracker.start()
    assert _wait_for(lambda: session.gateway.heartbeats >= 2)

    session.logout()
    assert not tracker.running
    assert session.gateway.logged_out
    beats = session.gateway.heartbeats
    time.sleep(0.05)
    assert session.gateway.heartbeats == beats


def test_poll_finishing_after_stop_is_discarded(session: ClientSession) -> None:
    updates = []
    tracker = PresenceTracker(session, heartbeat_interval=60, poll_interval=60, on_update=updates.append)
    session.gateway.block_next_poll = True

    result = {}
    worker = threading.Thread(target=lambda: result.setdefault("users", tracker.refresh()))
    worker.start()
    assert session.gateway.poll_started.wait(2)

    tracker.start()
    assert _wait_for(lambda: len(updates) == 1)
    tracker.stop()
    session.gateway.release_poll.set()
    worker.join(2)

    assert [u.username for u in result["users"]] == ["late"]
    assert [u.username for u in tracker.active_users] == ["alice"]
    assert len(updates) == 1


def test_failing_update_callback_keeps_polling(session: ClientSession) -> None:
    calls = []

    def _broken_view(users) -> None:
        calls.append(users)
        raise RuntimeError("view went away")

    tracker = PresenceTracker(session, heartbeat_interval=60, poll_interval=0.01, on_update=_broken_view)
    tracker.start()
    try:
        assert _wait_for(lambda: len(calls) >= 3)
    finally:
        tracker.stop()


def test_logout_finishes_when_a_teardown_fails(session: ClientSession) -> None:
    tracker = PresenceTracker(session, heartbeat_interval=0.01, poll_interval=60)
    tracker.start()

    def _broken_teardown() -> None:
        raise RuntimeError("boom")

    session.add_teardown(_broken_teardown)
    session.logout()

    assert not tracker.running
    assert session.gateway.logged_out
    assert not session.is_authenticated
