"""
Presence: a periodic heartbeat marking the current user active, and a
periodic poll for everyone active in the trailing window.

Both run as :class:`ScheduledTask` threads owned by a
:class:`PresenceTracker`. Stopping the tracker (directly or by logging out)
cancels them; there is no "offline" call, so a user simply drops out of
everyone's list once their last heartbeat is older than the window.
"""

import logging
import threading
from typing import Callable, List, Optional

from feed_client.errors import FeedClientError
from schemas import ActiveUser

logger = logging.getLogger(__name__)

HEARTBEAT_INTERVAL_SECONDS = 120
POLL_INTERVAL_SECONDS = 30
ACTIVE_WINDOW_SECONDS = 300
ACTIVE_USERS_LIMIT = 10


class ScheduledTask:
    """Run ``func`` every ``interval`` seconds on a daemon thread until cancelled."""

    def __init__(self, name: str, interval: float, func: Callable[[], None], run_immediately: bool = True):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.name = name
        self.interval = interval
        self.func = func
        self.run_immediately = run_immediately
        self._cancelled = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        if self._thread is not None:
            raise RuntimeError(f"{self.name} already started")
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()

    def cancel(self, timeout: Optional[float] = 5.0):
        self._cancelled.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)

    def _run(self):
        if self.run_immediately and not self._cancelled.is_set():
            self._run_once()
        while not self._cancelled.wait(self.interval):
            self._run_once()

    def _run_once(self):
        try:
            self.func()
        except FeedClientError as exc:
            # Shown as a transient notice; the next tick tries again
            logger.warning("%s failed: %s", self.name, exc.message)
        except Exception:
            logger.exception("%s raised unexpectedly; will retry next tick", self.name)


class PresenceTracker:
    def __init__(self, session,
                 heartbeat_interval: float = HEARTBEAT_INTERVAL_SECONDS,
                 poll_interval: float = POLL_INTERVAL_SECONDS,
                 window_seconds: int = ACTIVE_WINDOW_SECONDS,
                 limit: int = ACTIVE_USERS_LIMIT,
                 on_update: Optional[Callable[[List[ActiveUser]], None]] = None):
        self.session = session
        self.heartbeat_interval = heartbeat_interval
        self.poll_interval = poll_interval
        self.window_seconds = window_seconds
        self.limit = limit
        self.on_update = on_update
        self.active_users: List[ActiveUser] = []
        self._tasks: List[ScheduledTask] = []
        self._stopped = True
        self._epoch = 0
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return not self._stopped

    def start(self):
        self.session.require_user()
        with self._lock:
            if not self._stopped:
                return
            self._stopped = False
            self._tasks = [
                ScheduledTask("presence-heartbeat", self.heartbeat_interval, self.heartbeat),
                ScheduledTask("presence-poll", self.poll_interval, self.refresh),
            ]
        for task in self._tasks:
            task.start()
        self.session.add_teardown(self.stop)
        logger.debug("Presence tracking started for user %s", self.session.user_id)

    def stop(self):
        with self._lock:
            if self._stopped:
                return
            self._stopped = True
            self._epoch += 1
            tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        self.session.remove_teardown(self.stop)
        logger.debug("Presence tracking stopped")

    def heartbeat(self):
        self.session.gateway.heartbeat()

    def refresh(self) -> List[ActiveUser]:
        with self._lock:
            epoch = self._epoch
        users = self.session.gateway.list_active_users(self.window_seconds, self.limit)
        with self._lock:
            # A poll that returns after stop() must not touch the torn-down view
            if epoch != self._epoch:
                logger.debug("Discarding presence poll that finished after stop")
                return users
            self.active_users = users
        if self.on_update is not None:
            self.on_update(users)
        return users
