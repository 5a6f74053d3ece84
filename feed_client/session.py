import logging
from typing import Callable, List, Optional

from feed_client.errors import InvalidInputError, NotAuthenticatedError

logger = logging.getLogger(__name__)


class ClientSession:
    """Who is logged in, and through which gateway.

    Passed explicitly to the feed, directory and presence objects. Anything
    bound to the session's lifetime (timers, open views) registers a teardown
    callback that :meth:`logout` runs.
    """

    def __init__(self, gateway):
        self.gateway = gateway
        self.user_id: Optional[int] = None
        self.username: Optional[str] = None
        self._teardowns: List[Callable[[], None]] = []

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    def require_user(self) -> int:
        if self.user_id is None:
            raise NotAuthenticatedError("Please sign in to continue")
        return self.user_id

    def login(self, username: str, password: str) -> int:
        if not username.strip() or not password.strip():
            raise InvalidInputError("Please enter username and password")
        self.user_id = self.gateway.login(username.strip(), password)
        self.username = username.strip()
        logger.info("Signed in as %s (id=%s)", self.username, self.user_id)
        return self.user_id

    def signup(self, username: str, password: str, full_name: Optional[str] = None) -> int:
        if not username.strip() or not password.strip():
            raise InvalidInputError("Please enter username and password")
        return self.gateway.signup(username.strip(), password, full_name)

    def add_teardown(self, callback: Callable[[], None]):
        self._teardowns.append(callback)

    def remove_teardown(self, callback: Callable[[], None]):
        if callback in self._teardowns:
            self._teardowns.remove(callback)

    def logout(self):
        """Cancel everything tied to the session, then end it on the backend."""
        try:
            while self._teardowns:
                callback = self._teardowns.pop()
                try:
                    callback()
                except Exception:
                    logger.exception("Teardown %r failed during logout", callback)
            self.gateway.logout()
        finally:
            logger.info("Signed out %s", self.username)
            self.user_id = None
            self.username = None
