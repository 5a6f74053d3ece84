from typing import Optional


class FeedClientError(Exception):
    """Base error for the client library; `message` is safe to show to the user."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class GatewayError(FeedClientError):
    """A backend call failed: non-2xx response, transport failure or query error."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class NotAuthenticatedError(GatewayError):
    """No usable session. Callers send the user back to the login view."""


class PermissionDeniedError(FeedClientError):
    pass


class InvalidInputError(FeedClientError):
    pass
