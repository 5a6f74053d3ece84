"""
HTTP gateway to the knowledge hub REST API.

Every method maps to one endpoint and returns parsed models. Any failure is
raised as a single :class:`GatewayError`; nothing is retried.
"""

import logging
from typing import Dict, Iterable, List, Optional

import requests

from feed_client.errors import GatewayError, NotAuthenticatedError
from schemas import (
    ActiveUser,
    CommentResponse,
    CommunityResponse,
    LikeStatus,
    PostDetailResponse,
    PostResponse,
    PostStats,
    UserResponse,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10

# Matches the server's per-request cap on /feed/stats
STATS_BATCH_SIZE = 500


def error_message(response) -> str:
    """Best human-readable message from an error response body."""
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        for key in ("error", "message"):
            if data.get(key):
                return str(data[key])
        detail = data.get("detail")
        if isinstance(detail, str) and detail:
            return detail
        # FastAPI validation errors carry a list of problems
        if isinstance(detail, list) and detail:
            first = detail[0]
            if isinstance(first, dict) and first.get("msg"):
                return str(first["msg"])
    return f"HTTP {response.status_code}"


class RestGateway:
    """Typed wrapper over the REST endpoints.

    ``http`` is anything with a ``requests.Session``-compatible ``request``
    method. The session keeps the server's session cookie between calls; the
    access token from :meth:`login` is also sent as a Bearer header.
    """

    def __init__(self, base_url: str, http=None, timeout: float = DEFAULT_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.http = http if http is not None else requests.Session()
        self.timeout = timeout
        self.access_token: Optional[str] = None
        self.user_id: Optional[int] = None

    def _request(self, method: str, endpoint: str, json=None, params=None):
        headers = {"Accept": "application/json"}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        url = f"{self.base_url}{endpoint}"
        try:
            response = self.http.request(
                method, url, json=json, params=params, headers=headers, timeout=self.timeout
            )
        except requests.RequestException as exc:
            logger.warning("%s %s failed: %s", method, endpoint, exc)
            raise GatewayError(f"Could not reach the server: {exc}") from exc

        if not 200 <= response.status_code < 300:
            message = error_message(response)
            logger.info("%s %s -> %s %s", method, endpoint, response.status_code, message)
            if response.status_code == 401:
                raise NotAuthenticatedError(message, response.status_code)
            raise GatewayError(message, response.status_code)

        if response.status_code == 204:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise GatewayError("Malformed response from server", response.status_code) from exc

    # Auth endpoints
    def login(self, username: str, password: str) -> int:
        data = self._request("POST", "/login", json={"username": username, "password": password})
        self.access_token = data.get("access_token")
        self.user_id = data["user_id"]
        return self.user_id

    def signup(self, username: str, password: str, full_name: Optional[str] = None) -> int:
        payload = {"username": username, "password": password}
        if full_name:
            payload["full_name"] = full_name
        return self._request("POST", "/signup", json=payload)["user_id"]

    def logout(self):
        try:
            self._request("POST", "/logout")
        finally:
            self.access_token = None
            self.user_id = None

    def me(self) -> UserResponse:
        return UserResponse.model_validate(self._request("GET", "/me"))

    def heartbeat(self, status: str = "active"):
        self._request("POST", "/status", json={"status": status})

    def list_active_users(self, window_seconds: Optional[int] = None, limit: Optional[int] = None) -> List[ActiveUser]:
        params = {}
        if window_seconds is not None:
            params["window_seconds"] = window_seconds
        if limit is not None:
            params["limit"] = limit
        data = self._request("GET", "/presence/active", params=params)
        return [ActiveUser.model_validate(item) for item in data]

    # Feed endpoints
    def fetch_feed(self, community_id: Optional[int] = None) -> List[PostResponse]:
        params = {"community_id": community_id} if community_id is not None else None
        data = self._request("GET", "/feed", params=params)
        return [PostResponse.model_validate(item) for item in data]

    def fetch_post_stats(self, post_ids: Iterable[int]) -> Dict[int, PostStats]:
        post_ids = list(dict.fromkeys(post_ids))
        stats = {}
        for start in range(0, len(post_ids), STATS_BATCH_SIZE):
            batch = post_ids[start:start + STATS_BATCH_SIZE]
            data = self._request("GET", "/feed/stats", params={"post_id": batch})
            stats.update({int(key): PostStats.model_validate(value) for key, value in data.items()})
        return stats

    def get_post(self, post_id: int) -> PostDetailResponse:
        return PostDetailResponse.model_validate(self._request("GET", f"/post/{post_id}"))

    # Post endpoints
    def create_post(self, title: str, content: str, community_id: Optional[int] = None,
                    technical_area: Optional[str] = None) -> int:
        payload = {"title": title, "content": content, "community_id": community_id,
                   "technical_area": technical_area}
        return self._request("POST", "/post", json=payload)["id"]

    def delete_post(self, post_id: int):
        self._request("DELETE", f"/post/{post_id}")

    def like_post(self, post_id: int) -> LikeStatus:
        return LikeStatus.model_validate(self._request("POST", f"/post/{post_id}/like"))

    def unlike_post(self, post_id: int) -> LikeStatus:
        return LikeStatus.model_validate(self._request("DELETE", f"/post/{post_id}/like"))

    # Comment endpoints
    def list_comments(self, post_id: int) -> List[CommentResponse]:
        data = self._request("GET", f"/post/{post_id}/comments")
        return [CommentResponse.model_validate(item) for item in data]

    def add_comment(self, post_id: int, content: str) -> CommentResponse:
        data = self._request("POST", f"/post/{post_id}/comments", json={"content": content})
        return CommentResponse.model_validate(data)

    def delete_comment(self, comment_id: int):
        self._request("DELETE", f"/comment/{comment_id}")

    # Community endpoints
    def create_community(self, name: str, description: Optional[str] = None) -> int:
        return self._request("POST", "/community", json={"name": name, "description": description})["id"]

    def list_communities(self, sort: str = "name") -> List[CommunityResponse]:
        data = self._request("GET", "/communities", params={"sort": sort})
        return [CommunityResponse.model_validate(item) for item in data]

    def get_community(self, community_id: int) -> CommunityResponse:
        return CommunityResponse.model_validate(self._request("GET", f"/community/{community_id}"))
