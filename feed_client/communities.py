import logging
import threading
from typing import Iterable, List, Optional

from feed_client.errors import InvalidInputError
from schemas import CommunityResponse, PostResponse

logger = logging.getLogger(__name__)


def derive_communities(posts: Iterable[PostResponse]) -> List[CommunityResponse]:
    """Build a community list from the distinct community ids seen in ``posts``.

    For backends without a community listing. Names are placeholders
    (``Community <id>``), order follows first appearance in the feed, and
    communities without posts never show up.
    """
    seen = {}
    for post in posts:
        if post.community_id is not None and post.community_id not in seen:
            seen[post.community_id] = CommunityResponse(
                id=post.community_id, name=f"Community {post.community_id}"
            )
    return list(seen.values())


class CommunityDirectory:
    """Sidebar state: the known communities and the selected one (None = all posts)."""

    def __init__(self, session):
        self.session = session
        self.communities: List[CommunityResponse] = []
        self.selected_id: Optional[int] = None
        self._lock = threading.Lock()

    def refresh(self, sort: str = "name") -> List[CommunityResponse]:
        """Authoritative listing from the community rows."""
        self.session.require_user()
        communities = self.session.gateway.list_communities(sort)
        with self._lock:
            self.communities = communities
        return communities

    def refresh_from_feed(self, posts: Optional[Iterable[PostResponse]] = None) -> List[CommunityResponse]:
        """Derived listing; fetches the unfiltered feed unless ``posts`` is given."""
        self.session.require_user()
        if posts is None:
            posts = self.session.gateway.fetch_feed()
        communities = derive_communities(posts)
        with self._lock:
            self.communities = communities
        return communities

    def select(self, community_id: Optional[int]):
        self.selected_id = community_id

    def create_community(self, name: str, description: Optional[str] = None) -> CommunityResponse:
        creator_id = self.session.require_user()
        name = name.strip()
        if not name:
            raise InvalidInputError("Community name is required")
        description = description.strip() if description and description.strip() else None
        community_id = self.session.gateway.create_community(name, description)
        community = CommunityResponse(id=community_id, name=name, description=description, creator_id=creator_id)
        with self._lock:
            self.communities.append(community)
        self.selected_id = community_id
        logger.info("Created community %s (%s)", community_id, name)
        return community
