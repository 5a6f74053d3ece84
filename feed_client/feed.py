"""
Feed aggregation: posts plus per-post like/comment counts and the current
user's liked flag.

Counts are never stored on the post rows. Every :meth:`FeedAggregator.load_feed`
recomputes them from the like and comment rows with one batched stats call;
between reloads the cached numbers are adjusted locally by likes and comments
made through this object.
"""

import logging
import threading
from typing import Dict, List, Optional

from feed_client.errors import GatewayError, InvalidInputError, PermissionDeniedError
from schemas import CommentResponse, PostResponse, PostStats

logger = logging.getLogger(__name__)


class FeedAggregator:
    def __init__(self, session):
        self.session = session
        self.posts: List[PostResponse] = []
        self.stats: Dict[int, PostStats] = {}
        self.community_id: Optional[int] = None
        self._generation = 0
        self._closed = False
        self._lock = threading.Lock()

    @property
    def gateway(self):
        return self.session.gateway

    def close(self):
        """Tear down: responses that arrive afterwards are dropped."""
        with self._lock:
            self._closed = True

    def load_feed(self, community_id: Optional[int] = None) -> List[PostResponse]:
        """Fetch posts (newest first) and their stats, replacing the cached feed.

        If another load starts before this one finishes, or the feed is
        closed meanwhile, this result is discarded and the cache is left alone.
        """
        self.session.require_user()
        with self._lock:
            self._generation += 1
            generation = self._generation

        posts = self.gateway.fetch_feed(community_id)
        stats = self.gateway.fetch_post_stats([post.id for post in posts])

        with self._lock:
            if self._closed or generation != self._generation:
                logger.debug("Discarding stale feed load (generation %s)", generation)
                return posts
            self.posts = posts
            self.stats = stats
            self.community_id = community_id
        return posts

    def reload(self) -> List[PostResponse]:
        return self.load_feed(self.community_id)

    def stats_for(self, post_id: int) -> PostStats:
        with self._lock:
            stats = self.stats.get(post_id)
            return stats.model_copy() if stats else PostStats()

    def get_post(self, post_id: int) -> Optional[PostResponse]:
        for post in self.posts:
            if post.id == post_id:
                return post
        return None

    def can_delete(self, post: PostResponse) -> bool:
        """Whether the delete control should be offered for this post."""
        return self.session.is_authenticated and post.user_id == self.session.user_id

    def toggle_like(self, post_id: int) -> PostStats:
        """Like the post if the cache says it is not liked, otherwise unlike it.

        The cached count moves first. The backend's count replaces it once the
        call succeeds; on failure the cached stats are put back and the error
        is re-raised.
        """
        self.session.require_user()
        with self._lock:
            previous = self.stats.get(post_id, PostStats())
            liking = not previous.liked
            optimistic = PostStats(
                like_count=max(0, previous.like_count + (1 if liking else -1)),
                comment_count=previous.comment_count,
                liked=liking
            )
            self.stats[post_id] = optimistic

        try:
            if liking:
                status = self.gateway.like_post(post_id)
            else:
                status = self.gateway.unlike_post(post_id)
        except GatewayError:
            with self._lock:
                if self.stats.get(post_id) is optimistic:
                    self.stats[post_id] = previous
            raise

        with self._lock:
            current = self.stats.get(post_id, optimistic)
            confirmed = PostStats(
                like_count=status.like_count,
                comment_count=current.comment_count,
                liked=status.liked
            )
            if not self._closed:
                self.stats[post_id] = confirmed
        return confirmed

    def create_post(self, title: str, content: str, community_id: Optional[int] = None,
                    technical_area: Optional[str] = None) -> int:
        self.session.require_user()
        if not title.strip() or not content.strip():
            raise InvalidInputError("Title and content are required")
        post_id = self.gateway.create_post(
            title.strip(), content.strip(), community_id,
            technical_area.strip() if technical_area and technical_area.strip() else None
        )
        logger.info("Created post %s", post_id)
        self.reload()
        return post_id

    def delete_post(self, post_id: int):
        post = self.get_post(post_id)
        if post is None:
            raise InvalidInputError("Post is not in the current feed")
        if not self.can_delete(post):
            raise PermissionDeniedError("You can only delete your own posts")
        self.gateway.delete_post(post_id)
        with self._lock:
            self.posts = [p for p in self.posts if p.id != post_id]
            self.stats.pop(post_id, None)

    def load_comments(self, post_id: int) -> List[CommentResponse]:
        self.session.require_user()
        comments = self.gateway.list_comments(post_id)
        with self._lock:
            if post_id in self.stats and not self._closed:
                self.stats[post_id] = self.stats[post_id].model_copy(update={"comment_count": len(comments)})
        return comments

    def add_comment(self, post_id: int, content: str) -> CommentResponse:
        self.session.require_user()
        if not content.strip():
            raise InvalidInputError("Comment cannot be empty")
        comment = self.gateway.add_comment(post_id, content.strip())
        self._adjust_comment_count(post_id, 1)
        return comment

    def can_delete_comment(self, comment: CommentResponse) -> bool:
        return self.session.is_authenticated and comment.user_id == self.session.user_id

    def delete_comment(self, comment: CommentResponse):
        if not self.can_delete_comment(comment):
            raise PermissionDeniedError("You can only delete your own comments")
        self.gateway.delete_comment(comment.id)
        self._adjust_comment_count(comment.post_id, -1)

    def _adjust_comment_count(self, post_id: int, delta: int):
        with self._lock:
            if self._closed:
                return
            stats = self.stats.get(post_id, PostStats())
            self.stats[post_id] = stats.model_copy(
                update={"comment_count": max(0, stats.comment_count + delta)}
            )
