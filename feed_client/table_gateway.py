"""
Gateway for the table-store deployment, where the client reads and writes
rows directly instead of going through the REST API.

The store exposes generic row operations (select, insert, delete, count) and
one stored procedure that stamps a user's last-active time. Deletes always
carry an owner filter, the way row-level security would scope them.
"""

import logging
import sqlite3
from contextlib import contextmanager
from typing import Any, Dict, Iterable, List, Optional, Sequence

from pydantic import ValidationError

from auth import hash_password, verify_password
from database import stamp_last_active
from database_schemas import ALL_TABLE_SCHEMAS
from feed_client.errors import GatewayError, NotAuthenticatedError
from schemas import (
    ActiveUser,
    CommentCreate,
    CommentResponse,
    CommunityCreate,
    CommunityResponse,
    LikeStatus,
    PostCreate,
    PostResponse,
    PostStats,
    UserCreate,
)

logger = logging.getLogger(__name__)

TABLES = {"users", "profiles", "communities", "posts", "post_likes", "comments"}

DEFAULT_WINDOW_SECONDS = 300
DEFAULT_ACTIVE_LIMIT = 10
STATS_BATCH_SIZE = 500


class TableGateway:
    """Same typed surface as :class:`~feed_client.gateway.RestGateway`, over raw table rows."""

    def __init__(self, db_path: str, create_schema: bool = False):
        self.db_path = db_path
        self.user_id: Optional[int] = None
        if create_schema:
            with self._connect() as conn:
                for schema in ALL_TABLE_SCHEMAS:
                    conn.execute(schema)
                conn.commit()

    @contextmanager
    def _connect(self):
        conn = None
        try:
            conn = sqlite3.connect(self.db_path)
            conn.row_factory = sqlite3.Row
            yield conn
        except sqlite3.Error as exc:
            if conn is not None:
                conn.rollback()
            logger.warning("Table store query failed: %s", exc)
            raise GatewayError(f"Query failed: {exc}") from exc
        finally:
            if conn is not None:
                conn.close()

    # Generic row operations
    @staticmethod
    def _where(filters: Optional[Dict[str, Any]]):
        clauses, params = [], []
        for column, value in (filters or {}).items():
            if isinstance(value, (list, tuple, set)):
                values = list(value)
                if not values:
                    clauses.append("0")
                    continue
                clauses.append(f"{column} IN ({', '.join('?' for _ in values)})")
                params.extend(values)
            elif value is None:
                clauses.append(f"{column} IS NULL")
            else:
                clauses.append(f"{column} = ?")
                params.append(value)
        sql = " WHERE " + " AND ".join(clauses) if clauses else ""
        return sql, params

    @staticmethod
    def _check_table(table: str):
        if table not in TABLES:
            raise GatewayError(f"Unknown table: {table}")

    def select(self, table: str, filters: Optional[Dict[str, Any]] = None, columns: Sequence[str] = ("*",),
               order_by: Optional[str] = None, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        self._check_table(table)
        where, params = self._where(filters)
        sql = f"SELECT {', '.join(columns)} FROM {table}{where}"
        if order_by:
            sql += f" ORDER BY {order_by}"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        with self._connect() as conn:
            return [dict(row) for row in conn.execute(sql, params).fetchall()]

    def insert(self, table: str, row: Dict[str, Any], ignore_conflicts: bool = False) -> int:
        self._check_table(table)
        columns = ", ".join(row)
        placeholders = ", ".join("?" for _ in row)
        verb = "INSERT OR IGNORE" if ignore_conflicts else "INSERT"
        with self._connect() as conn:
            cursor = conn.execute(f"{verb} INTO {table} ({columns}) VALUES ({placeholders})", list(row.values()))
            conn.commit()
            return cursor.lastrowid

    def delete(self, table: str, filters: Dict[str, Any]) -> int:
        self._check_table(table)
        if not filters:
            raise GatewayError("Refusing to delete without a filter")
        where, params = self._where(filters)
        with self._connect() as conn:
            cursor = conn.execute(f"DELETE FROM {table}{where}", params)
            conn.commit()
            return cursor.rowcount

    def count_by(self, table: str, column: str, values: Iterable[Any],
                 filters: Optional[Dict[str, Any]] = None) -> Dict[Any, int]:
        """Row counts grouped by ``column`` for the given values, in one query."""
        self._check_table(table)
        where, params = self._where({column: list(values), **(filters or {})})
        with self._connect() as conn:
            rows = conn.execute(f"SELECT {column}, COUNT(*) FROM {table}{where} GROUP BY {column}", params)
            return {row[0]: row[1] for row in rows.fetchall()}

    def rpc_stamp_last_active(self, status: str = "active"):
        user_id = self._require_user()
        with self._connect() as conn:
            stamp_last_active(conn.cursor(), user_id, status)
            conn.commit()

    def _require_user(self) -> int:
        if self.user_id is None:
            raise NotAuthenticatedError("Not authenticated", 401)
        return self.user_id

    @staticmethod
    def _validated(model, **values):
        # Same validation the REST endpoints apply to request bodies
        try:
            return model(**values)
        except ValidationError as exc:
            raise GatewayError(exc.errors()[0]["msg"], 422) from exc

    # Auth
    def login(self, username: str, password: str) -> int:
        rows = self.select("users", {"username": username.strip()})
        if not rows or not verify_password(password, rows[0]["password_hash"]):
            raise NotAuthenticatedError("Incorrect username or password", 401)
        self.user_id = rows[0]["id"]
        self.rpc_stamp_last_active()
        return self.user_id

    def signup(self, username: str, password: str, full_name: Optional[str] = None) -> int:
        user = self._validated(UserCreate, username=username, password=password, full_name=full_name)
        if self.select("users", {"username": user.username}):
            raise GatewayError("Username already registered", 400)
        user_id = self.insert("users", {"username": user.username, "password_hash": hash_password(user.password)})
        self.insert("profiles", {"user_id": user_id, "full_name": user.full_name or user.username})
        return user_id

    def logout(self):
        self.user_id = None

    def heartbeat(self, status: str = "active"):
        self.rpc_stamp_last_active(status)

    def list_active_users(self, window_seconds: Optional[int] = None, limit: Optional[int] = None) -> List[ActiveUser]:
        self._require_user()
        window = window_seconds or DEFAULT_WINDOW_SECONDS
        with self._connect() as conn:
            rows = conn.execute("""
                SELECT p.user_id, u.username, p.full_name, p.last_active
                FROM profiles p
                JOIN users u ON p.user_id = u.id
                WHERE p.last_active >= datetime('now', ?)
                ORDER BY p.last_active DESC, p.user_id ASC
                LIMIT ?
            """, (f"-{window} seconds", limit or DEFAULT_ACTIVE_LIMIT)).fetchall()
        return [
            ActiveUser(user_id=row[0], username=row[1], full_name=row[2] or row[1], last_active=row[3])
            for row in rows
        ]

    # Feed
    def fetch_feed(self, community_id: Optional[int] = None) -> List[PostResponse]:
        self._require_user()
        filters = {"community_id": community_id} if community_id is not None else None
        posts = self.select("posts", filters, order_by="created_at DESC, id DESC")
        author_ids = list({post["user_id"] for post in posts})
        usernames = {row["id"]: row["username"] for row in self.select("users", {"id": author_ids}, ("id", "username"))}
        full_names = {row["user_id"]: row["full_name"] for row in self.select("profiles", {"user_id": author_ids}, ("user_id", "full_name"))}
        return [
            PostResponse(
                **post,
                username=usernames.get(post["user_id"], ""),
                author_full_name=full_names.get(post["user_id"]) or usernames.get(post["user_id"])
            )
            for post in posts
        ]

    def fetch_post_stats(self, post_ids: Iterable[int]) -> Dict[int, PostStats]:
        user_id = self._require_user()
        post_ids = list(dict.fromkeys(post_ids))
        stats = {}
        # Chunked to stay under SQLite's bound-parameter limit
        for start in range(0, len(post_ids), STATS_BATCH_SIZE):
            batch = post_ids[start:start + STATS_BATCH_SIZE]
            existing = [row["id"] for row in self.select("posts", {"id": batch}, ("id",))]
            likes = self.count_by("post_likes", "post_id", existing)
            comments = self.count_by("comments", "post_id", existing)
            liked = set(self.count_by("post_likes", "post_id", existing, {"user_id": user_id}))
            for post_id in existing:
                stats[post_id] = PostStats(
                    like_count=likes.get(post_id, 0),
                    comment_count=comments.get(post_id, 0),
                    liked=post_id in liked
                )
        return stats

    def create_post(self, title: str, content: str, community_id: Optional[int] = None,
                    technical_area: Optional[str] = None) -> int:
        user_id = self._require_user()
        post = self._validated(PostCreate, title=title, content=content,
                               community_id=community_id, technical_area=technical_area)
        if post.community_id is not None and not self.select("communities", {"id": post.community_id}, ("id",)):
            raise GatewayError("Community not found", 404)
        return self.insert("posts", {
            "title": post.title, "content": post.content, "technical_area": post.technical_area,
            "user_id": user_id, "community_id": post.community_id
        })

    def delete_post(self, post_id: int):
        user_id = self._require_user()
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM posts WHERE id = ? AND user_id = ?", (post_id, user_id))
            if not cursor.rowcount:
                conn.rollback()
                raise GatewayError("Post not found or not yours to delete", 403)
            conn.execute("DELETE FROM post_likes WHERE post_id = ?", (post_id,))
            conn.execute("DELETE FROM comments WHERE post_id = ?", (post_id,))
            conn.commit()

    def _like_status(self, post_id: int, liked: bool) -> LikeStatus:
        count = self.count_by("post_likes", "post_id", [post_id]).get(post_id, 0)
        return LikeStatus(liked=liked, like_count=count)

    def _require_post(self, post_id: int):
        if not self.select("posts", {"id": post_id}, ("id",)):
            raise GatewayError("Post not found", 404)

    def like_post(self, post_id: int) -> LikeStatus:
        user_id = self._require_user()
        self._require_post(post_id)
        self.insert("post_likes", {"post_id": post_id, "user_id": user_id}, ignore_conflicts=True)
        return self._like_status(post_id, True)

    def unlike_post(self, post_id: int) -> LikeStatus:
        user_id = self._require_user()
        self._require_post(post_id)
        self.delete("post_likes", {"post_id": post_id, "user_id": user_id})
        return self._like_status(post_id, False)

    # Comments
    def _comment_responses(self, rows) -> List[CommentResponse]:
        usernames = {
            row["id"]: row["username"]
            for row in self.select("users", {"id": list({r["user_id"] for r in rows})}, ("id", "username"))
        }
        return [CommentResponse(**row, username=usernames.get(row["user_id"], "")) for row in rows]

    def list_comments(self, post_id: int) -> List[CommentResponse]:
        self._require_user()
        self._require_post(post_id)
        return self._comment_responses(self.select("comments", {"post_id": post_id}, order_by="created_at ASC, id ASC"))

    def add_comment(self, post_id: int, content: str) -> CommentResponse:
        user_id = self._require_user()
        comment = self._validated(CommentCreate, content=content)
        self._require_post(post_id)
        comment_id = self.insert("comments", {"post_id": post_id, "user_id": user_id, "content": comment.content})
        return self._comment_responses(self.select("comments", {"id": comment_id}))[0]

    def delete_comment(self, comment_id: int):
        user_id = self._require_user()
        if not self.delete("comments", {"id": comment_id, "user_id": user_id}):
            raise GatewayError("Comment not found or not yours to delete", 403)

    # Communities
    def create_community(self, name: str, description: Optional[str] = None) -> int:
        user_id = self._require_user()
        community = self._validated(CommunityCreate, name=name, description=description)
        if self.select("communities", {"name": community.name}, ("id",)):
            raise GatewayError("Community name already exists", 400)
        return self.insert("communities", {
            "name": community.name, "description": community.description, "creator_id": user_id
        })

    def list_communities(self, sort: str = "name") -> List[CommunityResponse]:
        self._require_user()
        order_by = "created_at DESC, id DESC" if sort == "created_at" else "name COLLATE NOCASE ASC, id ASC"
        return [CommunityResponse(**row) for row in self.select("communities", order_by=order_by)]

    def get_community(self, community_id: int) -> CommunityResponse:
        self._require_user()
        rows = self.select("communities", {"id": community_id})
        if not rows:
            raise GatewayError("Community not found", 404)
        return CommunityResponse(**rows[0])
