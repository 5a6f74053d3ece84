import logging
from fastapi import APIRouter, HTTPException, Depends, Query, Response
from typing import Dict, List, Optional
from database import get_db
from schemas import PostCreate, PostResponse, PostStats, LikeStatus, PostDetailResponse, CreatedResponse
from utils.route_helpers import get_current_user_id, get_post_owner
from routes.comments import get_post_comments

logger = logging.getLogger(__name__)

router = APIRouter(tags=["posts"])

MAX_STATS_BATCH = 500

POST_COLUMNS = """
    p.id, p.title, p.content, p.technical_area, p.user_id, u.username,
    pr.full_name, p.community_id, p.created_at
"""

POST_JOINS = """
    FROM posts p
    JOIN users u ON p.user_id = u.id
    LEFT JOIN profiles pr ON pr.user_id = p.user_id
"""

def row_to_post(row) -> dict:
    return {
        "id": row[0], "title": row[1], "content": row[2], "technical_area": row[3],
        "user_id": row[4], "username": row[5], "author_full_name": row[6] or row[5],
        "community_id": row[7], "created_at": row[8]
    }

def get_post_stats(post_ids: List[int], current_user_id: int) -> Dict[int, PostStats]:
    """Like count, comment count and liked-by-me for many posts in one query"""
    if not post_ids:
        return {}
    placeholders = ", ".join("?" for _ in post_ids)
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute(f"""
            SELECT p.id,
                   (SELECT COUNT(*) FROM post_likes l WHERE l.post_id = p.id),
                   (SELECT COUNT(*) FROM comments c WHERE c.post_id = p.id),
                   EXISTS(SELECT 1 FROM post_likes l WHERE l.post_id = p.id AND l.user_id = ?)
            FROM posts p
            WHERE p.id IN ({placeholders})
        """, (current_user_id, *post_ids))
        rows = cursor.fetchall()
    return {
        row[0]: PostStats(like_count=row[1], comment_count=row[2], liked=bool(row[3]))
        for row in rows
    }

def get_like_count(cursor, post_id: int) -> int:
    cursor.execute("SELECT COUNT(*) FROM post_likes WHERE post_id = ?", (post_id,))
    return cursor.fetchone()[0]

@router.get("/feed", response_model=List[PostResponse])
def get_feed(
    community_id: Optional[int] = Query(None),
    current_user_id: int = Depends(get_current_user_id)
):
    """All posts, newest first, optionally limited to one community"""
    query = f"SELECT {POST_COLUMNS} {POST_JOINS}"
    params = []
    if community_id is not None:
        query += " WHERE p.community_id = ?"
        params.append(community_id)
    query += " ORDER BY p.created_at DESC, p.id DESC"
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute(query, params)
        rows = cursor.fetchall()
    return [row_to_post(row) for row in rows]

@router.get("/feed/stats", response_model=Dict[int, PostStats])
def get_feed_stats(
    post_id: List[int] = Query([]),
    current_user_id: int = Depends(get_current_user_id)
):
    if len(post_id) > MAX_STATS_BATCH:
        raise HTTPException(status_code=400, detail=f"At most {MAX_STATS_BATCH} posts per request")
    return get_post_stats(list(dict.fromkeys(post_id)), current_user_id)

@router.post("/post", response_model=CreatedResponse)
def create_post(post: PostCreate, current_user_id: int = Depends(get_current_user_id)):
    with get_db() as conn:
        cursor = conn.cursor()
        if post.community_id is not None:
            cursor.execute("SELECT id FROM communities WHERE id = ?", (post.community_id,))
            if not cursor.fetchone():
                raise HTTPException(status_code=404, detail="Community not found")
        cursor.execute(
            "INSERT INTO posts (title, content, technical_area, user_id, community_id) VALUES (?, ?, ?, ?, ?)",
            (post.title, post.content, post.technical_area, current_user_id, post.community_id)
        )
        post_id = cursor.lastrowid
        conn.commit()
    logger.info("User %s created post %s", current_user_id, post_id)
    return {"message": "Post created", "id": post_id}

@router.get("/post/{post_id}", response_model=PostDetailResponse)
def get_post(post_id: int, current_user_id: int = Depends(get_current_user_id)):
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute(f"SELECT {POST_COLUMNS} {POST_JOINS} WHERE p.id = ?", (post_id,))
        row = cursor.fetchone()
    if not row:
        raise HTTPException(status_code=404, detail="Post not found")
    stats = get_post_stats([post_id], current_user_id).get(post_id, PostStats())
    return PostDetailResponse(
        **row_to_post(row),
        like_count=stats.like_count,
        comment_count=stats.comment_count,
        liked=stats.liked,
        comments=get_post_comments(post_id)
    )

@router.delete("/post/{post_id}", status_code=204)
def delete_post(post_id: int, current_user_id: int = Depends(get_current_user_id)):
    if get_post_owner(post_id) != current_user_id:
        raise HTTPException(status_code=403, detail="You can only delete your own post.")
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute("DELETE FROM post_likes WHERE post_id = ?", (post_id,))
        cursor.execute("DELETE FROM comments WHERE post_id = ?", (post_id,))
        cursor.execute("DELETE FROM posts WHERE id = ?", (post_id,))
        conn.commit()
    logger.info("User %s deleted post %s", current_user_id, post_id)
    return Response(status_code=204)

@router.post("/post/{post_id}/like", response_model=LikeStatus)
def like_post(post_id: int, current_user_id: int = Depends(get_current_user_id)):
    get_post_owner(post_id)
    with get_db() as conn:
        cursor = conn.cursor()
        # The (post, user) pair is unique, so a repeated like is a no-op
        cursor.execute("INSERT OR IGNORE INTO post_likes (post_id, user_id) VALUES (?, ?)", (post_id, current_user_id))
        conn.commit()
        return {"liked": True, "like_count": get_like_count(cursor, post_id)}

@router.delete("/post/{post_id}/like", response_model=LikeStatus)
def unlike_post(post_id: int, current_user_id: int = Depends(get_current_user_id)):
    get_post_owner(post_id)
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute("DELETE FROM post_likes WHERE post_id = ? AND user_id = ?", (post_id, current_user_id))
        conn.commit()
        return {"liked": False, "like_count": get_like_count(cursor, post_id)}
