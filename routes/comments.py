import logging
from fastapi import APIRouter, HTTPException, Depends, Response
from typing import List
from database import get_db
from schemas import CommentCreate, CommentResponse
from utils.route_helpers import get_current_user_id, get_post_owner

logger = logging.getLogger(__name__)

router = APIRouter(tags=["comments"])

COMMENT_QUERY = """
    SELECT c.id, c.post_id, c.user_id, u.username, c.content, c.created_at
    FROM comments c
    JOIN users u ON c.user_id = u.id
"""

def row_to_comment(row) -> CommentResponse:
    return CommentResponse(
        id=row[0], post_id=row[1], user_id=row[2],
        username=row[3], content=row[4], created_at=row[5]
    )

def get_post_comments(post_id: int) -> List[CommentResponse]:
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute(COMMENT_QUERY + " WHERE c.post_id = ? ORDER BY c.created_at ASC, c.id ASC", (post_id,))
        return [row_to_comment(row) for row in cursor.fetchall()]

@router.get("/post/{post_id}/comments", response_model=List[CommentResponse])
def list_comments(post_id: int, current_user_id: int = Depends(get_current_user_id)):
    get_post_owner(post_id)
    return get_post_comments(post_id)

@router.post("/post/{post_id}/comments", response_model=CommentResponse, status_code=201)
def create_comment(post_id: int, comment: CommentCreate, current_user_id: int = Depends(get_current_user_id)):
    get_post_owner(post_id)
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute(
            "INSERT INTO comments (post_id, user_id, content) VALUES (?, ?, ?)",
            (post_id, current_user_id, comment.content)
        )
        comment_id = cursor.lastrowid
        conn.commit()
        cursor.execute(COMMENT_QUERY + " WHERE c.id = ?", (comment_id,))
        return row_to_comment(cursor.fetchone())

@router.delete("/comment/{comment_id}", status_code=204)
def delete_comment(comment_id: int, current_user_id: int = Depends(get_current_user_id)):
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute("SELECT user_id FROM comments WHERE id = ?", (comment_id,))
        row = cursor.fetchone()
        if not row:
            raise HTTPException(status_code=404, detail="Comment not found")
        if row[0] != current_user_id:
            raise HTTPException(status_code=403, detail="You can only delete your own comment.")
        cursor.execute("DELETE FROM comments WHERE id = ?", (comment_id,))
        conn.commit()
    logger.info("User %s deleted comment %s", current_user_id, comment_id)
    return Response(status_code=204)
