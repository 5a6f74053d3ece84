from fastapi import APIRouter, Depends, Query
from typing import List, Optional
from database import get_db, stamp_last_active
from schemas import StatusUpdate, ActiveUser
from config import get_settings
from utils.route_helpers import get_current_user_id

router = APIRouter(tags=["presence"])

@router.post("/status")
def update_status(status: StatusUpdate, current_user_id: int = Depends(get_current_user_id)):
    """Presence heartbeat: overwrite the caller's last-active time"""
    with get_db() as conn:
        cursor = conn.cursor()
        stamp_last_active(cursor, current_user_id, status.status)
        conn.commit()
    return {"message": "Status updated"}

@router.get("/presence/active", response_model=List[ActiveUser])
def list_active_users(
    window_seconds: Optional[int] = Query(None, ge=1, le=3600),
    limit: Optional[int] = Query(None, ge=1, le=100),
    current_user_id: int = Depends(get_current_user_id)
):
    """Users whose last heartbeat falls inside the trailing window, newest first"""
    settings = get_settings()
    window = window_seconds or settings.online_window_seconds
    limit = limit or settings.active_users_limit
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute("""
            SELECT p.user_id, u.username, p.full_name, p.last_active
            FROM profiles p
            JOIN users u ON p.user_id = u.id
            WHERE p.last_active >= datetime('now', ?)
            ORDER BY p.last_active DESC, p.user_id ASC
            LIMIT ?
        """, (f"-{window} seconds", limit))
        rows = cursor.fetchall()
    return [
        ActiveUser(user_id=row[0], username=row[1], full_name=row[2] or row[1], last_active=row[3])
        for row in rows
    ]
