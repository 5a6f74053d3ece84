from typing import Optional
from database import get_db
from fastapi import Depends, HTTPException, Request
from fastapi.security import OAuth2PasswordBearer
from auth import verify_token
from config import get_settings

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/login", auto_error=False)

def get_user_by_username(username: str, include_password=False):
    with get_db() as conn:
        cursor = conn.cursor()
        if include_password:
            cursor.execute("SELECT id, username, password_hash FROM users WHERE username = ?", (username,))
            row = cursor.fetchone()
            if row:
                return {"id": row[0], "username": row[1], "password_hash": row[2]}
        else:
            cursor.execute("SELECT id, username FROM users WHERE username = ?", (username,))
            row = cursor.fetchone()
            if row:
                return {"id": row[0], "username": row[1]}
        return None

def get_session_token(request: Request, token: Optional[str] = Depends(oauth2_scheme)) -> Optional[str]:
    """Bearer header wins; otherwise fall back to the session cookie"""
    if token:
        return token
    return request.cookies.get(get_settings().session_cookie_name)

def get_current_user_id(token: Optional[str] = Depends(get_session_token)) -> int:
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")
    payload = verify_token(token)
    if not payload:
        raise HTTPException(status_code=401, detail="Invalid token")
    user = get_user_by_username(payload.get("sub", ""))
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return user["id"]

def get_post_owner(post_id: int) -> int:
    """Return the author id of a post, 404 if it does not exist"""
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute("SELECT user_id FROM posts WHERE id = ?", (post_id,))
        row = cursor.fetchone()
        if not row:
            raise HTTPException(status_code=404, detail="Post not found")
        return row[0]
