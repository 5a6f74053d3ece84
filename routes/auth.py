import logging
import sqlite3
from fastapi import APIRouter, HTTPException, Response, Depends
from schemas.auth import UserCreate, LoginRequest, SignupResponse, LoginResponse, UserResponse
from database import get_db, stamp_last_active
from auth import hash_password, verify_password, create_access_token
from config import get_settings
from utils.route_helpers import get_user_by_username, get_current_user_id

logger = logging.getLogger(__name__)

router = APIRouter(tags=["authentication"])

@router.post("/signup", status_code=201, response_model=SignupResponse)
def signup(user: UserCreate):
    if get_user_by_username(user.username):
        raise HTTPException(status_code=400, detail="Username already registered")

    hashed = hash_password(user.password)
    with get_db() as conn:
        cursor = conn.cursor()
        try:
            cursor.execute("INSERT INTO users (username, password_hash) VALUES (?, ?)", (user.username, hashed))
        except sqlite3.IntegrityError:
            raise HTTPException(status_code=400, detail="Username already registered")
        user_id = cursor.lastrowid
        # Auto-create the profile that carries presence
        cursor.execute(
            "INSERT INTO profiles (user_id, full_name) VALUES (?, ?)",
            (user_id, user.full_name or user.username)
        )
        conn.commit()
    logger.info("Registered user %s (id=%s)", user.username, user_id)
    return {"message": "User registered successfully", "user_id": user_id}

@router.post("/login", response_model=LoginResponse)
def login(login_data: LoginRequest, response: Response):
    user = get_user_by_username(login_data.username.strip(), include_password=True)
    if not user or not verify_password(login_data.password, user["password_hash"]):
        logger.info("Failed login for %s", login_data.username)
        raise HTTPException(status_code=401, detail="Incorrect username or password")

    with get_db() as conn:
        cursor = conn.cursor()
        stamp_last_active(cursor, user["id"])
        conn.commit()

    settings = get_settings()
    access_token = create_access_token({"sub": user["username"]})
    response.set_cookie(
        key=settings.session_cookie_name,
        value=access_token,
        httponly=True,
        samesite="lax",
        secure=settings.session_cookie_secure,
        max_age=settings.access_token_expire_minutes * 60,
    )
    return {
        "message": "Login successful",
        "user_id": user["id"],
        "access_token": access_token,
        "token_type": "bearer"
    }

@router.post("/logout")
def logout(response: Response):
    response.delete_cookie(get_settings().session_cookie_name)
    return {"message": "Logged out"}

@router.get("/me", response_model=UserResponse)
def get_current_user(current_user_id: int = Depends(get_current_user_id)):
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute("""
            SELECT u.id, u.username, p.full_name
            FROM users u
            LEFT JOIN profiles p ON p.user_id = u.id
            WHERE u.id = ?
        """, (current_user_id,))
        row = cursor.fetchone()
    return UserResponse(user_id=row[0], username=row[1], full_name=row[2] or row[1])
