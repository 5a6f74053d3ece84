import logging
import sqlite3
from fastapi import APIRouter, HTTPException, Depends, Query
from typing import List, Literal
from database import get_db
from schemas import CommunityCreate, CommunityResponse, CreatedResponse
from utils.route_helpers import get_current_user_id

logger = logging.getLogger(__name__)

router = APIRouter(tags=["communities"])

COMMUNITY_ORDER = {
    "name": "name COLLATE NOCASE ASC, id ASC",
    "created_at": "created_at DESC, id DESC"
}

def get_community_by_id(community_id: int):
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute(
            "SELECT id, name, description, creator_id, created_at FROM communities WHERE id = ?",
            (community_id,)
        )
        row = cursor.fetchone()
        if row:
            return {
                "id": row[0], "name": row[1], "description": row[2],
                "creator_id": row[3], "created_at": row[4]
            }
        return None

@router.post("/community", response_model=CreatedResponse)
def create_community(
    community: CommunityCreate,
    current_user_id: int = Depends(get_current_user_id)
):
    with get_db() as conn:
        cursor = conn.cursor()
        try:
            cursor.execute(
                "INSERT INTO communities (name, description, creator_id) VALUES (?, ?, ?)",
                (community.name, community.description, current_user_id)
            )
        except sqlite3.IntegrityError:
            # name is UNIQUE
            raise HTTPException(status_code=400, detail="Community name already exists")
        community_id = cursor.lastrowid
        conn.commit()
    logger.info("User %s created community %s (%s)", current_user_id, community_id, community.name)
    return {"message": "Community created", "id": community_id}

@router.get("/communities", response_model=List[CommunityResponse])
def list_communities(
    sort: Literal["name", "created_at"] = Query("name"),
    current_user_id: int = Depends(get_current_user_id)
):
    order_by = COMMUNITY_ORDER[sort]
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute(f"SELECT id, name, description, creator_id, created_at FROM communities ORDER BY {order_by}")
        rows = cursor.fetchall()
    return [
        CommunityResponse(id=row[0], name=row[1], description=row[2], creator_id=row[3], created_at=row[4])
        for row in rows
    ]

@router.get("/community/{community_id}", response_model=CommunityResponse)
def get_community(community_id: int, current_user_id: int = Depends(get_current_user_id)):
    community = get_community_by_id(community_id)
    if not community:
        raise HTTPException(status_code=404, detail="Community not found")
    return community
