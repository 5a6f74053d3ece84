from pydantic import BaseModel, validator
from typing import List, Optional
from datetime import datetime

MAX_TITLE_LENGTH = 200
MAX_CONTENT_LENGTH = 10000
MAX_TECHNICAL_AREA_LENGTH = 100
MAX_COMMENT_LENGTH = 2000

def _require_text(v: str, field: str, max_length: int) -> str:
    v = v.strip()
    if not v:
        raise ValueError(f'{field} cannot be empty')
    if len(v) > max_length:
        raise ValueError(f'{field} must be at most {max_length} characters long')
    return v

class PostCreate(BaseModel):
    title: str
    content: str
    community_id: Optional[int] = None
    technical_area: Optional[str] = None

    @validator('title')
    def validate_title(cls, v):
        return _require_text(v, 'Title', MAX_TITLE_LENGTH)

    @validator('content')
    def validate_content(cls, v):
        return _require_text(v, 'Content', MAX_CONTENT_LENGTH)

    @validator('technical_area')
    def validate_technical_area(cls, v):
        if v is None or not v.strip():
            return None
        return _require_text(v, 'Technical area', MAX_TECHNICAL_AREA_LENGTH)

class PostResponse(BaseModel):
    id: int
    title: str
    content: str
    technical_area: Optional[str] = None
    user_id: int
    username: str
    author_full_name: Optional[str] = None
    community_id: Optional[int] = None
    created_at: datetime

class PostStats(BaseModel):
    like_count: int = 0
    comment_count: int = 0
    liked: bool = False

class LikeStatus(BaseModel):
    liked: bool
    like_count: int

class CommentCreate(BaseModel):
    content: str

    @validator('content')
    def validate_content(cls, v):
        return _require_text(v, 'Comment', MAX_COMMENT_LENGTH)

class CommentResponse(BaseModel):
    id: int
    post_id: int
    user_id: int
    username: str
    content: str
    created_at: datetime

class PostDetailResponse(PostResponse):
    like_count: int
    comment_count: int
    liked: bool
    comments: List[CommentResponse] = []

class CreatedResponse(BaseModel):
    message: str
    id: int
