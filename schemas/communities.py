from pydantic import BaseModel, validator
from typing import Optional
from datetime import datetime

class CommunityCreate(BaseModel):
    name: str
    description: Optional[str] = None

    @validator('name')
    def validate_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('Community name cannot be empty')
        if len(v) > 50:
            raise ValueError('Community name must be at most 50 characters long')
        return v

    @validator('description')
    def validate_description(cls, v):
        if v is not None:
            v = v.strip()
            if len(v) > 500:
                raise ValueError('Description must be at most 500 characters long')
        return v or None

class CommunityResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    creator_id: Optional[int] = None
    created_at: Optional[datetime] = None
