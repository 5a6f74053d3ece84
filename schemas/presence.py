from pydantic import BaseModel, validator
from datetime import datetime

class StatusUpdate(BaseModel):
    status: str = "active"

    @validator('status')
    def validate_status(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('Status cannot be empty')
        if len(v) > 30:
            raise ValueError('Status must be at most 30 characters long')
        return v

class ActiveUser(BaseModel):
    user_id: int
    username: str
    full_name: str
    last_active: datetime
