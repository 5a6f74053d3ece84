from pydantic import BaseModel, validator
from typing import Optional

class UserCreate(BaseModel):
    username: str
    password: str
    full_name: Optional[str] = None

    @validator('username')
    def validate_username(cls, v):
        v = v.strip()
        if len(v) < 3:
            raise ValueError('Username must be at least 3 characters long')
        if len(v) > 30:
            raise ValueError('Username must be at most 30 characters long')
        return v

    @validator('password')
    def validate_password(cls, v):
        if len(v) < 6:
            raise ValueError('Password must be at least 6 characters long')
        return v

    @validator('full_name')
    def validate_full_name(cls, v):
        if v is not None:
            v = v.strip()
            if len(v) > 100:
                raise ValueError('Full name must be at most 100 characters long')
        return v or None

class LoginRequest(BaseModel):
    username: str
    password: str

class SignupResponse(BaseModel):
    message: str
    user_id: int

class LoginResponse(BaseModel):
    message: str
    user_id: int
    access_token: str
    token_type: str

class UserResponse(BaseModel):
    user_id: int
    username: str
    full_name: str
