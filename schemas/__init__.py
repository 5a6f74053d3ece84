# Schemas package
from .auth import UserCreate, LoginRequest, SignupResponse, LoginResponse, UserResponse
from .posts import PostCreate, PostResponse, PostStats, LikeStatus, CommentCreate, CommentResponse, PostDetailResponse, CreatedResponse
from .communities import CommunityCreate, CommunityResponse
from .presence import StatusUpdate, ActiveUser
