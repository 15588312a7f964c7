# schemas/user.py

from pydantic import EmailStr, Field
from datetime import datetime

from casri.core.constants import UserRole
from casri.schemas.common import CamelModel


class UserCreate(CamelModel):
    username: str = Field(..., min_length=2, max_length=100)
    email: EmailStr = Field(..., description="User's email address")
    password: str = Field(..., min_length=8, max_length=72, description="Plain password (will be hashed). Minimum 8 characters.")


class UserResponse(CamelModel):
    id: int
    username: str
    email: str
    role: UserRole
    created_at: datetime


class UserLogin(CamelModel):
    email: EmailStr
    password: str


class AuthResponse(CamelModel):
    success: bool = True
    message: str
    user: UserResponse
    access_token: str
    refresh_token: str


class RoleUpdate(CamelModel):
    role: UserRole
