"""
User and authentication models.
"""

from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from enum import Enum


class UserRole(str, Enum):
    """Dashboard roles."""
    ADMIN = "admin"
    DOCTOR = "doctor"
    SECRETARY = "secretary"


class UserLogin(BaseModel):
    """User login model."""
    username: str
    password: str


class User(BaseModel):
    """User response model (no password)."""
    id: str = Field(..., alias="_id")
    username: str
    full_name: str
    role: UserRole = UserRole.SECRETARY
    is_active: bool = True
    created_at: datetime

    class Config:
        populate_by_name = True


class Token(BaseModel):
    """JWT token response."""
    access_token: str
    token_type: str = "bearer"
    user: User


class TokenData(BaseModel):
    """JWT token payload data."""
    user_id: Optional[str] = None
    username: Optional[str] = None
    role: Optional[UserRole] = None
