"""
Operator-related Pydantic schemas
"""

from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, Field

class LoginRequest(BaseModel):
    username: str
    password: str

class UserCreate(BaseModel):
    """Schema for creating an operator account"""
    username: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=6)
    display_name: str = Field(..., min_length=1)
    role: Literal["admin", "volunteer"] = "volunteer"

class UserResponse(BaseModel):
    id: int
    username: str
    display_name: str
    role: str
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True
