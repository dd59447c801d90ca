"""
Guest-related Pydantic schemas
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

class GuestCategory(str, Enum):
    STUDENT = "student"
    PARENT = "parent"
    TEACHER = "teacher"
    VIP = "vip"
    GUEST = "guest"
    FAMILY = "family"

class GuestCreate(BaseModel):
    """Schema for registering a guest"""
    name: str
    category: GuestCategory = GuestCategory.GUEST
    family_size: int = Field(1, ge=1)
    table_number: Optional[str] = None
    dietary: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    notes: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("name must not be blank")
        return value

    @model_validator(mode="after")
    def family_size_only_for_families(self):
        # family_size is only meaningful for family units
        if self.category != GuestCategory.FAMILY:
            self.family_size = 1
        return self

class GuestRegistration(BaseModel):
    """Batch of guests to register for an event"""
    guests: List[GuestCreate] = Field(..., min_length=1)

class GuestResponse(BaseModel):
    """Guest response schema"""
    id: int
    token: str
    name: str
    category: str
    family_size: int
    table_number: Optional[str] = None
    dietary: Optional[str] = None
    checked_in: bool
    checked_in_at: Optional[datetime] = None
    checked_in_by: Optional[int] = None
    scan_count: int
    last_scanned_at: Optional[datetime] = None
    
    class Config:
        from_attributes = True

class CheckInRequest(BaseModel):
    """Token-based check-in request"""
    token: str = Field(..., min_length=1, max_length=64)
