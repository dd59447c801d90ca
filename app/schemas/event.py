"""
Event-related Pydantic schemas
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel

class EventCreate(BaseModel):
    """Schema for creating an event"""
    name: str
    date: datetime
    venue: Optional[str] = None

class EventUpdate(BaseModel):
    """Schema for updating event settings"""
    name: Optional[str] = None
    date: Optional[datetime] = None
    venue: Optional[str] = None
    is_active: Optional[bool] = None

class EventResponse(BaseModel):
    """Basic event response"""
    id: int
    name: str
    date: datetime
    venue: Optional[str] = None
    public_code: str
    is_active: bool
    created_at: datetime
    
    class Config:
        from_attributes = True
