"""
Pydantic schemas package
"""

from .common import *
from .event import *
from .guest import *
from .user import *

__all__ = [
    "StandardResponse",
    "ErrorResponse",
    "EventCreate",
    "EventUpdate",
    "EventResponse",
    "GuestCategory",
    "GuestCreate",
    "GuestRegistration",
    "GuestResponse",
    "CheckInRequest",
    "LoginRequest",
    "UserCreate",
    "UserResponse"
]
