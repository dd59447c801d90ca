"""
Database models package
"""

from .event import Event
from .guest import Guest, GUEST_CATEGORIES
from .user import User
from .activity import ActivityLog

__all__ = ["Event", "Guest", "User", "ActivityLog", "GUEST_CATEGORIES"]
