"""
Guest model
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship

from app.core.db import Base

GUEST_CATEGORIES = ("student", "parent", "teacher", "vip", "guest", "family")

class Guest(Base):
    __tablename__ = "guests"
    
    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    token = Column(String(64), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    category = Column(String(20), nullable=False, default="guest")
    family_size = Column(Integer, nullable=False, default=1)
    table_number = Column(String(50), nullable=True)
    dietary = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    notes = Column(String(500), nullable=True)

    # Check-in state; written only by CheckInService
    checked_in = Column(Boolean, nullable=False, default=False)
    checked_in_at = Column(DateTime, nullable=True)
    checked_in_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    scan_count = Column(Integer, nullable=False, default=0)
    last_scanned_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    
    # Relationships
    event = relationship("Event", back_populates="guests")
    checked_in_user = relationship("User")

    __table_args__ = (
        CheckConstraint(
            "category IN ('student', 'parent', 'teacher', 'vip', 'guest', 'family')",
            name="ck_guests_category"
        ),
        CheckConstraint("family_size >= 1", name="ck_guests_family_size"),
        CheckConstraint(
            "(checked_in AND checked_in_at IS NOT NULL) OR (NOT checked_in AND checked_in_at IS NULL)",
            name="ck_guests_checked_in_at"
        ),
    )
