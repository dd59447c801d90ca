"""
Attendance statistics for dashboards and the post-event summary
"""

from typing import Dict, List, Optional

import pandas as pd
from sqlalchemy import Integer, func
from sqlalchemy.orm import Session

from app.models import Guest, GUEST_CATEGORIES
from app.services.repositories import ActivityRepo, EventRepo

class AttendanceService:
    """Read-only attendance queries"""

    @staticmethod
    def get_stats(db: Session, event_id: int) -> Dict:
        """Headline numbers plus a per-category breakdown"""
        rows = db.query(
            Guest.category,
            func.count(Guest.id).label("total"),
            func.sum(Guest.checked_in.cast(Integer)).label("checked_in"),
        ).filter(Guest.event_id == event_id).group_by(Guest.category).all()

        categories = {
            category: {"total": 0, "checked_in": 0}
            for category in GUEST_CATEGORIES
        }
        for row in rows:
            categories[row.category] = {
                "total": row.total,
                "checked_in": int(row.checked_in or 0)
            }

        total = sum(c["total"] for c in categories.values())
        checked_in = sum(c["checked_in"] for c in categories.values())

        # Families count once per member
        headcount = func.coalesce(Guest.family_size, 1)
        total_people = db.query(func.coalesce(func.sum(headcount), 0)).filter(
            Guest.event_id == event_id
        ).scalar()
        checked_in_people = db.query(func.coalesce(func.sum(headcount), 0)).filter(
            Guest.event_id == event_id,
            Guest.checked_in == True
        ).scalar()

        return {
            "total": total,
            "checked_in": checked_in,
            "pending": total - checked_in,
            "percent": round(checked_in * 100 / total) if total else 0,
            "total_people": int(total_people),
            "checked_in_people": int(checked_in_people),
            "duplicate_scans": ActivityRepo.count(db, event_id, "duplicate_scan"),
            "categories": categories
        }

    @staticmethod
    def get_timeline(db: Session, event_id: int) -> List[Dict]:
        """Check-ins per minute, oldest first"""
        times = [
            row.checked_in_at
            for row in db.query(Guest.checked_in_at).filter(
                Guest.event_id == event_id,
                Guest.checked_in == True
            ).all()
        ]
        if not times:
            return []

        counts = pd.Series(pd.to_datetime(times)).dt.floor("min").value_counts().sort_index()
        return [
            {"minute": minute.isoformat(), "count": int(count)}
            for minute, count in counts.items()
        ]

    @staticmethod
    def get_recent_activity(db: Session, event_id: int, limit: int = 50) -> List[Dict]:
        """Activity feed, newest first"""
        return [
            {
                "id": entry.id,
                "action": entry.action,
                "guest_id": entry.guest_id,
                "guest_name": entry.guest.name if entry.guest else None,
                "user_name": entry.user.display_name if entry.user else None,
                "details": entry.details,
                "created_at": entry.created_at.isoformat()
            }
            for entry in ActivityRepo.recent(db, event_id, limit)
        ]

    @staticmethod
    def get_event_summary(db: Session, public_code: str) -> Optional[Dict]:
        """Name-free summary safe to expose on the public dashboard"""
        event = EventRepo.get_by_public_code(db, public_code)
        if not event:
            return None

        stats = AttendanceService.get_stats(db, event.id)
        return {
            "event_name": event.name,
            "event_date": event.date.isoformat(),
            "venue": event.venue,
            "total_guests": stats["total"],
            "checked_in_guests": stats["checked_in"],
            "total_people": stats["total_people"],
            "checked_in_people": stats["checked_in_people"],
            "percent": stats["percent"]
        }
