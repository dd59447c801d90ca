"""
Repository layer over the SQL guest registry.

All writes to the check-in columns of ``guests`` go through
``GuestRepo.mark_checked_in`` and ``GuestRepo.record_scan``; both are single
SQL UPDATE statements so concurrent requests never interleave a read and a
write of the same row in application code.
"""

from __future__ import annotations

import secrets
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session, joinedload

from app.core.config import settings
from app.models import ActivityLog, Event, Guest, User


def generate_token(length: Optional[int] = None) -> str:
    """Opaque URL-safe guest token"""
    length = length or settings.TOKEN_LENGTH
    return secrets.token_urlsafe(length)[:length]


# -------- Event repository --------

class EventRepo:
    @staticmethod
    def get_active(db: Session) -> Optional[Event]:
        return db.query(Event).filter(Event.is_active == True).order_by(Event.id).first()

    @staticmethod
    def get_by_id(db: Session, event_id: int) -> Optional[Event]:
        return db.query(Event).filter(Event.id == event_id).first()

    @staticmethod
    def get_by_public_code(db: Session, public_code: str) -> Optional[Event]:
        return db.query(Event).filter(Event.public_code == public_code).first()

    @staticmethod
    def create(db: Session, name: str, date: datetime, venue: Optional[str] = None) -> Event:
        public_code = secrets.token_urlsafe(8)
        while EventRepo.get_by_public_code(db, public_code):
            public_code = secrets.token_urlsafe(8)

        event = Event(name=name, date=date, venue=venue, public_code=public_code, is_active=True)
        db.add(event)
        db.commit()
        db.refresh(event)
        return event

    @staticmethod
    def update(db: Session, event: Event, **fields) -> Event:
        for key, value in fields.items():
            if value is not None:
                setattr(event, key, value)
        db.commit()
        db.refresh(event)
        return event


# -------- Guest repository --------

class GuestRepo:
    @staticmethod
    def get_by_token(db: Session, token: str) -> Optional[Guest]:
        return db.query(Guest).filter(Guest.token == token).first()

    @staticmethod
    def get_by_id(db: Session, event_id: int, guest_id: int) -> Optional[Guest]:
        return db.query(Guest).filter(Guest.id == guest_id, Guest.event_id == event_id).first()

    @staticmethod
    def list_for_event(db: Session, event_id: int) -> List[Guest]:
        return db.query(Guest).filter(Guest.event_id == event_id).order_by(Guest.name).all()

    @staticmethod
    def search(db: Session, event_id: int, search: Optional[str] = None, offset: int = 0, limit: int = 50):
        """Return (page of guests ordered by name, total matching)"""
        query = db.query(Guest).filter(Guest.event_id == event_id)
        if search:
            query = query.filter(Guest.name.ilike(f"%{search}%"))

        total = query.count()
        guests = query.order_by(Guest.name).offset(offset).limit(limit).all()
        return guests, total

    @staticmethod
    def register(db: Session, event_id: int, guests: Iterable) -> List[Guest]:
        """Insert guests with fresh unique tokens in one transaction"""
        created = []
        issued = set()
        for data in guests:
            token = generate_token()
            while token in issued or GuestRepo.get_by_token(db, token):
                token = generate_token()
            issued.add(token)

            guest = Guest(
                event_id=event_id,
                token=token,
                name=data.name,
                category=getattr(data.category, "value", data.category),
                family_size=data.family_size,
                table_number=data.table_number,
                dietary=data.dietary,
                phone=data.phone,
                email=data.email,
                notes=data.notes,
                checked_in=False,
                scan_count=0
            )
            db.add(guest)
            created.append(guest)

        try:
            db.commit()
        except Exception:
            db.rollback()
            raise

        for guest in created:
            db.refresh(guest)
        return created

    @staticmethod
    def mark_checked_in(db: Session, guest_id: int, user_id: Optional[int], now: datetime) -> bool:
        """Conditionally flip a guest to checked in.

        Only matches while ``checked_in`` is still false, so of any number of
        concurrent callers exactly one sees ``True``. Does not commit.
        """
        result = db.execute(
            update(Guest)
            .where(Guest.id == guest_id, Guest.checked_in == False)
            .values(
                checked_in=True,
                checked_in_at=now,
                checked_in_by=user_id,
                scan_count=Guest.scan_count + 1,
                last_scanned_at=now
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    def record_scan(db: Session, guest_id: int, now: datetime) -> None:
        """Count a scan of an already checked-in guest. Does not commit."""
        db.execute(
            update(Guest)
            .where(Guest.id == guest_id)
            .values(scan_count=Guest.scan_count + 1, last_scanned_at=now)
            .execution_options(synchronize_session=False)
        )

    @staticmethod
    def delete_all(db: Session, event_id: int) -> int:
        guest_ids = [row.id for row in db.query(Guest.id).filter(Guest.event_id == event_id).all()]
        if guest_ids:
            db.query(ActivityLog).filter(ActivityLog.guest_id.in_(guest_ids)).update(
                {ActivityLog.guest_id: None}, synchronize_session=False
            )
        deleted = db.query(Guest).filter(Guest.event_id == event_id).delete(synchronize_session=False)
        db.commit()
        return deleted


# -------- Activity repository --------

class ActivityRepo:
    @staticmethod
    def log(
        db: Session,
        event_id: int,
        action: str,
        guest_id: Optional[int] = None,
        user_id: Optional[int] = None,
        details: Optional[str] = None
    ) -> ActivityLog:
        """Stage an activity row in the current transaction"""
        entry = ActivityLog(
            event_id=event_id,
            action=action,
            guest_id=guest_id,
            user_id=user_id,
            details=details,
            created_at=datetime.utcnow()
        )
        db.add(entry)
        return entry

    @staticmethod
    def recent(db: Session, event_id: int, limit: int = 50) -> List[ActivityLog]:
        return (
            db.query(ActivityLog)
            .options(joinedload(ActivityLog.guest), joinedload(ActivityLog.user))
            .filter(ActivityLog.event_id == event_id)
            .order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def count(db: Session, event_id: int, action: str) -> int:
        """Entries for guests still registered; rows orphaned by a reset are not counted"""
        return db.query(ActivityLog).filter(
            ActivityLog.event_id == event_id,
            ActivityLog.action == action,
            ActivityLog.guest_id.isnot(None)
        ).count()


# -------- User repository --------

class UserRepo:
    @staticmethod
    def get_by_id(db: Session, user_id: int) -> Optional[User]:
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def get_by_username(db: Session, username: str) -> Optional[User]:
        return db.query(User).filter(User.username == username.strip().lower()).first()

    @staticmethod
    def get_by_token(db: Session, api_token: str) -> Optional[User]:
        return db.query(User).filter(User.api_token == api_token).first()

    @staticmethod
    def list_all(db: Session) -> List[User]:
        return db.query(User).order_by(User.created_at).all()

    @staticmethod
    def create(db: Session, username: str, password_hash: str, display_name: str, role: str = "volunteer") -> User:
        user = User(
            username=username.strip().lower(),
            password_hash=password_hash,
            display_name=display_name.strip(),
            role=role
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    @staticmethod
    def set_active(db: Session, user: User, is_active: bool) -> User:
        user.is_active = is_active
        if not is_active:
            user.api_token = None
        db.commit()
        db.refresh(user)
        return user

    @staticmethod
    def issue_token(db: Session, user: User) -> str:
        user.api_token = secrets.token_urlsafe(32)
        user.last_login = datetime.utcnow()
        db.commit()
        return user.api_token

    @staticmethod
    def clear_token(db: Session, user: User) -> None:
        user.api_token = None
        db.commit()
