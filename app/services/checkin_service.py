"""
Guest check-in service with live broadcasting.

The token lookup, the conditional update and the activity row are one
transaction; the dashboard broadcast is emitted only after it commits and
can never undo or fail it.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.api.ws import WebSocketManager
from app.core.errors import CheckInPersistenceError
from app.models import Guest, User
from app.services.repositories import ActivityRepo, GuestRepo

logger = logging.getLogger(__name__)

class CheckInStatus(str, Enum):
    SUCCESS = "success"
    ALREADY = "already"
    NOT_FOUND = "not_found"

@dataclass
class CheckInResult:
    """Outcome of a single scan"""
    status: CheckInStatus
    guest: Optional[Guest] = None
    checked_in_at: Optional[datetime] = None
    checked_in_by_name: Optional[str] = None

    @property
    def is_family(self) -> bool:
        return bool(self.guest and self.guest.category == "family" and self.guest.family_size > 1)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"status": self.status.value}
        if self.guest is not None:
            data["guest"] = {
                "id": self.guest.id,
                "name": self.guest.name,
                "category": self.guest.category,
                "family_size": self.guest.family_size,
                "table_number": self.guest.table_number,
                "checked_in": self.guest.checked_in,
                "checked_in_at": self.guest.checked_in_at.isoformat() if self.guest.checked_in_at else None,
                "scan_count": self.guest.scan_count,
                "last_scanned_at": self.guest.last_scanned_at.isoformat() if self.guest.last_scanned_at else None,
            }
            data["checked_in_by"] = self.checked_in_by_name
        return data

class CheckInService:
    """Service for handling guest check-ins"""

    def __init__(self, websocket_manager: WebSocketManager):
        self.websocket_manager = websocket_manager

    async def check_in(
        self,
        token: str,
        db: Session,
        acting_user: Optional[User] = None
    ) -> CheckInResult:
        """Check in the guest holding ``token`` or record a duplicate scan"""
        try:
            guest = GuestRepo.get_by_token(db, token)
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception(f"Guest lookup failed for token {token!r}")
            raise CheckInPersistenceError(token, e) from e

        if not guest:
            logger.info(f"Check-in with unknown token {token!r}")
            return CheckInResult(status=CheckInStatus.NOT_FOUND)

        guest_id = guest.id
        event_id = guest.event_id
        user_id = acting_user.id if acting_user else None
        now = datetime.utcnow()

        try:
            if GuestRepo.mark_checked_in(db, guest_id, user_id, now):
                status = CheckInStatus.SUCCESS
                by = f" by {acting_user.display_name}" if acting_user else " via QR scan"
                ActivityRepo.log(
                    db, event_id, "checkin",
                    guest_id=guest_id,
                    user_id=user_id,
                    details=f"{guest.name} checked in{by}"
                )
            else:
                status = CheckInStatus.ALREADY
                GuestRepo.record_scan(db, guest_id, now)
                by = f" by {acting_user.display_name}" if acting_user else ""
                ActivityRepo.log(
                    db, event_id, "duplicate_scan",
                    guest_id=guest_id,
                    user_id=user_id,
                    details=f"Duplicate scan for {guest.name}{by}"
                )
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception(f"Check-in write failed for guest {guest_id}")
            raise CheckInPersistenceError(token, e) from e

        # Column values were written with SQL expressions; reload them
        try:
            db.refresh(guest)
            original_operator = guest.checked_in_user
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception(f"Reloading guest {guest_id} after check-in failed")
            raise CheckInPersistenceError(token, e) from e

        if status == CheckInStatus.SUCCESS:
            logger.info(f"Guest {guest_id} ({guest.name}) checked in")
        else:
            logger.info(f"Duplicate scan #{guest.scan_count} for guest {guest_id} ({guest.name})")

        self._emit(guest, status, acting_user, now)

        return CheckInResult(
            status=status,
            guest=guest,
            checked_in_at=guest.checked_in_at,
            checked_in_by_name=original_operator.display_name if original_operator else None
        )

    async def check_in_guest_id(
        self,
        event_id: int,
        guest_id: int,
        db: Session,
        acting_user: Optional[User] = None
    ) -> CheckInResult:
        """Operator-console check-in of a guest picked from the list"""
        guest = GuestRepo.get_by_id(db, event_id, guest_id)
        if not guest:
            return CheckInResult(status=CheckInStatus.NOT_FOUND)
        return await self.check_in(guest.token, db, acting_user=acting_user)

    def _emit(self, guest: Guest, status: CheckInStatus, acting_user: Optional[User], now: datetime):
        guest_payload = {"id": guest.id, "name": guest.name, "category": guest.category}
        if status == CheckInStatus.SUCCESS:
            message_type = "checkin"
            guest_payload["family_size"] = guest.family_size
        else:
            message_type = "duplicate_scan"
            guest_payload["scan_count"] = guest.scan_count

        message = {
            "type": message_type,
            "guest": guest_payload,
            "timestamp": now.isoformat()
        }
        if acting_user:
            message["user"] = {"display_name": acting_user.display_name}

        try:
            self.websocket_manager.broadcast(guest.event.public_code, message)
        except Exception:
            logger.exception(f"Failed to broadcast {message_type} for guest {guest.id}")
