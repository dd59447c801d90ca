"""
Admin API routes - requires an operator bearer token
"""

import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.db import get_db
from app.models import User
from app.schemas.event import EventCreate, EventUpdate, EventResponse
from app.schemas.guest import GuestRegistration, GuestResponse
from app.schemas.user import UserCreate, UserResponse
from app.api.routes_public import checkin_service
from app.services.attendance_service import AttendanceService
from app.services.checkin_service import CheckInStatus
from app.services.export_service import ExportService
from app.services.qr_service import QRService
from app.services.repositories import ActivityRepo, EventRepo, GuestRepo, UserRepo
from app.utils.security import get_current_user, require_admin, hash_password
from app.utils.responses import success_response, error_response, not_found_error

logger = logging.getLogger(__name__)

router = APIRouter()

def _event_or_404(db: Session, event_id: int):
    event = EventRepo.get_by_id(db, event_id)
    if not event:
        not_found_error("Event")
    return event

def _guest_data(guest) -> dict:
    data = GuestResponse.model_validate(guest).model_dump(mode="json")
    data["checkin_url"] = QRService.get_checkin_url(guest.token)
    return data

# -------- Events --------

@router.post("/events")
async def create_event(
    event_data: EventCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_admin)
):
    """Create a new event"""
    event = EventRepo.create(db, name=event_data.name, date=event_data.date, venue=event_data.venue)
    logger.info(f"Event {event.id} created by {user.username}")

    return success_response(
        message="Event created successfully",
        data=EventResponse.model_validate(event).model_dump(mode="json"),
        status_code=201
    )

@router.get("/events/active")
async def get_active_event(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    """The event the console and kiosk work against by default"""
    event = EventRepo.get_active(db)
    if not event:
        not_found_error("Active event")
    return success_response(
        message="Active event retrieved",
        data=EventResponse.model_validate(event).model_dump(mode="json")
    )

@router.get("/events/{event_id}")
async def get_event_details(
    event_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    """Get event information with attendance statistics"""
    event = _event_or_404(db, event_id)

    data = EventResponse.model_validate(event).model_dump(mode="json")
    data["stats"] = AttendanceService.get_stats(db, event.id)
    return success_response(message="Event details retrieved", data=data)

@router.patch("/events/{event_id}")
async def update_event(
    event_id: int,
    event_update: EventUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(require_admin)
):
    """Update event settings"""
    event = _event_or_404(db, event_id)
    event = EventRepo.update(db, event, **event_update.model_dump(exclude_unset=True))

    ActivityRepo.log(db, event.id, "event_update", user_id=user.id,
                     details=f"Event settings updated by {user.display_name}")
    db.commit()

    return success_response(
        message="Event updated successfully",
        data=EventResponse.model_validate(event).model_dump(mode="json")
    )

# -------- Guests --------

@router.post("/events/{event_id}/guests")
async def register_guests(
    event_id: int,
    registration: GuestRegistration,
    db: Session = Depends(get_db),
    user: User = Depends(require_admin)
):
    """Register guests; each receives a fresh check-in token"""
    event = _event_or_404(db, event_id)

    guests = GuestRepo.register(db, event.id, registration.guests)

    ActivityRepo.log(db, event.id, "register", user_id=user.id,
                     details=f"Registered {len(guests)} guests by {user.display_name}")
    db.commit()
    logger.info(f"{len(guests)} guests registered for event {event.id}")

    return success_response(
        message=f"{len(guests)} guests registered.",
        data={"guests": [_guest_data(guest) for guest in guests]},
        status_code=201
    )

@router.get("/events/{event_id}/guests")
async def search_guests(
    event_id: int,
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    """Search and list guests for an event"""
    event = _event_or_404(db, event_id)

    offset = (page - 1) * per_page
    guests, total = GuestRepo.search(db, event.id, search=search, offset=offset, limit=per_page)

    return success_response(
        message="Guests retrieved successfully",
        data={
            "guests": [_guest_data(guest) for guest in guests],
            "pagination": {
                "page": page,
                "per_page": per_page,
                "total": total,
                "pages": (total + per_page - 1) // per_page
            }
        }
    )

@router.get("/events/{event_id}/guests/{guest_id}")
async def get_guest(
    event_id: int,
    guest_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    guest = GuestRepo.get_by_id(db, event_id, guest_id)
    if not guest:
        not_found_error("Guest")
    return success_response(message="Guest retrieved", data=_guest_data(guest))

@router.get("/events/{event_id}/guests/{guest_id}/qr.png")
async def get_guest_qr(
    event_id: int,
    guest_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    """QR code for reprinting a guest's ticket"""
    guest = GuestRepo.get_by_id(db, event_id, guest_id)
    if not guest:
        not_found_error("Guest")

    return Response(
        content=QRService.generate_guest_qr(guest.token),
        media_type="image/png",
        headers={"Content-Disposition": f"inline; filename=qr_guest_{guest.id}.png"}
    )

@router.post("/events/{event_id}/guests/{guest_id}/checkin")
async def manual_check_in(
    event_id: int,
    guest_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    """Check a guest in on behalf of the logged-in operator"""
    result = await checkin_service.check_in_guest_id(event_id, guest_id, db, acting_user=user)

    if result.status == CheckInStatus.NOT_FOUND:
        not_found_error("Guest")

    message = "Guest checked in" if result.status == CheckInStatus.SUCCESS else "Guest was already checked in"
    return success_response(message=message, data=result.to_dict())

@router.delete("/events/{event_id}/guests")
async def reset_guests(
    event_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_admin)
):
    """Delete every guest of an event"""
    event = _event_or_404(db, event_id)

    deleted = GuestRepo.delete_all(db, event.id)
    ActivityRepo.log(db, event.id, "reset", user_id=user.id,
                     details=f"All guests deleted by {user.display_name}")
    db.commit()
    logger.warning(f"{deleted} guests deleted from event {event.id} by {user.username}")

    return success_response(message="All guests deleted", data={"deleted": deleted})

# -------- Dashboard data --------

@router.get("/events/{event_id}/stats")
async def get_stats(
    event_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    event = _event_or_404(db, event_id)
    return success_response(message="Stats retrieved", data=AttendanceService.get_stats(db, event.id))

@router.get("/events/{event_id}/activity")
async def get_activity(
    event_id: int,
    limit: Optional[int] = Query(None, ge=1, le=500),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    event = _event_or_404(db, event_id)
    entries = AttendanceService.get_recent_activity(db, event.id, limit or settings.ACTIVITY_FEED_LIMIT)
    return success_response(message="Activity retrieved", data=entries)

@router.get("/events/{event_id}/timeline")
async def get_timeline(
    event_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    event = _event_or_404(db, event_id)
    return success_response(message="Timeline retrieved", data=AttendanceService.get_timeline(db, event.id))

@router.get("/events/{event_id}/export/guests.{fmt}")
async def export_guests(
    event_id: int,
    fmt: str,
    db: Session = Depends(get_db),
    user: User = Depends(require_admin)
):
    """Export the guest list with check-in state"""
    event = _event_or_404(db, event_id)

    if fmt not in ExportService.MEDIA_TYPES:
        return error_response(message=f"Unsupported export format: {fmt}", status_code=400)

    return Response(
        content=ExportService.export_guests(db, event.id, fmt),
        media_type=ExportService.MEDIA_TYPES[fmt],
        headers={"Content-Disposition": f"attachment; filename=guests_{event.public_code}.{fmt}"}
    )

# -------- Operators --------

@router.get("/users")
async def list_users(
    db: Session = Depends(get_db),
    user: User = Depends(require_admin)
):
    users = UserRepo.list_all(db)
    return success_response(
        message="Users retrieved",
        data=[UserResponse.model_validate(u).model_dump(mode="json") for u in users]
    )

@router.post("/users")
async def create_user(
    user_data: UserCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_admin)
):
    """Create an operator account"""
    if UserRepo.get_by_username(db, user_data.username):
        return error_response(message="Username already exists", status_code=409)

    created = UserRepo.create(
        db,
        username=user_data.username,
        password_hash=hash_password(user_data.password),
        display_name=user_data.display_name,
        role=user_data.role
    )
    return success_response(
        message="User created",
        data=UserResponse.model_validate(created).model_dump(mode="json"),
        status_code=201
    )

@router.post("/users/{user_id}/toggle")
async def toggle_user(
    user_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_admin)
):
    """Activate or deactivate an operator (not yourself)"""
    target = UserRepo.get_by_id(db, user_id)
    if not target:
        not_found_error("User")
    if target.id == user.id:
        return error_response(message="You cannot deactivate yourself", status_code=400)

    target = UserRepo.set_active(db, target, not target.is_active)
    return success_response(
        message="User updated",
        data=UserResponse.model_validate(target).model_dump(mode="json")
    )
