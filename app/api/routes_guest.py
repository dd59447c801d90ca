"""
Guest-facing JSON API (kiosk and guest phones)
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.core.db import get_db
from app.schemas.guest import CheckInRequest
from app.api.routes_public import checkin_service
from app.services.checkin_service import CheckInStatus
from app.utils.security import rate_limit_check, get_client_ip
from app.utils.responses import success_response, error_response, rate_limit_error

router = APIRouter()

@router.post("/checkin")
async def check_in_guest(
    request: Request,
    checkin_data: CheckInRequest,
    db: Session = Depends(get_db)
):
    """Check in by scanned token"""
    client_ip = get_client_ip(request)
    if not rate_limit_check(client_ip):
        rate_limit_error()

    result = await checkin_service.check_in(checkin_data.token, db)

    if result.status == CheckInStatus.NOT_FOUND:
        return error_response(
            message="Invalid QR code. Please see a volunteer for help.",
            error_code="invalid_token",
            status_code=404
        )

    if result.status == CheckInStatus.ALREADY:
        message = "Already checked in"
    elif result.is_family:
        message = f"All {result.guest.family_size} family members are checked in!"
    else:
        message = "Successfully checked in!"

    return success_response(message=message, data=result.to_dict())
