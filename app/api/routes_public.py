"""
Public routes - no authentication required
"""

from pathlib import Path

from fastapi import APIRouter, Depends, Request, HTTPException
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy.orm import Session

from app.core.db import get_db
from app.api.ws import websocket_manager
from app.services.attendance_service import AttendanceService
from app.services.checkin_service import CheckInService, CheckInStatus
from app.services.repositories import EventRepo
from app.utils.security import rate_limit_check, get_client_ip
from app.utils.responses import success_response, rate_limit_error

TEMPLATES_DIR = Path(__file__).resolve().parent.parent.parent / "templates"
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

router = APIRouter()

checkin_service = CheckInService(websocket_manager)

@router.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "ok"}

@router.get("/", response_class=HTMLResponse)
async def dashboard_page(request: Request, event: str = "", db: Session = Depends(get_db)):
    """Live attendance dashboard for the given (or active) event"""
    current = EventRepo.get_by_public_code(db, event) if event else EventRepo.get_active(db)
    if not current:
        raise HTTPException(status_code=404, detail="Event not found")

    return templates.TemplateResponse(request, "dashboard.html", {
        "title": current.name,
        "event": current
    })

@router.get("/checkin/{token}", response_class=HTMLResponse)
async def scan_checkin(token: str, request: Request, db: Session = Depends(get_db)):
    """Target of the QR code on a guest's ticket"""
    client_ip = get_client_ip(request)
    if not rate_limit_check(client_ip):
        rate_limit_error()

    result = await checkin_service.check_in(token, db)

    status_code = 404 if result.status == CheckInStatus.NOT_FOUND else 200
    return templates.TemplateResponse(request, "checkin_result.html", {
        "title": "Check-in",
        "result": result,
        "guest": result.guest
    }, status_code=status_code)

@router.get("/events/{public_code}/summary")
async def get_event_summary(
    public_code: str,
    request: Request,
    db: Session = Depends(get_db)
):
    """Public attendance counts for the dashboard page"""
    client_ip = get_client_ip(request)
    if not rate_limit_check(client_ip):
        rate_limit_error()

    summary = AttendanceService.get_event_summary(db, public_code)
    if summary is None:
        raise HTTPException(status_code=404, detail="Event not found")

    return success_response(
        message="Attendance summary retrieved successfully",
        data=summary
    )
