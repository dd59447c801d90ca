"""
Operator login / logout
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.db import get_db
from app.models import User
from app.schemas.user import LoginRequest, UserResponse
from app.services.repositories import ActivityRepo, EventRepo, UserRepo
from app.utils.security import get_current_user, verify_password
from app.utils.responses import success_response, unauthorized_error

logger = logging.getLogger(__name__)

router = APIRouter()

@router.post("/login")
async def login(credentials: LoginRequest, db: Session = Depends(get_db)):
    """Exchange username/password for a bearer token"""
    user = UserRepo.get_by_username(db, credentials.username)
    if not user or not user.is_active:
        unauthorized_error("Invalid credentials or account deactivated")

    if not verify_password(credentials.password, user.password_hash):
        logger.info(f"Failed login for {user.username}")
        unauthorized_error("Invalid credentials")

    token = UserRepo.issue_token(db, user)

    event = EventRepo.get_active(db)
    if event:
        ActivityRepo.log(db, event.id, "login", user_id=user.id, details=f"{user.display_name} logged in")
        db.commit()

    return success_response(
        message="Logged in",
        data={
            "access_token": token,
            "token_type": "bearer",
            "user": UserResponse.model_validate(user).model_dump(mode="json")
        }
    )

@router.post("/logout")
async def logout(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Revoke the caller's bearer token"""
    UserRepo.clear_token(db, user)
    return success_response(message="Logged out")

@router.get("/me")
async def me(user: User = Depends(get_current_user)):
    return success_response(
        message="Current user",
        data=UserResponse.model_validate(user).model_dump(mode="json")
    )
