"""
Security utilities and authentication
"""

from fastapi import HTTPException, Depends, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from passlib.context import CryptContext
from sqlalchemy.orm import Session
import time
from collections import defaultdict

from app.core.config import settings
from app.core.db import get_db
from app.models import User
from app.services.repositories import UserRepo
from app.utils.responses import forbidden_error

# Simple in-memory rate limiter
rate_limiter = defaultdict(list)

bcrypt_context = CryptContext(schemes=['bcrypt'], deprecated='auto')

security = HTTPBearer()

def hash_password(password: str) -> str:
    return bcrypt_context.hash(password)

def verify_password(password: str, password_hash: str) -> bool:
    return bcrypt_context.verify(password, password_hash)

def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """Resolve the operator behind a bearer token"""
    user = UserRepo.get_by_token(db, credentials.credentials)
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token"
        )
    return user

def require_admin(user: User = Depends(get_current_user)) -> User:
    """Restrict an endpoint to admin operators"""
    if not user.is_admin:
        forbidden_error("Admin only")
    return user

def rate_limit_check(client_ip: str, limit: int = None) -> bool:
    """Simple rate limiting by IP address"""
    if limit is None:
        limit = settings.RATE_LIMIT_PER_MINUTE

    current_time = time.time()
    minute_ago = current_time - 60

    # Clean old requests
    rate_limiter[client_ip] = [
        req_time for req_time in rate_limiter[client_ip]
        if req_time > minute_ago
    ]

    if len(rate_limiter[client_ip]) >= limit:
        return False

    rate_limiter[client_ip].append(current_time)
    return True

def get_client_ip(request) -> str:
    """Extract client IP from request"""
    # Check for forwarded IP first (for reverse proxy setups)
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    return request.client.host if request.client else "unknown"
