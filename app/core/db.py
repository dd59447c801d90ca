"""
Database engine, session factory and first-start seeding
"""

import logging
import secrets
from datetime import datetime

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from app.core.config import settings

logger = logging.getLogger(__name__)

connect_args = {}
if settings.DATABASE_URL.startswith("sqlite"):
    connect_args = {"check_same_thread": False}

engine = create_engine(settings.DATABASE_URL, connect_args=connect_args, pool_pre_ping=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

def get_db():
    """FastAPI dependency yielding a request-scoped session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def seed_defaults(db) -> None:
    """Create the default event and admin operator if the database is empty"""
    from app.models import Event, User
    from app.utils.security import hash_password

    if not db.query(Event).first():
        event = Event(
            name=settings.DEFAULT_EVENT_NAME,
            date=datetime.utcnow(),
            public_code=secrets.token_urlsafe(8),
            is_active=True
        )
        db.add(event)
        logger.info(f"Seeded default event '{event.name}'")

    if not db.query(User).filter(User.role == "admin").first():
        admin = User(
            username=settings.DEFAULT_ADMIN_USERNAME.lower(),
            display_name="Administrator",
            password_hash=hash_password(settings.DEFAULT_ADMIN_PASSWORD),
            role="admin"
        )
        db.add(admin)
        logger.info(f"Default admin created - username: {admin.username}")

    db.commit()

def init_db() -> None:
    """Create tables and seed defaults"""
    import app.models  # noqa: F401  (registers mappers)

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        seed_defaults(db)
    finally:
        db.close()
