"""API dependencies"""

from typing import Generator

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.db import SessionLocal


def get_db() -> Generator[Session, None, None]:
    """Database dependency"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_api_keys() -> dict[str, str]:
    """Source credentials handed to the sync orchestrator."""
    return settings.source_api_keys
