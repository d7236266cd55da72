"""Core application modules."""
from app.core.config import settings, get_settings
from app.core.database import Base, get_db, get_db_context, init_db, close_db
from app.core.security import (
    get_password_hash,
    verify_password,
    generate_verification_token,
    generate_session_id,
    generate_unusable_password,
)

__all__ = [
    "settings",
    "get_settings",
    "Base",
    "get_db",
    "get_db_context",
    "init_db",
    "close_db",
    "get_password_hash",
    "verify_password",
    "generate_verification_token",
    "generate_session_id",
    "generate_unusable_password",
]
