"""
Security utilities for authentication.
Handles password hashing and opaque token generation.
"""
import secrets

from passlib.context import CryptContext

from app.core.config import settings


# Password hashing context
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.bcrypt_rounds
)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Hash a password using bcrypt."""
    return pwd_context.hash(password)


def generate_verification_token() -> str:
    """URL-safe one-time token mailed to the user for email verification."""
    return secrets.token_urlsafe(16)


def generate_session_id() -> str:
    """Opaque identifier for a server-side session."""
    return secrets.token_urlsafe(32)


def generate_unusable_password() -> str:
    """
    Random password for accounts created through a federated provider.

    Nobody ever learns it, so the resulting hash only satisfies the
    non-null column.
    """
    return secrets.token_urlsafe(24)
