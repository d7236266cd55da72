"""Data access layer."""
from app.repositories.user_repo import UserRepository

__all__ = ["UserRepository"]
