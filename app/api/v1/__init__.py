"""API v1 Router."""
from fastapi import APIRouter

from app.api.v1 import session, users, profile
from app.core.config import settings

api_router = APIRouter(prefix=settings.api_prefix)

# Include all route modules
api_router.include_router(session.router)
api_router.include_router(users.router)
api_router.include_router(profile.router)

__all__ = ["api_router"]
