"""
Profile API endpoints for the meal planning settings of the current user.
"""
from fastapi import APIRouter, Depends

from app.api.deps import get_current_user
from app.core.database import get_db
from app.error_handlers import ResourceNotFoundError
from app.models.user import User
from app.repositories.user_repo import UserRepository
from app.schemas.user import FullUserForClient
from app.schemas.profile import ProfileUpdate
from app.services.views import build_client_view

router = APIRouter(prefix="/user", tags=["Profile"])


@router.get("/profile", response_model=FullUserForClient)
async def get_profile(current_user: User = Depends(get_current_user)):
    """Get the current user and profile."""
    view = build_client_view(current_user)
    if view is None:
        raise ResourceNotFoundError("Profile", str(current_user.id))
    return view


@router.patch("/profile", response_model=FullUserForClient)
async def update_profile(
    profile_data: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db=Depends(get_db)
):
    """
    Update profile settings.

    Only the fields present in the request body are changed.
    """
    if current_user.profile is None:
        raise ResourceNotFoundError("Profile", str(current_user.id))

    update_data = profile_data.model_dump(exclude_unset=True)
    await UserRepository(db).update_profile(current_user.profile, **update_data)
    return build_client_view(current_user)
