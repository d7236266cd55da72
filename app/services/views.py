"""Projection of users into the shape returned to the browser."""
from typing import Optional

from app.models.user import User
from app.schemas.profile import ProfileForClient
from app.schemas.user import FullUserForClient, UserForClient


def build_client_view(user: User) -> Optional[FullUserForClient]:
    """
    User + profile without hashes, tokens or ids.

    Returns None when the user has no profile row.
    """
    if user.profile is None:
        return None
    return FullUserForClient(
        user=UserForClient(name=user.name, email=user.email),
        profile=ProfileForClient.model_validate(user.profile),
    )
