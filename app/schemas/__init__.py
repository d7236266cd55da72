"""
Pydantic schemas for request/response validation.
"""
from app.schemas.profile import ProfileForClient, ProfileUpdate
from app.schemas.user import (
    FederatedProvider, LoginRequest, RegisterRequest, VerifyEmailRequest,
    ReVerifyEmailRequest, FederatedSignInRequest, UserForClient,
    FullUserForClient, UserAdminView, StatusResponse, SessionUser
)

__all__ = [
    # Profile schemas
    "ProfileForClient", "ProfileUpdate",

    # User schemas
    "FederatedProvider", "LoginRequest", "RegisterRequest", "VerifyEmailRequest",
    "ReVerifyEmailRequest", "FederatedSignInRequest", "UserForClient",
    "FullUserForClient", "UserAdminView", "StatusResponse", "SessionUser",
]
