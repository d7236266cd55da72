"""
Pydantic schemas for users, sessions and authentication requests.
"""
import enum
import uuid
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, ConfigDict, field_validator, ValidationInfo

from app.core.config import settings
from app.models.user import Role
from app.schemas.profile import ProfileForClient


class FederatedProvider(str, enum.Enum):
    """Identity providers accepted for federated sign-in."""
    GOOGLE = "google"
    FACEBOOK = "facebook"


# Request schemas
class LoginRequest(BaseModel):
    """Schema for login request."""
    email: EmailStr
    password: str = Field(..., min_length=1)


class RegisterRequest(BaseModel):
    """Schema for user registration."""
    model_config = ConfigDict(populate_by_name=True)

    name: str
    email: EmailStr
    password: str
    confirm_password: str = Field(..., alias="confirmPassword")

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Please enter your name")
        return value

    @field_validator("password")
    @classmethod
    def password_long_enough(cls, value: str) -> str:
        if len(value) < settings.password_min_length:
            raise ValueError(
                f"Password must be at least {settings.password_min_length} characters"
            )
        return value

    @field_validator("confirm_password")
    @classmethod
    def passwords_match(cls, value: str, info: ValidationInfo) -> str:
        # password is absent from info.data when it failed its own validation
        password = info.data.get("password")
        if password is not None and value != password:
            raise ValueError("Passwords must match")
        return value


class VerifyEmailRequest(BaseModel):
    """Schema for consuming a verification token."""
    key: str


class ReVerifyEmailRequest(BaseModel):
    """Schema for requesting a new verification email."""
    email: EmailStr


class FederatedSignInRequest(BaseModel):
    """Schema for federated sign-in with a provider-issued id token."""
    model_config = ConfigDict(populate_by_name=True)

    id_token: str = Field(..., alias="idToken", min_length=1)


# Response schemas
class UserForClient(BaseModel):
    """User fields safe to return to the browser."""
    model_config = ConfigDict(from_attributes=True)

    name: Optional[str] = None
    email: Optional[str] = None


class FullUserForClient(BaseModel):
    """Client-visible user view: user plus filtered profile."""
    user: UserForClient
    profile: ProfileForClient


class UserAdminView(BaseModel):
    """User listing for administrators. Never includes secrets."""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    email: str
    role: Role
    verified: bool
    disabled: bool


class StatusResponse(BaseModel):
    status: str = "OK"


# Session payload
class SessionUser(BaseModel):
    """Projection of a user stored in a server-side session."""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    email: str
    role: Role
    disabled: bool
    name: str
