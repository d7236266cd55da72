"""
User model for authentication and authorization.
"""
import enum

from sqlalchemy import String, Boolean, Enum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base


class Role(str, enum.Enum):
    """Account roles."""
    BASIC = "BASIC"
    ADMIN = "ADMIN"


class User(Base):
    """User account model."""

    __tablename__ = "users"

    # User credentials
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    name: Mapped[str] = mapped_column(String(255), default="", nullable=False)

    # Role and permissions
    role: Mapped[Role] = mapped_column(
        Enum(Role, name="user_role", native_enum=False),
        default=Role.BASIC,
        nullable=False
    )

    # Account status
    disabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    # Cleared to "" once consumed
    verification_token: Mapped[str] = mapped_column(String(64), default="", nullable=False, index=True)

    # Relationships
    profile = relationship(
        "Profile",
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
        lazy="selectin"
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
