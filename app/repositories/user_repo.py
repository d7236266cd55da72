"""
Credential store for users and their profiles.

Pure DB operations: no HTTP, no business rules. Unique email is enforced
by the database constraint, so `create` reports a clash as `Conflict`
instead of checking first.
"""
import uuid
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError, InterfaceError
from sqlalchemy.ext.asyncio import AsyncSession

from app.error_handlers import Conflict, UpstreamUnavailable
from app.logging_config import get_logger
from app.models.profile import Profile
from app.models.user import User, Role

logger = get_logger("user_repo")


class UserRepository:
    """Data access for User and Profile."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _commit(self) -> None:
        try:
            await self.db.commit()
        except (OperationalError, InterfaceError) as e:
            await self.db.rollback()
            logger.error(f"Credential store unavailable: {e}")
            raise UpstreamUnavailable("credential store") from e

    # ----- Queries -----

    async def get_by_id(self, user_id: uuid.UUID) -> Optional[User]:
        """Return a User by primary key, or None if not found."""
        return await self.db.get(User, user_id)

    async def get_by_email(self, email: str) -> Optional[User]:
        """Return a User by unique email, or None if not found."""
        result = await self.db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def get_by_verification_token(self, token: str) -> Optional[User]:
        """Return the User holding an unconsumed verification token."""
        if not token:
            # Consumed tokens are stored as "", which must never match
            return None
        result = await self.db.execute(
            select(User).where(User.verification_token == token)
        )
        return result.scalars().first()

    async def list(self, skip: int = 0, limit: int = 50) -> list[User]:
        result = await self.db.execute(
            select(User).order_by(User.email).offset(skip).limit(limit)
        )
        return list(result.scalars().all())

    async def get_profile(self, user_id: uuid.UUID) -> Optional[Profile]:
        result = await self.db.execute(select(Profile).where(Profile.user_id == user_id))
        return result.scalar_one_or_none()

    # ----- Commands -----

    async def create(
        self,
        *,
        name: str,
        email: str,
        password_hash: str,
        verification_token: str = "",
        verified: bool = False,
        role: Role = Role.BASIC,
    ) -> User:
        """
        Insert a user together with an empty profile in one transaction.

        Raises:
            Conflict: if the email is already registered.
        """
        user = User(
            name=name,
            email=email,
            password_hash=password_hash,
            verification_token=verification_token,
            verified=verified,
            role=role,
            disabled=False,
        )
        user.profile = Profile()
        self.db.add(user)

        try:
            await self.db.flush()
        except IntegrityError as e:
            await self.db.rollback()
            logger.info(f"Rejected duplicate registration for {email}")
            raise Conflict(field="email") from e

        await self._commit()
        return user

    async def update(self, user: User, **fields: Any) -> User:
        """Persist changes to an existing User."""
        for key, value in fields.items():
            setattr(user, key, value)
        await self._commit()
        return user

    async def update_profile(self, profile: Profile, **fields: Any) -> Profile:
        for key, value in fields.items():
            setattr(profile, key, value)
        await self._commit()
        return profile

    async def delete(self, user: User) -> None:
        """Delete a User. The profile goes with it."""
        await self.db.delete(user)
        await self._commit()
