"""
Session authority: who is making this request, and may they proceed?

Two credential sources exist side by side:

* a first-party server-side session (opaque id cookie -> session store), and
* a federated session artifact (signed cookie minted by the identity service).

Resolution walks an ordered resolver chain. The artifact resolver comes
first, so a present artifact always wins over a server-side session, and
an invalid artifact never falls through to the session. Account standing
(exists, disabled) is re-read from the credential store on every check.
"""
import enum
from dataclasses import dataclass
from typing import Optional, Sequence

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.federated import IdentityVerifier, IdentityVerificationError
from app.core.security import verify_password
from app.core.sessions import SessionStore
from app.error_handlers import (
    AccountDisabled,
    InvalidCredentials,
    NotVerified,
    Unauthorized,
    UpstreamUnavailable,
)
from app.logging_config import get_logger
from app.models.user import User
from app.repositories.user_repo import UserRepository
from app.schemas.user import FullUserForClient, LoginRequest, SessionUser
from app.services.views import build_client_view

logger = get_logger("session_authority")


@dataclass
class SessionCredentials:
    """Raw credentials carried by a request's cookies."""
    session_id: Optional[str] = None
    artifact: Optional[str] = None


class ResolutionStatus(str, enum.Enum):
    FOUND = "found"
    NOT_APPLICABLE = "not_applicable"
    INVALID = "invalid"


@dataclass
class Resolution:
    status: ResolutionStatus
    source: str
    user: Optional[User] = None


class FederatedArtifactResolver:
    """Resolves the user from a federated session artifact."""

    source = "federated"

    def __init__(self, verifier: IdentityVerifier, users: UserRepository):
        self.verifier = verifier
        self.users = users

    async def resolve(self, credentials: SessionCredentials) -> Resolution:
        if not credentials.artifact:
            return Resolution(ResolutionStatus.NOT_APPLICABLE, self.source)

        try:
            email = await self.verifier.validate_artifact(credentials.artifact)
        except IdentityVerificationError:
            return Resolution(ResolutionStatus.INVALID, self.source)
        if not email:
            return Resolution(ResolutionStatus.INVALID, self.source)

        user = await self.users.get_by_email(email)
        if user is None or user.disabled:
            return Resolution(ResolutionStatus.INVALID, self.source)
        return Resolution(ResolutionStatus.FOUND, self.source, user)


class ServerSessionResolver:
    """
    Resolves the user from a first-party session.

    The session only names the user; the user row is fetched fresh, by
    email for auth checks or by id for refreshes.
    """

    source = "session"

    def __init__(self, store: SessionStore, users: UserRepository, by_id: bool = False):
        self.store = store
        self.users = users
        self.by_id = by_id

    async def resolve(self, credentials: SessionCredentials) -> Resolution:
        if not credentials.session_id:
            return Resolution(ResolutionStatus.NOT_APPLICABLE, self.source)

        session_user = await self.store.get(credentials.session_id)
        if session_user is None:
            return Resolution(ResolutionStatus.NOT_APPLICABLE, self.source)

        if self.by_id:
            user = await self.users.get_by_id(session_user.id)
        else:
            user = await self.users.get_by_email(session_user.email)
        if user is None or user.disabled:
            return Resolution(ResolutionStatus.INVALID, self.source)
        return Resolution(ResolutionStatus.FOUND, self.source, user)


class SessionAuthority:
    """Establishes, validates, refreshes and destroys authenticated state."""

    def __init__(self, db: AsyncSession, store: SessionStore, verifier: IdentityVerifier):
        self.users = UserRepository(db)
        self.store = store
        self.verifier = verifier
        self._check_chain = (
            FederatedArtifactResolver(verifier, self.users),
            ServerSessionResolver(store, self.users),
        )
        self._refresh_chain = (
            FederatedArtifactResolver(verifier, self.users),
            ServerSessionResolver(store, self.users, by_id=True),
        )

    async def login(
        self,
        credentials: LoginRequest,
        session_id: Optional[str] = None
    ) -> tuple[FullUserForClient, str]:
        """
        Check email/password and open a new server-side session.

        Args:
            credentials: Validated login request
            session_id: Session id currently held by the caller, if any

        Returns:
            The client view and the id of the freshly created session

        Raises:
            InvalidCredentials: unknown email or wrong password
            AccountDisabled: the account is disabled
            NotVerified: the email address has not been verified yet
        """
        user = await self.users.get_by_email(credentials.email)
        password_ok = user is not None and await run_in_threadpool(
            verify_password, credentials.password, user.password_hash
        )

        if not password_ok:
            await self.discard_session(session_id)
            logger.info(f"Failed login for {credentials.email}")
            raise InvalidCredentials()
        if user.disabled:
            await self.discard_session(session_id)
            logger.info(f"Login refused for disabled user {user.id}")
            raise AccountDisabled()
        if not user.verified:
            await self.discard_session(session_id)
            logger.info(f"Login refused for unverified user {user.id}")
            raise NotVerified()

        view = build_client_view(user)
        if view is None:
            await self.discard_session(session_id)
            logger.error(f"User {user.id} has no profile")
            raise InvalidCredentials()

        # Never reuse a session id across logins
        await self.discard_session(session_id)
        new_session_id = await self.store.create(SessionUser(
            id=user.id,
            email=user.email,
            role=user.role,
            disabled=user.disabled,
            name=user.name,
        ))
        logger.info(f"User {user.id} logged in")
        return view, new_session_id

    async def logout(self, session_id: Optional[str]) -> None:
        """Destroy the server-side session. Safe to call without one."""
        await self.discard_session(session_id)

    async def auth_check(self, credentials: SessionCredentials) -> FullUserForClient:
        """Return the fresh client view of the current user."""
        resolution = await self._resolve(self._check_chain, credentials)
        view = build_client_view(resolution.user)
        if view is None:
            await self.discard_session(credentials.session_id)
            raise Unauthorized()
        return view

    async def refresh_session(self, credentials: SessionCredentials) -> None:
        """
        Confirm the caller is still authenticated and extend the session.

        The federated artifact is only re-validated, not re-issued; it keeps
        its original expiry.
        """
        resolution = await self._resolve(self._refresh_chain, credentials)
        if resolution.source == ServerSessionResolver.source:
            await self.store.touch(credentials.session_id)

    async def current_user(self, credentials: SessionCredentials) -> User:
        """Resolve the authenticated user for protected routes."""
        resolution = await self._resolve(self._check_chain, credentials)
        return resolution.user

    async def _resolve(
        self,
        chain: Sequence,
        credentials: SessionCredentials
    ) -> Resolution:
        for resolver in chain:
            resolution = await resolver.resolve(credentials)
            if resolution.status is ResolutionStatus.FOUND:
                return resolution
            if resolution.status is ResolutionStatus.INVALID:
                logger.info(f"Rejected {resolution.source} credentials")
                break

        await self.discard_session(credentials.session_id)
        raise Unauthorized()

    async def discard_session(self, session_id: Optional[str]) -> None:
        """Best-effort destruction of a server-side session."""
        if not session_id:
            return
        try:
            await self.store.destroy(session_id)
        except UpstreamUnavailable:
            logger.error("Error destroying session")
