"""
Shared FastAPI dependencies for the auth routers.
"""
from fastapi import BackgroundTasks, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_db
from app.core.federated import IdentityVerifier, get_identity_verifier
from app.core.sessions import SessionStore, get_session_store
from app.email_service import EmailService, get_email_service
from app.error_handlers import Forbidden
from app.models.user import Role, User
from app.services.account_lifecycle import AccountLifecycleManager
from app.services.session_authority import SessionAuthority, SessionCredentials


def get_session_credentials(request: Request) -> SessionCredentials:
    """Read the first-party session id and federated artifact cookies."""
    return SessionCredentials(
        session_id=request.cookies.get(settings.session_cookie_name) or None,
        artifact=request.cookies.get(settings.federated_cookie_name) or None,
    )


def get_session_authority(
    db: AsyncSession = Depends(get_db),
    store: SessionStore = Depends(get_session_store),
    verifier: IdentityVerifier = Depends(get_identity_verifier),
) -> SessionAuthority:
    return SessionAuthority(db, store, verifier)


def get_account_manager(
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    verifier: IdentityVerifier = Depends(get_identity_verifier),
    mailer: EmailService = Depends(get_email_service),
) -> AccountLifecycleManager:
    return AccountLifecycleManager(db, verifier, mailer, background_tasks)


async def get_current_user(
    credentials: SessionCredentials = Depends(get_session_credentials),
    authority: SessionAuthority = Depends(get_session_authority),
) -> User:
    """
    Resolve the authenticated user from cookies.

    Raises:
        Unauthorized: no valid session or artifact, or the account is gone/disabled
    """
    return await authority.current_user(credentials)


async def require_admin(user: User = Depends(get_current_user)) -> User:
    """Enforce the ADMIN role."""
    if user.role != Role.ADMIN:
        raise Forbidden()
    return user
