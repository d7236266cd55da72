"""
Session API endpoints: login, logout, auth check and refresh.
"""
from fastapi import APIRouter, Depends, Request, Response, status

from app.api.deps import get_session_authority, get_session_credentials
from app.core.config import settings
from app.core.cookies import clear_auth_cookies, set_session_cookie
from app.middleware import limiter
from app.schemas.user import FullUserForClient, LoginRequest, StatusResponse
from app.services.session_authority import SessionAuthority, SessionCredentials

router = APIRouter(prefix="/session", tags=["Session"])


@router.post("/login", response_model=FullUserForClient)
@limiter.limit(settings.login_rate_limit)
async def login(
    request: Request,
    response: Response,
    credentials: LoginRequest,
    session: SessionCredentials = Depends(get_session_credentials),
    authority: SessionAuthority = Depends(get_session_authority)
):
    """
    Log in with email and password.

    Opens a new server-side session and sets its id cookie. Unverified
    accounts are refused with `details.reason = "not_verified"`.
    """
    view, session_id = await authority.login(credentials, session.session_id)
    set_session_cookie(response, session_id)
    return view


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    session: SessionCredentials = Depends(get_session_credentials),
    authority: SessionAuthority = Depends(get_session_authority)
):
    """Destroy the server-side session and clear both auth cookies."""
    await authority.logout(session.session_id)
    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    clear_auth_cookies(response)
    return response


@router.get("/auth-check", response_model=FullUserForClient)
async def auth_check(
    session: SessionCredentials = Depends(get_session_credentials),
    authority: SessionAuthority = Depends(get_session_authority)
):
    """
    Return the current user and profile.

    A federated session cookie takes priority over the server-side session.
    """
    return await authority.auth_check(session)


@router.post("/refresh", response_model=StatusResponse)
async def refresh(
    session: SessionCredentials = Depends(get_session_credentials),
    authority: SessionAuthority = Depends(get_session_authority)
):
    """Confirm the session is still valid and extend its lifetime."""
    await authority.refresh_session(session)
    return StatusResponse()
