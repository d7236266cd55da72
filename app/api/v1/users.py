"""
User API endpoints: registration, email verification, federated sign-in
and user administration.
"""
import uuid

from fastapi import APIRouter, Depends, Request, Response, Query, status

from app.api.deps import (
    get_account_manager,
    get_session_authority,
    get_session_credentials,
    require_admin,
)
from app.core.config import settings
from app.core.cookies import set_federated_cookie
from app.core.database import get_db
from app.error_handlers import ResourceNotFoundError
from app.middleware import limiter
from app.models.user import User
from app.repositories.user_repo import UserRepository
from app.schemas.user import (
    FederatedProvider,
    FederatedSignInRequest,
    FullUserForClient,
    RegisterRequest,
    ReVerifyEmailRequest,
    UserAdminView,
    VerifyEmailRequest,
)
from app.services.account_lifecycle import AccountLifecycleManager
from app.services.session_authority import SessionAuthority, SessionCredentials

router = APIRouter(prefix="/users", tags=["Users"])


@router.post("", response_model=FullUserForClient, status_code=status.HTTP_201_CREATED)
async def register(
    payload: RegisterRequest,
    response: Response,
    session: SessionCredentials = Depends(get_session_credentials),
    authority: SessionAuthority = Depends(get_session_authority),
    manager: AccountLifecycleManager = Depends(get_account_manager)
):
    """
    Register a new account.

    - **name**: Display name
    - **email**: Valid email address
    - **password**: Minimum 10 characters
    - **confirmPassword**: Must equal password

    The account stays unverified until the emailed link is followed.
    """
    await authority.discard_session(session.session_id)
    view = await manager.register(payload)
    response.delete_cookie(settings.session_cookie_name)
    return view


@router.post("/verify-email", status_code=status.HTTP_204_NO_CONTENT)
async def verify_email(
    payload: VerifyEmailRequest,
    manager: AccountLifecycleManager = Depends(get_account_manager)
):
    """Consume an emailed verification key."""
    await manager.verify_email(payload.key)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/reverify-email", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit(settings.reverify_rate_limit)
async def reverify_email(
    request: Request,
    payload: ReVerifyEmailRequest,
    manager: AccountLifecycleManager = Depends(get_account_manager)
):
    """
    Send a fresh verification email.

    Always succeeds, whether or not the address belongs to an account.
    """
    await manager.re_verify_email(payload.email)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{provider}-signin", response_model=FullUserForClient)
async def federated_sign_in(
    provider: FederatedProvider,
    payload: FederatedSignInRequest,
    response: Response,
    manager: AccountLifecycleManager = Depends(get_account_manager)
):
    """
    Sign in with a Google or Facebook id token.

    Returns 201 when the account was created by this call, 200 otherwise.
    """
    result = await manager.federated_sign_in(provider, payload.id_token)
    set_federated_cookie(response, result.artifact)
    response.status_code = status.HTTP_201_CREATED if result.created else status.HTTP_200_OK
    return result.view


@router.get("", response_model=list[UserAdminView])
async def list_users(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    admin: User = Depends(require_admin),
    db=Depends(get_db)
):
    """List accounts. Admin only."""
    return await UserRepository(db).list(skip=skip, limit=limit)


@router.get("/{user_id}", response_model=UserAdminView)
async def get_user(
    user_id: uuid.UUID,
    admin: User = Depends(require_admin),
    db=Depends(get_db)
):
    """Get a single account. Admin only."""
    user = await UserRepository(db).get_by_id(user_id)
    if user is None:
        raise ResourceNotFoundError("User", str(user_id))
    return user


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: uuid.UUID,
    admin: User = Depends(require_admin),
    db=Depends(get_db)
):
    """Delete an account and its profile. Admin only."""
    users = UserRepository(db)
    user = await users.get_by_id(user_id)
    if user is None:
        raise ResourceNotFoundError("User", str(user_id))
    await users.delete(user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
