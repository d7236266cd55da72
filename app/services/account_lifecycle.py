"""
Account lifecycle: registration, email verification and federated sign-in.
"""
from dataclasses import dataclass
from datetime import timedelta

from fastapi import BackgroundTasks
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.federated import IdentityVerifier, IdentityVerificationError
from app.core.security import (
    generate_unusable_password,
    generate_verification_token,
    get_password_hash,
)
from app.email_service import EmailService
from app.error_handlers import (
    AccountDisabled,
    Conflict,
    FederatedSignInFailed,
    InvalidToken,
    Unauthorized,
)
from app.logging_config import get_logger
from app.repositories.user_repo import UserRepository
from app.schemas.user import FederatedProvider, FullUserForClient, RegisterRequest
from app.services.views import build_client_view

logger = get_logger("account_lifecycle")


@dataclass
class FederatedSignInResult:
    view: FullUserForClient
    artifact: str
    created: bool


class AccountLifecycleManager:
    """
    Owns account creation and the verified flag.

    Verification emails are queued on `background_tasks` so mail delivery
    never holds up the response.
    """

    def __init__(
        self,
        db: AsyncSession,
        verifier: IdentityVerifier,
        mailer: EmailService,
        background_tasks: BackgroundTasks,
    ):
        self.users = UserRepository(db)
        self.verifier = verifier
        self.mailer = mailer
        self.background_tasks = background_tasks

    def _queue_verification_email(self, email: str, token: str) -> None:
        self.background_tasks.add_task(self.mailer.send_verification_email, email, token)

    async def register(self, payload: RegisterRequest) -> FullUserForClient:
        """
        Create an unverified account with an empty profile and mail the
        verification link.

        Raises:
            Conflict: the email is already registered
        """
        password_hash = await run_in_threadpool(get_password_hash, payload.password)
        token = generate_verification_token()

        user = await self.users.create(
            name=payload.name,
            email=payload.email,
            password_hash=password_hash,
            verification_token=token,
            verified=False,
        )
        logger.info(f"Registered user {user.id}")

        self._queue_verification_email(user.email, token)
        return build_client_view(user)

    async def verify_email(self, token: str) -> None:
        """
        Consume a verification token.

        Unknown, malformed and already used tokens fail the same way.
        """
        user = await self.users.get_by_verification_token(token)
        if user is None:
            raise Unauthorized()

        await self.users.update(user, verified=True, verification_token="")
        logger.info(f"Verified email for user {user.id}")

    async def re_verify_email(self, email: str) -> None:
        """
        Issue a fresh verification token and email.

        Unknown and already verified addresses return quietly so the
        response never reveals whether an account exists.
        """
        user = await self.users.get_by_email(email)
        if user is None:
            logger.info("Re-verification requested for unknown email")
            return
        if user.verified:
            return

        token = generate_verification_token()
        await self.users.update(user, verification_token=token)
        logger.info(f"Issued new verification token for user {user.id}")
        self._queue_verification_email(user.email, token)

    async def federated_sign_in(
        self,
        provider: FederatedProvider,
        id_token: str
    ) -> FederatedSignInResult:
        """
        Sign in with a provider-issued id token.

        New emails get a verified account with an unusable password; known
        emails are marked verified. The session artifact is minted before
        looking at local account state.

        Raises:
            InvalidToken: the id token is rejected or has no email
            AccountDisabled: the matching account is disabled
            FederatedSignInFailed: the profile view could not be built
        """
        try:
            email = await self.verifier.verify_bearer_token(id_token)
        except IdentityVerificationError as e:
            raise InvalidToken(provider.value) from e
        if not email:
            raise InvalidToken(provider.value)

        ttl = timedelta(seconds=settings.federated_session_ttl_seconds)
        try:
            artifact = await self.verifier.mint_session_artifact(id_token, ttl)
        except IdentityVerificationError as e:
            raise InvalidToken(provider.value) from e

        user = await self.users.get_by_email(email)
        created = False

        if user is None:
            user, created = await self._create_federated_user(provider, email)
        if user.disabled:
            logger.info(f"{provider.value} sign-in refused for disabled user {user.id}")
            raise AccountDisabled()
        if not created and not user.verified:
            # The provider has proven control of the address
            await self.users.update(user, verified=True)

        view = build_client_view(user)
        if view is None:
            logger.error(f"{provider.value} sign-in for user {user.id} has no profile")
            raise FederatedSignInFailed(provider.value)

        logger.info(f"{provider.value} sign-in for user {user.id} (created={created})")
        return FederatedSignInResult(view=view, artifact=artifact, created=created)

    async def _create_federated_user(self, provider: FederatedProvider, email: str):
        password_hash = await run_in_threadpool(get_password_hash, generate_unusable_password())
        try:
            user = await self.users.create(
                name=email,
                email=email,
                password_hash=password_hash,
                verified=True,
            )
            return user, True
        except Conflict:
            # A concurrent sign-in created the account first
            user = await self.users.get_by_email(email)
            if user is None:
                raise FederatedSignInFailed(provider.value)
            return user, False
