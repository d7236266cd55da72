"""
Federated identity verification through Firebase Authentication.

Google and Facebook sign-ins reach us as Firebase id tokens. The verifier
turns an id token into a verified email, mints the long-lived session
cookie value from it, and later validates that cookie value.

Rejections (invalid, expired, revoked) are opaque to callers and become
`IdentityVerificationError`. Failures to reach Firebase at all become
`UpstreamUnavailable`, so an outage never reads as a bad credential.
"""
from datetime import timedelta
from typing import Optional

import firebase_admin
from firebase_admin import auth, credentials, exceptions
from firebase_admin.exceptions import FirebaseError
from fastapi.concurrency import run_in_threadpool

from app.core.config import settings
from app.error_handlers import UpstreamUnavailable
from app.logging_config import get_logger

logger = get_logger("federated")

# Checked before FirebaseError: these are its subclasses
TRANSPORT_ERRORS = (
    exceptions.UnavailableError,
    exceptions.DeadlineExceededError,
    exceptions.UnknownError,
    auth.CertificateFetchError,
)


class IdentityVerificationError(Exception):
    """The identity service rejected a token or session artifact."""


class IdentityVerifier:
    """Interface of the federated identity service."""

    async def verify_bearer_token(self, id_token: str) -> Optional[str]:
        """Return the verified email carried by an id token, None if it has none."""
        raise NotImplementedError

    async def mint_session_artifact(self, id_token: str, ttl: timedelta) -> str:
        raise NotImplementedError

    async def validate_artifact(self, artifact: str) -> Optional[str]:
        """Return the email a session artifact was issued for."""
        raise NotImplementedError


class FirebaseIdentityVerifier(IdentityVerifier):
    """IdentityVerifier backed by the Firebase Admin SDK."""

    def __init__(self, app: Optional[firebase_admin.App] = None):
        self._app = app

    def _get_app(self) -> firebase_admin.App:
        if self._app is None:
            self._app = initialize_firebase()
        return self._app

    async def _call(self, operation: str, func, *args, **kwargs):
        try:
            return await run_in_threadpool(func, *args, app=self._get_app(), **kwargs)
        except TRANSPORT_ERRORS as e:
            logger.error(f"Identity service unreachable during {operation}: {type(e).__name__}")
            raise UpstreamUnavailable("identity service") from e
        except (ValueError, FirebaseError) as e:
            # expired, revoked and malformed values all look the same to callers
            logger.info(f"{operation} rejected: {type(e).__name__}")
            raise IdentityVerificationError(str(e)) from e

    async def verify_bearer_token(self, id_token: str) -> Optional[str]:
        decoded = await self._call("Id token verification", auth.verify_id_token, id_token)
        return decoded.get("email")

    async def mint_session_artifact(self, id_token: str, ttl: timedelta) -> str:
        return await self._call(
            "Session cookie creation", auth.create_session_cookie, id_token, expires_in=ttl
        )

    async def validate_artifact(self, artifact: str) -> Optional[str]:
        decoded = await self._call(
            "Session cookie verification", auth.verify_session_cookie, artifact, check_revoked=True
        )
        return decoded.get("email")


def initialize_firebase() -> firebase_admin.App:
    """Initialize (once) the default Firebase app from settings."""
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass

    if not (settings.firebase_project_id and settings.firebase_client_email
            and settings.firebase_private_key):
        raise RuntimeError(
            "Firebase is not configured. Set FIREBASE_PROJECT_ID, "
            "FIREBASE_CLIENT_EMAIL and FIREBASE_PRIVATE_KEY."
        )

    cert = credentials.Certificate({
        "type": "service_account",
        "project_id": settings.firebase_project_id,
        "client_email": settings.firebase_client_email,
        # .env files carry the key with escaped newlines
        "private_key": settings.firebase_private_key.replace("\\n", "\n"),
        "token_uri": "https://oauth2.googleapis.com/token",
    })
    logger.info(f"Initializing Firebase app for project {settings.firebase_project_id}")
    return firebase_admin.initialize_app(cert)


class _VerifierState:
    verifier: Optional[IdentityVerifier] = None


_state = _VerifierState()


def get_identity_verifier() -> IdentityVerifier:
    """FastAPI dependency returning the process-wide verifier."""
    if _state.verifier is None:
        _state.verifier = FirebaseIdentityVerifier()
    return _state.verifier


def set_identity_verifier(verifier: Optional[IdentityVerifier]) -> None:
    """Replace the process-wide verifier; None resets to the Firebase default."""
    _state.verifier = verifier
