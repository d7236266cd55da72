"""Auth cookie helpers shared by routers and error handlers."""
from fastapi import Response

from app.core.config import settings


def set_session_cookie(response: Response, session_id: str) -> None:
    response.set_cookie(
        key=settings.session_cookie_name,
        value=session_id,
        max_age=settings.session_ttl_seconds,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax"
    )


def set_federated_cookie(response: Response, artifact: str) -> None:
    response.set_cookie(
        key=settings.federated_cookie_name,
        value=artifact,
        max_age=settings.federated_session_ttl_seconds,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax"
    )


def clear_auth_cookies(response: Response) -> None:
    """Expire both the first-party and the federated cookie."""
    for name in (settings.session_cookie_name, settings.federated_cookie_name):
        response.delete_cookie(
            key=name,
            httponly=True,
            secure=settings.cookie_secure,
            samesite="lax"
        )
