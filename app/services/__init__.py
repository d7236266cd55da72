"""Authentication and account services."""
from app.services.session_authority import SessionAuthority, SessionCredentials
from app.services.account_lifecycle import AccountLifecycleManager, FederatedSignInResult

__all__ = [
    "SessionAuthority",
    "SessionCredentials",
    "AccountLifecycleManager",
    "FederatedSignInResult",
]
