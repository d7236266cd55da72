"""Shared test fixtures for all tests."""
import asyncio
import os
import tempfile
from datetime import timedelta
from pathlib import Path

# Configure the app before it is imported
_TMP_DIR = Path(tempfile.mkdtemp(prefix="mealplan-tests-"))
os.environ.update({
    "DATABASE_URL": f"sqlite+aiosqlite:///{_TMP_DIR / 'test.db'}",
    "SESSION_BACKEND": "memory",
    "REDIS_ENABLED": "false",
    "COOKIE_SECURE": "false",
    "RATE_LIMIT_ENABLED": "false",
    "EMAIL_ENABLED": "false",
    "DB_AUTO_CREATE": "false",
    "BCRYPT_ROUNDS": "4",
    "LOG_DIR": str(_TMP_DIR / "logs"),
})

import pytest
from fastapi.testclient import TestClient

from app.core.config import settings
from app.core.database import Base, get_db_context, get_engine, close_db
from app.core.federated import IdentityVerificationError, IdentityVerifier, get_identity_verifier
from app.core.security import get_password_hash
from app.core.sessions import MemorySessionStore, set_session_store
from app.email_service import EmailService, get_email_service
from app.main import app
from app.models.user import Role, User
from app.repositories.user_repo import UserRepository

API = settings.api_prefix
PASSWORD = "correct horse battery"


class FakeIdentityVerifier(IdentityVerifier):
    """In-memory identity service: id tokens and artifacts are plain strings."""

    def __init__(self):
        self.id_tokens: dict[str, str | None] = {}
        self.artifacts: dict[str, str] = {}
        self.minted: list[tuple[str, timedelta]] = []

    def issue_id_token(self, email: str | None) -> str:
        token = f"id-token-{len(self.id_tokens)}"
        self.id_tokens[token] = email
        return token

    def revoke(self, artifact: str) -> None:
        self.artifacts.pop(artifact, None)

    async def verify_bearer_token(self, id_token: str):
        if id_token not in self.id_tokens:
            raise IdentityVerificationError("unknown id token")
        return self.id_tokens[id_token]

    async def mint_session_artifact(self, id_token: str, ttl: timedelta) -> str:
        email = self.id_tokens[id_token]
        artifact = f"artifact-{len(self.minted)}"
        self.minted.append((artifact, ttl))
        self.artifacts[artifact] = email
        return artifact

    async def validate_artifact(self, artifact: str):
        if artifact not in self.artifacts:
            raise IdentityVerificationError("session cookie revoked")
        return self.artifacts[artifact]


class RecordingEmailService(EmailService):
    """Captures verification emails instead of sending them."""

    def __init__(self):
        super().__init__()
        self.verifications: list[tuple[str, str]] = []

    def send_verification_email(self, to_email: str, token: str) -> bool:
        self.verifications.append((to_email, token))
        return True

    def token_for(self, email: str) -> str:
        """Latest verification token mailed to `email`."""
        tokens = [token for to, token in self.verifications if to == email]
        assert tokens, f"no verification email sent to {email}"
        return tokens[-1]


async def _reset_database():
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    await close_db()


def run_db(operation):
    """Run `operation(repo)` against the test database in its own session."""
    async def runner():
        async with get_db_context() as db:
            return await operation(UserRepository(db))
    return asyncio.run(runner())


@pytest.fixture
def identity():
    return FakeIdentityVerifier()


@pytest.fixture
def outbox():
    return RecordingEmailService()


@pytest.fixture
def session_store():
    store = MemorySessionStore(ttl_seconds=settings.session_ttl_seconds)
    set_session_store(store)
    yield store
    set_session_store(None)


@pytest.fixture(scope="function")
def client(identity, outbox, session_store):
    """Create a test client against a fresh database with fake collaborators."""
    asyncio.run(_reset_database())

    app.dependency_overrides[get_identity_verifier] = lambda: identity
    app.dependency_overrides[get_email_service] = lambda: outbox
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(client):
    """Create a user directly in the database and return its id."""
    def _make_user(
        email: str,
        password: str = PASSWORD,
        *,
        name: str = "Test User",
        verified: bool = True,
        disabled: bool = False,
        role: Role = Role.BASIC,
    ):
        async def create(repo: UserRepository):
            user = await repo.create(
                name=name,
                email=email,
                password_hash=get_password_hash(password),
                verified=verified,
                role=role,
            )
            if disabled:
                await repo.update(user, disabled=True)
            return user.id
        return run_db(create)
    return _make_user


@pytest.fixture
def update_user(client):
    """Change columns of an existing user, e.g. to disable it mid-session."""
    def _update_user(email: str, **fields):
        async def update(repo: UserRepository):
            user = await repo.get_by_email(email)
            await repo.update(user, **fields)
        run_db(update)
    return _update_user


@pytest.fixture
def load_user(client):
    def _load_user(email: str) -> User | None:
        async def load(repo: UserRepository):
            return await repo.get_by_email(email)
        return run_db(load)
    return _load_user


@pytest.fixture
def login(client):
    """Log in through the API and return the response."""
    def _login(email: str, password: str = PASSWORD):
        return client.post(f"{API}/session/login", json={"email": email, "password": password})
    return _login


def cleared_cookies(response) -> set[str]:
    """Names of cookies the response expires."""
    names = set()
    for header in response.headers.get_list("set-cookie"):
        name, _, rest = header.partition("=")
        if "max-age=0" in rest.lower():
            names.add(name)
    return names
