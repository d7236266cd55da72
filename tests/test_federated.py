"""Tests for Google / Facebook sign-in."""
from datetime import timedelta

import pytest
from firebase_admin import auth as firebase_auth, exceptions as firebase_exceptions

from app.core.config import settings
from app.core.federated import (
    FirebaseIdentityVerifier,
    IdentityVerificationError,
    get_identity_verifier,
    set_identity_verifier,
)
from app.main import app
from app.repositories.user_repo import UserRepository
from conftest import API, cleared_cookies

FEDERATED = settings.federated_cookie_name


def sign_in(client, provider, id_token):
    return client.post(f"{API}/users/{provider}-signin", json={"idToken": id_token})


class TestFederatedSignIn:
    """Tests for POST /users/{provider}-signin."""

    @pytest.mark.parametrize("provider", ["google", "facebook"])
    def test_new_email_creates_verified_user(self, client, identity, load_user, provider):
        token = identity.issue_id_token("fed@example.com")

        response = sign_in(client, provider, token)

        assert response.status_code == 201
        assert response.json()["user"] == {"name": "fed@example.com", "email": "fed@example.com"}
        user = load_user("fed@example.com")
        assert user.verified is True
        assert user.profile is not None

    def test_sets_artifact_cookie_with_five_day_lifetime(self, client, identity):
        token = identity.issue_id_token("fed@example.com")

        response = sign_in(client, "google", token)

        artifact, ttl = identity.minted[-1]
        assert ttl == timedelta(days=5)
        assert client.cookies.get(FEDERATED) == artifact
        cookie_header = next(
            header for header in response.headers.get_list("set-cookie")
            if header.startswith(f"{FEDERATED}=")
        )
        assert "httponly" in cookie_header.lower()
        assert f"max-age={5 * 24 * 60 * 60}" in cookie_header.lower()

    def test_repeat_sign_in_returns_existing_user(self, client, identity, load_user):
        """Test that a second sign-in reuses the account created by the first."""
        assert sign_in(client, "google", identity.issue_id_token("fed@example.com")).status_code == 201
        first_id = load_user("fed@example.com").id

        response = sign_in(client, "google", identity.issue_id_token("fed@example.com"))

        assert response.status_code == 200
        assert load_user("fed@example.com").id == first_id

    def test_existing_password_user_becomes_verified(self, client, identity, make_user, load_user):
        """Test that the provider proving the address verifies an existing account."""
        make_user("ana@example.com", name="Ana", verified=False)

        response = sign_in(client, "facebook", identity.issue_id_token("ana@example.com"))

        assert response.status_code == 200
        assert response.json()["user"]["name"] == "Ana"
        assert load_user("ana@example.com").verified is True

    def test_lost_creation_race_reuses_existing_account(
        self, client, identity, make_user, load_user, monkeypatch
    ):
        """Test that an insert conflict falls back to the account another sign-in created."""
        user_id = make_user("ana@example.com", name="Ana", verified=False)
        get_by_email = UserRepository.get_by_email
        lookups = []

        async def first_lookup_misses(repo, email):
            # The account appears between the lookup and the insert
            lookups.append(email)
            if len(lookups) == 1:
                return None
            return await get_by_email(repo, email)

        monkeypatch.setattr(UserRepository, "get_by_email", first_lookup_misses)
        response = sign_in(client, "google", identity.issue_id_token("ana@example.com"))
        monkeypatch.undo()

        assert response.status_code == 200
        assert response.json()["user"] == {"name": "Ana", "email": "ana@example.com"}
        assert lookups == ["ana@example.com", "ana@example.com"]
        user = load_user("ana@example.com")
        assert user.id == user_id
        assert user.verified is True
        assert client.cookies.get(FEDERATED) == identity.minted[-1][0]

    def test_token_without_email_rejected(self, client, identity, load_user):
        response = sign_in(client, "google", identity.issue_id_token(None))

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid or missing email in Google token"
        assert client.cookies.get(FEDERATED) is None

    def test_rejected_token(self, client):
        response = sign_in(client, "facebook", "forged-token")

        assert response.status_code == 400
        assert response.json()["details"] == {"provider": "facebook"}

    def test_disabled_user_refused(self, client, identity, make_user):
        make_user("ana@example.com", disabled=True)

        response = sign_in(client, "google", identity.issue_id_token("ana@example.com"))

        assert response.status_code == 401
        assert response.json()["error"] == "User disabled"
        assert FEDERATED in {
            header.partition("=")[0] for header in response.headers.get_list("set-cookie")
            if "max-age=0" in header.lower()
        }

    def test_unsupported_provider(self, client, identity):
        response = sign_in(client, "twitter", identity.issue_id_token("fed@example.com"))

        assert response.status_code == 422
        assert "provider" in response.json()["details"]["fields"]

    def test_missing_id_token(self, client):
        response = client.post(f"{API}/users/google-signin", json={})

        assert response.status_code == 422
        assert "idToken" in response.json()["details"]["fields"]


class TestFederatedSession:
    """The artifact cookie authenticates later requests."""

    def test_auth_check_after_sign_in(self, client, identity):
        sign_in(client, "google", identity.issue_id_token("fed@example.com"))

        response = client.get(f"{API}/session/auth-check")

        assert response.status_code == 200
        assert response.json()["user"]["email"] == "fed@example.com"

    def test_revoked_artifact_rejected(self, client, identity):
        sign_in(client, "google", identity.issue_id_token("fed@example.com"))
        identity.revoke(client.cookies.get(FEDERATED))

        response = client.get(f"{API}/session/auth-check")

        assert response.status_code == 401

    def test_logout_clears_artifact(self, client, identity):
        sign_in(client, "google", identity.issue_id_token("fed@example.com"))

        client.post(f"{API}/session/logout")

        assert client.cookies.get(FEDERATED) is None
        assert client.get(f"{API}/session/auth-check").status_code == 401


@pytest.fixture
def firebase(client):
    """Route requests through the Firebase verifier with the SDK calls patched per test."""
    verifier = FirebaseIdentityVerifier(app=object())
    app.dependency_overrides[get_identity_verifier] = lambda: verifier
    return verifier


class TestFirebaseVerifier:
    """Firebase failures: rejections are 401/400, outages are 503 and keep the session."""

    def test_outage_during_auth_check_keeps_session(
        self, client, firebase, make_user, login, session_store, monkeypatch
    ):
        make_user("ana@example.com")
        login("ana@example.com")
        client.cookies.set(FEDERATED, "artifact-from-earlier")

        def unreachable(*args, **kwargs):
            raise firebase_exceptions.UnavailableError("backend unavailable")

        monkeypatch.setattr(firebase_auth, "verify_session_cookie", unreachable)
        response = client.get(f"{API}/session/auth-check")

        assert response.status_code == 503
        assert response.json()["details"] == {"service": "identity service"}
        assert cleared_cookies(response) == set()
        assert len(session_store) == 1

    def test_certificate_fetch_failure_is_an_outage(self, client, firebase, monkeypatch):
        client.cookies.set(FEDERATED, "artifact-from-earlier")

        def no_certificates(*args, **kwargs):
            raise firebase_auth.CertificateFetchError("could not fetch certificates", None)

        monkeypatch.setattr(firebase_auth, "verify_session_cookie", no_certificates)
        response = client.get(f"{API}/session/auth-check")

        assert response.status_code == 503
        assert FEDERATED not in cleared_cookies(response)

    def test_revoked_cookie_still_rejected(self, client, firebase, monkeypatch):
        client.cookies.set(FEDERATED, "artifact-from-earlier")

        def revoked(*args, **kwargs):
            raise firebase_auth.RevokedSessionCookieError("session cookie revoked")

        monkeypatch.setattr(firebase_auth, "verify_session_cookie", revoked)
        response = client.get(f"{API}/session/auth-check")

        assert response.status_code == 401
        assert FEDERATED in cleared_cookies(response)

    def test_outage_during_sign_in_creates_nothing(self, client, firebase, load_user, monkeypatch):
        def timed_out(*args, **kwargs):
            raise firebase_exceptions.DeadlineExceededError("deadline exceeded")

        monkeypatch.setattr(firebase_auth, "verify_id_token", timed_out)
        response = sign_in(client, "google", "some-id-token")

        assert response.status_code == 503
        assert client.cookies.get(FEDERATED) is None
        assert load_user("fed@example.com") is None

    def test_sign_in_passes_through_firebase(self, client, firebase, load_user, monkeypatch):
        monkeypatch.setattr(
            firebase_auth, "verify_id_token",
            lambda id_token, app=None: {"email": "fed@example.com"}
        )
        monkeypatch.setattr(
            firebase_auth, "create_session_cookie",
            lambda id_token, expires_in, app=None: "minted-cookie"
        )

        response = sign_in(client, "google", "some-id-token")

        assert response.status_code == 201
        assert client.cookies.get(FEDERATED) == "minted-cookie"
        assert load_user("fed@example.com").verified is True


class TestVerifierRegistry:
    def test_set_and_reset(self, identity):
        set_identity_verifier(identity)
        try:
            assert get_identity_verifier() is identity
        finally:
            set_identity_verifier(None)

        assert isinstance(get_identity_verifier(), FirebaseIdentityVerifier)
        set_identity_verifier(None)

    @pytest.mark.asyncio
    async def test_malformed_value_is_a_rejection(self, monkeypatch):
        verifier = FirebaseIdentityVerifier(app=object())

        def malformed(*args, **kwargs):
            raise ValueError("Illegal session cookie provided")

        monkeypatch.setattr(firebase_auth, "verify_session_cookie", malformed)

        with pytest.raises(IdentityVerificationError):
            await verifier.validate_artifact("garbage")
