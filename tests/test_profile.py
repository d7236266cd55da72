"""Tests for profile settings and user administration."""
import uuid

from app.models.user import Role
from conftest import API


class TestProfile:
    """Tests for GET/PATCH /user/profile."""

    def test_profile_requires_authentication(self, client):
        assert client.get(f"{API}/user/profile").status_code == 401
        assert client.patch(f"{API}/user/profile", json={"age": 30}).status_code == 401

    def test_get_profile(self, client, make_user, login):
        make_user("ana@example.com", name="Ana")
        login("ana@example.com")

        response = client.get(f"{API}/user/profile")

        assert response.status_code == 200
        assert response.json()["user"]["name"] == "Ana"
        assert response.json()["profile"]["goal"] is None

    def test_partial_update(self, client, make_user, login, load_user):
        """Test that only the fields sent are changed."""
        make_user("ana@example.com")
        login("ana@example.com")
        client.patch(f"{API}/user/profile", json={"diet": "VEGAN", "age": 31})

        response = client.patch(
            f"{API}/user/profile",
            json={"intolerances": ["gluten", "lactose"], "mealsPerDay": 3}
        )

        assert response.status_code == 200
        profile = response.json()["profile"]
        assert profile["diet"] == "VEGAN"
        assert profile["age"] == 31
        assert profile["intolerances"] == ["gluten", "lactose"]
        assert profile["mealsPerDay"] == 3
        assert load_user("ana@example.com").profile.meals_per_day == 3

    def test_profile_keys_are_camel_case(self, client, make_user, login):
        make_user("ana@example.com")
        login("ana@example.com")

        response = client.patch(
            f"{API}/user/profile",
            json={"activityLevel": "VERYACTIVE", "favoriteCuisines": ["thai"]}
        )

        profile = response.json()["profile"]
        assert profile["activityLevel"] == "VERYACTIVE"
        assert profile["favoriteCuisines"] == ["thai"]
        assert "meals_per_day" not in profile
        assert "mealsPerDay" in client.get(f"{API}/session/auth-check").json()["profile"]

    def test_snake_case_update_accepted(self, client, make_user, login, load_user):
        make_user("ana@example.com")
        login("ana@example.com")

        response = client.patch(f"{API}/user/profile", json={"meals_per_day": 4})

        assert response.status_code == 200
        assert response.json()["profile"]["mealsPerDay"] == 4
        assert load_user("ana@example.com").profile.meals_per_day == 4

    def test_auth_check_returns_updated_profile(self, client, make_user, login):
        make_user("ana@example.com")
        login("ana@example.com")
        client.patch(f"{API}/user/profile", json={"goal": "MAINTAIN", "weight": 70.5})

        response = client.get(f"{API}/session/auth-check")

        assert response.json()["profile"]["goal"] == "MAINTAIN"
        assert response.json()["profile"]["weight"] == 70.5

    def test_invalid_values_rejected(self, client, make_user, login):
        make_user("ana@example.com")
        login("ana@example.com")

        response = client.patch(
            f"{API}/user/profile",
            json={"diet": "CARNIVORE", "mealsPerDay": 12}
        )

        assert response.status_code == 422
        fields = response.json()["details"]["fields"]
        assert set(fields) == {"diet", "mealsPerDay"}


class TestUserAdmin:
    """Tests for the admin-only /users endpoints."""

    def test_basic_user_forbidden(self, client, make_user, login):
        make_user("ana@example.com")
        login("ana@example.com")

        response = client.get(f"{API}/users")

        assert response.status_code == 403

    def test_anonymous_unauthorized(self, client):
        assert client.get(f"{API}/users").status_code == 401

    def test_list_users(self, client, make_user, login):
        make_user("admin@example.com", role=Role.ADMIN)
        make_user("ana@example.com", verified=False)
        login("admin@example.com")

        response = client.get(f"{API}/users")

        assert response.status_code == 200
        users = response.json()
        assert [user["email"] for user in users] == ["admin@example.com", "ana@example.com"]
        assert users[1]["verified"] is False
        assert users[0]["role"] == "ADMIN"
        assert all("password_hash" not in user for user in users)

    def test_get_user(self, client, make_user, login):
        make_user("admin@example.com", role=Role.ADMIN)
        user_id = make_user("ana@example.com", name="Ana")
        login("admin@example.com")

        response = client.get(f"{API}/users/{user_id}")

        assert response.status_code == 200
        assert response.json()["id"] == str(user_id)
        assert response.json()["name"] == "Ana"

    def test_get_unknown_user(self, client, make_user, login):
        make_user("admin@example.com", role=Role.ADMIN)
        login("admin@example.com")

        response = client.get(f"{API}/users/{uuid.uuid4()}")

        assert response.status_code == 404

    def test_delete_user(self, client, make_user, login, load_user):
        """Test that deleting a user removes the account and its profile."""
        make_user("admin@example.com", role=Role.ADMIN)
        user_id = make_user("ana@example.com")
        login("admin@example.com")

        response = client.delete(f"{API}/users/{user_id}")

        assert response.status_code == 204
        assert load_user("ana@example.com") is None
        assert client.get(f"{API}/users/{user_id}").status_code == 404

    def test_deleted_user_session_rejected(self, client, make_user, login):
        make_user("admin@example.com", role=Role.ADMIN)
        user_id = make_user("ana@example.com")
        login("ana@example.com")
        ana_sid = client.cookies.get("mealplan.sid")
        client.cookies.clear()
        login("admin@example.com")
        client.delete(f"{API}/users/{user_id}")

        client.cookies.clear()
        client.cookies.set("mealplan.sid", ana_sid)
        response = client.get(f"{API}/session/auth-check")

        assert response.status_code == 401


class TestHealth:
    def test_health_reports_dependencies(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] is True
        assert data["session_store"] is True
        assert "X-Process-Time" in response.headers
