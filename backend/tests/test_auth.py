"""Registration, login, token handling and profile endpoints."""
from datetime import timedelta

from jose import jwt

from cardswap.config import settings
from cardswap.dependencies import create_access_token, user_id_from_payload
from cardswap.models.user import Follower, User


def registration(**overrides):
    payload = {
        "first_name": "Nora",
        "last_name": "Collector",
        "username": "nora",
        "email": "nora@example.com",
        "phone_number": "5551234",
        "password": "hunter22",
    }
    payload.update(overrides)
    return payload


class TestRegister:

    def test_register_grants_starting_coins(self, client, db):
        response = client.post("/api/auth/register", json=registration())

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["username"] == "nora"
        assert data["cxp_coins"] == settings.starting_cxp_coins
        assert "password" not in data
        stored = db.query(User).filter(User.username == "nora").one()
        assert stored.password != "hunter22"

    def test_duplicate_email_is_rejected(self, client, make_user):
        make_user("taken")

        response = client.post("/api/auth/register", json=registration(email="taken@example.com"))

        assert response.status_code == 400
        assert response.json()["message"] == "Email already registered"

    def test_duplicate_username_is_rejected(self, client, make_user):
        make_user("nora")

        response = client.post("/api/auth/register", json=registration(email="other@example.com"))

        assert response.status_code == 400
        assert response.json()["message"] == "Username already taken"

    def test_invalid_payload_lists_fields(self, client):
        response = client.post("/api/auth/register", json=registration(email="not-an-email", password="123"))

        assert response.status_code == 400
        fields = {error["field"] for error in response.json()["data"]}
        assert fields == {"email", "password"}


class TestLogin:

    def test_login_by_username_returns_usable_token(self, client, make_user):
        user = make_user("mika")

        response = client.post("/api/auth/login", json={"identifier": "mika", "password": "secret123"})

        assert response.status_code == 200
        token = response.json()["data"]["token"]
        profile = client.get("/api/users/my-profile", headers={"Authorization": f"Bearer {token}"})
        assert profile.json()["data"]["id"] == user.id

    def test_login_by_email(self, client, make_user):
        make_user("mika")

        response = client.post("/api/auth/login", json={"identifier": "mika@example.com", "password": "secret123"})

        assert response.status_code == 200
        assert response.json()["data"]["user"]["username"] == "mika"

    def test_wrong_password(self, client, make_user):
        make_user("mika")

        response = client.post("/api/auth/login", json={"identifier": "mika", "password": "wrong"})

        assert response.status_code == 401
        assert response.json()["status"] is False

    def test_inactive_account(self, client, db, make_user):
        user = make_user("mika")
        user.user_status = "0"
        db.commit()

        response = client.post("/api/auth/login", json={"identifier": "mika", "password": "secret123"})

        assert response.status_code == 403


class TestTokens:

    def test_missing_token(self, client):
        response = client.get("/api/users/my-profile")

        assert response.status_code == 401

    def test_garbage_token(self, client):
        response = client.get("/api/users/my-profile", headers={"Authorization": "Bearer not.a.jwt"})

        assert response.status_code == 401
        assert response.json()["message"] == "Could not validate credentials"

    def test_expired_token(self, client, make_user):
        user = make_user()
        token = create_access_token({"user_id": user.id}, expires_delta=timedelta(seconds=-10))

        response = client.get("/api/users/my-profile", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401

    def test_token_for_deleted_user(self, client):
        token = create_access_token({"user_id": 4242})

        response = client.get("/api/users/my-profile", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401

    def test_legacy_id_claim_is_accepted(self, client, make_user):
        user = make_user()
        token = jwt.encode({"id": user.id}, settings.jwt_secret, algorithm=settings.jwt_algorithm)

        response = client.get("/api/users/my-profile", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200

    def test_claim_precedence(self):
        assert user_id_from_payload({"sub": "7", "user_id": 3}) == 3
        assert user_id_from_payload({"userId": "9"}) == 9
        assert user_id_from_payload({"sub": "abc"}) is None
        assert user_id_from_payload({}) is None


class TestProfiles:

    def test_public_profile(self, client, make_user):
        user = make_user("shown")

        response = client.get(f"/api/users/profile/{user.id}")

        data = response.json()["data"]
        assert data["username"] == "shown"
        assert "email" not in data

    def test_unknown_profile(self, client):
        assert client.get("/api/users/profile/999").status_code == 404

    def test_follow_then_unfollow(self, client, db, make_user, headers_for):
        fan, star = make_user(), make_user()

        followed = client.post("/api/users/follow", json={"user_id": star.id}, headers=headers_for(fan))

        assert followed.json()["data"] == {"user_id": star.id, "following": True, "followers": 1}
        assert db.query(Follower).count() == 1

        unfollowed = client.post("/api/users/follow", json={"user_id": star.id}, headers=headers_for(fan))

        assert unfollowed.json()["message"] == "User unfollowed successfully"
        assert unfollowed.json()["data"]["followers"] == 0

    def test_cannot_follow_yourself(self, client, make_user, headers_for):
        user = make_user()

        response = client.post("/api/users/follow", json={"user_id": user.id}, headers=headers_for(user))

        assert response.status_code == 400
