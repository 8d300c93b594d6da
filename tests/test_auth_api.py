"""HTTP flows for /api/auth and the access-token guarded /api/users endpoints."""
import pytest

from api import create_app
from models import storage
from models.user import Role, User
from services.errors import AuthError

REGISTER = {"username": "alice", "password": "pw1234567", "confirmPassword": "pw1234567"}
CREDENTIALS = {"username": "alice", "password": "pw1234567"}


def refresh_cookie(client):
    cookie = client.get_cookie("jwt")
    return cookie.value if cookie else None


@pytest.fixture
def registered(client):
    resp = client.post("/api/auth/register", json=REGISTER)
    assert resp.status_code == 201
    return resp


@pytest.fixture
def logged_in(client, registered):
    resp = client.post("/api/auth/login", json=CREDENTIALS)
    assert resp.status_code == 200
    return resp


class TestRegister:
    def test_created(self, client):
        resp = client.post("/api/auth/register", json=REGISTER)

        assert resp.status_code == 201
        assert resp.get_json() == {"message": "Account created successfully"}
        assert refresh_cookie(client) is None

    def test_role_cannot_be_chosen(self, client):
        resp = client.post("/api/auth/register", json={**REGISTER, "role": "admin"})

        assert resp.status_code == 201
        user = storage.get_session().query(User).filter(User.username == "alice").first()
        assert user.role == Role.CLIENT

    def test_duplicate(self, client, registered):
        resp = client.post("/api/auth/register", json=REGISTER)

        assert resp.status_code == 409
        assert resp.get_json()["error"] == "USERNAME_TAKEN"

    def test_password_mismatch(self, client):
        resp = client.post("/api/auth/register", json={**REGISTER, "confirmPassword": "pw7654321"})

        assert resp.status_code == 400
        assert "confirmPassword" in resp.get_json()["details"]

    @pytest.mark.parametrize(
        "payload",
        [
            {},
            {**REGISTER, "username": "al"},
            {**REGISTER, "password": "short", "confirmPassword": "short"},
        ],
    )
    def test_validation(self, client, payload):
        resp = client.post("/api/auth/register", json=payload)

        assert resp.status_code == 400
        assert resp.get_json()["error"] == "VALIDATION_ERROR"

    def test_username_is_trimmed(self, client):
        client.post("/api/auth/register", json={**REGISTER, "username": "  alice  "})

        resp = client.post("/api/auth/login", json=CREDENTIALS)
        assert resp.status_code == 200


class TestLogin:
    def test_body_and_cookie(self, client, logged_in):
        body = logged_in.get_json()

        assert set(body) == {"accessToken", "role", "userId", "username"}
        assert body["role"] == "client"
        assert body["username"] == "alice"
        assert refresh_cookie(client)
        set_cookie = logged_in.headers.get("Set-Cookie")
        assert "HttpOnly" in set_cookie
        assert "SameSite=Lax" in set_cookie
        assert "Max-Age=86400" in set_cookie
        assert "Secure" not in set_cookie

    def test_prior_cookie_is_cleared_before_new_one(self, client, logged_in):
        previous = refresh_cookie(client)

        resp = client.post("/api/auth/login", json=CREDENTIALS)

        headers = resp.headers.getlist("Set-Cookie")
        assert len(headers) == 2
        assert headers[0].startswith("jwt=;")
        assert "Max-Age=0" in headers[0]
        assert headers[1].startswith(f"jwt={refresh_cookie(client)};")
        assert refresh_cookie(client) != previous

    def test_no_clearing_without_prior_cookie(self, client, registered):
        resp = client.post("/api/auth/login", json=CREDENTIALS)

        headers = resp.headers.getlist("Set-Cookie")
        assert len(headers) == 1
        assert not headers[0].startswith("jwt=;")

    def test_cookie_is_secure_in_production(self, registered):
        prod_app = create_app("prod")
        with prod_app.test_client() as prod_client:
            resp = prod_client.post("/api/auth/login", json=CREDENTIALS)

        assert resp.status_code == 200
        assert "Secure" in resp.headers.get("Set-Cookie").split("; ")

    def test_error_payload_does_not_reveal_username(self, client, registered):
        ghost = client.post("/api/auth/login", json={"username": "ghost", "password": "x"})
        wrong = client.post("/api/auth/login", json={"username": "alice", "password": "wrong"})

        assert ghost.status_code == wrong.status_code == 401
        assert ghost.get_json() == wrong.get_json()

    def test_missing_fields(self, client):
        resp = client.post("/api/auth/login", json={"username": "alice"})

        assert resp.status_code == 400

    def test_stale_cookie_self_heals(self, client, registered):
        client.set_cookie("jwt", "stale-token")

        resp = client.post("/api/auth/login", json=CREDENTIALS)

        assert resp.status_code == 200
        new_token = refresh_cookie(client)
        assert new_token != "stale-token"
        user = storage.get_session().query(User).filter(User.username == "alice").first()
        assert user.refresh_tokens == [new_token]


class TestRefresh:
    def test_rotates_cookie(self, client, logged_in):
        old_cookie = refresh_cookie(client)

        resp = client.get("/api/auth/refresh")

        assert resp.status_code == 200
        body = resp.get_json()
        assert body["accessToken"] != logged_in.get_json()["accessToken"]
        assert body["userId"] == logged_in.get_json()["userId"]
        assert refresh_cookie(client) not in (None, old_cookie)

    def test_without_cookie(self, client):
        resp = client.get("/api/auth/refresh")

        assert resp.status_code == 401
        assert resp.get_json()["error"] == "TOKEN_MISSING"

    def test_rejected_cookie_is_cleared(self, client, logged_in):
        client.set_cookie("jwt", "garbage")

        resp = client.get("/api/auth/refresh")

        assert resp.status_code == 401
        assert refresh_cookie(client) is None


class TestLogout:
    def test_without_cookie(self, client):
        resp = client.post("/api/auth/logout")

        assert resp.status_code == 400

    def test_logout_twice(self, client, logged_in):
        token = refresh_cookie(client)

        first = client.post("/api/auth/logout")
        assert first.status_code == 204
        assert refresh_cookie(client) is None

        client.set_cookie("jwt", token)
        second = client.post("/api/auth/logout")
        assert second.status_code == 404
        assert second.get_json()["message"] == "Session not found"


def test_session_lifecycle(client):
    assert client.post("/api/auth/register", json=REGISTER).status_code == 201

    login = client.post("/api/auth/login", json=CREDENTIALS)
    assert login.status_code == 200
    original = refresh_cookie(client)

    rotated = client.get("/api/auth/refresh")
    assert rotated.status_code == 200
    assert rotated.get_json()["accessToken"] != login.get_json()["accessToken"]
    newest = refresh_cookie(client)
    assert newest != original

    client.set_cookie("jwt", original)
    replay = client.get("/api/auth/refresh")
    assert replay.status_code == 401
    assert replay.get_json()["error"] == "TOKEN_REUSE_DETECTED"

    # the replay revoked every session of alice, the newest one included
    client.set_cookie("jwt", newest)
    assert client.post("/api/auth/logout").status_code == 404

    client.set_cookie("jwt", newest)
    assert client.get("/api/auth/refresh").status_code == 401


def test_logout_then_refresh(client, logged_in):
    rotated = client.get("/api/auth/refresh")
    assert rotated.status_code == 200
    newest = refresh_cookie(client)

    assert client.post("/api/auth/logout").status_code == 204

    client.set_cookie("jwt", newest)
    resp = client.get("/api/auth/refresh")
    assert resp.status_code == 401
    assert resp.get_json()["error"] == "TOKEN_REUSE_DETECTED"


class TestUsers:
    def test_me(self, client, logged_in):
        token = logged_in.get_json()["accessToken"]

        resp = client.get("/api/users/me", headers={"Authorization": f"Bearer {token}"})

        assert resp.status_code == 200
        assert resp.get_json()["data"]["username"] == "alice"
        assert resp.get_json()["data"]["role"] == "client"

    def test_me_requires_bearer(self, client):
        assert client.get("/api/users/me").status_code == 401

    def test_refresh_token_is_not_an_access_token(self, client, logged_in):
        resp = client.get("/api/users/me", headers={"Authorization": f"Bearer {refresh_cookie(client)}"})

        assert resp.status_code == 401

    def test_list_requires_admin(self, client, logged_in):
        token = logged_in.get_json()["accessToken"]

        resp = client.get("/api/users", headers={"Authorization": f"Bearer {token}"})

        assert resp.status_code == 403

    def test_list_as_admin(self, client, registered):
        user = storage.get_session().query(User).filter(User.username == "alice").first()
        user.role = Role.ADMIN
        user.save()
        storage.close()
        token = client.post("/api/auth/login", json=CREDENTIALS).get_json()["accessToken"]

        resp = client.get("/api/users", headers={"Authorization": f"Bearer {token}"})

        assert resp.status_code == 200
        body = resp.get_json()
        assert body["meta"]["total"] == 1
        assert body["data"][0]["username"] == "alice"


def test_health(client):
    resp = client.get("/api/health")

    assert resp.status_code == 200
    assert resp.get_json()["status"] == "ok"


def test_bare_auth_error_maps_to_401(app):
    def locked():
        raise AuthError()

    app.add_url_rule("/locked", "locked", locked)

    resp = app.test_client().get("/locked")

    assert resp.status_code == 401
    assert resp.get_json()["error"] == "UNAUTHORIZED"
