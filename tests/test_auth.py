"""Tests for registration, login, sessions and user administration."""
import pytest

from app.tenderguru import create_app
from app.tenderguru.db import create_schema, session_scope
from app.tenderguru.models import AuditEvent, User


def _seed_users(s):
    users = {}
    for employee_id, name, email, role in (
        ("ADM-1", "Admin", "admin@example.com", "admin"),
        ("E-100", "Sam Staff", "staff@example.com", "staff"),
    ):
        u = User(name=name, email=email, employee_id=employee_id, role=role, permissions=[], is_active=True)
        u.set_password("password123")
        s.add(u)
        users[employee_id] = u
    return users


@pytest.fixture()
def client(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("JWT_SECRET", "test-jwt-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    monkeypatch.setenv("UPLOAD_ROOT", str(tmp_path / "uploads"))
    monkeypatch.setenv("EXPOSE_RESET_TOKEN", "1")
    monkeypatch.setenv("NOTIFICATIONS_ASYNC", "0")
    for k in ("S3_ENDPOINT", "S3_REGION", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY", "SMTP_SERVER"):
        monkeypatch.delenv(k, raising=False)

    app = create_app()
    create_schema(app)

    with session_scope(app) as s:
        _seed_users(s)

    return app.test_client()


def _login(client, email="admin@example.com", password="password123"):
    r = client.post("/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.json
    return r.json["token"]


def _auth(token):
    return {"Authorization": f"Bearer {token}"}


def _user_id(client, employee_id):
    with session_scope(client.application) as s:
        return s.query(User).filter_by(employee_id=employee_id).one().id


def test_register_returns_token_and_public_user(client):
    r = client.post(
        "/auth/register",
        json={
            "name": "New Person",
            "email": "New@Example.com",
            "password": "longenough",
            "employeeId": "E-200",
            "department": "Procurement",
        },
    )
    assert r.status_code == 201
    assert r.json["status"] == "success"
    assert r.json["token"]
    user = r.json["data"]["user"]
    assert user["email"] == "new@example.com"
    assert user["employeeId"] == "E-200"
    assert user["role"] == "staff"
    assert "password" not in user
    assert "passwordHash" not in user
    assert client.get_cookie("jwt") is not None

    # The new token works immediately.
    r = client.get("/auth/me", headers=_auth(r.json["token"]))
    assert r.status_code == 200
    assert r.json["data"]["user"]["employeeId"] == "E-200"


def test_register_duplicate_email_or_employee_id(client):
    r = client.post(
        "/auth/register",
        json={"name": "Dup", "email": "admin@example.com", "password": "longenough", "employeeId": "E-300"},
    )
    assert r.status_code == 400
    assert r.json["status"] == "fail"
    assert "email" in r.json["message"]

    r = client.post(
        "/auth/register",
        json={"name": "Dup", "email": "other@example.com", "password": "longenough", "employeeId": "E-100"},
    )
    assert r.status_code == 400
    assert "employee ID" in r.json["message"]


def test_register_validation(client):
    r = client.post("/auth/register", json={"name": "X", "email": "x@example.com", "password": "short", "employeeId": "E-9"})
    assert r.status_code == 400
    assert "at least 8" in r.json["message"]

    r = client.post("/auth/register", json={"name": "X", "password": "longenough"})
    assert r.status_code == 400
    assert "email" in r.json["message"]
    assert "employeeId" in r.json["message"]


def test_register_closed_requires_admin(client):
    client.application.config["ALLOW_OPEN_REGISTRATION"] = False
    body = {"name": "Closed", "email": "closed@example.com", "password": "longenough", "employeeId": "E-400"}

    anon = client.application.test_client()
    r = anon.post("/auth/register", json=body)
    assert r.status_code == 401

    staff_token = _login(client, "staff@example.com")
    r = client.post("/auth/register", json=body, headers=_auth(staff_token))
    assert r.status_code == 403

    admin_token = _login(client)
    r = client.post("/auth/register", json=body, headers=_auth(admin_token))
    assert r.status_code == 201


def test_login_wrong_password_is_401_without_token(client):
    r = client.post("/auth/login", json={"email": "admin@example.com", "password": "wrong-password"})
    assert r.status_code == 401
    assert r.json == {"status": "fail", "message": "Incorrect email or password"}
    assert "token" not in r.json

    r = client.post("/auth/login", json={"email": "nobody@example.com", "password": "password123"})
    assert r.status_code == 401
    assert r.json["message"] == "Incorrect email or password"

    with session_scope(client.application) as s:
        failed = s.query(AuditEvent).filter_by(action="auth.login_failed").count()
    assert failed == 2


def test_login_missing_fields(client):
    r = client.post("/auth/login", json={"email": "admin@example.com"})
    assert r.status_code == 401
    assert r.json["message"] == "Please provide email and password!"


def test_login_is_case_insensitive_on_email(client):
    token = _login(client, "ADMIN@example.com")
    assert token


def test_deactivated_user_cannot_login_or_use_token(client):
    staff_token = _login(client, "staff@example.com")
    admin_token = _login(client)

    r = client.patch(f"/auth/users/{_user_id(client, 'E-100')}", json={"isActive": False}, headers=_auth(admin_token))
    assert r.status_code == 200
    assert r.json["data"]["user"]["isActive"] is False

    r = client.get("/auth/me", headers=_auth(staff_token))
    assert r.status_code == 401
    assert r.json["message"] == "Your account has been deactivated"

    r = client.post("/auth/login", json={"email": "staff@example.com", "password": "password123"})
    assert r.status_code == 401


def test_invalid_and_missing_tokens(client):
    anon = client.application.test_client()
    r = anon.get("/auth/me")
    assert r.status_code == 401
    assert r.json["message"] == "Authentication required"

    r = anon.get("/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401
    assert r.json["message"] == "Invalid or expired token"


def test_cookie_session_and_logout(client):
    _login(client, "staff@example.com")
    r = client.get("/auth/me")
    assert r.status_code == 200
    assert r.json["data"]["user"]["email"] == "staff@example.com"

    r = client.get("/auth/logout")
    assert r.status_code == 200
    r = client.get("/auth/me")
    assert r.status_code == 401


def test_token_for_deleted_user_is_rejected(client):
    staff_token = _login(client, "staff@example.com")
    admin_token = _login(client)

    r = client.delete(f"/auth/users/{_user_id(client, 'E-100')}", headers=_auth(admin_token))
    assert r.status_code == 204

    r = client.get("/auth/me", headers=_auth(staff_token))
    assert r.status_code == 401
    assert r.json["message"] == "User no longer exists"


def test_update_password_invalidates_older_tokens(client):
    old_token = _login(client, "staff@example.com")

    r = client.patch(
        "/auth/update-password",
        json={"passwordCurrent": "password123", "password": "brand-new-pass"},
        headers=_auth(old_token),
    )
    assert r.status_code == 200
    new_token = r.json["token"]

    r = client.get("/auth/me", headers=_auth(old_token))
    assert r.status_code == 401
    assert r.json["message"] == "Password changed - please log in again"

    r = client.get("/auth/me", headers=_auth(new_token))
    assert r.status_code == 200

    _login(client, "staff@example.com", "brand-new-pass")


def test_update_password_wrong_current(client):
    token = _login(client, "staff@example.com")
    r = client.patch(
        "/auth/update-password",
        json={"passwordCurrent": "not-it-at-all", "password": "brand-new-pass"},
        headers=_auth(token),
    )
    assert r.status_code == 401
    assert r.json["message"] == "Your current password is wrong."


def test_forgot_and_reset_password_flow(client):
    old_token = _login(client, "staff@example.com")

    r = client.post("/auth/forgot-password", json={"email": "staff@example.com"})
    assert r.status_code == 200
    assert r.json["message"] == "Token sent to email!"
    raw = r.json["token"]

    # Only the hash is stored.
    with session_scope(client.application) as s:
        stored = s.query(User).filter_by(employee_id="E-100").one().password_reset_token
    assert stored and stored != raw

    r = client.patch("/auth/reset-password/not-the-token", json={"password": "reset-pass-1"})
    assert r.status_code == 400
    assert r.json["message"] == "Token is invalid or has expired"

    r = client.patch(f"/auth/reset-password/{raw}", json={"password": "reset-pass-1"})
    assert r.status_code == 200
    assert r.json["token"]

    # Single use.
    r = client.patch(f"/auth/reset-password/{raw}", json={"password": "reset-pass-2"})
    assert r.status_code == 400

    r = client.get("/auth/me", headers=_auth(old_token))
    assert r.status_code == 401
    _login(client, "staff@example.com", "reset-pass-1")


def test_forgot_password_unknown_email(client):
    r = client.post("/auth/forgot-password", json={"email": "ghost@example.com"})
    assert r.status_code == 404
    assert r.json["message"] == "There is no user with that email address."


def test_forgot_password_hides_token_when_not_exposed(client):
    client.application.config["EXPOSE_RESET_TOKEN"] = False
    r = client.post("/auth/forgot-password", json={"email": "staff@example.com"})
    assert r.status_code == 200
    assert "token" not in r.json


def test_forgot_password_mail_failure_clears_token(client, monkeypatch):
    from app.tenderguru import auth
    from app.tenderguru.mailer import MailError

    def _boom(*args, **kwargs):
        raise MailError("smtp down")

    client.application.config["SMTP_SERVER"] = "smtp.example.com"
    monkeypatch.setattr(auth, "send_email", _boom)

    r = client.post("/auth/forgot-password", json={"email": "staff@example.com"})
    assert r.status_code == 500
    assert r.json == {"status": "error", "message": "There was an error sending the email. Try again later!"}

    with session_scope(client.application) as s:
        u = s.query(User).filter_by(employee_id="E-100").one()
        assert u.password_reset_token is None
        assert u.password_reset_expires is None


def test_update_me_allows_profile_fields(client):
    token = _login(client, "staff@example.com")
    r = client.patch(
        "/auth/update-me",
        json={"name": "Sam Renamed", "phoneNumber": "555-0100", "department": "Finance"},
        headers=_auth(token),
    )
    assert r.status_code == 200
    user = r.json["data"]["user"]
    assert user["name"] == "Sam Renamed"
    assert user["phoneNumber"] == "555-0100"
    assert user["department"] == "Finance"


@pytest.mark.parametrize("payload", [{"role": "admin"}, {"password": "whatever1"}, {"isActive": False}, {"permissions": ["x"]}])
def test_update_me_rejects_privileged_fields(client, payload):
    token = _login(client, "staff@example.com")
    r = client.patch("/auth/update-me", json={"name": "Sneaky", **payload}, headers=_auth(token))
    assert r.status_code == 400
    assert r.json["message"] == "This route is not for password, role, permissions, or status updates."

    r = client.get("/auth/me", headers=_auth(token))
    assert r.json["data"]["user"]["role"] == "staff"
    assert r.json["data"]["user"]["name"] == "Sam Staff"


def test_update_me_rejects_unknown_and_empty(client):
    token = _login(client, "staff@example.com")
    r = client.patch("/auth/update-me", json={"favouriteColour": "blue"}, headers=_auth(token))
    assert r.status_code == 400
    assert "favouriteColour" in r.json["message"]

    r = client.patch("/auth/update-me", json={}, headers=_auth(token))
    assert r.status_code == 400


def test_user_admin_routes_are_admin_only(client):
    staff_token = _login(client, "staff@example.com")
    admin_id = _user_id(client, "ADM-1")

    r = client.get("/auth/users", headers=_auth(staff_token))
    assert r.status_code == 403
    assert r.json["message"] == "You do not have permission to perform this action"

    r = client.patch(f"/auth/users/{admin_id}", json={"name": "Hacked"}, headers=_auth(staff_token))
    assert r.status_code == 403

    r = client.delete(f"/auth/users/{admin_id}", headers=_auth(staff_token))
    assert r.status_code == 403


def test_admin_lists_and_looks_up_users(client):
    token = _login(client)
    r = client.get("/auth/users", headers=_auth(token))
    assert r.status_code == 200
    assert r.json["results"] == 2
    assert {u["employeeId"] for u in r.json["data"]["users"]} == {"ADM-1", "E-100"}

    staff_token = _login(client, "staff@example.com")
    r = client.get("/auth/users/ADM-1", headers=_auth(staff_token))
    assert r.status_code == 200
    assert r.json["data"]["user"]["email"] == "admin@example.com"

    r = client.get("/auth/users/E-999", headers=_auth(staff_token))
    assert r.status_code == 404
    assert r.json["message"] == "No user found with that employee ID"


def test_admin_update_user_role_and_rejects_password(client):
    token = _login(client)
    staff_id = _user_id(client, "E-100")

    r = client.patch(f"/auth/users/{staff_id}", json={"role": "procurement_officer"}, headers=_auth(token))
    assert r.status_code == 200
    assert r.json["data"]["user"]["role"] == "procurement_officer"

    r = client.patch(f"/auth/users/{staff_id}", json={"role": "emperor"}, headers=_auth(token))
    assert r.status_code == 400

    r = client.patch(f"/auth/users/{staff_id}", json={"password": "new-password"}, headers=_auth(token))
    assert r.status_code == 400

    r = client.patch("/auth/users/99999", json={"name": "Ghost"}, headers=_auth(token))
    assert r.status_code == 404


def test_admin_cannot_delete_self(client):
    token = _login(client)
    r = client.delete(f"/auth/users/{_user_id(client, 'ADM-1')}", headers=_auth(token))
    assert r.status_code == 403
    assert r.json["message"] == "You cannot delete your own account"


def test_admin_deletes_other_user(client):
    token = _login(client)
    r = client.delete(f"/auth/users/{_user_id(client, 'E-100')}", headers=_auth(token))
    assert r.status_code == 204
    assert r.data == b""

    r = client.get("/auth/users/E-100", headers=_auth(token))
    assert r.status_code == 404


def test_self_signup_cannot_pick_a_role(client):
    body = {"name": "Eve", "email": "eve@example.com", "password": "longenough", "employeeId": "E-666", "role": "admin"}
    anon = client.application.test_client()
    r = anon.post("/auth/register", json=body)
    assert r.status_code == 403
    assert r.json["message"] == "Only administrators can assign roles"

    token = _login(client)
    r = client.post("/auth/register", json=body, headers=_auth(token))
    assert r.status_code == 201
    assert r.json["data"]["user"]["role"] == "admin"


def test_reset_password_accepts_post(client):
    r = client.post("/auth/forgot-password", json={"email": "staff@example.com"})
    raw = r.json["token"]

    r = client.post("/auth/reset-password/not-the-token", json={"password": "whatever123"})
    assert r.status_code == 400
    assert r.json["message"] == "Token is invalid or has expired"

    r = client.post(f"/auth/reset-password/{raw}", json={"password": "posted-pass-1"})
    assert r.status_code == 200
    assert r.json["token"]
    _login(client, "staff@example.com", "posted-pass-1")


@pytest.mark.parametrize(
    "payload",
    [
        {"email": 5, "password": "password123"},
        {"email": "admin@example.com", "password": 12345678},
        {"email": ["admin@example.com"], "password": {"x": 1}},
    ],
)
def test_login_non_string_credentials_are_401(client, payload):
    r = client.post("/auth/login", json=payload)
    assert r.status_code == 401
    assert r.json["status"] == "fail"
    assert "token" not in r.json


def test_update_password_non_string_values(client):
    token = _login(client, "staff@example.com")

    r = client.patch(
        "/auth/update-password",
        json={"passwordCurrent": 12345678, "password": "brand-new-pass"},
        headers=_auth(token),
    )
    assert r.status_code == 401
    assert r.json["message"] == "Your current password is wrong."

    r = client.patch(
        "/auth/update-password",
        json={"passwordCurrent": "password123", "password": 123456789},
        headers=_auth(token),
    )
    assert r.status_code == 400
    assert "at least 8" in r.json["message"]


def test_check_password_rejects_non_strings(client):
    with session_scope(client.application) as s:
        u = s.query(User).filter_by(employee_id="E-100").one()
        assert u.check_password("password123")
        assert not u.check_password(12345678)
        assert not u.check_password(None)
