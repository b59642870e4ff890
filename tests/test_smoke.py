import pytest

from app.tenderguru import create_app
from app.tenderguru.db import create_schema, session_scope
from app.tenderguru.models import User


@pytest.fixture()
def client(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("JWT_SECRET", "test-jwt-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    monkeypatch.setenv("UPLOAD_ROOT", str(tmp_path / "uploads"))
    for k in ("S3_ENDPOINT", "S3_REGION", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY", "SMTP_SERVER"):
        monkeypatch.delenv(k, raising=False)

    app = create_app()
    create_schema(app)

    with session_scope(app) as s:
        u = User(name="Admin", email="admin@example.com", employee_id="ADM-1", role="admin", permissions=[])
        u.set_password("password123")
        s.add(u)

    return app.test_client()


def test_health_ok(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json["ok"] is True
    assert r.json["database"] == "ok"


def test_healthz(client):
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.data == b"ok"


def test_login_and_protected_access(client):
    # Anonymous is rejected
    r = client.get("/committees")
    assert r.status_code == 401
    assert r.json == {"status": "fail", "message": "Authentication required"}

    r = client.post("/auth/login", json={"email": "admin@example.com", "password": "password123"})
    assert r.status_code == 200
    token = r.json["token"]

    r = client.get("/committees", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200
    assert r.json["status"] == "success"
    assert r.json["results"] == 0


def test_unknown_route_is_json(client):
    r = client.get("/nope")
    assert r.status_code == 404
    assert r.json["status"] == "fail"


def test_invalid_json_body(client):
    r = client.post("/auth/login", data="{not json", content_type="application/json")
    assert r.status_code == 400
    assert r.json["message"] == "Request body is not valid JSON."
