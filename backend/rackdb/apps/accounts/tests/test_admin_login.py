from __future__ import annotations

from datetime import timedelta

import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from fastapi.testclient import TestClient

from rackdb import security
from rackdb.main import app

ADMIN_PASSWORD = "test-admin-password"


@pytest.fixture()
def client():
    return TestClient(app)


def test_password_hash_round_trip():
    hashed = security.get_password_hash("s3cret")

    assert hashed != "s3cret"
    assert security.verify_password("s3cret", hashed)
    assert not security.verify_password("wrong", hashed)
    assert not security.verify_password("", hashed)
    assert not security.verify_password("s3cret", "not-a-hash")


def test_authenticate_admin():
    assert security.authenticate_admin("admin", ADMIN_PASSWORD)
    assert security.authenticate_admin(" admin ", ADMIN_PASSWORD)
    assert not security.authenticate_admin("admin", "nope")
    assert not security.authenticate_admin("root", ADMIN_PASSWORD)


def test_admin_login_disabled_without_password(monkeypatch):
    monkeypatch.setattr(security, "_admin_password_hash", None)
    monkeypatch.delenv("ADMIN_PASSWORD", raising=False)

    assert security.admin_password_hash() is None
    assert not security.authenticate_admin("admin", ADMIN_PASSWORD)


def test_configured_hash_takes_precedence(monkeypatch):
    monkeypatch.setattr(security, "_admin_password_hash", security.get_password_hash("from-hash"))

    assert security.authenticate_admin("admin", "from-hash")
    assert not security.authenticate_admin("admin", ADMIN_PASSWORD)


def test_login_returns_bearer_token(client):
    response = client.post(
        "/api/admin/login",
        json={"username": "admin", "password": ADMIN_PASSWORD},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["tokenType"] == "bearer"
    assert body["expiresIn"] == security.ACCESS_TOKEN_EXPIRE_MINUTES * 60
    claims = security.decode_access_token(body["accessToken"])
    assert claims["sub"] == "admin"
    assert claims["role"] == security.ADMIN_ROLE


def test_login_rejects_bad_credentials(client):
    response = client.post(
        "/api/admin/login",
        json={"username": "admin", "password": "guess"},
    )

    assert response.status_code == 401
    assert response.json()["detail"] == {"message": "Invalid credentials.", "field": None}


def test_login_rejects_malformed_body(client):
    response = client.post("/api/admin/login", json={"username": "admin"})

    assert response.status_code == 400
    assert response.json()["detail"]["field"] == "password"


def test_require_admin_accepts_admin_token():
    token = security.create_access_token(data={"sub": "admin", "role": security.ADMIN_ROLE})
    credentials = HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)

    assert security.require_admin(credentials=credentials) == "admin"


def test_require_admin_rejects_expired_token():
    token = security.create_access_token(
        data={"sub": "admin", "role": security.ADMIN_ROLE},
        expires_delta=timedelta(seconds=-5),
    )
    credentials = HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)

    with pytest.raises(HTTPException) as excinfo:
        security.require_admin(credentials=credentials)
    assert excinfo.value.status_code == 401


def test_require_admin_rejects_token_without_role():
    token = security.create_access_token(data={"sub": "admin"})
    credentials = HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)

    with pytest.raises(HTTPException):
        security.require_admin(credentials=credentials)
