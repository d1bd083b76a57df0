from datetime import timedelta
from types import SimpleNamespace

import pytest
from jose import jwt

from conftest import STRONG_PASSWORD, auth_header, register
from domain.user import user_model
from security import ALGORITHM, TOKEN_ISSUER, create_access_token


def test_register_returns_user_and_token(client):
    r = register(client, email="new@x.com", firstName="  Ada ", lastName="Lovelace")
    assert r.status_code == 201
    body = r.json()
    assert body["success"] is True
    user = body["data"]["user"]
    assert user["email"] == "new@x.com"
    assert user["firstName"] == "Ada"
    assert user["lastName"] == "Lovelace"
    assert isinstance(user["id"], int)
    assert "hashedPassword" not in user and "password" not in user
    assert body["data"]["token"]


def test_register_duplicate_email_conflicts_without_second_row(client, db):
    assert register(client).status_code == 201

    r = register(client)
    assert r.status_code == 409
    error = r.json()["error"]
    assert error["code"] == "EMAIL_EXISTS"
    assert error["errorId"]
    assert db.query(user_model.User).filter(user_model.User.email == "a@x.com").count() == 1


def test_email_match_is_case_sensitive(client):
    assert register(client, email="a@x.com").status_code == 201
    assert register(client, email="A@x.com").status_code == 201


def test_register_rejects_weak_password(client):
    r = register(client, password="abcdefgh")
    assert r.status_code == 400
    error = r.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert error["field"] == "password"
    assert "uppercase" in error["message"]

    r = register(client, password="Ab1")
    assert r.status_code == 400
    assert r.json()["error"]["message"] == "Password must be at least 8 characters long"


def test_register_rejects_invalid_email(client):
    r = register(client, email="not-an-email")
    assert r.status_code == 400
    assert r.json()["error"]["field"] == "email"
    assert r.json()["error"]["message"] == "Please provide a valid email address"


@pytest.mark.parametrize("email", ["a@.x.com", "a@x..com", "a@x.c,om", "a@x"])
def test_register_rejects_malformed_email(client, db, email):
    r = register(client, email=email)
    assert r.status_code == 400
    assert r.json()["error"]["field"] == "email"
    assert r.json()["error"]["message"] == "Please provide a valid email address"
    assert db.query(user_model.User).count() == 0


def test_login_rejects_malformed_email(client):
    r = client.post("/auth/login", json={"email": "a@x..com", "password": STRONG_PASSWORD})
    assert r.status_code == 400
    assert r.json()["error"]["message"] == "Please provide a valid email address"


def test_register_reports_first_violation_only(client):
    r = client.post("/auth/register", json={})
    assert r.status_code == 400
    error = r.json()["error"]
    assert error["field"] == "email"
    assert error["message"] == "Email is required"


def test_login_success(client):
    register(client)
    r = client.post("/auth/login", json={"email": "a@x.com", "password": STRONG_PASSWORD})
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["user"]["email"] == "a@x.com"
    assert data["token"]


def test_login_wrong_password_and_unknown_email_look_the_same(client):
    register(client)
    wrong = client.post("/auth/login", json={"email": "a@x.com", "password": "Wrong1234"})
    unknown = client.post("/auth/login", json={"email": "b@x.com", "password": STRONG_PASSWORD})

    for r in (wrong, unknown):
        assert r.status_code == 401
        assert r.json()["error"]["code"] == "INVALID_CREDENTIALS"
        assert r.json()["error"]["message"] == "Invalid email or password"
        assert r.headers["WWW-Authenticate"] == "Bearer"


def test_verify_returns_claims(client, user_token):
    r = client.get("/auth/verify", headers=auth_header(user_token))
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["valid"] is True
    assert data["user"]["email"] == "a@x.com"
    assert data["user"]["firstName"] == "Ada"


def test_verify_missing_token(client):
    r = client.get("/auth/verify")
    assert r.status_code == 401
    assert r.json()["error"]["code"] == "TOKEN_MISSING"


def test_verify_malformed_token(client):
    for token in ("garbage", "not.a.token"):
        r = client.get("/auth/verify", headers=auth_header(token))
        assert r.status_code == 401
        assert r.json()["error"]["code"] == "TOKEN_MALFORMED"


def test_verify_invalid_signature(client):
    forged = jwt.encode(
        {"sub": "1", "email": "a@x.com", "iss": TOKEN_ISSUER},
        "some-other-secret",
        algorithm=ALGORITHM,
    )
    r = client.get("/auth/verify", headers=auth_header(forged))
    assert r.status_code == 401
    assert r.json()["error"]["code"] == "TOKEN_INVALID"


def test_token_fails_after_expiry(client):
    user = SimpleNamespace(id=1, email="a@x.com", first_name="", last_name="")

    valid = create_access_token(user, expires_delta=timedelta(minutes=5))
    assert client.get("/auth/verify", headers=auth_header(valid)).status_code == 200

    expired = create_access_token(user, expires_delta=timedelta(seconds=-1))
    r = client.get("/auth/verify", headers=auth_header(expired))
    assert r.status_code == 401
    assert r.json()["error"]["code"] == "TOKEN_EXPIRED"


def test_refresh_issues_new_token(client, user_token):
    r = client.post("/auth/refresh", headers=auth_header(user_token))
    assert r.status_code == 200
    new_token = r.json()["data"]["token"]
    assert client.get("/auth/verify", headers=auth_header(new_token)).status_code == 200
