from fastapi.testclient import TestClient

from app.main import app


def test_register_and_login_and_refresh_and_logout():
    client = TestClient(app)

    # Register
    reg_payload = {
        "email": "user@example.com",
        "username": "user1",
        "password": "secretpass",
    }
    r = client.post("/auth/register", json=reg_payload)
    assert r.status_code == 201
    assert "access_token" in r.json()
    # Refresh cookie set
    assert "refresh_token=" in r.headers.get("set-cookie", "")

    # Login
    login_payload = {"email": "user@example.com", "password": "secretpass"}
    r2 = client.post("/auth/login", json=login_payload)
    assert r2.status_code == 200
    assert "access_token" in r2.json()
    assert "refresh_token=" in r2.headers.get("set-cookie", "")

    # Refresh (reads cookie automatically)
    r3 = client.post("/auth/refresh")
    assert r3.status_code == 200
    assert "access_token" in r3.json()

    # Logout (delete cookie)
    r4 = client.post("/auth/logout")
    assert r4.status_code == 204
    # Further refresh should fail
    r5 = client.post("/auth/refresh")
    assert r5.status_code in (401, 403)


def test_register_rejects_duplicate_email_or_username(client):
    payload = {"email": "dup@example.com", "username": "dup", "password": "secretpass"}
    assert client.post("/auth/register", json=payload).status_code == 201

    same_username = {"email": "other@example.com", "username": "dup", "password": "secretpass"}
    assert client.post("/auth/register", json=same_username).status_code == 409

    same_email = {"email": "dup@example.com", "username": "other", "password": "secretpass"}
    assert client.post("/auth/register", json=same_email).status_code == 409


def test_login_with_wrong_password_is_401(client):
    client.post("/auth/register", json={"email": "a@example.com", "username": "aaa", "password": "secretpass"})
    r = client.post("/auth/login", json={"email": "a@example.com", "password": "wrongpass"})
    assert r.status_code == 401


def test_garbage_bearer_token_is_401(client):
    r = client.get("/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401
