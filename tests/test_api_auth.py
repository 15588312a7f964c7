from fastapi.testclient import TestClient

from casri.core.jwt import (
    create_access_token,
    create_refresh_token,
    decode_access_token,
    decode_refresh_token,
)
from casri.main import app

PASSWORD = "s3cure-pass!"


def _signup(client, email, username="Shop owner", password=PASSWORD):
    return client.post(
        "/auth/signup",
        json={"username": username, "email": email, "password": password},
    )


def test_first_signup_becomes_admin_and_later_ones_users(client):
    first = _signup(client, "owner@example.com")
    assert first.status_code == 201
    body = first.json()
    assert body["success"] is True
    assert body["user"]["role"] == "ADMIN"
    assert body["accessToken"] and body["refreshToken"]
    assert "accessToken" in first.cookies
    assert "refreshToken" in first.cookies

    second = _signup(TestClient(app), "clerk@example.com", username="Clerk")
    assert second.status_code == 201
    assert second.json()["user"]["role"] == "USER"


def test_signup_rejects_duplicates_and_weak_passwords(client):
    assert _signup(client, "owner@example.com").status_code == 201

    duplicate = _signup(client, "OWNER@example.com")
    assert duplicate.status_code == 409
    assert duplicate.json() == {"success": False, "error": "User already exists"}

    common = _signup(client, "other@example.com", password="password123")
    assert common.status_code == 400

    digits = _signup(client, "digits@example.com", password="1234567890")
    assert digits.status_code == 400
    assert digits.json()["error"] == "Password cannot be numbers only."

    short = _signup(client, "short@example.com", password="abc")
    assert short.status_code == 400
    assert short.json()["success"] is False


def test_login_sets_cookies_that_authenticate(client, employee_user):
    response = client.post("/auth/login", json={"email": "cashier@example.com", "password": PASSWORD})

    assert response.status_code == 200
    assert response.json()["user"]["id"] == employee_user.id

    # The client keeps the accessToken cookie; no Authorization header needed
    me = client.get("/auth/me")
    assert me.status_code == 200
    assert me.json()["email"] == "cashier@example.com"
    assert me.json()["role"] == "EMPLOYEE"


def test_login_with_wrong_password_is_unauthorized(client, employee_user):
    response = client.post("/auth/login", json={"email": "cashier@example.com", "password": "not-the-password"})

    assert response.status_code == 401
    assert response.json() == {"success": False, "error": "Invalid credentials"}


def test_protected_routes_need_a_valid_access_token(client, employee_user):
    assert client.get("/auth/me").status_code == 401

    refresh_token = create_refresh_token(data={"sub": str(employee_user.id)})
    response = client.get("/auth/me", headers={"Authorization": f"Bearer {refresh_token}"})
    assert response.status_code == 401

    response = client.get("/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


def test_refresh_issues_new_tokens_from_the_cookie(client, employee_user):
    client.post("/auth/login", json={"email": "cashier@example.com", "password": PASSWORD})

    response = client.post("/auth/refresh")

    assert response.status_code == 200
    assert response.json()["user"]["id"] == employee_user.id


def test_token_types_are_not_interchangeable(client, employee_user):
    access = create_access_token(data={"sub": str(employee_user.id)})
    refresh = create_refresh_token(data={"sub": str(employee_user.id)})

    assert decode_refresh_token(access) is None
    assert decode_access_token(refresh) is None
    assert decode_refresh_token(refresh)["sub"] == str(employee_user.id)

    assert client.post("/auth/refresh").status_code == 401


def test_logout_clears_cookies(client, employee_user):
    client.post("/auth/login", json={"email": "cashier@example.com", "password": PASSWORD})

    response = client.post("/auth/logout")

    assert response.status_code == 200
    assert client.get("/auth/me").status_code == 401


def test_roles_gate_the_ledger(user_client, employee_client, admin_client, plain_user):
    assert user_client.post("/vendors", json={"name": "V", "phoneNumber": "1", "location": "L"}).status_code == 403

    response = employee_client.put(f"/auth/users/{plain_user.id}/role", json={"role": "EMPLOYEE"})
    assert response.status_code == 403

    response = admin_client.put(f"/auth/users/{plain_user.id}/role", json={"role": "EMPLOYEE"})
    assert response.status_code == 200
    assert response.json()["role"] == "EMPLOYEE"

    assert user_client.post("/vendors", json={"name": "V", "phoneNumber": "1", "location": "L"}).status_code == 201
