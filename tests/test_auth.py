from fastapi.testclient import TestClient

from tests.utils import API, signup


def test_signup_returns_user_and_token(client: TestClient):
    response = client.post(
        f"{API}/auth/signup",
        json={"name": "Alice", "email": "Alice@Example.com", "password": "password123"},
    )
    assert response.status_code == 201, response.text
    data = response.json()
    assert data["message"] == "User created successfully"
    assert data["token"]
    assert data["user"]["email"] == "alice@example.com"
    assert data["user"]["name"] == "Alice"
    assert "createdAt" in data["user"]
    assert "password" not in data["user"]
    assert "hashedPassword" not in data["user"]
    assert "access_token" in response.cookies


def test_signup_duplicate_email_conflict(client: TestClient):
    signup(client, email="dup@example.com")
    response = client.post(
        f"{API}/auth/signup",
        json={"name": "Other", "email": "DUP@example.com", "password": "password123"},
    )
    assert response.status_code == 409
    assert response.json() == {"message": "User with this email already exists"}


def test_signup_short_password(client: TestClient):
    response = client.post(
        f"{API}/auth/signup",
        json={"name": "Alice", "email": "alice@example.com", "password": "short"},
    )
    assert response.status_code == 400
    assert "at least 8 characters" in response.json()["message"]


def test_signup_blank_name(client: TestClient):
    response = client.post(
        f"{API}/auth/signup",
        json={"name": "   ", "email": "alice@example.com", "password": "password123"},
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Name is required"


def test_signup_invalid_email_is_request_error(client: TestClient):
    response = client.post(
        f"{API}/auth/signup",
        json={"name": "Alice", "email": "not-an-email", "password": "password123"},
    )
    assert response.status_code == 422


def test_login_success_sets_cookie(client: TestClient):
    signup(client)
    response = client.post(
        f"{API}/auth/login",
        json={"email": "alice@example.com", "password": "password123"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["message"] == "Login successful"
    assert data["user"]["email"] == "alice@example.com"
    assert response.cookies.get("access_token") == data["token"]


def test_login_is_case_insensitive_on_email(client: TestClient):
    signup(client)
    response = client.post(
        f"{API}/auth/login",
        json={"email": "ALICE@example.com", "password": "password123"},
    )
    assert response.status_code == 200


def test_login_wrong_password(client: TestClient):
    signup(client)
    response = client.post(
        f"{API}/auth/login",
        json={"email": "alice@example.com", "password": "wrong-password"},
    )
    assert response.status_code == 401
    assert response.json() == {"message": "Invalid credentials"}


def test_token_endpoint_for_oauth2_form(client: TestClient):
    signup(client)
    response = client.post(
        f"{API}/auth/token",
        data={"username": "alice@example.com", "password": "password123"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["token_type"] == "bearer"

    me = client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {data['access_token']}"})
    assert me.status_code == 200
    assert me.json()["user"]["email"] == "alice@example.com"


def test_me_requires_authentication(client: TestClient):
    response = client.get(f"{API}/auth/me")
    assert response.status_code == 401
    assert response.json() == {"message": "Unauthorized"}


def test_me_rejects_garbage_token(client: TestClient):
    response = client.get(f"{API}/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401
    assert response.json() == {"message": "Invalid token"}


def test_cookie_authenticates_requests(client: TestClient):
    signup(client)
    client.post(
        f"{API}/auth/login",
        json={"email": "alice@example.com", "password": "password123"},
    )
    response = client.get(f"{API}/auth/me")
    assert response.status_code == 200
    assert response.json()["user"]["name"] == "Alice"


def test_logout_clears_cookie(client: TestClient):
    signup(client)
    client.post(
        f"{API}/auth/login",
        json={"email": "alice@example.com", "password": "password123"},
    )
    response = client.post(f"{API}/auth/logout")
    assert response.status_code == 200
    assert response.json() == {"message": "Logout successful"}
    assert client.get(f"{API}/auth/me").status_code == 401


def test_token_for_deleted_user_is_rejected(client: TestClient):
    user, headers = signup(client)
    assert client.delete(f"{API}/users/{user['id']}", headers=headers).status_code == 200
    response = client.get(f"{API}/auth/me", headers=headers)
    assert response.status_code == 401
