from typing import Optional

from fastapi.testclient import TestClient

API = "/api/v1"


def signup(client: TestClient, name="Alice", email="alice@example.com", password="password123"):
    """
    Register a user and return (user_json, auth_headers).
    The auth cookie is dropped so every request states its caller explicitly.
    """
    response = client.post(
        f"{API}/auth/signup",
        json={"name": name, "email": email, "password": password},
    )
    assert response.status_code == 201, response.text
    client.cookies.clear()
    body = response.json()
    return body["user"], {"Authorization": f"Bearer {body['token']}"}


def create_recipe(
    client: TestClient,
    headers: dict,
    title: str = "Pancakes",
    preparation_time: int = 20,
    ingredients: Optional[list] = None,
    steps: Optional[list] = None,
    **extra,
):
    payload = {
        "title": title,
        "ingredients": ingredients if ingredients is not None else ["Flour", "Milk", "Eggs"],
        "steps": steps if steps is not None else ["Mix", "Fry"],
        "preparationTime": preparation_time,
        **extra,
    }
    response = client.post(f"{API}/recipes/", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["recipe"]


def rate(client: TestClient, recipe_id: str, headers: dict, value):
    return client.post(f"{API}/recipes/{recipe_id}/rate", json={"value": value}, headers=headers)
