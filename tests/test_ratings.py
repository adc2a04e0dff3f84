import uuid

import pytest
from fastapi.testclient import TestClient

from app import crud, schemas
from app.core.config import settings
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from tests.utils import API, create_recipe, rate, signup


# --- API ---

def test_rate_recipe(client: TestClient, alice, bob):
    _, alice_headers = alice
    bob_user, bob_headers = bob
    recipe = create_recipe(client, alice_headers)

    response = rate(client, recipe["id"], bob_headers, 4)
    assert response.status_code == 201, response.text
    body = response.json()
    assert body["message"] == "Recipe rated successfully"
    assert body["rating"]["value"] == 4
    assert body["rating"]["authorId"] == bob_user["id"]
    assert body["rating"]["recipeId"] == recipe["id"]


def test_second_rating_conflicts_and_keeps_first(client: TestClient, alice, bob):
    _, alice_headers = alice
    _, bob_headers = bob
    recipe = create_recipe(client, alice_headers)

    assert rate(client, recipe["id"], bob_headers, 2).status_code == 201
    for value in (2, 5):
        response = rate(client, recipe["id"], bob_headers, value)
        assert response.status_code == 409
        assert response.json() == {"message": "User has already rated this recipe"}

    summary = client.get(f"{API}/recipes/{recipe['id']}/rating", headers=bob_headers).json()
    assert summary == {"average": 2.0, "count": 1, "userRating": 2.0}


def test_rating_requires_authentication(client: TestClient, alice):
    _, headers = alice
    recipe = create_recipe(client, headers)
    assert client.post(f"{API}/recipes/{recipe['id']}/rate", json={"value": 3}).status_code == 401


def test_rate_missing_recipe(client: TestClient, alice):
    _, headers = alice
    response = rate(client, "00000000-0000-0000-0000-000000000000", headers, 3)
    assert response.status_code == 404
    assert response.json() == {"message": "Recipe not found"}


@pytest.mark.parametrize("value", [0, 6, 3.5, -1])
def test_rating_out_of_range(client: TestClient, alice, value):
    _, headers = alice
    recipe = create_recipe(client, headers)
    response = rate(client, recipe["id"], headers, value)
    assert response.status_code == 400
    assert response.json() == {"message": "Rating value must be between 1 and 5"}


def test_no_ratings_gives_zero_average(client: TestClient, alice):
    _, headers = alice
    recipe = create_recipe(client, headers)
    response = client.get(f"{API}/recipes/{recipe['id']}/rating")
    assert response.status_code == 200
    assert response.json() == {"average": 0.0, "count": 0, "userRating": None}


def test_pizza_average(client: TestClient, alice, bob, carol):
    _, alice_headers = alice
    _, bob_headers = bob
    _, carol_headers = carol
    pizza = create_recipe(client, alice_headers, title="Pizza", preparation_time=30)

    rate(client, pizza["id"], bob_headers, 5)
    rate(client, pizza["id"], carol_headers, 3)

    summary = client.get(f"{API}/recipes/{pizza['id']}/rating").json()
    assert summary["average"] == 4.0
    assert summary["count"] == 2


# --- Aggregator ---

@pytest.fixture
def author(db):
    return crud.create_user(
        db, schemas.UserCreate(name="Author", email="author@example.com", password="password123")
    )


@pytest.fixture
def recipe(db, author):
    return crud.create_user_recipe(
        db,
        schemas.RecipeCreate(title="Stew", ingredients=["Beef"], steps=["Simmer"], preparation_time=90),
        user_id=author.id,
    )


def make_raters(db, count):
    return [
        crud.create_user(
            db, schemas.UserCreate(name=f"Rater {i}", email=f"rater{i}@example.com", password="password123")
        )
        for i in range(count)
    ]


def test_average_is_rounded_mean(db, recipe):
    values = [5, 4, 4]
    for rater, value in zip(make_raters(db, len(values)), values):
        crud.rate_recipe(db, recipe.id, rater.id, value)

    average, count = crud.get_average_rating(db, recipe.id)
    assert count == 3
    assert average == round(sum(values) / len(values), 1) == 4.3


def test_new_rating_moves_average_toward_it(db, recipe):
    raters = make_raters(db, 5)
    values = [1, 5, 2, 5, 3]
    previous, _ = crud.get_average_rating(db, recipe.id)
    for index, (rater, value) in enumerate(zip(raters, values)):
        crud.rate_recipe(db, recipe.id, rater.id, value)
        average, count = crud.get_average_rating(db, recipe.id)
        assert count == index + 1
        if index:
            low, high = sorted((previous, value))
            assert low <= average <= high
        previous = average


def test_rate_unknown_recipe_raises_not_found(db, author):
    with pytest.raises(NotFoundError):
        crud.rate_recipe(db, uuid.uuid4(), author.id, 3)


def test_race_past_precheck_is_conflict(db, recipe, monkeypatch):
    rater = make_raters(db, 1)[0]
    crud.rate_recipe(db, recipe.id, rater.id, 4)

    # Simulate a concurrent request that checked before the first insert landed
    monkeypatch.setattr(crud, "get_user_rating", lambda *args, **kwargs: None)
    with pytest.raises(ConflictError, match="already rated"):
        crud.rate_recipe(db, recipe.id, rater.id, 5)

    # The session is usable again and the first rating survived
    average, count = crud.get_average_rating(db, recipe.id)
    assert (average, count) == (4.0, 1)


def test_half_star_scale(db, recipe, monkeypatch):
    monkeypatch.setattr(settings, "RATING_SCALE", "half")
    raters = make_raters(db, 2)

    assert crud.rate_recipe(db, recipe.id, raters[0].id, 3.74).value == 3.5
    assert crud.rate_recipe(db, recipe.id, raters[1].id, 0.5).value == 0.5
    assert crud.get_average_rating(db, recipe.id) == (2.0, 2)

    # Small positive values are clamped up to half a star
    assert crud.validate_rating_value(0.2) == 0.5
    assert crud.validate_rating_value(0.3) == 0.5
    assert crud.validate_rating_value(2.25) == 2.5
    assert crud.validate_rating_value(5) == 5.0

    for value in (0, -1, 5.5):
        with pytest.raises(ValidationError, match="between 0.5 and 5"):
            crud.validate_rating_value(value)


@pytest.mark.parametrize("value", [True, float("nan"), float("inf"), "4"])
def test_non_numeric_ratings_rejected(value):
    with pytest.raises(ValidationError):
        crud.validate_rating_value(value)


def test_user_rating_shown_only_to_its_author(client: TestClient, alice, bob):
    _, alice_headers = alice
    _, bob_headers = bob
    recipe = create_recipe(client, alice_headers)
    rate(client, recipe["id"], bob_headers, 3)

    _, carol_headers = signup(client, name="Carol", email="carol@example.com")
    summary = client.get(f"{API}/recipes/{recipe['id']}/rating", headers=carol_headers).json()
    assert summary["userRating"] is None
    assert summary["count"] == 1
