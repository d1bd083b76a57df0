import pytest

from conftest import auth_header, register
from domain.suggestion import suggestion_model

GOALS = ["energy", "sleep", "focus", "recovery", "weight_management", "immune_support"]


@pytest.mark.parametrize("goal", GOALS)
@pytest.mark.parametrize("age", [18, 29, 30, 41, 64, 120])
def test_valid_request_returns_three_suggestions(client, age, goal):
    r = client.post("/suggestions", json={"age": age, "healthGoal": goal})
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert len(body["suggestions"]) == 3
    for item in body["suggestions"]:
        assert item["name"]
        assert item["description"]
    assert body["meta"]["goalCategory"] == goal
    assert body["meta"]["authenticated"] is False
    assert body["requestId"]


@pytest.mark.parametrize("age", [17, 121])
def test_age_out_of_range_is_rejected(client, age):
    r = client.post("/suggestions", json={"age": age, "healthGoal": "energy"})
    assert r.status_code == 400
    error = r.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert error["field"] == "age"
    assert "Age" in error["message"]


def test_fractional_age_is_rejected(client):
    r = client.post("/suggestions", json={"age": 64.5, "healthGoal": "energy"})
    assert r.status_code == 400
    assert r.json()["error"]["field"] == "age"
    assert r.json()["error"]["message"] == "Age must be a whole number"


def test_numeric_string_age_is_coerced(client):
    r = client.post("/suggestions", json={"age": "25", "healthGoal": "focus"})
    assert r.status_code == 200


def test_unknown_goal_is_rejected(client):
    r = client.post("/suggestions", json={"age": 30, "healthGoal": "longevity"})
    assert r.status_code == 400
    error = r.json()["error"]
    assert error["field"] == "healthGoal"
    assert error["message"].startswith("Health goal must be one of")


def test_missing_fields(client):
    r = client.post("/suggestions", json={"healthGoal": "sleep"})
    assert r.status_code == 400
    assert r.json()["error"]["message"] == "Age is required"


def test_goals_list_is_static(client):
    first = client.get("/suggestions/goals")
    second = client.get("/suggestions/goals")
    assert first.status_code == 200
    assert first.json() == second.json()
    goals = first.json()["goals"]
    assert [g["value"] for g in goals] == GOALS
    assert all(g["label"] for g in goals)


def test_authenticated_request_is_saved_to_history(client):
    r = register(client, email="a@x.com", password="Abcdef12")
    assert r.status_code == 201
    token = r.json()["data"]["token"]

    r = client.post("/suggestions", json={"age": 25, "healthGoal": "energy"}, headers=auth_header(token))
    assert r.status_code == 200
    body = r.json()
    assert len(body["suggestions"]) == 3
    assert body["meta"]["authenticated"] is True

    r = client.get("/auth/suggestions", headers=auth_header(token))
    assert r.status_code == 200
    history = r.json()["data"]["suggestions"]
    assert len(history) == 1
    assert history[0]["age"] == 25
    assert history[0]["healthGoal"] == "energy"
    assert history[0]["suggestions"] == body["suggestions"]


def test_anonymous_request_creates_no_history(client, db, user_token):
    r = client.post("/suggestions", json={"age": 40, "healthGoal": "sleep"})
    assert r.status_code == 200
    assert r.json()["meta"]["authenticated"] is False

    assert db.query(suggestion_model.UserSuggestion).count() == 0
    r = client.get("/auth/suggestions", headers=auth_header(user_token))
    assert r.json()["data"]["total"] == 0


def test_invalid_token_on_optional_auth_is_treated_as_anonymous(client, db):
    r = client.post(
        "/suggestions",
        json={"age": 40, "healthGoal": "sleep"},
        headers=auth_header("not.a.token"),
    )
    assert r.status_code == 200
    assert r.json()["meta"]["authenticated"] is False
    assert db.query(suggestion_model.UserSuggestion).count() == 0


def test_authenticated_description_differs(client, user_token):
    anonymous = client.post("/suggestions", json={"age": 30, "healthGoal": "energy"}).json()
    personal = client.post(
        "/suggestions", json={"age": 30, "healthGoal": "energy"}, headers=auth_header(user_token)
    ).json()
    assert anonymous["suggestions"][2]["description"] != personal["suggestions"][2]["description"]
    assert "your profile" in personal["suggestions"][2]["description"]
