import pytest
from pydantic import ValidationError

from domain.suggestion.suggestion_generator import (
    SuggestionCatalog,
    generate_suggestions,
    load_catalog,
)


@pytest.fixture(scope="module")
def catalog():
    return load_catalog()


def _first_description(catalog, age, goal):
    return generate_suggestions(catalog, age, goal)[0]["description"]


@pytest.mark.parametrize(
    "goal, age, phrase",
    [
        ("energy", 29, "young adults"),
        ("energy", 30, "maintaining energy"),
        ("energy", 49, "maintaining energy"),
        ("energy", 50, "age-related energy decline"),
        ("sleep", 40, "healthy sleep cycles"),
        ("sleep", 41, "age-related sleep"),
        ("focus", 34, "cognitive performance optimization"),
        ("focus", 35, "sharp mental function"),
        ("recovery", 35, "post-workout recovery"),
        ("recovery", 36, "recovery speed with age"),
        ("weight_management", 30, "Optimizes metabolic function"),
        ("weight_management", 31, "age-related metabolic changes"),
        ("immune_support", 50, "robust immune response"),
        ("immune_support", 51, "age-related immune support"),
    ],
)
def test_age_brackets(catalog, goal, age, phrase):
    assert phrase in _first_description(catalog, age, goal)


def test_unknown_goal_falls_back_to_energy(catalog):
    assert generate_suggestions(catalog, 30, "longevity") == generate_suggestions(catalog, 30, "energy")


def test_generation_is_pure(catalog):
    first = generate_suggestions(catalog, 45, "sleep", True)
    second = generate_suggestions(catalog, 45, "sleep", True)
    assert first == second
    assert len(first) == 3


def test_auth_phrase(catalog):
    anonymous = generate_suggestions(catalog, 45, "focus", is_authenticated=False)
    personal = generate_suggestions(catalog, 45, "focus", is_authenticated=True)
    assert anonymous[2]["description"] == "Supports mental clarity and alertness."
    assert personal[2]["description"] == "Tailored to your cognitive enhancement goals."


def test_catalog_can_be_injected():
    catalog = SuggestionCatalog.model_validate({
        "defaultGoal": "energy",
        "goals": [{
            "value": "energy",
            "label": "Energy",
            "ageBrackets": [{"below": 40, "phrase": "young"}, {"phrase": "old"}],
            "authPhrases": {"authenticated": "mine", "anonymous": "anyone"},
            "suggestions": [{"name": "Only", "description": "{age_phrase} / {auth_phrase}"}],
        }],
    })
    assert generate_suggestions(catalog, 20, "energy") == [{"name": "Only", "description": "young / anyone"}]
    assert generate_suggestions(catalog, 60, "energy", True) == [{"name": "Only", "description": "old / mine"}]
    assert catalog.goal_options() == [{"value": "energy", "label": "Energy"}]


def test_catalog_requires_default_goal():
    with pytest.raises(ValidationError):
        SuggestionCatalog.model_validate({"defaultGoal": "energy", "goals": []})
