import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from pydantic import model_validator

from config import settings
from domain.base_schema import CamelModel

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_PATH = Path(__file__).resolve().parent / "suggestion_catalog.json"


class AgeBracket(CamelModel):
    below: Optional[int] = None  # None이면 나머지 모든 나이
    phrase: str


class AuthPhrases(CamelModel):
    authenticated: str
    anonymous: str


class SuggestionTemplate(CamelModel):
    name: str
    description: str


class GoalContent(CamelModel):
    value: str
    label: str
    age_brackets: List[AgeBracket] = []
    auth_phrases: AuthPhrases
    suggestions: List[SuggestionTemplate]

    def age_phrase(self, age: int) -> str:
        for bracket in self.age_brackets:
            if bracket.below is None or age < bracket.below:
                return bracket.phrase
        return ""

    def auth_phrase(self, is_authenticated: bool) -> str:
        return self.auth_phrases.authenticated if is_authenticated else self.auth_phrases.anonymous


class SuggestionCatalog(CamelModel):
    default_goal: str
    goals: List[GoalContent]

    @model_validator(mode="after")
    def check_goals(self):
        values = [goal.value for goal in self.goals]
        if len(values) != len(set(values)):
            raise ValueError("duplicate goal values in suggestion catalog")
        if self.default_goal not in values:
            raise ValueError(f"default goal '{self.default_goal}' is not defined in the catalog")
        for goal in self.goals:
            if not goal.suggestions:
                raise ValueError(f"goal '{goal.value}' has no suggestions")
        return self

    def get_goal(self, value: str) -> GoalContent:
        """목표에 해당하는 콘텐츠. 알 수 없는 목표는 기본 목표(energy)로 대체"""
        by_value: Dict[str, GoalContent] = {goal.value: goal for goal in self.goals}
        return by_value.get(value) or by_value[self.default_goal]

    def goal_options(self) -> List[Dict[str, str]]:
        return [{"value": goal.value, "label": goal.label} for goal in self.goals]


def load_catalog(path: Optional[str] = None) -> SuggestionCatalog:
    catalog_path = Path(path) if path else DEFAULT_CATALOG_PATH
    with open(catalog_path, "r", encoding="utf-8") as f:
        catalog = SuggestionCatalog.model_validate(json.load(f))
    logger.info(f"추천 카탈로그 로드 완료: {catalog_path} ({len(catalog.goals)}개 목표)")
    return catalog


@lru_cache(maxsize=1)
def get_suggestion_catalog() -> SuggestionCatalog:
    return load_catalog(settings.SUGGESTION_CATALOG_PATH)


def generate_suggestions(
    catalog: SuggestionCatalog,
    age: int,
    goal: str,
    is_authenticated: bool = False,
    history: Optional[Sequence] = None,
) -> List[Dict[str, str]]:
    """나이/목표에 맞는 고정 추천 목록 생성 (순수 함수)

    history는 인증 사용자의 최근 기록으로, 현재 추천 선택에는 반영되지 않는다.
    """
    content = catalog.get_goal(goal)
    phrases = {
        "age_phrase": content.age_phrase(age),
        "auth_phrase": content.auth_phrase(is_authenticated),
    }
    return [
        {
            "name": template.name,
            "description": template.description.format_map(phrases).strip(),
        }
        for template in content.suggestions
    ]
