from datetime import datetime
from enum import Enum
from typing import List

from pydantic import Field

from domain.base_schema import CamelModel

MIN_AGE = 18
MAX_AGE = 120


class HealthGoal(str, Enum):
    energy = "energy"
    sleep = "sleep"
    focus = "focus"
    recovery = "recovery"
    weight_management = "weight_management"
    immune_support = "immune_support"


class SuggestionItem(CamelModel):
    name: str
    description: str


class SuggestionRequest(CamelModel):
    age: int = Field(ge=MIN_AGE, le=MAX_AGE)
    health_goal: HealthGoal


class SuggestionMeta(CamelModel):
    generated_at: datetime
    goal_category: str
    authenticated: bool
    timestamp: datetime


class SuggestionResponse(CamelModel):
    success: bool = True
    request_id: str
    suggestions: List[SuggestionItem]
    meta: SuggestionMeta


class SuggestionHistory(CamelModel):
    id: int
    age: int
    health_goal: str
    suggestions: List[SuggestionItem]
    created_at: datetime


class SuggestionHistoryData(CamelModel):
    suggestions: List[SuggestionHistory]
    total: int


class GoalOption(CamelModel):
    value: str
    label: str


class GoalsResponse(CamelModel):
    success: bool = True
    goals: List[GoalOption]
