import logging
import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from sqlalchemy.orm import Session

from database.session import get_db
from domain.suggestion import suggestion_crud, suggestion_schema
from domain.suggestion.suggestion_generator import (
    SuggestionCatalog,
    generate_suggestions,
    get_suggestion_catalog,
)
from exceptions import InternalError
from security import Authenticated, Identity, get_identity
from services.analytics_service import AnalyticsAggregator, get_analytics_aggregator

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/suggestions",
    tags=["Suggestions"]
)

HISTORY_CONTEXT_SIZE = 5


def _record_analytics(record, *args, **kwargs) -> None:
    """분석 기록 실패는 로그만 남기고 응답에 영향을 주지 않음"""
    try:
        record(*args, **kwargs)
    except Exception as e:
        logger.error(f"분석 기록 실패: {e}")


@router.post("", response_model=suggestion_schema.SuggestionResponse)
def create_suggestions(
    request: Request,
    payload: suggestion_schema.SuggestionRequest,
    background_tasks: BackgroundTasks,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
    catalog: SuggestionCatalog = Depends(get_suggestion_catalog),
    analytics: AnalyticsAggregator = Depends(get_analytics_aggregator),
):
    """나이/건강 목표별 추천 생성 (인증 선택). 인증 사용자는 기록이 저장됨"""
    request_id = getattr(request.state, "request_id", None) or str(uuid.uuid4())
    client_ip = request.client.host if request.client else None
    goal = payload.health_goal.value
    is_authenticated = isinstance(identity, Authenticated)

    logger.info(
        f"추천 요청 처리: request_id={request_id}, age={payload.age}, goal={goal}, "
        f"user_id={identity.user_id if is_authenticated else 'anonymous'}"
    )

    history = []
    if is_authenticated:
        try:
            history = suggestion_crud.list_suggestions(db, identity.user_id, HISTORY_CONTEXT_SIZE)
        except Exception as e:
            db.rollback()
            logger.warning(f"사용자 기록 조회 실패, 기록 없이 진행: request_id={request_id}, error={e}")

    try:
        suggestions = generate_suggestions(catalog, payload.age, goal, is_authenticated, history)
    except Exception as e:
        _record_analytics(analytics.record_failure, goal, str(e), ip=client_ip, request_id=request_id)
        raise InternalError("Failed to generate suggestions. Please try again.", code="GENERATION_ERROR") from e

    if is_authenticated:
        try:
            suggestion_crud.save_suggestion(db, identity.user_id, payload.age, goal, suggestions)
        except Exception as e:
            db.rollback()
            logger.error(f"추천 기록 저장 실패: request_id={request_id}, user_id={identity.user_id}, error={e}")

    background_tasks.add_task(
        _record_analytics, analytics.record_success, goal, ip=client_ip, request_id=request_id
    )

    now = datetime.now(timezone.utc)
    return suggestion_schema.SuggestionResponse(
        request_id=request_id,
        suggestions=[suggestion_schema.SuggestionItem(**item) for item in suggestions],
        meta=suggestion_schema.SuggestionMeta(
            generated_at=now,
            goal_category=goal,
            authenticated=is_authenticated,
            timestamp=now,
        ),
    )


@router.get("/goals", response_model=suggestion_schema.GoalsResponse)
def get_goals(catalog: SuggestionCatalog = Depends(get_suggestion_catalog)):
    """선택 가능한 건강 목표 목록"""
    return suggestion_schema.GoalsResponse(
        goals=[suggestion_schema.GoalOption(**option) for option in catalog.goal_options()]
    )
