import logging
from datetime import datetime, timezone
from typing import Dict, List

from sqlalchemy import desc
from sqlalchemy.orm import Session

from . import suggestion_model

logger = logging.getLogger(__name__)


def save_suggestion(
    db: Session,
    user_id: int,
    age: int,
    health_goal: str,
    suggestions: List[Dict[str, str]],
) -> suggestion_model.UserSuggestion:
    """추천 결과를 사용자 기록으로 저장"""
    db_suggestion = suggestion_model.UserSuggestion(
        user_id=user_id,
        age=age,
        health_goal=health_goal,
        suggestions=suggestions,
        created_at=datetime.now(timezone.utc),
    )
    db.add(db_suggestion)
    db.commit()
    db.refresh(db_suggestion)
    logger.info(f"추천 기록 저장: user_id={user_id}, suggestion_id={db_suggestion.id}")
    return db_suggestion


def list_suggestions(db: Session, user_id: int, limit: int = 10) -> List[suggestion_model.UserSuggestion]:
    """사용자의 추천 기록 조회 (최신순)"""
    return db.query(suggestion_model.UserSuggestion)\
        .filter(suggestion_model.UserSuggestion.user_id == user_id)\
        .order_by(desc(suggestion_model.UserSuggestion.created_at), desc(suggestion_model.UserSuggestion.id))\
        .limit(limit)\
        .all()
