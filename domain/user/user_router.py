from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from database.session import get_db
from domain.base_schema import ApiResponse
from domain.suggestion import suggestion_crud, suggestion_schema
from domain.user import user_crud, user_schema
from exceptions import NotFoundError
from security import Authenticated, require_identity
from services.rate_limiter import auth_rate_limiter

router = APIRouter(
    prefix="/auth",
    tags=["User"]
)


@router.get("/profile", response_model=ApiResponse[user_schema.ProfileData])
def get_profile(
    identity: Authenticated = Depends(require_identity),
    db: Session = Depends(get_db),
):
    """현재 로그인한 사용자 정보 조회"""
    user = user_crud.get_user_by_id(db, identity.user_id)
    if not user:
        raise NotFoundError("User not found", code="USER_NOT_FOUND")
    return ApiResponse(data=user_schema.ProfileData(user=user_schema.UserProfile.model_validate(user)))


@router.put("/profile", response_model=ApiResponse[user_schema.ProfileData])
def update_profile(
    payload: user_schema.ProfileUpdate,
    identity: Authenticated = Depends(require_identity),
    db: Session = Depends(get_db),
):
    """사용자 프로필 정보 업데이트"""
    user = user_crud.update_profile(db, identity.user_id, payload.first_name, payload.last_name)
    return ApiResponse(data=user_schema.ProfileData(user=user_schema.UserProfile.model_validate(user)))


@router.post(
    "/change-password",
    response_model=ApiResponse[user_schema.MessageData],
    dependencies=[Depends(auth_rate_limiter)],
)
def change_password(
    payload: user_schema.ChangePasswordRequest,
    identity: Authenticated = Depends(require_identity),
    db: Session = Depends(get_db),
):
    user_crud.change_password(db, identity.user_id, payload.current_password, payload.new_password)
    return ApiResponse(data=user_schema.MessageData(message="Password changed successfully"))


@router.delete("/account", response_model=ApiResponse[user_schema.MessageData])
def delete_account(
    identity: Authenticated = Depends(require_identity),
    db: Session = Depends(get_db),
):
    """계정 삭제. 발급된 토큰은 만료 전까지 서명상 유효하지만 사용자 조회가 필요한 요청은 실패"""
    user_crud.delete_user(db, identity.user_id)
    return ApiResponse(data=user_schema.MessageData(message="Account deleted successfully"))


@router.get("/suggestions", response_model=ApiResponse[suggestion_schema.SuggestionHistoryData])
def get_suggestion_history(
    limit: int = Query(10, ge=1, le=100),
    identity: Authenticated = Depends(require_identity),
    db: Session = Depends(get_db),
):
    """사용자의 추천 기록 조회 (최신순)"""
    rows = suggestion_crud.list_suggestions(db, identity.user_id, limit)
    history = [suggestion_schema.SuggestionHistory.model_validate(row) for row in rows]
    return ApiResponse(data=suggestion_schema.SuggestionHistoryData(suggestions=history, total=len(history)))
