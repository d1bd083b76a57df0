import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from starlette import status

from database.session import get_db
from domain.base_schema import ApiResponse
from domain.user import user_crud, user_schema
from exceptions import NotFoundError
from security import Authenticated, create_access_token, require_identity
from services.rate_limiter import auth_rate_limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


@router.post(
    "/register",
    response_model=ApiResponse[user_schema.AuthData],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(auth_rate_limiter)],
)
def register(
    request: Request,
    payload: user_schema.RegisterRequest,
    db: Session = Depends(get_db),
):
    """회원가입 후 바로 토큰 발급"""
    logger.info(f"회원가입 시도: ip={_client_ip(request)}")
    user = user_crud.create_user(
        db,
        email=payload.email,
        password=payload.password,
        first_name=payload.first_name,
        last_name=payload.last_name,
    )
    token = create_access_token(user)
    return ApiResponse(data=user_schema.AuthData(
        message="User registered successfully",
        user=user_schema.User.model_validate(user),
        token=token,
    ))


@router.post(
    "/login",
    response_model=ApiResponse[user_schema.AuthData],
    dependencies=[Depends(auth_rate_limiter)],
)
def login(
    request: Request,
    payload: user_schema.LoginRequest,
    db: Session = Depends(get_db),
):
    logger.info(f"로그인 시도: ip={_client_ip(request)}")
    user = user_crud.authenticate(db, payload.email, payload.password)
    token = create_access_token(user)
    logger.info(f"로그인 성공: user_id={user.id}")
    return ApiResponse(data=user_schema.AuthData(
        message="Login successful",
        user=user_schema.User.model_validate(user),
        token=token,
    ))


@router.get("/verify", response_model=ApiResponse[user_schema.TokenVerification])
def verify(identity: Authenticated = Depends(require_identity)):
    """토큰 유효성 검증. 토큰에 담긴 사용자 정보를 그대로 반환 (DB 조회 없음)"""
    claims = identity.claims
    return ApiResponse(data=user_schema.TokenVerification(
        valid=True,
        user=user_schema.User(
            id=claims.user_id,
            email=claims.email,
            first_name=claims.first_name,
            last_name=claims.last_name,
        ),
    ))


@router.post("/refresh", response_model=ApiResponse[user_schema.AuthData])
def refresh_token(
    identity: Authenticated = Depends(require_identity),
    db: Session = Depends(get_db),
):
    """유효한 토큰으로 새 토큰 발급"""
    user = user_crud.get_user_by_id(db, identity.user_id)
    if not user:
        raise NotFoundError("User not found", code="USER_NOT_FOUND")
    return ApiResponse(data=user_schema.AuthData(
        message="Token refreshed successfully",
        user=user_schema.User.model_validate(user),
        token=create_access_token(user),
    ))
