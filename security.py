import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from config import settings
from exceptions import (
    TokenExpiredError,
    TokenInvalidError,
    TokenMalformedError,
    TokenMissingError,
)
from logging_config import log_event

logger = logging.getLogger(__name__)

SECRET_KEY = settings.SECRET_KEY
ALGORITHM = settings.ALGORITHM
ACCESS_TOKEN_EXPIRE_MINUTES = settings.ACCESS_TOKEN_EXPIRE_MINUTES
TOKEN_ISSUER = settings.TOKEN_ISSUER

# bcrypt 작업 비용은 고정 (사용자 설정 불가)
BCRYPT_ROUNDS = 12

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=BCRYPT_ROUNDS)
bearer_scheme = HTTPBearer(auto_error=False)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


@dataclass(frozen=True)
class TokenClaims:
    user_id: int
    email: str
    first_name: str
    last_name: str
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class Anonymous:
    authenticated = False


@dataclass(frozen=True)
class Authenticated:
    claims: TokenClaims
    authenticated = True

    @property
    def user_id(self) -> int:
        return self.claims.user_id


Identity = Union[Anonymous, Authenticated]
ANONYMOUS = Anonymous()


def create_access_token(user, expires_delta: Optional[timedelta] = None) -> str:
    """사용자 정보를 담은 서명된 JWT 발급"""
    issued_at = datetime.now(timezone.utc)
    if expires_delta is None:
        expires_delta = timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode = {
        "sub": str(user.id),
        "email": user.email,
        "firstName": user.first_name or "",
        "lastName": user.last_name or "",
        "iat": issued_at,
        "exp": issued_at + expires_delta,
        "iss": TOKEN_ISSUER,
    }
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: Optional[str]) -> TokenClaims:
    """토큰을 검증하고 클레임을 반환. 실패 유형별로 다른 예외 발생"""
    if not token:
        raise TokenMissingError()

    # 서명 검증 전에 구조(헤더/페이로드)부터 확인
    try:
        jwt.get_unverified_header(token)
        jwt.get_unverified_claims(token)
    except JWTError:
        raise TokenMalformedError()

    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM], issuer=TOKEN_ISSUER)
    except ExpiredSignatureError:
        raise TokenExpiredError()
    except JWTError:
        raise TokenInvalidError()

    try:
        return TokenClaims(
            user_id=int(payload["sub"]),
            email=payload["email"],
            first_name=payload.get("firstName", ""),
            last_name=payload.get("lastName", ""),
            issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )
    except (KeyError, TypeError, ValueError):
        raise TokenMalformedError()


def optional_decode_token(token: Optional[str]) -> Identity:
    """검증 실패를 오류 대신 익명 사용자로 처리"""
    try:
        return Authenticated(decode_token(token))
    except (TokenMissingError, TokenMalformedError, TokenExpiredError, TokenInvalidError):
        return ANONYMOUS


def _bearer_token(credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    if credentials is None:
        return None
    return credentials.credentials


def get_identity(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Identity:
    """선택적 인증: 토큰이 없거나 유효하지 않으면 Anonymous"""
    identity = optional_decode_token(_bearer_token(credentials))
    _remember_identity(request, identity)
    return identity


def require_identity(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Authenticated:
    """필수 인증: 실패 시 401"""
    try:
        identity = Authenticated(decode_token(_bearer_token(credentials)))
    except (TokenMissingError, TokenMalformedError, TokenExpiredError, TokenInvalidError) as e:
        log_event(
            "auth.token_rejected",
            level=logging.WARNING,
            code=e.code,
            path=request.url.path,
            client_ip=request.client.host if request.client else None,
        )
        raise
    _remember_identity(request, identity)
    return identity


def _remember_identity(request: Request, identity: Identity) -> None:
    ctx = getattr(request.state, "log_context", None)
    if ctx is None:
        ctx = {}
        request.state.log_context = ctx
    ctx["user_id"] = identity.user_id if isinstance(identity, Authenticated) else "anonymous"
