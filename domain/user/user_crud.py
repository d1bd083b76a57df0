import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from domain.user import user_model
from exceptions import ConflictError, InvalidCredentialsError, NotFoundError
from security import get_password_hash, verify_password

logger = logging.getLogger(__name__)


def get_user_by_email(db: Session, email: str) -> Optional[user_model.User]:
    """이메일로 사용자 조회 (대소문자 구분)"""
    return db.query(user_model.User).filter(user_model.User.email == email).first()


def get_user_by_id(db: Session, user_id: int) -> Optional[user_model.User]:
    return db.query(user_model.User).filter(user_model.User.id == user_id).first()


def create_user(
    db: Session,
    email: str,
    password: str,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
) -> user_model.User:
    if get_user_by_email(db, email):
        raise ConflictError()

    db_user = user_model.User(
        email=email,
        hashed_password=get_password_hash(password),
        first_name=first_name or "",
        last_name=last_name or "",
    )
    db.add(db_user)
    try:
        db.commit()
    except IntegrityError:
        # 동시 가입 시 유니크 제약이 최종 판단
        db.rollback()
        raise ConflictError()
    db.refresh(db_user)
    logger.info(f"사용자 생성: user_id={db_user.id}")
    return db_user


def authenticate(db: Session, email: str, password: str) -> user_model.User:
    """이메일/비밀번호 확인. 계정 존재 여부와 관계없이 같은 오류"""
    user = get_user_by_email(db, email)
    if not user or not verify_password(password, user.hashed_password):
        raise InvalidCredentialsError()
    return user


def update_profile(
    db: Session,
    user_id: int,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
) -> user_model.User:
    """사용자 프로필 정보를 업데이트"""
    user = get_user_by_id(db, user_id)
    if not user:
        raise NotFoundError("User not found", code="USER_NOT_FOUND")

    if first_name is not None:
        user.first_name = first_name
    if last_name is not None:
        user.last_name = last_name

    db.commit()
    db.refresh(user)
    return user


def change_password(db: Session, user_id: int, current_password: str, new_password: str) -> user_model.User:
    user = get_user_by_id(db, user_id)
    if not user:
        raise NotFoundError("User not found", code="USER_NOT_FOUND")
    if not verify_password(current_password, user.hashed_password):
        raise InvalidCredentialsError("Current password is incorrect")

    user.hashed_password = get_password_hash(new_password)
    db.commit()
    db.refresh(user)
    logger.info(f"비밀번호 변경: user_id={user_id}")
    return user


def delete_user(db: Session, user_id: int) -> None:
    """사용자 삭제 (추천 기록은 함께 삭제됨)"""
    user = get_user_by_id(db, user_id)
    if not user:
        raise NotFoundError("User not found", code="USER_NOT_FOUND")
    db.delete(user)
    db.commit()
    logger.info(f"사용자 삭제: user_id={user_id}")
