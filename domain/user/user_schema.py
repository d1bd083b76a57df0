import re
from datetime import datetime
from typing import Annotated, Optional

from pydantic import EmailStr, Field, StringConstraints, field_validator

from domain.base_schema import CamelModel

PASSWORD_MIN_LENGTH = 8

Name = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=50)]


def _strip(value):
    return value.strip() if isinstance(value, str) else value


def _check_password_strength(value: str) -> str:
    if not (re.search(r"[a-z]", value) and re.search(r"[A-Z]", value) and re.search(r"\d", value)):
        raise ValueError(
            "Password must contain at least one uppercase letter, one lowercase letter, and one number"
        )
    return value


class RegisterRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=PASSWORD_MIN_LENGTH)
    first_name: Optional[Name] = None
    last_name: Optional[Name] = None

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, value):
        return _strip(value)

    @field_validator("password")
    @classmethod
    def strong_password(cls, value: str) -> str:
        return _check_password_strength(value)


class LoginRequest(CamelModel):
    email: EmailStr
    password: str

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, value):
        return _strip(value)

    @field_validator("password")
    @classmethod
    def password_required(cls, value: str) -> str:
        if not value:
            raise ValueError("Password is required")
        return value


class ProfileUpdate(CamelModel):
    first_name: Optional[Name] = None
    last_name: Optional[Name] = None


class ChangePasswordRequest(CamelModel):
    current_password: str
    new_password: str = Field(min_length=PASSWORD_MIN_LENGTH)

    @field_validator("new_password")
    @classmethod
    def strong_password(cls, value: str) -> str:
        return _check_password_strength(value)


class User(CamelModel):
    id: int
    email: str
    first_name: str = ""
    last_name: str = ""


class UserProfile(User):
    created_at: datetime
    updated_at: datetime


class AuthData(CamelModel):
    message: str
    user: User
    token: str


class TokenVerification(CamelModel):
    valid: bool = True
    user: User


class ProfileData(CamelModel):
    user: UserProfile


class MessageData(CamelModel):
    message: str
