import logging
import traceback
import uuid
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import settings

logger = logging.getLogger(__name__)


class AppError(Exception):
    """모든 API 오류의 기본 클래스"""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "INTERNAL_ERROR"
    message = "Internal Server Error"

    def __init__(self, message: Optional[str] = None, code: Optional[str] = None):
        self.message = message or self.message
        if code:
            self.code = code
        super().__init__(self.message)

    @property
    def headers(self) -> Optional[Dict[str, str]]:
        return None

    def extra(self) -> Dict[str, Any]:
        return {}


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "VALIDATION_ERROR"
    message = "Validation failed"

    def __init__(self, message: Optional[str] = None, field: Optional[str] = None):
        super().__init__(message)
        self.field = field

    def extra(self) -> Dict[str, Any]:
        return {"field": self.field} if self.field else {}


class AuthenticationError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "AUTHENTICATION_ERROR"
    message = "Authentication failed"

    @property
    def headers(self) -> Optional[Dict[str, str]]:
        return {"WWW-Authenticate": "Bearer"}


class TokenMissingError(AuthenticationError):
    code = "TOKEN_MISSING"
    message = "Access token is required"


class TokenExpiredError(AuthenticationError):
    code = "TOKEN_EXPIRED"
    message = "Token has expired"


class TokenMalformedError(AuthenticationError):
    code = "TOKEN_MALFORMED"
    message = "Malformed token"


class TokenInvalidError(AuthenticationError):
    code = "TOKEN_INVALID"
    message = "Invalid token"


class InvalidCredentialsError(AuthenticationError):
    code = "INVALID_CREDENTIALS"
    message = "Invalid email or password"


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT
    code = "EMAIL_EXISTS"
    message = "An account with this email already exists"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"
    message = "Resource not found"


class RateLimitError(AppError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    code = "RATE_LIMIT_EXCEEDED"
    message = "Too many requests from this IP, please try again later."

    def __init__(self, retry_after: int, message: Optional[str] = None, code: Optional[str] = None):
        super().__init__(message, code)
        self.retry_after = max(1, int(retry_after))

    @property
    def headers(self) -> Optional[Dict[str, str]]:
        return {"Retry-After": str(self.retry_after)}

    def extra(self) -> Dict[str, Any]:
        return {"retryAfter": self.retry_after}


class InternalError(AppError):
    pass


# --- 검증 오류 메시지 ---
_FIELD_LABELS = {
    "age": "Age",
    "healthGoal": "Health goal",
    "email": "Email",
    "password": "Password",
    "currentPassword": "Current password",
    "newPassword": "New password",
    "firstName": "First name",
    "lastName": "Last name",
    "limit": "Limit",
    "days": "Days",
    "startDate": "Start date",
    "endDate": "End date",
}

_LOCATION_PREFIXES = ("body", "query", "path", "header", "cookie")


def _field_path(loc) -> str:
    parts = list(loc)
    if parts and parts[0] in _LOCATION_PREFIXES:
        parts = parts[1:]
    return ".".join(str(p) for p in parts)


def _validation_message(error: Dict[str, Any], field: str) -> str:
    label = _FIELD_LABELS.get(field, field.capitalize() if field else "Request body")
    ctx = error.get("ctx") or {}
    error_type = error.get("type", "")

    if error_type == "missing":
        return f"{label} is required"
    if error_type == "json_invalid":
        return "Request body must be valid JSON"
    if error_type in ("int_parsing", "int_type"):
        return f"{label} must be a number"
    if error_type == "int_from_float":
        return f"{label} must be a whole number"
    if error_type == "greater_than_equal":
        return f"{label} must be at least {ctx.get('ge')}"
    if error_type == "less_than_equal":
        return f"{label} must be {ctx.get('le')} or less"
    if error_type == "enum":
        return f"{label} must be one of: {ctx.get('expected')}"
    if error_type == "string_too_short":
        return f"{label} must be at least {ctx.get('min_length')} characters long"
    if error_type == "string_too_long":
        return f"{label} cannot exceed {ctx.get('max_length')} characters"
    if error_type in ("string_type", "model_attributes_type", "dict_type"):
        return f"{label} has an invalid type"
    if error_type == "value_error" and field == "email":
        return "Please provide a valid email address"
    if error_type == "value_error":
        # pydantic이 붙이는 "Value error, " 접두사 제거
        return str(error.get("msg", "")).removeprefix("Value error, ")
    return f"{label}: {error.get('msg', 'invalid value')}"


def validation_error_from(exc: RequestValidationError) -> ValidationError:
    """첫 번째 검증 위반만 사용해 ValidationError로 변환"""
    errors = exc.errors()
    if not errors:
        return ValidationError()
    first = errors[0]
    field = _field_path(first.get("loc", ()))
    return ValidationError(_validation_message(first, field), field=field or None)


# --- 오류 응답 ---
def error_response(exc: AppError, request: Request, error_id: Optional[str] = None) -> JSONResponse:
    error_id = error_id or str(uuid.uuid4())
    body: Dict[str, Any] = {
        "message": exc.message,
        "code": exc.code,
        "errorId": error_id,
    }
    body.update(exc.extra())
    if settings.is_development and exc.__cause__ is not None:
        body["stack"] = "".join(traceback.format_exception(exc.__cause__))

    request_id = getattr(request.state, "request_id", None)
    log_fields = {
        "error_id": error_id,
        "request_id": request_id,
        "code": exc.code,
        "status": exc.status_code,
        "method": request.method,
        "path": request.url.path,
    }
    if exc.status_code >= 500:
        logger.error(f"Server error: {exc.message} {log_fields}", exc_info=exc.__cause__ or exc)
    else:
        logger.warning(f"Client error: {exc.message} {log_fields}")

    headers = dict(exc.headers or {})
    if request_id:
        headers["X-Request-ID"] = request_id

    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": body},
        headers=headers or None,
    )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return error_response(exc, request)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(validation_error_from(exc), request)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        app_exc = NotFoundError(
            f"The requested endpoint {request.method} {request.url.path} does not exist",
            code="ENDPOINT_NOT_FOUND",
        )
    elif exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
        app_exc = AppError(f"Method {request.method} is not allowed", code="METHOD_NOT_ALLOWED")
        app_exc.status_code = exc.status_code
    else:
        app_exc = AppError(str(exc.detail), code="HTTP_ERROR")
        app_exc.status_code = exc.status_code
    return error_response(app_exc, request)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    internal = InternalError()
    internal.__cause__ = exc
    return error_response(internal, request)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
