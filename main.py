import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from sqlalchemy import text
from sqlalchemy.orm import Session

from config import settings
from database.session import Base, engine, get_db
from domain.analytics import analytics_router
from domain.auth import auth_router
from domain.suggestion import suggestion_model, suggestion_router  # noqa: F401 (모델 등록)
from domain.suggestion.suggestion_generator import get_suggestion_catalog
from domain.user import user_model, user_router  # noqa: F401 (모델 등록)
from exceptions import register_exception_handlers
from logging_config import finalize_request_log, log_event, new_request_id, setup_logging
from services.rate_limiter import general_rate_limiter
from services.scheduler_service import scheduler_service

logger = logging.getLogger(__name__)

STARTED_AT = time.monotonic()


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    try:
        Base.metadata.create_all(bind=engine)
        get_suggestion_catalog()
    except Exception:
        logger.critical("애플리케이션 초기화 실패 (데이터베이스/카탈로그). 프로세스를 종료합니다.", exc_info=True)
        raise

    scheduler_service.start()
    logger.info(f"서버 시작: environment={settings.ENVIRONMENT}, version={settings.APP_VERSION}")
    try:
        yield
    finally:
        scheduler_service.stop()
        engine.dispose()
        logger.info("데이터베이스 연결 종료")


app = FastAPI(
    title="Peptide Suggestions API",
    description="나이와 건강 목표에 따른 펩타이드 추천 서비스 백엔드 API",
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    dependencies=[Depends(general_rate_limiter)],
)

register_exception_handlers(app)

# CORS 미들웨어 설정
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)
app.add_middleware(GZipMiddleware, minimum_size=1024)

# helmet 기본값에 맞춘 보안 헤더 (cross-origin 리소스 허용)
SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "X-DNS-Prefetch-Control": "off",
    "X-Download-Options": "noopen",
    "X-Permitted-Cross-Domain-Policies": "none",
    "X-XSS-Protection": "0",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "cross-origin",
}


@app.middleware("http")
async def _security_headers_middleware(request: Request, call_next):
    response = await call_next(request)
    for name, value in SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)
    return response


@app.middleware("http")
async def _logging_middleware(request: Request, call_next):
    start = time.perf_counter()
    req_id = new_request_id()
    request.state.request_id = req_id
    client_ip = request.client.host if request.client else None
    try:
        response = await call_next(request)
    except Exception as e:
        latency_ms = int((time.perf_counter() - start) * 1000)
        ctx = getattr(request.state, "log_context", {}) or {}
        log_event(
            "request.error",
            level=logging.ERROR,
            request_id=req_id,
            path=str(request.url.path),
            method=request.method,
            latency_ms=latency_ms,
            client_ip=client_ip,
            error=str(e),
            **ctx,
        )
        raise
    latency_ms = int((time.perf_counter() - start) * 1000)
    ctx = dict(getattr(request.state, "log_context", {}) or {})
    ctx.setdefault("user_id", "anonymous")
    ctx.setdefault("rate_limited", response.status_code == 429)
    finalize_request_log(
        request_id=req_id,
        method=request.method,
        path=str(request.url.path),
        status=response.status_code,
        latency_ms=latency_ms,
        client_ip=client_ip,
        ctx=ctx,
    )
    response.headers["X-Request-ID"] = req_id
    return response


app.include_router(auth_router.router)
app.include_router(user_router.router)
app.include_router(suggestion_router.router)
app.include_router(analytics_router.router)


@app.get("/health", tags=["System"])
def health(db: Session = Depends(get_db)):
    """헬스 체크"""
    try:
        db.execute(text("SELECT 1"))
        database_status = "connected"
    except Exception as e:
        logger.error(f"헬스 체크 중 데이터베이스 오류: {e}")
        database_status = "unavailable"

    return {
        "status": "healthy" if database_status == "connected" else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": round(time.monotonic() - STARTED_AT, 3),
        "version": settings.APP_VERSION,
        "database": database_status,
        "services": {
            "scheduler": "running" if scheduler_service.running else "stopped",
            "analytics": "ready",
        },
    }
