import json
import logging
import os
import uuid
from logging.handlers import TimedRotatingFileHandler
from typing import Any, Dict, Optional

from config import settings

EVENT_LOGGER_NAME = "peptides"

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_event_logger = logging.getLogger(EVENT_LOGGER_NAME)
_configured = False


def setup_logging() -> None:
    """콘솔 + 일별 로테이션 파일 로깅 설정 (한 번만 수행)"""
    global _configured
    if _configured:
        return

    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    formatter = logging.Formatter(_LOG_FORMAT, datefmt=_DATE_FORMAT)

    root = logging.getLogger()
    root.setLevel(level)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    root.addHandler(console)

    if settings.LOG_TO_FILE:
        os.makedirs(settings.LOG_DIR, exist_ok=True)

        # 전체 로그 / 에러 로그를 자정마다 교체하고 30일 보관
        app_handler = TimedRotatingFileHandler(
            os.path.join(settings.LOG_DIR, "application.log"),
            when="midnight",
            backupCount=30,
            encoding="utf-8",
        )
        app_handler.setFormatter(formatter)
        root.addHandler(app_handler)

        error_handler = TimedRotatingFileHandler(
            os.path.join(settings.LOG_DIR, "error.log"),
            when="midnight",
            backupCount=30,
            encoding="utf-8",
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(formatter)
        root.addHandler(error_handler)

    _configured = True


def new_request_id() -> str:
    return uuid.uuid4().hex


def log_event(event: str, level: int = logging.INFO, **fields: Any) -> None:
    """구조화된 이벤트를 JSON 한 줄로 기록"""
    record: Dict[str, Any] = {"event": event}
    record.update(fields)
    _event_logger.log(level, json.dumps(record, ensure_ascii=False, default=str))


def finalize_request_log(
    request_id: str,
    method: str,
    path: str,
    status: int,
    latency_ms: int,
    client_ip: Optional[str],
    ctx: Optional[Dict[str, Any]] = None,
) -> None:
    payload: Dict[str, Any] = {
        "request_id": request_id,
        "method": method,
        "path": path,
        "status": status,
        "latency_ms": latency_ms,
        "client_ip": client_ip or "",
    }
    if ctx:
        payload.update(ctx)
    log_event("request.completed", **payload)
