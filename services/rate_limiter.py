import logging
import math
import threading
import time
from collections import deque
from typing import Callable, Deque, Dict, Optional

from fastapi import Request

from config import settings
from exceptions import RateLimitError
from logging_config import log_event


class RateLimiter:
    """클라이언트 IP별 슬라이딩 윈도우 요청 제한 (FastAPI 의존성으로 사용)"""

    def __init__(
        self,
        max_requests: int,
        window_seconds: int,
        scope: str = "general",
        message: Optional[str] = None,
        code: Optional[str] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.scope = scope
        self.message = message
        self.code = code
        self._clock = clock
        self._lock = threading.Lock()
        self._store: Dict[str, Deque[float]] = {}
        self._last_sweep = clock()

    def hit(self, key: str) -> None:
        """요청 1건을 기록. 한도를 넘으면 RateLimitError"""
        now = self._clock()
        cutoff = now - self.window_seconds

        with self._lock:
            if now - self._last_sweep >= self.window_seconds:
                self._sweep(cutoff)
                self._last_sweep = now

            dq = self._store.setdefault(key, deque())
            while dq and dq[0] <= cutoff:
                dq.popleft()

            if len(dq) >= self.max_requests:
                retry_after = math.ceil(dq[0] + self.window_seconds - now)
                log_event(
                    "rate_limit.exceeded",
                    level=logging.WARNING,
                    scope=self.scope,
                    key=key,
                    count=len(dq),
                    retry_after=retry_after,
                )
                raise RateLimitError(retry_after, message=self.message, code=self.code)

            dq.append(now)

    def _sweep(self, cutoff: float) -> None:
        """윈도우 안에 요청이 남지 않은 키 삭제 (락 안에서 호출)"""
        for key in [k for k, dq in self._store.items() if not dq or dq[-1] <= cutoff]:
            del self._store[key]

    def tracked_keys(self) -> int:
        with self._lock:
            return len(self._store)

    def reset(self) -> None:
        with self._lock:
            self._store.clear()

    def __call__(self, request: Request) -> None:
        client_ip = request.client.host if request.client else "unknown"
        self.hit(client_ip)


general_rate_limiter = RateLimiter(
    max_requests=settings.RATE_LIMIT_MAX_REQUESTS,
    window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
    scope="general",
)

auth_rate_limiter = RateLimiter(
    max_requests=settings.AUTH_RATE_LIMIT_MAX_REQUESTS,
    window_seconds=settings.AUTH_RATE_LIMIT_WINDOW_SECONDS,
    scope="auth",
    message="Too many authentication attempts, please try again later.",
    code="TOO_MANY_ATTEMPTS",
)
