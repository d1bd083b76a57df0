import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, Optional

from config import settings
from logging_config import log_event

logger = logging.getLogger(__name__)


def _local_now() -> datetime:
    return datetime.now().astimezone()


def empty_day(day: str) -> Dict[str, Any]:
    return {
        "date": day,
        "totalRequests": 0,
        "successfulRequests": 0,
        "failedRequests": 0,
        "goalSelections": {},
        "errors": [],
        "uniqueIPs": [],
        "firstRequest": None,
        "lastRequest": None,
    }


@dataclass
class DailyCounters:
    """프로세스 메모리의 당일 카운터"""

    date: str
    requests: int = 0
    successful_requests: int = 0
    errors: int = 0
    goal_selections: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "requests": self.requests,
            "successfulRequests": self.successful_requests,
            "errors": self.errors,
            "goalSelections": dict(self.goal_selections),
        }


class AnalyticsAggregator:
    """일별 요청 통계 집계기

    두 계층으로 동작한다.
    - 메모리 카운터: 자정마다 초기화 (스케줄러 또는 날짜가 바뀐 첫 이벤트)
    - JSON 파일: 날짜별 AnalyticsDay 레코드, 매 기록 시 보관 기간 밖의 날짜 삭제

    요청 스레드들이 동시에 기록하므로 모든 읽기-수정-쓰기는 하나의 락 안에서 수행한다.
    요청 1건은 이벤트 1건으로 집계된다. 성공 요청은 totalRequests, successfulRequests,
    goalSelections[goal]을 각각 한 번씩 증가시킨다.
    """

    def __init__(
        self,
        file_path: str,
        retention_days: int = 90,
        clock: Callable[[], datetime] = _local_now,
    ):
        self.file_path = file_path
        self.retention_days = retention_days
        self._clock = clock
        self._lock = threading.Lock()
        self._counters = DailyCounters(date=self._today())

    def _today(self) -> str:
        return self._clock().date().isoformat()

    # --- 기록 ---
    def record_success(self, goal: str, ip: Optional[str] = None, request_id: Optional[str] = None) -> None:
        """성공한 추천 요청 1건 기록"""
        now = self._clock()
        with self._lock:
            self._roll_over(now.date().isoformat())
            self._counters.requests += 1
            self._counters.successful_requests += 1
            self._counters.goal_selections[goal] = self._counters.goal_selections.get(goal, 0) + 1

            def apply(day: Dict[str, Any]) -> None:
                day["successfulRequests"] += 1
                day["goalSelections"][goal] = day["goalSelections"].get(goal, 0) + 1

            self._update_day(now, ip, apply)

        log_event("analytics.successful_request", goal=goal, request_id=request_id, client_ip=ip)

    def record_failure(
        self,
        goal: Optional[str],
        error: str,
        ip: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> None:
        """실패한 추천 요청 1건 기록"""
        now = self._clock()
        with self._lock:
            self._roll_over(now.date().isoformat())
            self._counters.requests += 1
            self._counters.errors += 1

            def apply(day: Dict[str, Any]) -> None:
                day["failedRequests"] += 1
                day["errors"].append({
                    "error": error,
                    "timestamp": now.isoformat(),
                    "requestId": request_id,
                })

            self._update_day(now, ip, apply)

        log_event("analytics.failed_request", goal=goal, error=error, request_id=request_id, client_ip=ip)

    def _update_day(self, now: datetime, ip: Optional[str], apply: Callable[[Dict[str, Any]], None]) -> None:
        day_key = now.date().isoformat()
        analytics = self._load()
        day = analytics.setdefault(day_key, empty_day(day_key))

        day["totalRequests"] += 1
        apply(day)

        ips = set(day["uniqueIPs"])
        ips.add(ip or "unknown")
        day["uniqueIPs"] = sorted(ips)

        day["lastRequest"] = now.isoformat()
        if not day["firstRequest"]:
            day["firstRequest"] = day["lastRequest"]

        cutoff = (now.date() - timedelta(days=self.retention_days)).isoformat()
        for key in [k for k in analytics if k < cutoff]:
            del analytics[key]

        self._save(analytics)

    # --- 일별 카운터 초기화 ---
    def _roll_over(self, today: str) -> bool:
        if self._counters.date == today:
            return False
        self._counters = DailyCounters(date=today)
        return True

    def reset_daily_counters(self, today: Optional[str] = None) -> bool:
        """당일 카운터 초기화. 이미 오늘 날짜라면 아무것도 하지 않음"""
        today = today or self._today()
        with self._lock:
            reset = self._roll_over(today)
        if reset:
            logger.info(f"일별 분석 카운터 초기화: {today}")
        return reset

    def get_current_counters(self) -> Dict[str, Any]:
        with self._lock:
            self._roll_over(self._today())
            return self._counters.to_dict()

    # --- 조회 ---
    def get_daily_analytics(self, start_date: Optional[date] = None, end_date: Optional[date] = None) -> Dict[str, Any]:
        with self._lock:
            analytics = self._load()

        if start_date is None:
            today = self._today()
            return {
                "date": today,
                "data": analytics.get(today) or empty_day(today),
                "currentCounters": self.get_current_counters(),
            }

        if end_date is None:
            key = start_date.isoformat()
            return {"date": key, "data": analytics.get(key) or empty_day(key)}

        result = {}
        current = start_date
        while current <= end_date:
            key = current.isoformat()
            result[key] = analytics.get(key) or empty_day(key)
            current += timedelta(days=1)

        return {
            "dateRange": {"startDate": start_date.isoformat(), "endDate": end_date.isoformat()},
            "data": result,
        }

    def get_summary(self, days: int = 7) -> Dict[str, Any]:
        """최근 N일 요약 통계"""
        end_date = self._clock().date()
        start_date = end_date - timedelta(days=days - 1)
        daily = self.get_daily_analytics(start_date, end_date)["data"]

        total = successful = failed = 0
        popular_goals: Dict[str, int] = {}
        unique_ips = set()
        for day in daily.values():
            total += day["totalRequests"]
            successful += day["successfulRequests"]
            failed += day["failedRequests"]
            for goal, count in day["goalSelections"].items():
                popular_goals[goal] = popular_goals.get(goal, 0) + count
            unique_ips.update(day["uniqueIPs"])

        active_days = len(daily)
        return {
            "period": {"startDate": start_date.isoformat(), "endDate": end_date.isoformat()},
            "totalRequests": total,
            "successfulRequests": successful,
            "failedRequests": failed,
            "errorRate": round(failed / total * 100, 2) if total else 0,
            "popularGoals": dict(sorted(popular_goals.items(), key=lambda item: item[1], reverse=True)),
            "uniqueIPCount": len(unique_ips),
            "dailyAverages": {
                "requests": round(total / active_days) if active_days else 0,
                "successfulRequests": round(successful / active_days) if active_days else 0,
                "failedRequests": round(failed / active_days) if active_days else 0,
            },
        }

    # --- 파일 저장소 ---
    def _load(self) -> Dict[str, Any]:
        try:
            with open(self.file_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"분석 파일을 읽을 수 없어 새로 시작합니다: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, analytics: Dict[str, Any]) -> None:
        directory = os.path.dirname(os.path.abspath(self.file_path))
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".analytics-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(analytics, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.file_path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise


analytics_aggregator = AnalyticsAggregator(
    file_path=settings.ANALYTICS_FILE,
    retention_days=settings.ANALYTICS_RETENTION_DAYS,
)


def get_analytics_aggregator() -> AnalyticsAggregator:
    return analytics_aggregator
