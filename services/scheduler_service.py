import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from services.analytics_service import AnalyticsAggregator, analytics_aggregator

logger = logging.getLogger(__name__)


class SchedulerService:
    """스케줄링 서비스 클래스"""

    def __init__(self, aggregator: AnalyticsAggregator):
        self.aggregator = aggregator
        self.scheduler = None

    @property
    def running(self) -> bool:
        return self.scheduler is not None and self.scheduler.running

    def start(self):
        """스케줄러 시작"""
        if self.running:
            return
        try:
            # 실행 중인 이벤트 루프에 묶이므로 시작할 때마다 새로 생성
            self.scheduler = AsyncIOScheduler()

            # 매일 자정(로컬 시간) 분석 카운터 초기화
            # 지연/누락되어도 reset_daily_counters는 멱등이므로 한 번만 실행되면 충분
            self.scheduler.add_job(
                func=self.reset_daily_analytics,
                trigger=CronTrigger(hour=0, minute=0),
                id="reset_daily_analytics",
                name="일별 분석 카운터 초기화",
                replace_existing=True,
                coalesce=True,
                misfire_grace_time=60 * 60,
            )

            self.scheduler.start()
            logger.info("스케줄러가 성공적으로 시작되었습니다.")

        except Exception as e:
            logger.error(f"스케줄러 시작 실패: {e}")

    def stop(self):
        """스케줄러 중지"""
        if not self.running:
            return
        try:
            self.scheduler.shutdown(wait=False)
            self.scheduler = None
            logger.info("스케줄러가 중지되었습니다.")
        except Exception as e:
            logger.error(f"스케줄러 중지 실패: {e}")

    def reset_daily_analytics(self) -> bool:
        """자정 작업: 일별 카운터 초기화 (실패해도 프로세스에 영향 없음)"""
        try:
            return self.aggregator.reset_daily_counters()
        except Exception as e:
            logger.error(f"일별 분석 카운터 초기화 실패: {e}")
            return False


# 전역 스케줄러 인스턴스
scheduler_service = SchedulerService(analytics_aggregator)
