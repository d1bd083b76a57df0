from datetime import date
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from domain.base_schema import ApiResponse
from exceptions import ValidationError
from services.analytics_service import AnalyticsAggregator, get_analytics_aggregator

router = APIRouter(
    prefix="/analytics",
    tags=["Analytics"]
)

MAX_RANGE_DAYS = 366


@router.get("", response_model=ApiResponse[Dict[str, Any]])
def get_analytics(
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    analytics: AnalyticsAggregator = Depends(get_analytics_aggregator),
):
    """오늘(또는 지정 날짜/기간)의 분석 데이터 조회"""
    if end_date is not None:
        if start_date is None:
            raise ValidationError("Start date is required when end date is given", field="startDate")
        if end_date < start_date:
            raise ValidationError("End date must not be before start date", field="endDate")
        if (end_date - start_date).days >= MAX_RANGE_DAYS:
            raise ValidationError(f"Date range cannot exceed {MAX_RANGE_DAYS} days", field="endDate")

    return ApiResponse(data=analytics.get_daily_analytics(start_date, end_date))


@router.get("/summary", response_model=ApiResponse[Dict[str, Any]])
def get_analytics_summary(
    days: int = Query(7, ge=1, le=90),
    analytics: AnalyticsAggregator = Depends(get_analytics_aggregator),
):
    """최근 N일 요약"""
    return ApiResponse(data=analytics.get_summary(days))
