"""
Weekly Review Queue API Router

Ranked per-member weekly summaries (red first) and the queue's headline
counts for the coach's week.
"""

from fastapi import APIRouter, Depends, Query
from datetime import date
from typing import Optional
from uuid import UUID

from core.auth import get_coach_context
from schemas import ReviewQueueSummaryResponse, WeeklySummariesResponse
from services.engagement_data import CoachContext, EngagementDataSource, get_engagement_source
from services.weekly_review import get_review_queue_summary, get_weekly_summaries

router = APIRouter(prefix="/v1/review-queue", tags=["Review Queue"])


@router.get("/weekly", response_model=WeeklySummariesResponse)
def weekly_summaries(
    week_start: Optional[date] = Query(None, description="Any date in the target week (YYYY-MM-DD)"),
    cohort_id: Optional[UUID] = Query(None, description="Restrict to one visible cohort"),
    coach: CoachContext = Depends(get_coach_context),
    source: EngagementDataSource = Depends(get_engagement_source),
):
    """
    Weekly summaries for every member in the coach's cohorts.

    The week is normalized to Monday..Sunday. Members are ranked by
    priority, then score (highest first), then check-in rate (lowest first).
    """
    summaries = get_weekly_summaries(source, coach, week_start=week_start, cohort_id=cohort_id)
    return WeeklySummariesResponse.from_summaries(summaries)


@router.get("/summary", response_model=ReviewQueueSummaryResponse)
def review_queue_summary(
    week_start: Optional[date] = Query(None, description="Any date in the target week (YYYY-MM-DD)"),
    coach: CoachContext = Depends(get_coach_context),
    source: EngagementDataSource = Depends(get_engagement_source),
):
    summary = get_review_queue_summary(source, coach, week_start=week_start)
    return ReviewQueueSummaryResponse.from_summary(summary)
