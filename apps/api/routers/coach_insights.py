"""
Coach Insights API Router

Dashboard endpoints for coaches: roster-wide engagement, a single member's
attention score, recent check-in history, and check-in cadence.

Every endpoint is read-only and scoped to the cohorts the coach can see.
"""

from fastapi import APIRouter, Depends
from typing import Optional
from uuid import UUID

from core.auth import get_coach_context
from schemas import (
    AttentionScoreResponse,
    CheckInFrequencyConfigResponse,
    CohortInsightResponse,
    MemberCheckInDataResponse,
)
from services.check_in_frequency import get_check_in_frequency_config
from services.cohort_insights import (
    calculate_attention_score,
    get_coach_insights,
    get_member_check_in_data,
)
from services.engagement_data import CoachContext, EngagementDataSource, get_engagement_source

router = APIRouter(prefix="/v1/coach", tags=["Coach Insights"])


@router.get("/insights", response_model=CohortInsightResponse)
def coach_insights(
    coach: CoachContext = Depends(get_coach_context),
    source: EngagementDataSource = Depends(get_engagement_source),
):
    """
    Engagement overview across every member the coach can see.

    Attention scores are sorted highest first. Members whose data could
    not be read are left out of the list and counted in
    `unscored_members_count`.
    """
    insight = get_coach_insights(source, coach)
    return CohortInsightResponse.from_insight(insight)


@router.get("/members/{member_id}/attention-score", response_model=Optional[AttentionScoreResponse])
def member_attention_score(
    member_id: UUID,
    coach: CoachContext = Depends(get_coach_context),
    source: EngagementDataSource = Depends(get_engagement_source),
):
    """Attention score for one member; null if the member does not exist."""
    score = calculate_attention_score(source, coach, member_id)
    if score is None:
        return None
    return AttentionScoreResponse.from_score(score)


@router.get("/members/{member_id}/check-ins", response_model=Optional[MemberCheckInDataResponse])
def member_check_ins(
    member_id: UUID,
    coach: CoachContext = Depends(get_coach_context),
    source: EngagementDataSource = Depends(get_engagement_source),
):
    """Last 30 days of check-ins, newest first, with the current streak."""
    data = get_member_check_in_data(source, coach, member_id)
    if data is None:
        return None
    return MemberCheckInDataResponse.from_data(data)


@router.get("/members/{member_id}/check-in-frequency", response_model=CheckInFrequencyConfigResponse)
def member_check_in_frequency(
    member_id: UUID,
    coach: CoachContext = Depends(get_coach_context),
    source: EngagementDataSource = Depends(get_engagement_source),
):
    config = get_check_in_frequency_config(source, coach, member_id)
    return CheckInFrequencyConfigResponse.from_config(config)
