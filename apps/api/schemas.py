"""
Response models for the coach-facing engagement API.

This is the only place reasons and suggested actions are rendered to
display strings; the engine hands over tagged values.
"""
from pydantic import BaseModel
from datetime import datetime, date
from uuid import UUID
from typing import Optional, List

from services.attention_score import (
    AttentionReason,
    MemberAttentionScore,
    render_action,
    render_reason,
)
from services.check_in_frequency import CheckInFrequencyConfig
from services.cohort_insights import CohortInsight, MemberCheckInData
from services.engagement_data import CheckInSnapshot
from services.questionnaire_completion import QuestionnaireStatus
from services.weekly_review import ReviewQueueSummary, WeeklyClientSummary, WeeklyStats, WeeklySummaries


class AttentionReasonResponse(BaseModel):
    kind: str
    text: str

    @classmethod
    def from_reason(cls, reason: AttentionReason) -> "AttentionReasonResponse":
        return cls(kind=reason.kind.value, text=render_reason(reason))


class AttentionScoreResponse(BaseModel):
    member_id: UUID
    member_name: Optional[str] = None
    member_email: str
    score: int
    priority: str
    reasons: List[str]
    reason_details: List[AttentionReasonResponse]
    suggested_actions: List[str]
    last_check_in: Optional[date] = None
    total_check_ins: int
    current_streak: int
    questionnaire_completion: float
    weekly_check_ins: int

    @classmethod
    def from_score(cls, score: MemberAttentionScore) -> "AttentionScoreResponse":
        return cls(
            member_id=score.member_id,
            member_name=score.member_name,
            member_email=score.member_email,
            score=score.score,
            priority=score.priority.value,
            reasons=[render_reason(r) for r in score.reasons],
            reason_details=[AttentionReasonResponse.from_reason(r) for r in score.reasons],
            suggested_actions=[render_action(a) for a in score.suggested_actions],
            last_check_in=score.last_check_in,
            total_check_ins=score.total_check_ins,
            current_streak=score.current_streak,
            questionnaire_completion=round(score.questionnaire_completion, 4),
            weekly_check_ins=score.weekly_check_ins,
        )


class CohortInsightResponse(BaseModel):
    total_members: int
    active_members_count: int
    inactive_members_count: int
    avg_check_ins_per_week: float
    avg_questionnaire_completion: float
    unscored_members_count: int
    attention_scores: List[AttentionScoreResponse]

    @classmethod
    def from_insight(cls, insight: CohortInsight) -> "CohortInsightResponse":
        return cls(
            total_members=insight.total_members,
            active_members_count=insight.active_members_count,
            inactive_members_count=insight.inactive_members_count,
            avg_check_ins_per_week=round(insight.avg_check_ins_per_week, 2),
            avg_questionnaire_completion=round(insight.avg_questionnaire_completion, 4),
            unscored_members_count=insight.unscored_members_count,
            attention_scores=[AttentionScoreResponse.from_score(s) for s in insight.attention_scores],
        )


class CheckInResponse(BaseModel):
    date: date
    weight: Optional[float] = None
    steps: Optional[int] = None
    calories: Optional[int] = None
    sleep_quality: Optional[float] = None
    perceived_stress: Optional[float] = None
    notes: Optional[str] = None

    @classmethod
    def from_snapshot(cls, check_in: CheckInSnapshot) -> "CheckInResponse":
        return cls(
            date=check_in.date,
            weight=check_in.weight,
            steps=check_in.steps,
            calories=check_in.calories,
            sleep_quality=check_in.sleep_quality,
            perceived_stress=check_in.perceived_stress,
            notes=check_in.notes,
        )


class MemberCheckInDataResponse(BaseModel):
    member_id: UUID
    member_name: Optional[str] = None
    member_email: str
    check_ins: List[CheckInResponse]
    total_check_ins: int
    current_streak: int
    last_check_in: Optional[date] = None

    @classmethod
    def from_data(cls, data: MemberCheckInData) -> "MemberCheckInDataResponse":
        return cls(
            member_id=data.member_id,
            member_name=data.member_name,
            member_email=data.member_email,
            check_ins=[CheckInResponse.from_snapshot(c) for c in data.check_ins],
            total_check_ins=data.total_check_ins,
            current_streak=data.current_streak,
            last_check_in=data.last_check_in,
        )


class CheckInFrequencyConfigResponse(BaseModel):
    member_override: Optional[int] = None
    cohort_override: Optional[int] = None
    cohort_name: Optional[str] = None
    system_default: int
    effective: int

    @classmethod
    def from_config(cls, config: CheckInFrequencyConfig) -> "CheckInFrequencyConfigResponse":
        return cls(
            member_override=config.member_override,
            cohort_override=config.cohort_override,
            cohort_name=config.cohort_name,
            system_default=config.system_default,
            effective=config.effective,
        )


class WeeklyStatsResponse(BaseModel):
    check_in_count: int
    check_in_rate: float
    expected_check_ins: int
    avg_weight: Optional[float] = None
    weight_trend: Optional[float] = None
    avg_steps: Optional[int] = None
    avg_calories: Optional[int] = None
    avg_sleep_quality: Optional[float] = None
    avg_stress: Optional[float] = None

    @classmethod
    def from_stats(cls, stats: WeeklyStats) -> "WeeklyStatsResponse":
        return cls(
            check_in_count=stats.check_in_count,
            check_in_rate=stats.check_in_rate,
            expected_check_ins=stats.expected_check_ins,
            avg_weight=stats.avg_weight,
            weight_trend=stats.weight_trend,
            avg_steps=stats.avg_steps,
            avg_calories=stats.avg_calories,
            avg_sleep_quality=stats.avg_sleep_quality,
            avg_stress=stats.avg_stress,
        )


class QuestionnaireStatusResponse(BaseModel):
    status: str
    last_updated: Optional[datetime] = None
    hours_since_last_save: Optional[int] = None

    @classmethod
    def from_status(cls, status: QuestionnaireStatus) -> "QuestionnaireStatusResponse":
        return cls(
            status=status.status.value,
            last_updated=status.last_updated,
            hours_since_last_save=status.hours_since_last_save,
        )


class WeeklyClientSummaryResponse(BaseModel):
    client_id: UUID
    name: Optional[str] = None
    email: str
    cohort_id: UUID
    cohort_name: str
    stats: WeeklyStatsResponse
    last_check_in_date: Optional[date] = None
    attention_score: Optional[AttentionScoreResponse] = None
    questionnaire_status: QuestionnaireStatusResponse

    @classmethod
    def from_summary(cls, summary: WeeklyClientSummary) -> "WeeklyClientSummaryResponse":
        return cls(
            client_id=summary.member_id,
            name=summary.name,
            email=summary.email,
            cohort_id=summary.cohort_id,
            cohort_name=summary.cohort_name,
            stats=WeeklyStatsResponse.from_stats(summary.stats),
            last_check_in_date=summary.last_check_in,
            attention_score=(
                AttentionScoreResponse.from_score(summary.attention_score)
                if summary.attention_score
                else None
            ),
            questionnaire_status=QuestionnaireStatusResponse.from_status(summary.questionnaire_status),
        )


class WeeklySummariesResponse(BaseModel):
    week_start: date
    week_end: date
    clients: List[WeeklyClientSummaryResponse]

    @classmethod
    def from_summaries(cls, summaries: WeeklySummaries) -> "WeeklySummariesResponse":
        return cls(
            week_start=summaries.week_start,
            week_end=summaries.week_end,
            clients=[WeeklyClientSummaryResponse.from_summary(c) for c in summaries.clients],
        )


class ReviewQueueSummaryResponse(BaseModel):
    total_clients: int
    red_priority: int
    amber_priority: int
    green_priority: int
    pending_reviews: int
    completed_reviews: int

    @classmethod
    def from_summary(cls, summary: ReviewQueueSummary) -> "ReviewQueueSummaryResponse":
        return cls(
            total_clients=summary.total_clients,
            red_priority=summary.red_priority,
            amber_priority=summary.amber_priority,
            green_priority=summary.green_priority,
            pending_reviews=summary.pending_reviews,
            completed_reviews=summary.completed_reviews,
        )
