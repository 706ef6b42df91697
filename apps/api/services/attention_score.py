"""
Attention Score Calculator

Rule-based 0-100 risk indicator telling coaches who needs outreach first.
Higher = needs more attention.

Architecture:
    Check-ins (<= 40)  +  Questionnaires (<= 30)  +  Sentiment (<= 30, +10 trend)
             ↓
    clamp to [0, 100]
             ↓
    Priority: red (>= 60), amber (>= 30), green (< 30)

Reasons and suggested actions are kept as tagged values while scoring and
only turned into display strings by render_reason / render_action at the
API boundary, so the scoring rules can be tested without string matching.

The calculator is read-only: every input comes from an EngagementDataSource
and nothing is cached between calls.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import List, Optional, Sequence, Tuple
from uuid import UUID
import logging

from core.config import settings
from services.checkin_streaks import calculate_current_streak
from services.engagement_data import EngagementDataSource, MemberRef
from services.questionnaire_completion import resolve_completion_ratio

logger = logging.getLogger(__name__)


# =============================================================================
# PRIORITY
# =============================================================================

class Priority(str, Enum):
    RED = "red"
    AMBER = "amber"
    GREEN = "green"


# Ranking order for review queues (red first).
PRIORITY_ORDER = {
    Priority.RED: 0,
    Priority.AMBER: 1,
    Priority.GREEN: 2,
}

RED_THRESHOLD = 60
AMBER_THRESHOLD = 30

MIN_SCORE = 0
MAX_SCORE = 100


def clamp_score(raw: float) -> int:
    """Force a raw point total into [0, 100]. Applied to every score."""
    if raw < MIN_SCORE or raw > MAX_SCORE:
        logger.debug(f"Clamping attention score {raw} into [{MIN_SCORE}, {MAX_SCORE}]")
    return int(max(MIN_SCORE, min(MAX_SCORE, raw)))


def priority_for_score(score: float) -> Priority:
    """Priority is derived from the final clamped score only."""
    if score >= RED_THRESHOLD:
        return Priority.RED
    if score >= AMBER_THRESHOLD:
        return Priority.AMBER
    return Priority.GREEN


# =============================================================================
# REASONS AND ACTIONS
# =============================================================================

class ReasonKind(str, Enum):
    CHECK_IN_GAP = "check_in_gap"
    LOW_ENGAGEMENT = "low_engagement"
    LOW_COMPLETION = "low_completion"
    MODERATE_COMPLETION = "moderate_completion"
    VERY_HIGH_STRESS = "very_high_stress"
    ELEVATED_STRESS = "elevated_stress"
    STRESS_INCREASING = "stress_increasing"


@dataclass(frozen=True)
class AttentionReason:
    kind: ReasonKind
    days: Optional[int] = None          # CHECK_IN_GAP
    check_ins: Optional[int] = None     # LOW_ENGAGEMENT
    window_days: Optional[int] = None   # LOW_ENGAGEMENT
    ratio: Optional[float] = None       # *_COMPLETION
    recent_avg: Optional[float] = None  # stress kinds
    older_avg: Optional[float] = None   # STRESS_INCREASING


class SuggestedAction(str, Enum):
    CONTACT_IMMEDIATELY = "contact_immediately"
    SEND_REMINDER = "send_reminder"
    REVIEW_ENGAGEMENT = "review_engagement"
    FOLLOW_UP_QUESTIONNAIRE = "follow_up_questionnaire"
    SCHEDULE_WELLNESS_CHECK = "schedule_wellness_check"
    MONITOR_STRESS = "monitor_stress"


ACTION_TEXT = {
    SuggestedAction.CONTACT_IMMEDIATELY: "Contact member immediately",
    SuggestedAction.SEND_REMINDER: "Send reminder to member",
    SuggestedAction.REVIEW_ENGAGEMENT: "Review engagement with member",
    SuggestedAction.FOLLOW_UP_QUESTIONNAIRE: "Follow up on questionnaire completion",
    SuggestedAction.SCHEDULE_WELLNESS_CHECK: "Schedule wellness check-in",
    SuggestedAction.MONITOR_STRESS: "Monitor stress levels",
}


def render_reason(reason: AttentionReason) -> str:
    """Display string for a reason."""
    kind = reason.kind
    if kind == ReasonKind.CHECK_IN_GAP:
        return f"No check-in for {reason.days} days"
    if kind == ReasonKind.LOW_ENGAGEMENT:
        return f"Only {reason.check_ins} check-ins in last {reason.window_days} days (low engagement)"
    if kind == ReasonKind.LOW_COMPLETION:
        return f"Low questionnaire completion: {reason.ratio * 100:.0f}%"
    if kind == ReasonKind.MODERATE_COMPLETION:
        return f"Moderate questionnaire completion: {reason.ratio * 100:.0f}%"
    if kind == ReasonKind.VERY_HIGH_STRESS:
        return "Very high stress levels reported recently"
    if kind == ReasonKind.ELEVATED_STRESS:
        return "Elevated stress levels"
    if kind == ReasonKind.STRESS_INCREASING:
        return "Stress levels increasing"
    return kind.value.replace("_", " ").capitalize()


def render_action(action: SuggestedAction) -> str:
    return ACTION_TEXT.get(action, action.value.replace("_", " ").capitalize())


# =============================================================================
# RESULT
# =============================================================================

@dataclass
class MemberAttentionScore:
    """Request-scoped attention score for one member."""
    member_id: UUID
    member_name: Optional[str]
    member_email: str
    score: int                                  # 0-100, clamped
    priority: Priority
    reasons: List[AttentionReason] = field(default_factory=list)
    suggested_actions: List[SuggestedAction] = field(default_factory=list)
    last_check_in: Optional[date] = None
    total_check_ins: int = 0                    # inside the lookback window
    current_streak: int = 0
    questionnaire_completion: float = 1.0
    weekly_check_ins: int = 0                   # last 7 days, today inclusive


@dataclass
class ScoreBreakdown:
    """Output of the pure point model, before member identity is attached."""
    score: int
    priority: Priority
    reasons: List[AttentionReason]
    suggested_actions: List[SuggestedAction]
    check_in_points: int = 0
    questionnaire_points: int = 0
    sentiment_points: int = 0


# =============================================================================
# POINT MODEL
# =============================================================================

NO_CHECK_IN_GAP_DAYS = 999

GAP_URGENT_DAYS = 7
GAP_REMINDER_DAYS = 3
GAP_URGENT_POINTS = 40
GAP_REMINDER_POINTS = 25
LOW_ENGAGEMENT_POINTS = 20

LOW_COMPLETION_RATIO = 0.3
MODERATE_COMPLETION_RATIO = 0.7
LOW_COMPLETION_POINTS = 30
MODERATE_COMPLETION_POINTS = 15

RECENT_STRESS_SAMPLES = 3
TREND_MIN_SAMPLES = 5
VERY_HIGH_STRESS = 8
ELEVATED_STRESS = 6
VERY_HIGH_STRESS_POINTS = 30
ELEVATED_STRESS_POINTS = 20
STRESS_TREND_DELTA = 2
STRESS_TREND_POINTS = 10


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values)


def score_components(
    gap_days: int,
    recent_check_ins: int,
    completion_ratio: float,
    stress_values: Sequence[float],
    lookback_days: int = 14,
) -> ScoreBreakdown:
    """
    Apply the additive point model.

    Args:
        gap_days: Days since the last check-in (NO_CHECK_IN_GAP_DAYS if none).
        recent_check_ins: Check-ins inside the lookback window.
        completion_ratio: Questionnaire completion in [0, 1].
        stress_values: Non-null perceived stress values in the lookback
            window, newest first.
        lookback_days: Window length; half of it is the low-engagement bar.
    """
    reasons: List[AttentionReason] = []
    actions: List[SuggestedAction] = []

    # 1. Check-ins (<= 40). Gap branches are checked first; first match wins.
    check_in_points = 0
    if gap_days >= GAP_URGENT_DAYS:
        check_in_points = GAP_URGENT_POINTS
        reasons.append(AttentionReason(kind=ReasonKind.CHECK_IN_GAP, days=gap_days))
        actions.append(SuggestedAction.CONTACT_IMMEDIATELY)
    elif gap_days >= GAP_REMINDER_DAYS:
        check_in_points = GAP_REMINDER_POINTS
        reasons.append(AttentionReason(kind=ReasonKind.CHECK_IN_GAP, days=gap_days))
        actions.append(SuggestedAction.SEND_REMINDER)
    elif recent_check_ins < lookback_days * 0.5:
        check_in_points = LOW_ENGAGEMENT_POINTS
        reasons.append(
            AttentionReason(
                kind=ReasonKind.LOW_ENGAGEMENT,
                check_ins=recent_check_ins,
                window_days=lookback_days,
            )
        )
        actions.append(SuggestedAction.REVIEW_ENGAGEMENT)

    # 2. Questionnaires (<= 30)
    questionnaire_points = 0
    if completion_ratio < LOW_COMPLETION_RATIO:
        questionnaire_points = LOW_COMPLETION_POINTS
        reasons.append(AttentionReason(kind=ReasonKind.LOW_COMPLETION, ratio=completion_ratio))
        actions.append(SuggestedAction.FOLLOW_UP_QUESTIONNAIRE)
    elif completion_ratio < MODERATE_COMPLETION_RATIO:
        questionnaire_points = MODERATE_COMPLETION_POINTS
        reasons.append(AttentionReason(kind=ReasonKind.MODERATE_COMPLETION, ratio=completion_ratio))

    # 3. Sentiment (<= 30, plus a stacking +10 trend bonus)
    sentiment_points = 0
    if stress_values:
        recent_avg = _mean(stress_values[:RECENT_STRESS_SAMPLES])

        if recent_avg >= VERY_HIGH_STRESS:
            sentiment_points += VERY_HIGH_STRESS_POINTS
            reasons.append(AttentionReason(kind=ReasonKind.VERY_HIGH_STRESS, recent_avg=recent_avg))
            actions.append(SuggestedAction.SCHEDULE_WELLNESS_CHECK)
        elif recent_avg >= ELEVATED_STRESS:
            sentiment_points += ELEVATED_STRESS_POINTS
            reasons.append(AttentionReason(kind=ReasonKind.ELEVATED_STRESS, recent_avg=recent_avg))
            actions.append(SuggestedAction.MONITOR_STRESS)

        if len(stress_values) >= TREND_MIN_SAMPLES:
            older_avg = _mean(stress_values[RECENT_STRESS_SAMPLES:])
            if recent_avg > older_avg + STRESS_TREND_DELTA:
                sentiment_points += STRESS_TREND_POINTS
                reasons.append(
                    AttentionReason(
                        kind=ReasonKind.STRESS_INCREASING,
                        recent_avg=recent_avg,
                        older_avg=older_avg,
                    )
                )

    score = clamp_score(check_in_points + questionnaire_points + sentiment_points)

    return ScoreBreakdown(
        score=score,
        priority=priority_for_score(score),
        reasons=reasons,
        suggested_actions=actions,
        check_in_points=check_in_points,
        questionnaire_points=questionnaire_points,
        sentiment_points=sentiment_points,
    )


# =============================================================================
# CALCULATOR
# =============================================================================

class AttentionScoreCalculator:
    """
    Compute a member's attention score from live check-in, membership and
    questionnaire reads.

    Any failed read raises UpstreamDataError out of compute(); batch callers
    are expected to isolate it per member.
    """

    def __init__(
        self,
        source: EngagementDataSource,
        lookback_days: Optional[int] = None,
        questionnaire_weeks: Optional[int] = None,
    ):
        self.source = source
        self.lookback_days = lookback_days or settings.ATTENTION_LOOKBACK_DAYS
        self.week_window: Tuple[int, int] = (1, questionnaire_weeks or settings.QUESTIONNAIRE_WINDOW_WEEKS)

    def compute(self, member: MemberRef, now: Optional[datetime] = None) -> MemberAttentionScore:
        now = now or datetime.now(timezone.utc)
        today = now.date()
        window_start = today - timedelta(days=self.lookback_days - 1)
        member_id = member.member_id

        check_ins = self.source.fetch_check_ins(member_id, window_start, today)
        last_check_in = self.source.fetch_last_check_in(member_id)
        cohort_ids = self.source.fetch_active_cohort_memberships(member_id)
        completion_ratio = resolve_completion_ratio(self.source, member_id, cohort_ids, self.week_window)

        if last_check_in is not None:
            gap_days = max(0, (today - last_check_in).days)
        else:
            gap_days = NO_CHECK_IN_GAP_DAYS

        stress_values = [c.perceived_stress for c in check_ins if c.perceived_stress is not None]

        breakdown = score_components(
            gap_days=gap_days,
            recent_check_ins=len(check_ins),
            completion_ratio=completion_ratio,
            stress_values=stress_values,
            lookback_days=self.lookback_days,
        )

        week_ago = today - timedelta(days=6)
        weekly_check_ins = sum(1 for c in check_ins if c.date >= week_ago)

        logger.info(
            f"Attention score {member_id}: score={breakdown.score}, priority={breakdown.priority.value}, "
            f"points=(check_in={breakdown.check_in_points}, questionnaire={breakdown.questionnaire_points}, "
            f"sentiment={breakdown.sentiment_points})"
        )

        return MemberAttentionScore(
            member_id=member_id,
            member_name=member.name,
            member_email=member.email,
            score=breakdown.score,
            priority=breakdown.priority,
            reasons=breakdown.reasons,
            suggested_actions=breakdown.suggested_actions,
            last_check_in=last_check_in,
            total_check_ins=len(check_ins),
            current_streak=calculate_current_streak([c.date for c in check_ins], now),
            questionnaire_completion=completion_ratio,
            weekly_check_ins=weekly_check_ins,
        )
