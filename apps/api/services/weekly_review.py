"""
Weekly Review Queue

Week-scoped summaries for the coach review queue. For every unique member
across the coach's visible cohorts:

- check-in stats for the ISO week (Monday 00:00 to Sunday 23:59:59)
- the member's current attention score
- the status of the cohort's questionnaire for that program week

Summaries are ranked red -> amber -> green, then by score (highest first),
then by check-in rate (lowest first). A member whose score could not be
computed ranks as green / 0 rather than blocking the list.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence, Tuple
from uuid import UUID
import math
import logging

from core.config import settings
from core.exceptions import ForbiddenError
from services.attention_score import (
    PRIORITY_ORDER,
    AttentionScoreCalculator,
    MemberAttentionScore,
    Priority,
)
from services.cohort_insights import dedupe_roster
from services.engagement_data import (
    CheckInSnapshot,
    CoachContext,
    EngagementDataSource,
    ResponseSnapshot,
    RosterEntry,
)
from services.fan_out import fan_out
from services.questionnaire_completion import (
    QuestionnaireStatus,
    classify_questionnaire_status,
    cohort_week_number,
    find_week_bundle,
)

logger = logging.getLogger(__name__)

DAYS_PER_WEEK = 7


# =============================================================================
# WEEK BOUNDARIES
# =============================================================================

def week_bounds(reference: date) -> Tuple[date, date]:
    """Monday and Sunday of the ISO week containing `reference`."""
    monday = reference - timedelta(days=reference.weekday())
    return monday, monday + timedelta(days=6)


def expected_check_ins(week_start: date, today: date) -> int:
    """
    Days of the week elapsed so far, today inclusive, capped at 7.

    A week starting today expects 1. A week that has not started yet
    expects 0.
    """
    elapsed = (today - week_start).days + 1
    return max(0, min(DAYS_PER_WEEK, elapsed))


# =============================================================================
# STATS
# =============================================================================

@dataclass
class WeeklyStats:
    check_in_count: int
    check_in_rate: float
    expected_check_ins: int
    avg_weight: Optional[float] = None
    weight_trend: Optional[float] = None
    avg_steps: Optional[int] = None
    avg_calories: Optional[int] = None
    avg_sleep_quality: Optional[float] = None
    avg_stress: Optional[float] = None


def _mean_or_none(values: Sequence[float]) -> Optional[float]:
    if not values:
        return None
    return sum(values) / len(values)


def _round_half_up(value: Optional[float]) -> Optional[int]:
    if value is None:
        return None
    return int(math.floor(value + 0.5))


def compute_weekly_stats(check_ins: Sequence[CheckInSnapshot], expected: int) -> WeeklyStats:
    """
    Stats over one member's check-ins for the week, oldest first.

    Averages ignore missing values; a field with no values averages to None.
    Weight trend is last minus first recorded weight, None with < 2 weigh-ins.
    """
    weights = [c.weight for c in check_ins if c.weight is not None]
    steps = [c.steps for c in check_ins if c.steps is not None]
    calories = [c.calories for c in check_ins if c.calories is not None]
    sleep = [c.sleep_quality for c in check_ins if c.sleep_quality is not None]
    stress = [c.perceived_stress for c in check_ins if c.perceived_stress is not None]

    count = len(check_ins)
    weight_trend = weights[-1] - weights[0] if len(weights) >= 2 else None

    return WeeklyStats(
        check_in_count=count,
        check_in_rate=count / expected if expected > 0 else 0.0,
        expected_check_ins=expected,
        avg_weight=_mean_or_none(weights),
        weight_trend=weight_trend,
        avg_steps=_round_half_up(_mean_or_none(steps)),
        avg_calories=_round_half_up(_mean_or_none(calories)),
        avg_sleep_quality=_mean_or_none(sleep),
        avg_stress=_mean_or_none(stress),
    )


# =============================================================================
# SUMMARIES
# =============================================================================

@dataclass
class WeeklyClientSummary:
    member_id: UUID
    name: Optional[str]
    email: str
    cohort_id: UUID
    cohort_name: str
    stats: WeeklyStats
    last_check_in: Optional[date]
    attention_score: Optional[MemberAttentionScore]
    questionnaire_status: QuestionnaireStatus


@dataclass
class WeeklySummaries:
    week_start: date
    week_end: date
    clients: List[WeeklyClientSummary] = field(default_factory=list)


@dataclass
class ReviewQueueSummary:
    total_clients: int
    red_priority: int
    amber_priority: int
    green_priority: int
    pending_reviews: int
    completed_reviews: int


def ranking_key(summary: WeeklyClientSummary) -> Tuple[int, int, float]:
    score = summary.attention_score
    priority = score.priority if score else Priority.GREEN
    points = score.score if score else 0
    return (PRIORITY_ORDER[priority], -points, summary.stats.check_in_rate)


def rank_weekly_summaries(summaries: Sequence[WeeklyClientSummary]) -> List[WeeklyClientSummary]:
    """Stable sort: priority, then score descending, then check-in rate ascending."""
    return sorted(summaries, key=ranking_key)


def _scope_cohorts(
    source: EngagementDataSource, coach: CoachContext, cohort_id: Optional[UUID]
) -> List[UUID]:
    visible = source.resolve_visible_cohorts(coach.coach_id, coach.is_admin)
    if cohort_id is None:
        return visible
    if cohort_id not in visible:
        logger.warning(
            f"Coach {coach.coach_id} denied weekly review for cohort {cohort_id}",
            extra={"extra_fields": {"coach_id": str(coach.coach_id), "cohort_id": str(cohort_id)}},
        )
        raise ForbiddenError("You don't have access to this cohort")
    return [cohort_id]


def get_weekly_summaries(
    source: EngagementDataSource,
    coach: CoachContext,
    week_start: Optional[date] = None,
    cohort_id: Optional[UUID] = None,
    now: Optional[datetime] = None,
    max_workers: Optional[int] = None,
) -> WeeklySummaries:
    """
    Ranked weekly summaries for the coach's review queue.

    Args:
        week_start: Any date inside the target week; defaults to this week.
        cohort_id: Restrict to one cohort (must be visible to the coach).
        now: Reference instant; defaults to the current UTC time.
    """
    now = now or datetime.now(timezone.utc)
    today = now.date()
    monday, sunday = week_bounds(week_start or today)

    cohort_ids = _scope_cohorts(source, coach, cohort_id)
    roster = dedupe_roster(source.fetch_cohort_roster_with_user(cohort_ids)) if cohort_ids else []

    if not roster:
        return WeeklySummaries(week_start=monday, week_end=sunday)

    # Program week and its questionnaire bundle, per cohort
    bundles = source.fetch_cohort_bundles(cohort_ids)
    bundle_by_cohort = {}
    for entry in roster:
        if entry.cohort_id not in bundle_by_cohort:
            week_number = cohort_week_number(entry.cohort_start_date, monday)
            bundle_by_cohort[entry.cohort_id] = find_week_bundle(bundles, entry.cohort_id, week_number)

    bundle_ids = [b.bundle_id for b in bundle_by_cohort.values() if b is not None]
    responses: Dict[Tuple[UUID, UUID], ResponseSnapshot] = {
        (r.member_id, r.bundle_id): r
        for r in source.fetch_questionnaire_responses([e.member_id for e in roster], bundle_ids)
    }

    expected = expected_check_ins(monday, today)
    calculator = AttentionScoreCalculator(source)

    def summarize(entry: RosterEntry) -> WeeklyClientSummary:
        # Stats reads are required; a failure drops the member from the list.
        week_check_ins = list(reversed(source.fetch_check_ins(entry.member_id, monday, sunday)))
        last_check_in = source.fetch_last_check_in(entry.member_id)

        try:
            attention_score = calculator.compute(entry.member, now)
        except Exception as e:
            logger.warning(
                f"Attention score unavailable for member {entry.member_id}: {e}",
                extra={"extra_fields": {"member_id": str(entry.member_id), "error": repr(e)}},
            )
            attention_score = None

        bundle = bundle_by_cohort.get(entry.cohort_id)
        response = responses.get((entry.member_id, bundle.bundle_id)) if bundle else None

        return WeeklyClientSummary(
            member_id=entry.member_id,
            name=entry.name,
            email=entry.email,
            cohort_id=entry.cohort_id,
            cohort_name=entry.cohort_name,
            stats=compute_weekly_stats(week_check_ins, expected),
            last_check_in=last_check_in,
            attention_score=attention_score,
            questionnaire_status=classify_questionnaire_status(bundle, response, now),
        )

    outcomes = fan_out(roster, summarize, max_workers or settings.ENGAGEMENT_MAX_WORKERS)

    clients = []
    for outcome in outcomes:
        if outcome.ok:
            clients.append(outcome.result)
        else:
            logger.warning(
                f"Skipping weekly summary for member {outcome.item.member_id}: {outcome.error}",
                extra={"extra_fields": {"member_id": str(outcome.item.member_id), "error": repr(outcome.error)}},
            )

    logger.info(
        f"Weekly summaries for {coach.coach_id}, week {monday}: "
        f"members={len(roster)}, summarized={len(clients)}"
    )

    return WeeklySummaries(week_start=monday, week_end=sunday, clients=rank_weekly_summaries(clients))


def get_review_queue_summary(
    source: EngagementDataSource,
    coach: CoachContext,
    week_start: Optional[date] = None,
    now: Optional[datetime] = None,
    max_workers: Optional[int] = None,
) -> ReviewQueueSummary:
    """Priority counts and review progress for the coach's week."""
    summaries = get_weekly_summaries(source, coach, week_start=week_start, now=now, max_workers=max_workers)
    clients = summaries.clients

    red = sum(1 for c in clients if c.attention_score and c.attention_score.priority == Priority.RED)
    amber = sum(1 for c in clients if c.attention_score and c.attention_score.priority == Priority.AMBER)
    green = len(clients) - red - amber

    completed = source.count_completed_reviews(
        coach.coach_id, [c.member_id for c in clients], summaries.week_start
    )

    return ReviewQueueSummary(
        total_clients=len(clients),
        red_priority=red,
        amber_priority=amber,
        green_priority=green,
        pending_reviews=max(0, len(clients) - completed),
        completed_reviews=completed,
    )
