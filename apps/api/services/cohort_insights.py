"""
Cohort Insights

Coach dashboard view: who is on the coach's roster, how engaged they are,
and who needs outreach first.

Roster resolution is the authorization boundary:
- Admins see every member of every active cohort.
- Coaches see only members of cohorts they are explicitly assigned to.

Per-member scores are computed concurrently. One member's failed read is
logged and skipped; it never aborts the dashboard for everyone else.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence
from uuid import UUID
import logging

from core.config import settings
from core.exceptions import ForbiddenError
from services.attention_score import AttentionScoreCalculator, MemberAttentionScore
from services.checkin_streaks import calculate_current_streak
from services.engagement_data import (
    CheckInSnapshot,
    CoachContext,
    EngagementDataSource,
    RosterEntry,
)
from services.fan_out import fan_out

logger = logging.getLogger(__name__)

MEMBER_HISTORY_DAYS = 30


@dataclass
class CohortInsight:
    total_members: int
    active_members_count: int
    inactive_members_count: int
    avg_check_ins_per_week: float
    avg_questionnaire_completion: float
    attention_scores: List[MemberAttentionScore] = field(default_factory=list)
    unscored_members_count: int = 0


@dataclass
class MemberCheckInData:
    member_id: UUID
    member_name: Optional[str]
    member_email: str
    check_ins: List[CheckInSnapshot]
    total_check_ins: int
    current_streak: int
    last_check_in: Optional[date]


# =============================================================================
# ROSTER / AUTHORIZATION
# =============================================================================

def dedupe_roster(entries: Sequence[RosterEntry]) -> List[RosterEntry]:
    """
    One entry per member.

    A member in several cohorts keeps their first position in the roster
    and is attributed to the last cohort listed for them.
    """
    unique: Dict[UUID, RosterEntry] = {}
    for entry in entries:
        unique[entry.member_id] = entry
    return list(unique.values())


def resolve_roster(source: EngagementDataSource, coach: CoachContext) -> List[RosterEntry]:
    """Deduplicated active roster visible to the coach."""
    cohort_ids = source.resolve_visible_cohorts(coach.coach_id, coach.is_admin)
    if not cohort_ids:
        return []
    return dedupe_roster(source.fetch_cohort_roster_with_user(cohort_ids))


def ensure_member_visible(source: EngagementDataSource, coach: CoachContext, member_id: UUID) -> None:
    """
    Raise ForbiddenError unless the coach may see this member.

    Runs before any member data is read. Admins may look up anyone.
    """
    if coach.is_admin:
        return

    visible = set(source.resolve_visible_cohorts(coach.coach_id, coach.is_admin))
    member_cohorts = set(source.fetch_active_cohort_memberships(member_id))
    if not visible & member_cohorts:
        logger.warning(
            f"Coach {coach.coach_id} denied access to member {member_id}",
            extra={"extra_fields": {"coach_id": str(coach.coach_id), "member_id": str(member_id)}},
        )
        raise ForbiddenError("You don't have access to this member")


# =============================================================================
# BATCH SCORING
# =============================================================================

def score_roster(
    source: EngagementDataSource,
    roster: Sequence[RosterEntry],
    now: datetime,
    max_workers: Optional[int] = None,
) -> Dict[UUID, Optional[MemberAttentionScore]]:
    """
    Score every roster member concurrently.

    Returns member_id -> score, with None for members whose reads failed.
    """
    calculator = AttentionScoreCalculator(source)
    outcomes = fan_out(
        list(roster),
        lambda entry: calculator.compute(entry.member, now),
        max_workers or settings.ENGAGEMENT_MAX_WORKERS,
    )

    scores: Dict[UUID, Optional[MemberAttentionScore]] = {}
    for outcome in outcomes:
        member_id = outcome.item.member_id
        if outcome.ok:
            scores[member_id] = outcome.result
        else:
            logger.warning(
                f"Skipping attention score for member {member_id}: {outcome.error}",
                extra={"extra_fields": {"member_id": str(member_id), "error": repr(outcome.error)}},
            )
            scores[member_id] = None
    return scores


def get_coach_insights(
    source: EngagementDataSource,
    coach: CoachContext,
    now: Optional[datetime] = None,
    max_workers: Optional[int] = None,
) -> CohortInsight:
    """
    Roster-wide engagement insight for the requesting coach.

    Scores are sorted by score descending; ties keep roster order.
    """
    now = now or datetime.now(timezone.utc)
    roster = resolve_roster(source, coach)

    if not roster:
        return CohortInsight(
            total_members=0,
            active_members_count=0,
            inactive_members_count=0,
            avg_check_ins_per_week=0.0,
            avg_questionnaire_completion=0.0,
        )

    by_member = score_roster(source, roster, now, max_workers)
    scored = [s for s in by_member.values() if s is not None]
    unscored = len(roster) - len(scored)

    attention_scores = sorted(scored, key=lambda s: -s.score)

    active_since = now.date() - timedelta(days=settings.ACTIVE_MEMBER_WINDOW_DAYS - 1)
    active_count = sum(
        1 for s in scored if s.last_check_in is not None and s.last_check_in >= active_since
    )

    total_members = len(roster)
    if scored:
        avg_check_ins = sum(s.weekly_check_ins for s in scored) / len(scored)
        avg_completion = sum(s.questionnaire_completion for s in scored) / len(scored)
    else:
        avg_check_ins = 0.0
        avg_completion = 0.0

    logger.info(
        f"Coach insights for {coach.coach_id}: members={total_members}, "
        f"scored={len(scored)}, skipped={unscored}"
    )

    return CohortInsight(
        total_members=total_members,
        active_members_count=active_count,
        inactive_members_count=total_members - active_count,
        avg_check_ins_per_week=avg_check_ins,
        avg_questionnaire_completion=avg_completion,
        attention_scores=attention_scores,
        unscored_members_count=unscored,
    )


# =============================================================================
# SINGLE MEMBER
# =============================================================================

def calculate_attention_score(
    source: EngagementDataSource,
    coach: CoachContext,
    member_id: UUID,
    now: Optional[datetime] = None,
) -> Optional[MemberAttentionScore]:
    """
    Attention score for one member, or None if the member does not exist.

    Read failures propagate (no isolation for single lookups).
    """
    ensure_member_visible(source, coach, member_id)

    member = source.fetch_member(member_id)
    if member is None:
        return None

    return AttentionScoreCalculator(source).compute(member, now)


def get_member_check_in_data(
    source: EngagementDataSource,
    coach: CoachContext,
    member_id: UUID,
    now: Optional[datetime] = None,
) -> Optional[MemberCheckInData]:
    """Last 30 days of check-ins with streak, or None if the member does not exist."""
    ensure_member_visible(source, coach, member_id)

    member = source.fetch_member(member_id)
    if member is None:
        return None

    now = now or datetime.now(timezone.utc)
    today = now.date()
    check_ins = source.fetch_check_ins(member_id, today - timedelta(days=MEMBER_HISTORY_DAYS - 1), today)

    return MemberCheckInData(
        member_id=member.member_id,
        member_name=member.name,
        member_email=member.email,
        check_ins=check_ins,
        total_check_ins=len(check_ins),
        current_streak=calculate_current_streak([c.date for c in check_ins], now),
        last_check_in=check_ins[0].date if check_ins else None,
    )
