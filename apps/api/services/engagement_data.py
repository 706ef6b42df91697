"""
Engagement Data Source

Read-only query contracts the engagement engine depends on, and the
SQLAlchemy implementation used in production.

The engine never owns storage: every score, streak and weekly summary is
built from the snapshots returned here, fresh per request. Each read opens
its own short-lived session so per-member computations can run on worker
threads without sharing a Session.

Any database failure surfaces as UpstreamDataError; batch views isolate it
per member, single-member lookups let it propagate.
"""

from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Iterator, List, Optional, Protocol, Sequence, Tuple
from uuid import UUID
import logging

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.database import SessionLocal
from core.exceptions import UpstreamDataError
from models import (
    CoachCohortMembership,
    Cohort,
    CohortMembership,
    CohortStatus,
    Entry,
    MembershipStatus,
    QuestionnaireBundle,
    ResponseStatus,
    SystemSetting,
    User,
    WeeklyCoachResponse,
    WeeklyQuestionnaireResponse,
)

logger = logging.getLogger(__name__)

DEFAULT_CHECK_IN_FREQUENCY_KEY = "defaultCheckInFrequencyDays"


# =============================================================================
# SNAPSHOTS
# =============================================================================

@dataclass(frozen=True)
class CoachContext:
    """Who is asking. Admins see every active cohort; coaches only their own."""
    coach_id: UUID
    is_admin: bool = False


@dataclass(frozen=True)
class MemberRef:
    member_id: UUID
    name: Optional[str]
    email: str


@dataclass(frozen=True)
class CheckInSnapshot:
    date: date
    weight: Optional[float] = None
    steps: Optional[int] = None
    calories: Optional[int] = None
    sleep_quality: Optional[float] = None
    perceived_stress: Optional[float] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class RosterEntry:
    member_id: UUID
    name: Optional[str]
    email: str
    cohort_id: UUID
    cohort_name: str
    cohort_start_date: date

    @property
    def member(self) -> MemberRef:
        return MemberRef(member_id=self.member_id, name=self.name, email=self.email)


@dataclass(frozen=True)
class BundleSnapshot:
    bundle_id: UUID
    cohort_id: UUID
    week_number: int
    is_active: bool


@dataclass(frozen=True)
class ResponseSnapshot:
    member_id: UUID
    bundle_id: UUID
    status: str
    updated_at: datetime


@dataclass(frozen=True)
class CheckInFrequencyTiers:
    """Raw values of the three cadence tiers; None means "not set"."""
    member_override: Optional[int]
    cohort_override: Optional[int]
    system_default: Optional[int]
    cohort_name: Optional[str] = None


# =============================================================================
# CONTRACT
# =============================================================================

class EngagementDataSource(Protocol):
    """Read collaborator consumed by the engine. Implementations must not write."""

    def fetch_member(self, member_id: UUID) -> Optional[MemberRef]: ...

    def fetch_check_ins(self, member_id: UUID, from_date: date, to_date: date) -> List[CheckInSnapshot]:
        """Check-ins with from_date <= date <= to_date, newest first."""
        ...

    def fetch_last_check_in(self, member_id: UUID) -> Optional[date]: ...

    def fetch_active_cohort_memberships(self, member_id: UUID) -> List[UUID]: ...

    def fetch_active_bundles(self, cohort_ids: Sequence[UUID], week_range: Tuple[int, int]) -> List[UUID]: ...

    def count_completed_responses(self, member_id: UUID, bundle_ids: Sequence[UUID]) -> int: ...

    def resolve_visible_cohorts(self, coach_id: UUID, is_admin: bool) -> List[UUID]: ...

    def fetch_cohort_roster_with_user(self, cohort_ids: Sequence[UUID]) -> List[RosterEntry]: ...

    def fetch_cohort_bundles(self, cohort_ids: Sequence[UUID]) -> List[BundleSnapshot]: ...

    def fetch_questionnaire_responses(
        self, member_ids: Sequence[UUID], bundle_ids: Sequence[UUID]
    ) -> List[ResponseSnapshot]: ...

    def count_completed_reviews(self, coach_id: UUID, member_ids: Sequence[UUID], week_start: date) -> int: ...

    def fetch_check_in_frequency_tiers(self, member_id: UUID) -> CheckInFrequencyTiers: ...


# =============================================================================
# SQLALCHEMY IMPLEMENTATION
# =============================================================================

def _to_snapshot(entry: Entry) -> CheckInSnapshot:
    return CheckInSnapshot(
        date=entry.date,
        weight=entry.weight,
        steps=entry.steps,
        calories=entry.calories,
        sleep_quality=entry.sleep_quality,
        perceived_stress=entry.perceived_stress,
        notes=entry.notes,
    )


class SqlEngagementDataSource:
    """EngagementDataSource backed by the application database."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    @contextmanager
    def _session(self, operation: str, member_id: Optional[UUID] = None) -> Iterator[Session]:
        try:
            with self._session_factory() as db:
                yield db
        except SQLAlchemyError as e:
            logger.warning(
                f"Engagement read '{operation}' failed: {e}",
                extra={"extra_fields": {"operation": operation, "member_id": str(member_id) if member_id else None}},
            )
            raise UpstreamDataError(operation, member_id=member_id, detail=type(e).__name__) from e

    def fetch_member(self, member_id: UUID) -> Optional[MemberRef]:
        with self._session("fetch_member", member_id) as db:
            user = db.query(User).filter(User.id == member_id).first()
            if not user:
                return None
            return MemberRef(member_id=user.id, name=user.name, email=user.email)

    def fetch_check_ins(self, member_id: UUID, from_date: date, to_date: date) -> List[CheckInSnapshot]:
        with self._session("fetch_check_ins", member_id) as db:
            entries = (
                db.query(Entry)
                .filter(
                    Entry.user_id == member_id,
                    Entry.date >= from_date,
                    Entry.date <= to_date,
                )
                .order_by(Entry.date.desc())
                .all()
            )
            return [_to_snapshot(e) for e in entries]

    def fetch_last_check_in(self, member_id: UUID) -> Optional[date]:
        with self._session("fetch_last_check_in", member_id) as db:
            return db.query(func.max(Entry.date)).filter(Entry.user_id == member_id).scalar()

    def fetch_active_cohort_memberships(self, member_id: UUID) -> List[UUID]:
        with self._session("fetch_active_cohort_memberships", member_id) as db:
            rows = (
                db.query(CohortMembership.cohort_id)
                .filter(
                    CohortMembership.user_id == member_id,
                    CohortMembership.status == MembershipStatus.ACTIVE.value,
                )
                .order_by(CohortMembership.joined_at)
                .all()
            )
            return [row.cohort_id for row in rows]

    def fetch_active_bundles(self, cohort_ids: Sequence[UUID], week_range: Tuple[int, int]) -> List[UUID]:
        if not cohort_ids:
            return []
        first_week, last_week = week_range
        with self._session("fetch_active_bundles") as db:
            rows = (
                db.query(QuestionnaireBundle.id)
                .filter(
                    QuestionnaireBundle.cohort_id.in_(list(cohort_ids)),
                    QuestionnaireBundle.is_active.is_(True),
                    QuestionnaireBundle.week_number >= first_week,
                    QuestionnaireBundle.week_number <= last_week,
                )
                .all()
            )
            return [row.id for row in rows]

    def count_completed_responses(self, member_id: UUID, bundle_ids: Sequence[UUID]) -> int:
        if not bundle_ids:
            return 0
        with self._session("count_completed_responses", member_id) as db:
            count = (
                db.query(func.count(WeeklyQuestionnaireResponse.id))
                .filter(
                    WeeklyQuestionnaireResponse.user_id == member_id,
                    WeeklyQuestionnaireResponse.bundle_id.in_(list(bundle_ids)),
                    WeeklyQuestionnaireResponse.status == ResponseStatus.COMPLETED.value,
                )
                .scalar()
            )
            return int(count or 0)

    def resolve_visible_cohorts(self, coach_id: UUID, is_admin: bool) -> List[UUID]:
        with self._session("resolve_visible_cohorts") as db:
            if is_admin:
                rows = (
                    db.query(Cohort.id)
                    .filter(Cohort.status == CohortStatus.ACTIVE.value)
                    .order_by(Cohort.start_date, Cohort.name)
                    .all()
                )
                return [row.id for row in rows]

            rows = (
                db.query(CoachCohortMembership.cohort_id)
                .join(Cohort, Cohort.id == CoachCohortMembership.cohort_id)
                .filter(CoachCohortMembership.coach_id == coach_id)
                .order_by(Cohort.start_date, Cohort.name)
                .all()
            )
            return [row.cohort_id for row in rows]

    def fetch_cohort_roster_with_user(self, cohort_ids: Sequence[UUID]) -> List[RosterEntry]:
        if not cohort_ids:
            return []
        with self._session("fetch_cohort_roster_with_user") as db:
            rows = (
                db.query(CohortMembership, User, Cohort)
                .join(User, User.id == CohortMembership.user_id)
                .join(Cohort, Cohort.id == CohortMembership.cohort_id)
                .filter(
                    CohortMembership.cohort_id.in_(list(cohort_ids)),
                    CohortMembership.status == MembershipStatus.ACTIVE.value,
                )
                .order_by(Cohort.start_date, Cohort.name, User.email)
                .all()
            )
            return [
                RosterEntry(
                    member_id=user.id,
                    name=user.name,
                    email=user.email,
                    cohort_id=cohort.id,
                    cohort_name=cohort.name,
                    cohort_start_date=cohort.start_date,
                )
                for _membership, user, cohort in rows
            ]

    def fetch_cohort_bundles(self, cohort_ids: Sequence[UUID]) -> List[BundleSnapshot]:
        if not cohort_ids:
            return []
        with self._session("fetch_cohort_bundles") as db:
            bundles = (
                db.query(QuestionnaireBundle)
                .filter(QuestionnaireBundle.cohort_id.in_(list(cohort_ids)))
                .order_by(QuestionnaireBundle.week_number)
                .all()
            )
            return [
                BundleSnapshot(
                    bundle_id=b.id,
                    cohort_id=b.cohort_id,
                    week_number=b.week_number,
                    is_active=bool(b.is_active),
                )
                for b in bundles
            ]

    def fetch_questionnaire_responses(
        self, member_ids: Sequence[UUID], bundle_ids: Sequence[UUID]
    ) -> List[ResponseSnapshot]:
        if not member_ids or not bundle_ids:
            return []
        with self._session("fetch_questionnaire_responses") as db:
            responses = (
                db.query(WeeklyQuestionnaireResponse)
                .filter(
                    WeeklyQuestionnaireResponse.user_id.in_(list(member_ids)),
                    WeeklyQuestionnaireResponse.bundle_id.in_(list(bundle_ids)),
                )
                .all()
            )
            return [
                ResponseSnapshot(
                    member_id=r.user_id,
                    bundle_id=r.bundle_id,
                    status=r.status,
                    updated_at=r.updated_at,
                )
                for r in responses
            ]

    def count_completed_reviews(self, coach_id: UUID, member_ids: Sequence[UUID], week_start: date) -> int:
        if not member_ids:
            return 0
        with self._session("count_completed_reviews") as db:
            count = (
                db.query(func.count(WeeklyCoachResponse.id))
                .filter(
                    WeeklyCoachResponse.coach_id == coach_id,
                    WeeklyCoachResponse.client_id.in_(list(member_ids)),
                    WeeklyCoachResponse.week_start == week_start,
                    or_(
                        WeeklyCoachResponse.loom_url.isnot(None),
                        WeeklyCoachResponse.note.isnot(None),
                    ),
                )
                .scalar()
            )
            return int(count or 0)

    def fetch_check_in_frequency_tiers(self, member_id: UUID) -> CheckInFrequencyTiers:
        with self._session("fetch_check_in_frequency_tiers", member_id) as db:
            user = db.query(User).filter(User.id == member_id).first()

            cohort = (
                db.query(Cohort)
                .join(CohortMembership, CohortMembership.cohort_id == Cohort.id)
                .filter(
                    CohortMembership.user_id == member_id,
                    CohortMembership.status == MembershipStatus.ACTIVE.value,
                )
                .order_by(CohortMembership.joined_at)
                .first()
            )

            setting = (
                db.query(SystemSetting)
                .filter(SystemSetting.key == DEFAULT_CHECK_IN_FREQUENCY_KEY)
                .first()
            )
            system_default = None
            if setting is not None and setting.value is not None:
                try:
                    system_default = int(setting.value)
                except (TypeError, ValueError):
                    logger.warning(f"Ignoring non-numeric {DEFAULT_CHECK_IN_FREQUENCY_KEY}: {setting.value!r}")

            return CheckInFrequencyTiers(
                member_override=user.check_in_frequency_days if user else None,
                cohort_override=cohort.check_in_frequency_days if cohort else None,
                system_default=system_default,
                cohort_name=cohort.name if cohort else None,
            )


def get_engagement_source() -> EngagementDataSource:
    """FastAPI dependency: the production data source."""
    return SqlEngagementDataSource(SessionLocal)
