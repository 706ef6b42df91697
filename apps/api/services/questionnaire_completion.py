"""
Questionnaire Completion

Two views of weekly questionnaires:

1. A rolling completion ratio over program weeks [1..N], used by the
   attention score. No eligible bundles means nothing was asked, which
   earns full credit (1.0) rather than a penalty.
2. A per-week status (completed / in progress / not started / no
   questionnaire) shown in the weekly review queue.
"""

from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional, Sequence, Tuple
from uuid import UUID
import logging

from services.engagement_data import BundleSnapshot, EngagementDataSource, ResponseSnapshot
from models import ResponseStatus

logger = logging.getLogger(__name__)

# Program weeks counted by the rolling ratio.
DEFAULT_WEEK_WINDOW: Tuple[int, int] = (1, 4)


class QuestionnaireState(str, Enum):
    COMPLETED = "completed"
    IN_PROGRESS = "in_progress"
    NOT_STARTED = "not_started"
    NO_QUESTIONNAIRE = "no_questionnaire"


@dataclass(frozen=True)
class QuestionnaireStatus:
    status: QuestionnaireState
    last_updated: Optional[datetime] = None
    hours_since_last_save: Optional[int] = None


def resolve_completion_ratio(
    source: EngagementDataSource,
    member_id: UUID,
    cohort_ids: Sequence[UUID],
    week_range: Tuple[int, int] = DEFAULT_WEEK_WINDOW,
) -> float:
    """
    completed responses / active bundles for the member's cohorts in the window.

    In-progress responses earn nothing. Always in [0, 1].
    """
    if not cohort_ids:
        return 1.0

    bundle_ids = source.fetch_active_bundles(cohort_ids, week_range)
    if not bundle_ids:
        return 1.0

    completed = source.count_completed_responses(member_id, bundle_ids)
    ratio = completed / len(bundle_ids)
    # Duplicate upstream rows could push this past 1.0
    return max(0.0, min(1.0, ratio))


def cohort_week_number(cohort_start: date, reference: date) -> int:
    """1-based program week containing `reference`; never below week 1."""
    days_since_start = (reference - cohort_start).days
    return max(1, days_since_start // 7 + 1)


def find_week_bundle(
    bundles: Sequence[BundleSnapshot], cohort_id: UUID, week_number: int
) -> Optional[BundleSnapshot]:
    for bundle in bundles:
        if bundle.cohort_id == cohort_id and bundle.week_number == week_number and bundle.is_active:
            return bundle
    return None


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; stored values are UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def classify_questionnaire_status(
    bundle: Optional[BundleSnapshot],
    response: Optional[ResponseSnapshot],
    now: datetime,
) -> QuestionnaireStatus:
    """Weekly questionnaire status for one member."""
    if bundle is None:
        return QuestionnaireStatus(status=QuestionnaireState.NO_QUESTIONNAIRE)

    if response is None:
        return QuestionnaireStatus(status=QuestionnaireState.NOT_STARTED)

    updated_at = _as_utc(response.updated_at)
    hours = int((_as_utc(now) - updated_at).total_seconds() // 3600)

    if response.status == ResponseStatus.COMPLETED.value:
        state = QuestionnaireState.COMPLETED
    elif response.status == ResponseStatus.NOT_STARTED.value:
        state = QuestionnaireState.NOT_STARTED
    else:
        state = QuestionnaireState.IN_PROGRESS

    return QuestionnaireStatus(
        status=state,
        last_updated=updated_at,
        hours_since_last_save=max(0, hours),
    )
