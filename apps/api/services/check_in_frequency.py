"""
Check-in Cadence

How often a member is expected to check in, resolved across three tiers:

    member override  ->  cohort override  ->  system default

The first tier holding a usable value wins. Resolution happens in one
place (resolve_effective) so call sites never chain fallbacks themselves.
"""

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from core.config import settings
from services.cohort_insights import ensure_member_visible
from services.engagement_data import CoachContext, EngagementDataSource

MIN_FREQUENCY_DAYS = 1
MAX_FREQUENCY_DAYS = 90


@dataclass(frozen=True)
class CheckInFrequencyConfig:
    member_override: Optional[int]
    cohort_override: Optional[int]
    cohort_name: Optional[str]
    system_default: int
    effective: int


def _usable(value: Optional[int]) -> bool:
    return value is not None and MIN_FREQUENCY_DAYS <= value <= MAX_FREQUENCY_DAYS


def resolve_effective(
    member_override: Optional[int],
    cohort_override: Optional[int],
    system_default: int,
) -> int:
    """First usable value of member override, cohort override, system default."""
    for value in (member_override, cohort_override):
        if _usable(value):
            return value
    return system_default


def get_check_in_frequency_config(
    source: EngagementDataSource,
    coach: CoachContext,
    member_id: UUID,
) -> CheckInFrequencyConfig:
    """All three cadence tiers for a member plus the effective value."""
    ensure_member_visible(source, coach, member_id)

    tiers = source.fetch_check_in_frequency_tiers(member_id)
    system_default = (
        tiers.system_default
        if _usable(tiers.system_default)
        else settings.DEFAULT_CHECK_IN_FREQUENCY_DAYS
    )

    return CheckInFrequencyConfig(
        member_override=tiers.member_override,
        cohort_override=tiers.cohort_override,
        cohort_name=tiers.cohort_name,
        system_default=system_default,
        effective=resolve_effective(tiers.member_override, tiers.cohort_override, system_default),
    )
