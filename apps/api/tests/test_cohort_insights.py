"""
Cohort Insights Tests

Roster resolution and visibility, per-member failure isolation, aggregates,
and the single-member lookups.
"""
import pytest
from datetime import timedelta
from uuid import uuid4

from core.exceptions import ForbiddenError, UpstreamDataError
from services.attention_score import Priority
from services.cohort_insights import (
    calculate_attention_score,
    dedupe_roster,
    get_coach_insights,
    get_member_check_in_data,
    resolve_roster,
)


class TestRosterVisibility:

    def test_coach_sees_only_assigned_cohorts(self, source, coach):
        mine = source.add_cohort(name="Mine", coach_ids=[coach.coach_id])
        theirs = source.add_cohort(name="Theirs", coach_ids=[uuid4()])
        visible_member = source.add_member([mine])
        source.add_member([theirs])

        roster = resolve_roster(source, coach)

        assert [e.member_id for e in roster] == [visible_member]

    def test_admin_sees_every_active_cohort(self, source, admin):
        a = source.add_cohort(name="A")
        b = source.add_cohort(name="B", coach_ids=[uuid4()])
        archived = source.add_cohort(name="Old", active=False)
        m1 = source.add_member([a])
        m2 = source.add_member([b])
        source.add_member([archived])

        roster = resolve_roster(source, admin)

        assert {e.member_id for e in roster} == {m1, m2}

    def test_coach_without_cohorts_gets_empty_insight(self, source, coach, now):
        source.add_member([source.add_cohort()])

        insight = get_coach_insights(source, coach, now=now)

        assert insight.total_members == 0
        assert insight.active_members_count == 0
        assert insight.inactive_members_count == 0
        assert insight.avg_check_ins_per_week == 0.0
        assert insight.avg_questionnaire_completion == 0.0
        assert insight.attention_scores == []

    def test_member_in_two_cohorts_is_counted_once(self, source, coach):
        first = source.add_cohort(name="First", coach_ids=[coach.coach_id])
        second = source.add_cohort(name="Second", coach_ids=[coach.coach_id])
        member_id = source.add_member([first, second])

        roster = resolve_roster(source, coach)

        assert len(roster) == 1
        assert roster[0].member_id == member_id
        assert roster[0].cohort_name == "Second"

    def test_dedupe_keeps_first_position(self, source, coach):
        first = source.add_cohort(name="First", coach_ids=[coach.coach_id])
        second = source.add_cohort(name="Second", coach_ids=[coach.coach_id])
        m1 = source.add_member([first, second])
        m2 = source.add_member([first])

        entries = source.fetch_cohort_roster_with_user([first, second])
        deduped = dedupe_roster(entries)

        assert [e.member_id for e in deduped] == [m1, m2]

    def test_roster_read_failure_propagates(self, source, coach, now):
        source.add_cohort(coach_ids=[coach.coach_id])
        source.fail("fetch_cohort_roster_with_user")

        with pytest.raises(UpstreamDataError):
            get_coach_insights(source, coach, now=now)


class TestCoachInsights:

    def test_one_failing_member_out_of_fifty_is_skipped(self, source, coach, today, now):
        cohort_id = source.add_cohort(coach_ids=[coach.coach_id])
        member_ids = [source.add_member([cohort_id], name=f"Member {i + 1}") for i in range(50)]
        for member_id in member_ids:
            source.add_check_ins_days_ago(member_id, today, range(0, 8))
        failing = member_ids[26]
        source.fail("fetch_check_ins", failing)

        insight = get_coach_insights(source, coach, now=now, max_workers=8)

        scored_ids = [s.member_id for s in insight.attention_scores]
        assert len(scored_ids) == 49
        assert failing not in scored_ids
        assert insight.total_members == 50
        assert insight.unscored_members_count == 1
        assert insight.active_members_count == 49
        assert insight.inactive_members_count == 1
        assert insight.avg_check_ins_per_week == pytest.approx(7.0)

    def test_scores_sorted_descending_ties_keep_roster_order(self, source, coach, today, now):
        cohort_id = source.add_cohort(coach_ids=[coach.coach_id])
        calm_a = source.add_member([cohort_id], name="Calm A")
        lapsed = source.add_member([cohort_id], name="Lapsed")
        calm_b = source.add_member([cohort_id], name="Calm B")
        reminder = source.add_member([cohort_id], name="Reminder")

        source.add_check_ins_days_ago(calm_a, today, range(0, 10))
        source.add_check_ins_days_ago(lapsed, today, [9])
        source.add_check_ins_days_ago(calm_b, today, range(0, 10))
        source.add_check_ins_days_ago(reminder, today, range(4, 14))

        insight = get_coach_insights(source, coach, now=now)

        assert [s.member_id for s in insight.attention_scores] == [lapsed, reminder, calm_a, calm_b]
        assert [s.score for s in insight.attention_scores] == [40, 25, 0, 0]

    def test_active_members_checked_in_within_seven_days(self, source, coach, today, now):
        cohort_id = source.add_cohort(coach_ids=[coach.coach_id])
        recent = source.add_member([cohort_id])
        edge = source.add_member([cohort_id])
        stale = source.add_member([cohort_id])
        never = source.add_member([cohort_id])
        source.add_check_ins_days_ago(recent, today, [0])
        source.add_check_ins_days_ago(edge, today, [6])
        source.add_check_ins_days_ago(stale, today, [7])

        insight = get_coach_insights(source, coach, now=now)

        assert insight.total_members == 4
        assert insight.active_members_count == 2
        assert insight.inactive_members_count == 2

    def test_average_questionnaire_completion_is_computed(self, source, coach, today, now):
        cohort_id = source.add_cohort(coach_ids=[coach.coach_id])
        b1 = source.add_bundle(cohort_id, 1)
        source.add_bundle(cohort_id, 2)
        full = source.add_member([cohort_id])
        half = source.add_member([cohort_id])
        source.add_bundle(cohort_id, 9)  # outside the window
        b2 = [b.bundle_id for b in source.bundles if b.week_number == 2][0]
        source.add_response(full, b1, "completed", now)
        source.add_response(full, b2, "completed", now)
        source.add_response(half, b1, "completed", now)

        insight = get_coach_insights(source, coach, now=now)

        # (1.0 + 0.5) / 2
        assert insight.avg_questionnaire_completion == pytest.approx(0.75)

    def test_priority_counts_flow_through(self, source, coach, today, now):
        cohort_id = source.add_cohort(coach_ids=[coach.coach_id])
        member_id = source.add_member([cohort_id])
        source.add_check_ins_days_ago(member_id, today, [8])

        insight = get_coach_insights(source, coach, now=now)

        assert insight.attention_scores[0].priority == Priority.AMBER


class TestSingleMemberLookups:

    def test_coach_cannot_score_member_outside_their_cohorts(self, source, coach, now):
        other = source.add_cohort(coach_ids=[uuid4()])
        member_id = source.add_member([other])

        with pytest.raises(ForbiddenError):
            calculate_attention_score(source, coach, member_id, now=now)

    def test_coach_gets_403_for_unknown_member(self, source, coach, now):
        source.add_cohort(coach_ids=[coach.coach_id])

        with pytest.raises(ForbiddenError):
            calculate_attention_score(source, coach, uuid4(), now=now)

    def test_admin_gets_none_for_unknown_member(self, source, admin, now):
        assert calculate_attention_score(source, admin, uuid4(), now=now) is None

    def test_visible_member_is_scored(self, source, coach, today, now):
        cohort_id = source.add_cohort(coach_ids=[coach.coach_id])
        member_id = source.add_member([cohort_id])
        source.add_check_ins_days_ago(member_id, today, [3])

        score = calculate_attention_score(source, coach, member_id, now=now)

        assert score.member_id == member_id
        assert score.score == 25

    def test_single_lookup_does_not_isolate_failures(self, source, admin, now):
        member_id = source.add_member()
        source.fail("fetch_last_check_in", member_id)

        with pytest.raises(UpstreamDataError):
            calculate_attention_score(source, admin, member_id, now=now)

    def test_check_in_history_covers_thirty_days(self, source, admin, today, now):
        member_id = source.add_member()
        source.add_check_ins_days_ago(member_id, today, range(0, 40))

        data = get_member_check_in_data(source, admin, member_id, now=now)

        assert data.total_check_ins == 30
        assert data.check_ins[0].date == today
        assert data.check_ins[-1].date == today - timedelta(days=29)
        assert data.current_streak == 30
        assert data.last_check_in == today

    def test_check_in_history_for_unknown_member(self, source, admin, now):
        assert get_member_check_in_data(source, admin, uuid4(), now=now) is None
