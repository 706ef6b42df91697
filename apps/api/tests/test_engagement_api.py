"""
Engagement API Tests

Exercises the HTTP surface: response shapes, rendered reasons, error
mapping (403 / 503 / 422) and bearer-token auth.
"""
import pytest
from datetime import date, datetime, timedelta, timezone
from uuid import uuid4

from fastapi.testclient import TestClient

from core.auth import get_coach_context
from core.database import get_db
from core.security import create_access_token
from main import app
from models import User
from services.engagement_data import get_engagement_source


def utc_today():
    return datetime.now(timezone.utc).date()


@pytest.fixture
def client(source, coach):
    app.dependency_overrides[get_coach_context] = lambda: coach
    app.dependency_overrides[get_engagement_source] = lambda: source
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def auth_client(sql_session_factory, source):
    """Real bearer auth against a SQLite user table; engine reads stay in memory."""
    def override_get_db():
        db = sql_session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_engagement_source] = lambda: source
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def make_user(session_factory, role):
    db = session_factory()
    user = User(email=f"{role}_{uuid4().hex[:6]}@example.com", name=role.title(), role=role)
    db.add(user)
    db.commit()
    user_id = user.id
    db.close()
    return user_id


class TestCoachInsightsEndpoint:

    def test_insights_render_reasons_and_actions(self, client, source, coach):
        cohort_id = source.add_cohort(coach_ids=[coach.coach_id])
        member_id = source.add_member([cohort_id], name="Lapsed", email="lapsed@example.com")
        source.add_check_ins_days_ago(member_id, utc_today(), [10])

        response = client.get("/v1/coach/insights")

        assert response.status_code == 200
        data = response.json()
        assert data["total_members"] == 1
        assert data["inactive_members_count"] == 1
        score = data["attention_scores"][0]
        assert score["member_id"] == str(member_id)
        assert score["score"] == 40
        assert score["priority"] == "amber"
        assert score["reasons"] == ["No check-in for 10 days"]
        assert score["reason_details"] == [{"kind": "check_in_gap", "text": "No check-in for 10 days"}]
        assert score["suggested_actions"] == ["Contact member immediately"]
        assert score["last_check_in"] == (utc_today() - timedelta(days=10)).isoformat()

    def test_empty_roster(self, client):
        response = client.get("/v1/coach/insights")

        assert response.status_code == 200
        assert response.json()["attention_scores"] == []
        assert response.json()["total_members"] == 0

    def test_member_outside_roster_is_forbidden(self, client, source):
        member_id = source.add_member([source.add_cohort(coach_ids=[uuid4()])])

        response = client.get(f"/v1/coach/members/{member_id}/attention-score")

        assert response.status_code == 403
        assert response.json() == {"detail": "You don't have access to this member", "error_code": "FORBIDDEN"}

    def test_unknown_member_is_null_for_admin(self, source, admin):
        app.dependency_overrides[get_coach_context] = lambda: admin
        app.dependency_overrides[get_engagement_source] = lambda: source
        try:
            with TestClient(app) as c:
                response = c.get(f"/v1/coach/members/{uuid4()}/attention-score")
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 200
        assert response.json() is None

    def test_upstream_failure_on_single_lookup_is_503(self, client, source, coach):
        member_id = source.add_member([source.add_cohort(coach_ids=[coach.coach_id])])
        source.fail("fetch_check_ins", member_id)

        response = client.get(f"/v1/coach/members/{member_id}/attention-score")

        assert response.status_code == 503
        assert response.json() == {"detail": "Upstream data unavailable", "error_code": "UPSTREAM_DATA_ERROR"}

    def test_invalid_member_id_is_422(self, client):
        response = client.get("/v1/coach/members/not-a-uuid/attention-score")
        assert response.status_code == 422

    def test_check_in_history(self, client, source, coach):
        member_id = source.add_member([source.add_cohort(coach_ids=[coach.coach_id])])
        source.add_check_ins_days_ago(member_id, utc_today(), [0, 1, 2, 40])

        response = client.get(f"/v1/coach/members/{member_id}/check-ins")

        assert response.status_code == 200
        data = response.json()
        assert data["total_check_ins"] == 3
        assert data["current_streak"] == 3
        assert data["check_ins"][0]["date"] == utc_today().isoformat()

    def test_check_in_frequency(self, client, source, coach):
        cohort_id = source.add_cohort(coach_ids=[coach.coach_id], check_in_frequency_days=4)
        member_id = source.add_member([cohort_id])

        response = client.get(f"/v1/coach/members/{member_id}/check-in-frequency")

        assert response.status_code == 200
        data = response.json()
        assert data["member_override"] is None
        assert data["cohort_override"] == 4
        assert data["effective"] == 4


class TestReviewQueueEndpoints:

    def test_weekly_summaries_normalize_week(self, client, source, coach):
        source.add_member([source.add_cohort(coach_ids=[coach.coach_id])], name="Member")

        response = client.get("/v1/review-queue/weekly", params={"week_start": "2024-03-06"})

        assert response.status_code == 200
        data = response.json()
        assert data["week_start"] == "2024-03-04"
        assert data["week_end"] == "2024-03-10"
        client_row = data["clients"][0]
        assert client_row["name"] == "Member"
        assert client_row["stats"]["expected_check_ins"] == 7
        assert client_row["questionnaire_status"]["status"] == "no_questionnaire"

    def test_weekly_cohort_filter_forbidden(self, client, source):
        other = source.add_cohort(coach_ids=[uuid4()])

        response = client.get("/v1/review-queue/weekly", params={"cohort_id": str(other)})

        assert response.status_code == 403

    def test_bad_week_start_is_422(self, client):
        response = client.get("/v1/review-queue/weekly", params={"week_start": "13/03/2024"})
        assert response.status_code == 422

    def test_summary(self, client, source, coach):
        cohort_id = source.add_cohort(coach_ids=[coach.coach_id])
        lapsed = source.add_member([cohort_id])
        source.add_member([cohort_id])
        source.add_check_ins_days_ago(lapsed, date(2024, 3, 10), [0])

        response = client.get("/v1/review-queue/summary", params={"week_start": "2024-03-11"})

        assert response.status_code == 200
        data = response.json()
        assert data["total_clients"] == 2
        assert data["red_priority"] + data["amber_priority"] + data["green_priority"] == 2
        assert data["pending_reviews"] == 2
        assert data["completed_reviews"] == 0


class TestAuth:

    def test_missing_token_is_401(self, auth_client):
        response = auth_client.get("/v1/coach/insights")
        assert response.status_code == 401

    def test_invalid_token_is_401(self, auth_client):
        response = auth_client.get("/v1/coach/insights", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    def test_client_role_is_403(self, auth_client, sql_session_factory):
        user_id = make_user(sql_session_factory, "client")
        token = create_access_token({"sub": str(user_id)})

        response = auth_client.get("/v1/coach/insights", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 403

    def test_coach_token_is_accepted(self, auth_client, sql_session_factory, source):
        user_id = make_user(sql_session_factory, "coach")
        cohort_id = source.add_cohort(coach_ids=[user_id])
        source.add_member([cohort_id])
        token = create_access_token({"sub": str(user_id)})

        response = auth_client.get("/v1/coach/insights", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200
        assert response.json()["total_members"] == 1


class TestOps:

    def test_ping(self, client):
        assert client.get("/ping").json() == {"pong": True}

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
