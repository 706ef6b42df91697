from sqlalchemy import Column, Integer, Boolean, Float, Date, DateTime, ForeignKey, Text, String, Index, UniqueConstraint, Uuid, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from core.database import Base
from enum import Enum
import uuid


class UserRole(str, Enum):
    CLIENT = "client"
    COACH = "coach"
    ADMIN = "admin"


class CohortStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class MembershipStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    INACTIVE = "inactive"


class ResponseStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class User(Base):
    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    email = Column(Text, unique=True, nullable=False)
    name = Column(Text, nullable=True)
    role = Column(Text, default=UserRole.CLIENT.value, nullable=False)  # 'client', 'coach', 'admin'

    # Member-level cadence override (days between expected check-ins); NULL = inherit.
    check_in_frequency_days = Column(Integer, nullable=True)

    memberships = relationship("CohortMembership", back_populates="user")


class Cohort(Base):
    __tablename__ = "cohorts"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    status = Column(Text, default=CohortStatus.ACTIVE.value, nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    # Cohort-level cadence override; NULL = system default.
    check_in_frequency_days = Column(Integer, nullable=True)

    members = relationship("CohortMembership", back_populates="cohort")
    bundles = relationship("QuestionnaireBundle", back_populates="cohort")


class CohortMembership(Base):
    __tablename__ = "cohort_memberships"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    cohort_id = Column(Uuid(as_uuid=True), ForeignKey("cohorts.id"), nullable=False, index=True)
    status = Column(Text, default=MembershipStatus.ACTIVE.value, nullable=False)
    joined_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    left_at = Column(DateTime(timezone=True), nullable=True)

    user = relationship("User", back_populates="memberships")
    cohort = relationship("Cohort", back_populates="members")

    __table_args__ = (
        UniqueConstraint("user_id", "cohort_id", name="uq_cohort_membership_user_cohort"),
    )


class CoachCohortMembership(Base):
    """Explicit coach -> cohort assignment. Standard coaches only see these cohorts."""
    __tablename__ = "coach_cohort_memberships"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    coach_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    cohort_id = Column(Uuid(as_uuid=True), ForeignKey("cohorts.id"), nullable=False, index=True)

    __table_args__ = (
        UniqueConstraint("coach_id", "cohort_id", name="uq_coach_cohort"),
    )


class Entry(Base):
    """Daily check-in. At most one per member per calendar date."""
    __tablename__ = "entries"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    date = Column(Date, nullable=False)
    weight = Column(Float, nullable=True)
    steps = Column(Integer, nullable=True)
    calories = Column(Integer, nullable=True)
    sleep_quality = Column(Integer, nullable=True)  # 1-10
    perceived_stress = Column(Integer, nullable=True)  # 0-10
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("uq_entry_user_date", "user_id", "date", unique=True),
    )


class QuestionnaireBundle(Base):
    __tablename__ = "questionnaire_bundles"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    cohort_id = Column(Uuid(as_uuid=True), ForeignKey("cohorts.id"), nullable=False, index=True)
    week_number = Column(Integer, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    cohort = relationship("Cohort", back_populates="bundles")

    __table_args__ = (
        UniqueConstraint("cohort_id", "week_number", name="uq_bundle_cohort_week"),
    )


class WeeklyQuestionnaireResponse(Base):
    __tablename__ = "weekly_questionnaire_responses"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    bundle_id = Column(Uuid(as_uuid=True), ForeignKey("questionnaire_bundles.id"), nullable=False, index=True)
    status = Column(Text, default=ResponseStatus.IN_PROGRESS.value, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("user_id", "bundle_id", name="uq_response_user_bundle"),
    )


class WeeklyCoachResponse(Base):
    """A coach's weekly review note / video for one client."""
    __tablename__ = "weekly_coach_responses"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    coach_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    client_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    week_start = Column(Date, nullable=False)
    loom_url = Column(Text, nullable=True)
    note = Column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("coach_id", "client_id", "week_start", name="uq_coach_client_week"),
    )


class SystemSetting(Base):
    __tablename__ = "system_settings"

    key = Column(String(128), primary_key=True)
    value = Column(JSON, nullable=True)
