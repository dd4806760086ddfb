"""SQLAlchemy ORM models for CareerBridge."""

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from careerbridge.db.base import Base
from careerbridge.db.enums import (
    ComplianceStatus,
    MeetingStatus,
    NotificationFrequency,
    ReportStatus,
    ReportType,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Users & Profiles
# =============================================================================

class User(Base):
    """
    Platform user.

    Authentication is delegated to the session issuer; this row holds the
    role, the credit balance and moderation state. Users are never
    hard-deleted - a ban is a flag.
    """
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("credits >= 0", name="ck_users_credits_non_negative"),
        CheckConstraint("strikes >= 0 AND strikes <= 2", name="ck_users_strikes_range"),
        Index("idx_users_role", "role"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    credits: Mapped[int] = mapped_column(Integer, default=0, server_default=text("0"), nullable=False)
    strikes: Mapped[int] = mapped_column(Integer, default=0, server_default=text("0"), nullable=False)
    is_banned: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=text("false"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(default=utcnow, server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow, onupdate=utcnow, server_default=func.now(), nullable=False
    )

    student_profile: Mapped["StudentProfile | None"] = relationship(
        back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    obog_profile: Mapped["ObogProfile | None"] = relationship(
        back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    company_profile: Mapped["CompanyProfile | None"] = relationship(
        back_populates="user", uselist=False, cascade="all, delete-orphan"
    )


class StudentProfile(Base):
    """
    Student-specific fields, 1:1 with User (shared id).

    Compliance fields gate visibility of alumni profiles.
    """
    __tablename__ = "student_profiles"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    university: Mapped[str | None] = mapped_column(String(255), nullable=True)
    nationality: Mapped[str | None] = mapped_column(String(100), nullable=True)
    languages: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    desired_industry: Mapped[str | None] = mapped_column(String(255), nullable=True)

    compliance_agreed: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=text("false"), nullable=False
    )
    compliance_agreed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    compliance_status: Mapped[str] = mapped_column(
        String(20),
        default=ComplianceStatus.PENDING.value,
        server_default=ComplianceStatus.PENDING.value,
        nullable=False,
    )
    compliance_documents: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    compliance_submitted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    compliance_reviewed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    user: Mapped["User"] = relationship(back_populates="student_profile")


class ObogProfile(Base):
    """Alumnus-specific fields, 1:1 with User."""
    __tablename__ = "obog_profiles"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    obog_type: Mapped[str | None] = mapped_column(String(50), nullable=True)  # working-professional | job-offer-holder
    university: Mapped[str | None] = mapped_column(String(255), nullable=True)
    company_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    nationality: Mapped[str | None] = mapped_column(String(100), nullable=True)
    languages: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    topics: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    one_line_message: Mapped[str | None] = mapped_column(String(500), nullable=True)

    user: Mapped["User"] = relationship(back_populates="obog_profile")


class CompanyProfile(Base):
    """Recruiting company account fields, 1:1 with User."""
    __tablename__ = "company_profiles"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    company_name: Mapped[str] = mapped_column(String(255), nullable=False)
    overview: Mapped[str | None] = mapped_column(Text, nullable=True)
    work_location: Mapped[str | None] = mapped_column(String(255), nullable=True)

    user: Mapped["User"] = relationship(back_populates="company_profile")


# =============================================================================
# Companies & Corporate-OB
# =============================================================================

class Company(Base):
    """
    Billable organization behind Corporate-OB accounts.

    stripe_customer_id is set once a payment method is on file.
    """
    __tablename__ = "companies"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    industry: Mapped[str | None] = mapped_column(String(255), nullable=True)
    website: Mapped[str | None] = mapped_column(String(500), nullable=True)
    logo_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    stripe_customer_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow, onupdate=utcnow, server_default=func.now(), nullable=False
    )


class CorporateOb(Base):
    """Assignment of a user to a company as a Corporate-OB."""
    __tablename__ = "corporate_obs"
    __table_args__ = (
        UniqueConstraint("user_id", "company_id", name="uq_corporate_obs_user_company"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    company_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False
    )
    is_verified: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=text("false"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(default=utcnow, server_default=func.now(), nullable=False)

    user: Mapped["User"] = relationship()
    company: Mapped["Company"] = relationship()


# =============================================================================
# Messaging
# =============================================================================

class Thread(Base):
    """
    Two-party conversation.

    Participants are stored ordered (a < b) so the pair is unique regardless
    of who wrote first.
    """
    __tablename__ = "threads"
    __table_args__ = (
        UniqueConstraint("participant_a_id", "participant_b_id", name="uq_threads_participants"),
        CheckConstraint("participant_a_id <> participant_b_id", name="ck_threads_distinct_participants"),
        Index("idx_threads_participant_b", "participant_b_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    participant_a_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    participant_b_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(default=utcnow, server_default=func.now(), nullable=False)
    last_message_at: Mapped[datetime | None] = mapped_column(nullable=True)

    messages: Mapped[list["Message"]] = relationship(
        back_populates="thread", order_by="Message.created_at"
    )

    @property
    def participant_ids(self) -> tuple[uuid.UUID, uuid.UUID]:
        return (self.participant_a_id, self.participant_b_id)

    def has_participant(self, user_id: uuid.UUID) -> bool:
        return user_id in self.participant_ids

    def other_participant(self, user_id: uuid.UUID) -> uuid.UUID:
        return self.participant_b_id if user_id == self.participant_a_id else self.participant_a_id


class Message(Base):
    """
    A message in a thread.

    content is either a plain string or a {"en": ..., "ja": ...} object.
    Immutable once created except for read_at.
    """
    __tablename__ = "messages"
    __table_args__ = (
        Index("idx_messages_thread_created", "thread_id", "created_at"),
        Index("idx_messages_recipient_unread", "recipient_id", "read_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    thread_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("threads.id", ondelete="CASCADE"), nullable=False
    )
    sender_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    recipient_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    content: Mapped[Any] = mapped_column(JSON, nullable=False)
    read_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, server_default=func.now(), nullable=False)

    thread: Mapped["Thread"] = relationship(back_populates="messages")


# =============================================================================
# Meetings
# =============================================================================

class Meeting(Base):
    """
    Scheduled call between a student and an alumnus, 1:1 with a thread.

    status and meeting_status move together; post statuses are reported
    independently by each party after the meeting.
    """
    __tablename__ = "meetings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    thread_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("threads.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    student_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    obog_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)

    booking_date_time: Mapped[datetime | None] = mapped_column(nullable=True)
    meeting_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    status: Mapped[str] = mapped_column(
        String(20), default=MeetingStatus.UNCONFIRMED.value, nullable=False
    )
    meeting_status: Mapped[str] = mapped_column(
        String(20), default=MeetingStatus.UNCONFIRMED.value, nullable=False
    )

    student_post_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    student_post_status_at: Mapped[datetime | None] = mapped_column(nullable=True)
    obog_post_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    obog_post_status_at: Mapped[datetime | None] = mapped_column(nullable=True)
    # Set when one party reports completed and the other no-show
    requires_review: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=text("false"), nullable=False
    )

    cancelled_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=True
    )
    cancelled_at: Mapped[datetime | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow, onupdate=utcnow, server_default=func.now(), nullable=False
    )


class MeetingOperationLog(Base):
    """Append-only audit of meeting mutations."""
    __tablename__ = "meeting_operation_logs"
    __table_args__ = (
        Index("idx_meeting_ops_meeting", "meeting_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    meeting_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("meetings.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    operation_type: Mapped[str] = mapped_column(String(50), nullable=False)
    old_value: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    new_value: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, server_default=func.now(), nullable=False)


# =============================================================================
# Billing
# =============================================================================

class Charge(Base):
    """Per-message Corporate-OB payment; status mirrors the provider."""
    __tablename__ = "charges"
    __table_args__ = (
        Index("idx_charges_user_created", "user_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    message_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("messages.id"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    company_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("companies.id"), nullable=True
    )
    amount: Mapped[int] = mapped_column(Integer, nullable=False)  # minor units (JPY has none)
    currency: Mapped[str] = mapped_column(String(3), default="jpy", nullable=False)
    provider_charge_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(String(30), nullable=False)
    failure_reason: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, server_default=func.now(), nullable=False)


class CreditTransaction(Base):
    """Ledger of credit balance changes (billing history)."""
    __tablename__ = "credit_transactions"
    __table_args__ = (
        Index("idx_credit_tx_user_created", "user_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    delta: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(String(30), nullable=False)
    reference: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, server_default=func.now(), nullable=False)


class ProcessedWebhookEvent(Base):
    """
    Stripe events already applied.

    The primary key makes a second delivery of the same event fail on insert,
    even when both deliveries run concurrently.
    """
    __tablename__ = "processed_webhook_events"

    event_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    event_type: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, server_default=func.now(), nullable=False)


# =============================================================================
# Moderation
# =============================================================================

class Report(Base):
    """
    Complaint about a user or the platform.

    reported_user_id is NULL for platform reports. Only admins move status.
    """
    __tablename__ = "reports"
    __table_args__ = (
        Index("idx_reports_status_created", "status", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    reporter_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    reported_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=True
    )
    report_type: Mapped[str] = mapped_column(
        String(20), default=ReportType.USER.value, nullable=False
    )
    reason: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=ReportStatus.PENDING.value, nullable=False
    )
    admin_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow, onupdate=utcnow, server_default=func.now(), nullable=False
    )

    reporter: Mapped["User"] = relationship(foreign_keys=[reporter_id])
    reported_user: Mapped["User | None"] = relationship(foreign_keys=[reported_user_id])


# =============================================================================
# Notifications
# =============================================================================

class Notification(Base):
    """In-app notification for a user."""
    __tablename__ = "notifications"
    __table_args__ = (
        Index("idx_notif_user_unread", "user_id", "read_at", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    body: Mapped[str | None] = mapped_column(Text, nullable=True)
    link: Mapped[str | None] = mapped_column(String(500), nullable=True)
    read_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, server_default=func.now(), nullable=False)


class NotificationSettings(Base):
    """
    Per-user email notification preferences.

    Missing row = defaults (enabled, immediate, all types on).
    """
    __tablename__ = "notification_settings"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    email_notifications_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    notification_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notification_frequency: Mapped[str] = mapped_column(
        String(20), default=NotificationFrequency.IMMEDIATE.value, nullable=False
    )
    email_message_notifications: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    email_meeting_notifications: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    email_application_updates: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow, onupdate=utcnow, server_default=func.now(), nullable=False
    )


class EmailQueueItem(Base):
    """Outbound email waiting for (or done with) delivery."""
    __tablename__ = "email_notification_queue"
    __table_args__ = (
        Index("idx_email_queue_due", "sent_at", "scheduled_send_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    email_address: Mapped[str] = mapped_column(String(255), nullable=False)
    subject: Mapped[str] = mapped_column(String(255), nullable=False)
    html_content: Mapped[str] = mapped_column(Text, nullable=False)
    text_content: Mapped[str] = mapped_column(Text, default="", nullable=False)
    scheduled_send_at: Mapped[datetime] = mapped_column(nullable=False)
    sent_at: Mapped[datetime | None] = mapped_column(nullable=True)
    attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, server_default=func.now(), nullable=False)
