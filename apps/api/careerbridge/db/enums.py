"""Enum definitions for application constants."""

from enum import Enum


class UserRole(str, Enum):
    """
    Platform roles.

    - STUDENT: job seekers; pay credits per message, gated by compliance
    - OBOG: alumni mentors; reply-only messaging
    - COMPANY: recruiting companies
    - CORPORATE_OB: alumni acting for a company; billed per message via Stripe
    - ADMIN: platform moderators
    """
    STUDENT = "student"
    OBOG = "obog"
    COMPANY = "company"
    CORPORATE_OB = "corporate_ob"
    ADMIN = "admin"

    @classmethod
    def has_value(cls, value: str) -> bool:
        """Check if value is a valid role."""
        return value in cls._value2member_map_


# Roles that count as the alumnus side of a meeting
ALUMNI_ROLES = {UserRole.OBOG.value, UserRole.CORPORATE_OB.value}


class ComplianceStatus(str, Enum):
    """
    Student compliance review lifecycle.

    pending -> submitted (student) -> approved / rejected (admin)
    """
    PENDING = "pending"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"


class MeetingStatus(str, Enum):
    """
    Meeting lifecycle.

    unconfirmed -> confirmed -> completed / no-show; any -> cancelled (terminal)
    """
    UNCONFIRMED = "unconfirmed"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    NO_SHOW = "no-show"
    CANCELLED = "cancelled"


class PostMeetingStatus(str, Enum):
    """Per-party report after the meeting took place (or didn't)."""
    COMPLETED = "completed"
    NO_SHOW = "no-show"


class MeetingAction(str, Enum):
    """Actions accepted by PUT /api/meetings/{thread_id}."""
    CONFIRM = "confirm"
    COMPLETE = "complete"
    MARK_NO_SHOW = "mark_no_show"
    CANCEL = "cancel"
    ACCEPT_TERMS = "accept_terms"
    SUBMIT_EVALUATION = "submit_evaluation"
    SUBMIT_ADDITIONAL_QUESTION = "submit_additional_question"


# Actions with no backing columns on the meeting row
UNSUPPORTED_MEETING_ACTIONS = {
    MeetingAction.ACCEPT_TERMS,
    MeetingAction.SUBMIT_EVALUATION,
    MeetingAction.SUBMIT_ADDITIONAL_QUESTION,
}


class MeetingOperationType(str, Enum):
    """Operation log types for meeting audit rows."""
    CREATE = "create"
    UPDATE_DATE = "update_date"
    UPDATE_URL = "update_url"
    CONFIRM = "confirm"
    COMPLETE = "complete"
    MARK_NO_SHOW = "mark_no_show"
    CANCEL = "cancel"
    ACCEPT_TERMS = "accept_terms"
    SUBMIT_EVALUATION = "submit_evaluation"
    SUBMIT_ADDITIONAL_QUESTION = "submit_additional_question"


class ReportStatus(str, Enum):
    PENDING = "pending"
    REVIEWED = "reviewed"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


class ReportType(str, Enum):
    USER = "user"
    PLATFORM = "platform"


class NotificationType(str, Enum):
    MESSAGE = "message"
    MEETING = "meeting"
    APPLICATION = "application"
    INTERNSHIP = "internship"
    SYSTEM = "system"


class NotificationFrequency(str, Enum):
    IMMEDIATE = "immediate"
    WEEKLY_SUMMARY = "weekly_summary"
    OFF = "off"


class ChargeStatus(str, Enum):
    """Mirrors Stripe PaymentIntent status, plus local failure."""
    SUCCEEDED = "succeeded"
    PROCESSING = "processing"
    REQUIRES_ACTION = "requires_action"
    FAILED = "failed"


class CreditReason(str, Enum):
    MESSAGE_SENT = "message_sent"
    PURCHASE = "purchase"
    ADMIN_ADJUSTMENT = "admin_adjustment"


class UploadKind(str, Enum):
    RESUME = "resume"
    COMPLIANCE = "compliance"
    LOGO = "logo"
