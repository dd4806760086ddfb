"""
Meeting service - booking state machine, one meeting per thread.

States:
    unconfirmed -> confirmed -> completed | no-show
    unconfirmed | confirmed -> cancelled (terminal)

Completion needs the student's post status to be "completed" while the
alumnus either also completed or never reported. A no-show report takes
effect immediately. Every mutation appends a MeetingOperationLog row.
"""

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from careerbridge.core.errors import NotFoundError, PermissionDeniedError, ValidationError
from careerbridge.db.enums import (
    ALUMNI_ROLES,
    UNSUPPORTED_MEETING_ACTIONS,
    MeetingAction,
    MeetingOperationType,
    MeetingStatus,
    NotificationType,
    PostMeetingStatus,
    UserRole,
)
from careerbridge.db.models import Meeting, MeetingOperationLog, Thread, User
from careerbridge.services import notification_service

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = {
    MeetingStatus.COMPLETED.value,
    MeetingStatus.NO_SHOW.value,
    MeetingStatus.CANCELLED.value,
}

MEETING_TITLES = {
    "request": "New Meeting Request",
    "confirm": "Meeting Confirmed",
    "cancel": "Meeting Cancelled",
    "no-show": "No-Show Reported",
    "complete": "Meeting Completed",
}


# =============================================================================
# Helpers
# =============================================================================

def get_meeting_by_thread(db: Session, thread_id: UUID) -> Meeting | None:
    return db.query(Meeting).filter(Meeting.thread_id == thread_id).first()


def lock_meeting_by_thread(db: Session, thread_id: UUID) -> Meeting | None:
    """
    Row-lock the thread's meeting for the rest of the transaction.

    populate_existing() discards any stale copy already in the session, so
    transitions are always decided from the committed row.
    """
    return (
        db.query(Meeting)
        .filter(Meeting.thread_id == thread_id)
        .with_for_update()
        .populate_existing()
        .first()
    )


def is_participant(meeting: Meeting, user_id: UUID) -> bool:
    return user_id in (meeting.student_id, meeting.obog_id)


def meeting_to_dict(meeting: Meeting) -> dict:
    """Snapshot used for operation log old/new values."""
    return {
        "booking_date_time": meeting.booking_date_time.isoformat() if meeting.booking_date_time else None,
        "meeting_url": meeting.meeting_url,
        "status": meeting.status,
        "meeting_status": meeting.meeting_status,
        "student_post_status": meeting.student_post_status,
        "obog_post_status": meeting.obog_post_status,
        "requires_review": meeting.requires_review,
    }


def _log_operation(
    db: Session,
    meeting: Meeting,
    user_id: UUID,
    operation_type: MeetingOperationType,
    old_value: dict | None,
    new_value: dict | None,
) -> None:
    db.add(MeetingOperationLog(
        meeting_id=meeting.id,
        user_id=user_id,
        operation_type=operation_type.value,
        old_value=old_value,
        new_value=new_value,
    ))


def _notify_meeting(
    db: Session,
    meeting: Meeting,
    recipient_id: UUID,
    action: str,
    actor_name: str | None = None,
) -> None:
    when = meeting.booking_date_time.strftime("%Y-%m-%d %H:%M") if meeting.booking_date_time else "TBD"
    bodies = {
        "request": f"A meeting has been requested for {when}",
        "confirm": f"Your meeting for {when} has been confirmed",
        "cancel": f"The meeting for {when} has been cancelled" + (f" by {actor_name}" if actor_name else ""),
        "no-show": f"A no-show has been reported for the meeting on {when}",
        "complete": f"The meeting on {when} has been marked as completed",
    }
    notification_service.notify(
        db,
        user_id=recipient_id,
        type=NotificationType.MEETING,
        title=MEETING_TITLES[action],
        body=bodies[action],
        link=f"/messages/{meeting.thread_id}",
    )


def resolve_participant_roles(db: Session, thread: Thread) -> tuple[UUID, UUID]:
    """
    Return (student_id, obog_id) for the thread's participants.

    Falls back to participant order when neither side has the expected role.
    """
    first_id, second_id = thread.participant_ids
    users = {u.id: u for u in db.query(User).filter(User.id.in_([first_id, second_id])).all()}
    first, second = users.get(first_id), users.get(second_id)

    for candidate, other_id in ((first, second_id), (second, first_id)):
        if candidate and candidate.role == UserRole.STUDENT.value:
            return candidate.id, other_id
    for candidate, other_id in ((first, second_id), (second, first_id)):
        if candidate and candidate.role in ALUMNI_ROLES:
            return other_id, candidate.id

    logger.warning(
        "Meeting roles unresolved for thread %s; using participant order",
        thread.id,
    )
    return first_id, second_id


# =============================================================================
# Read
# =============================================================================

def get_meeting_for_user(db: Session, user: User, thread_id: UUID) -> Meeting | None:
    """Meeting for the thread or None; existing meetings are participant/admin only."""
    meeting = get_meeting_by_thread(db, thread_id)
    if meeting and not is_participant(meeting, user.id) and user.role != UserRole.ADMIN.value:
        raise PermissionDeniedError("Not a participant in this meeting")
    return meeting


# =============================================================================
# Create / Update (POST)
# =============================================================================

def upsert_meeting(
    db: Session,
    user: User,
    thread_id: UUID,
    booking_date_time: datetime | None = None,
    meeting_url: str | None = None,
) -> tuple[Meeting, bool]:
    """
    Find or create the thread's meeting and apply date/url.

    Returns (meeting, created).
    """
    thread = db.query(Thread).filter(Thread.id == thread_id).first()
    if not thread:
        raise NotFoundError("Thread not found")
    if not thread.has_participant(user.id):
        raise PermissionDeniedError("Not a participant in this thread")

    meeting = lock_meeting_by_thread(db, thread_id)
    if meeting is None:
        student_id, obog_id = resolve_participant_roles(db, thread)
        meeting = Meeting(
            thread_id=thread_id,
            student_id=student_id,
            obog_id=obog_id,
            booking_date_time=booking_date_time,
            meeting_url=meeting_url,
            status=MeetingStatus.UNCONFIRMED.value,
            meeting_status=MeetingStatus.UNCONFIRMED.value,
        )
        db.add(meeting)
        try:
            db.flush()
        except IntegrityError:
            # Another request created it first; update that row instead
            db.rollback()
            logger.info("Meeting insert conflict on thread %s; updating existing row", thread_id)
            meeting = lock_meeting_by_thread(db, thread_id)
            if meeting is None:
                raise
        else:
            _log_operation(
                db, meeting, user.id, MeetingOperationType.CREATE,
                None, meeting_to_dict(meeting),
            )
            db.commit()
            db.refresh(meeting)
            notify_id = meeting.obog_id if user.id == meeting.student_id else meeting.student_id
            _notify_meeting(db, meeting, notify_id, "request")
            return meeting, True

    if meeting.status == MeetingStatus.CANCELLED.value:
        raise ValidationError("Cannot update a cancelled meeting")

    if booking_date_time is None and meeting_url is None:
        return meeting, False

    old = meeting_to_dict(meeting)
    if booking_date_time is not None:
        meeting.booking_date_time = booking_date_time
    if meeting_url is not None:
        meeting.meeting_url = meeting_url
    operation = (
        MeetingOperationType.UPDATE_DATE
        if booking_date_time is not None
        else MeetingOperationType.UPDATE_URL
    )
    _log_operation(db, meeting, user.id, operation, old, meeting_to_dict(meeting))
    db.commit()
    db.refresh(meeting)
    return meeting, False


# =============================================================================
# Actions (PUT)
# =============================================================================

def _flag_conflicting_reports(meeting: Meeting, reported_by_student: bool) -> None:
    """Mark the meeting for admin review when the two post reports disagree."""
    reports = {meeting.student_post_status, meeting.obog_post_status}
    if reports != {PostMeetingStatus.COMPLETED.value, PostMeetingStatus.NO_SHOW.value}:
        return
    meeting.requires_review = True
    logger.warning(
        "Conflicting post-meeting reports on meeting %s (student=%s, obog=%s, last by %s)",
        meeting.id,
        meeting.student_post_status,
        meeting.obog_post_status,
        "student" if reported_by_student else "obog",
    )


def apply_action(
    db: Session,
    user: User,
    thread_id: UUID,
    action: MeetingAction,
) -> tuple[Meeting, bool]:
    """
    Apply a state-machine action. Returns (meeting, applied).

    Raises:
        NotFoundError: no meeting for the thread
        PermissionDeniedError: caller not allowed
        ValidationError: transition not allowed from the current state
    """
    meeting = lock_meeting_by_thread(db, thread_id)
    if not meeting:
        raise NotFoundError("Meeting not found")

    is_student = meeting.student_id == user.id
    is_obog = meeting.obog_id == user.id
    is_admin = user.role == UserRole.ADMIN.value
    if not (is_student or is_obog or is_admin):
        raise PermissionDeniedError("Not a participant in this meeting")

    old = meeting_to_dict(meeting)
    now = datetime.now(timezone.utc)

    if action in UNSUPPORTED_MEETING_ACTIONS:
        _log_operation(
            db, meeting, user.id, MeetingOperationType(action.value), old, {"applied": False},
        )
        db.commit()
        db.refresh(meeting)
        logger.info("Meeting action %s accepted without changes (meeting %s)", action.value, meeting.id)
        return meeting, False

    if action == MeetingAction.CONFIRM:
        if meeting.status != MeetingStatus.UNCONFIRMED.value:
            raise ValidationError(f"Cannot confirm a meeting that is {meeting.status}")
        meeting.status = MeetingStatus.CONFIRMED.value
        meeting.meeting_status = MeetingStatus.CONFIRMED.value
        _log_operation(db, meeting, user.id, MeetingOperationType.CONFIRM, old, meeting_to_dict(meeting))
        db.commit()
        db.refresh(meeting)
        _notify_meeting(db, meeting, meeting.student_id, "confirm")
        _notify_meeting(db, meeting, meeting.obog_id, "confirm")
        return meeting, True

    if action == MeetingAction.CANCEL:
        if meeting.status in TERMINAL_STATUSES:
            raise ValidationError(f"Cannot cancel a meeting that is {meeting.status}")
        meeting.status = MeetingStatus.CANCELLED.value
        meeting.meeting_status = MeetingStatus.CANCELLED.value
        meeting.cancelled_by = user.id
        meeting.cancelled_at = now
        _log_operation(db, meeting, user.id, MeetingOperationType.CANCEL, old, meeting_to_dict(meeting))
        db.commit()
        db.refresh(meeting)
        _notify_meeting(db, meeting, meeting.student_id, "cancel", actor_name=user.name)
        _notify_meeting(db, meeting, meeting.obog_id, "cancel", actor_name=user.name)
        return meeting, True

    # complete / mark_no_show are post-meeting reports by a participant
    if not (is_student or is_obog):
        raise PermissionDeniedError("Only meeting participants can report the outcome")
    if meeting.status == MeetingStatus.CANCELLED.value:
        raise ValidationError("Meeting has been cancelled")
    if meeting.status == MeetingStatus.UNCONFIRMED.value:
        raise ValidationError("Meeting has not been confirmed")

    if action == MeetingAction.COMPLETE:
        if is_student:
            meeting.student_post_status = PostMeetingStatus.COMPLETED.value
            meeting.student_post_status_at = now
        else:
            meeting.obog_post_status = PostMeetingStatus.COMPLETED.value
            meeting.obog_post_status_at = now
        _flag_conflicting_reports(meeting, is_student)

        became_completed = False
        if (
            meeting.meeting_status != MeetingStatus.COMPLETED.value
            and meeting.student_post_status == PostMeetingStatus.COMPLETED.value
            and meeting.obog_post_status in (None, PostMeetingStatus.COMPLETED.value)
        ):
            meeting.meeting_status = MeetingStatus.COMPLETED.value
            meeting.status = MeetingStatus.COMPLETED.value
            became_completed = True

        _log_operation(db, meeting, user.id, MeetingOperationType.COMPLETE, old, meeting_to_dict(meeting))
        db.commit()
        db.refresh(meeting)
        if became_completed:
            _notify_meeting(db, meeting, meeting.student_id, "complete")
            _notify_meeting(db, meeting, meeting.obog_id, "complete")
        return meeting, True

    if action == MeetingAction.MARK_NO_SHOW:
        if is_student:
            meeting.student_post_status = PostMeetingStatus.NO_SHOW.value
            meeting.student_post_status_at = now
        else:
            meeting.obog_post_status = PostMeetingStatus.NO_SHOW.value
            meeting.obog_post_status_at = now
        _flag_conflicting_reports(meeting, is_student)
        meeting.meeting_status = MeetingStatus.NO_SHOW.value
        meeting.status = MeetingStatus.NO_SHOW.value

        _log_operation(db, meeting, user.id, MeetingOperationType.MARK_NO_SHOW, old, meeting_to_dict(meeting))
        db.commit()
        db.refresh(meeting)
        other_id = meeting.obog_id if is_student else meeting.student_id
        _notify_meeting(db, meeting, other_id, "no-show")
        return meeting, True

    raise ValidationError(f"Unsupported action: {action.value}")
