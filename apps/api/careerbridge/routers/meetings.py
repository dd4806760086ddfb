"""Meetings Router - one meeting per message thread."""

from uuid import UUID

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from careerbridge.core.deps import get_current_user, get_db, require_csrf_header
from careerbridge.db.models import User
from careerbridge.schemas.common import ApiResponse
from careerbridge.schemas.meeting import (
    MeetingActionRequest,
    MeetingActionResult,
    MeetingEnvelope,
    MeetingRead,
    MeetingUpsert,
)
from careerbridge.services import meeting_service

router = APIRouter(prefix="/meetings", tags=["meetings"])


@router.get("/{thread_id}", response_model=ApiResponse[MeetingEnvelope])
def get_meeting(
    thread_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Meeting for the thread; {"meeting": null} when none exists."""
    meeting = meeting_service.get_meeting_for_user(db, user, thread_id)
    return ApiResponse(data=MeetingEnvelope(
        meeting=MeetingRead.model_validate(meeting) if meeting else None
    ))


@router.post(
    "/{thread_id}",
    response_model=ApiResponse[MeetingEnvelope],
    dependencies=[Depends(require_csrf_header)],
)
def upsert_meeting(
    thread_id: UUID,
    body: MeetingUpsert,
    response: Response,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Create the meeting (201) or update its date/url (200)."""
    meeting, created = meeting_service.upsert_meeting(
        db,
        user,
        thread_id,
        booking_date_time=body.booking_date_time,
        meeting_url=body.meeting_url,
    )
    if created:
        response.status_code = 201
    return ApiResponse(data=MeetingEnvelope(meeting=MeetingRead.model_validate(meeting)))


@router.put(
    "/{thread_id}",
    response_model=ApiResponse[MeetingActionResult],
    dependencies=[Depends(require_csrf_header)],
)
def update_meeting_status(
    thread_id: UUID,
    body: MeetingActionRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Apply confirm / complete / mark_no_show / cancel (and no-op legacy actions)."""
    meeting, applied = meeting_service.apply_action(db, user, thread_id, body.action)
    return ApiResponse(data=MeetingActionResult(
        meeting=MeetingRead.model_validate(meeting),
        applied=applied,
    ))
