"""
Internal endpoints for scheduled jobs.

Protected by the X-Internal-Secret header; called by cron, not browsers.
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from careerbridge.core.deps import get_db, get_email_sender, verify_internal_secret
from careerbridge.services import notification_service

router = APIRouter(
    prefix="/internal",
    tags=["internal"],
    dependencies=[Depends(verify_internal_secret)],
)


class EmailQueueRunResponse(BaseModel):
    processed: int
    sent: int
    failed: int


@router.post("/email-queue/process", response_model=EmailQueueRunResponse)
async def process_email_queue(
    db: Session = Depends(get_db),
    sender=Depends(get_email_sender),
):
    """Send every due email in the queue (up to one batch)."""
    result = await notification_service.process_email_queue(db, sender)
    return EmailQueueRunResponse(
        processed=result.processed,
        sent=result.sent,
        failed=result.failed,
    )


class WeeklySummaryResponse(BaseModel):
    queued: int


@router.post("/email-queue/weekly-summary", response_model=WeeklySummaryResponse)
def queue_weekly_summaries(db: Session = Depends(get_db)):
    """Queue one digest per weekly_summary user; /email-queue/process delivers them."""
    return WeeklySummaryResponse(queued=notification_service.queue_weekly_summaries(db))
