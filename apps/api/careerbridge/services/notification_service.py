"""
Notification Service - in-app notifications and the email queue.

Every notification is written in-app. An email copy is queued according to
the recipient's settings and the time of day in NOTIFICATION_TIMEZONE:

- off / disabled / per-type toggle off: no email
- weekly_summary: no per-notification email; queue_weekly_summaries() sends
  one digest of the past week
- immediate during 22:00-06:00: the following 06:00
- immediate otherwise: now
"""

import html
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy import func
from sqlalchemy.orm import Session

from careerbridge.core.config import settings
from careerbridge.db.enums import NotificationFrequency, NotificationType
from careerbridge.db.models import EmailQueueItem, Notification, NotificationSettings, User
from careerbridge.services.email_sender import EmailSender

logger = logging.getLogger(__name__)

QUIET_HOURS_START = 22
QUIET_HOURS_END = 6
WEEKLY_SUMMARY_DAYS = 7
# A second run inside this gap queues nothing
WEEKLY_SUMMARY_MIN_GAP = timedelta(days=6)
WEEKLY_SUMMARY_SUBJECT = "Weekly Notification Summary"
EMAIL_BATCH_SIZE = 100
MAX_EMAIL_ATTEMPTS = 5

SETTINGS_FIELDS = (
    "email_notifications_enabled",
    "notification_email",
    "notification_frequency",
    "email_message_notifications",
    "email_meeting_notifications",
    "email_application_updates",
)

# Notification type -> per-type email toggle (system emails have no toggle)
EMAIL_TOGGLES = {
    NotificationType.MESSAGE.value: "email_message_notifications",
    NotificationType.MEETING.value: "email_meeting_notifications",
    NotificationType.APPLICATION.value: "email_application_updates",
    NotificationType.INTERNSHIP.value: "email_application_updates",
}


# =============================================================================
# Notification Settings
# =============================================================================

def _default_settings() -> dict:
    return {
        "email_notifications_enabled": True,
        "notification_email": None,
        "notification_frequency": NotificationFrequency.IMMEDIATE.value,
        "email_message_notifications": True,
        "email_meeting_notifications": True,
        "email_application_updates": True,
    }


def get_user_settings(db: Session, user_id: UUID) -> dict:
    """
    Get user notification settings.

    Returns defaults (enabled, immediate, all types on) if no row exists.
    """
    row = db.query(NotificationSettings).filter(NotificationSettings.user_id == user_id).first()
    if not row:
        return _default_settings()
    return {field: getattr(row, field) for field in SETTINGS_FIELDS}


def update_user_settings(db: Session, user_id: UUID, updates: dict) -> dict:
    """Update notification settings. Creates the row if it doesn't exist."""
    row = db.query(NotificationSettings).filter(NotificationSettings.user_id == user_id).first()
    if not row:
        row = NotificationSettings(user_id=user_id, **_default_settings())
        db.add(row)

    for key, value in updates.items():
        if key in SETTINGS_FIELDS:
            setattr(row, key, value)

    db.commit()
    db.refresh(row)
    return {field: getattr(row, field) for field in SETTINGS_FIELDS}


# =============================================================================
# Email Scheduling
# =============================================================================

def compute_scheduled_send_at(
    frequency: str,
    now: datetime,
    tz: ZoneInfo | None = None,
) -> datetime | None:
    """
    Return when an email should go out (UTC), or None for no email.

    Weekly-summary users get the digest instead of individual emails.
    now must be timezone-aware.
    """
    if frequency in (NotificationFrequency.OFF.value, NotificationFrequency.WEEKLY_SUMMARY.value):
        return None

    tz = tz or ZoneInfo(settings.NOTIFICATION_TIMEZONE)
    local_now = now.astimezone(tz)

    if local_now.hour >= QUIET_HOURS_START:
        target = (local_now + timedelta(days=1)).replace(
            hour=QUIET_HOURS_END, minute=0, second=0, microsecond=0
        )
        return target.astimezone(timezone.utc)
    if local_now.hour < QUIET_HOURS_END:
        target = local_now.replace(hour=QUIET_HOURS_END, minute=0, second=0, microsecond=0)
        return target.astimezone(timezone.utc)

    return now.astimezone(timezone.utc)


def _render_email(title: str, body: str | None, link: str | None) -> tuple[str, str]:
    parts = [f"<h2>{html.escape(title)}</h2>"]
    text_parts = [title]
    if body:
        parts.append(f"<p>{html.escape(body)}</p>")
        text_parts.append(body)
    if link:
        url = f"{settings.FRONTEND_URL.rstrip('/')}{link}"
        parts.append(f'<p><a href="{html.escape(url)}">Open CareerBridge</a></p>')
        text_parts.append(url)
    return "\n".join(parts), "\n\n".join(text_parts)


def queue_email_for_notification(
    db: Session,
    user: User,
    notification_type: str,
    title: str,
    body: str | None,
    link: str | None,
    now: datetime | None = None,
) -> EmailQueueItem | None:
    """Queue the email copy of a notification if the user wants one. Does not commit."""
    prefs = get_user_settings(db, user.id)
    if not prefs["email_notifications_enabled"]:
        return None
    toggle = EMAIL_TOGGLES.get(notification_type)
    if toggle and not prefs[toggle]:
        return None

    scheduled = compute_scheduled_send_at(
        prefs["notification_frequency"], now or datetime.now(timezone.utc)
    )
    if scheduled is None:
        return None

    html_content, text_content = _render_email(title, body, link)
    item = EmailQueueItem(
        user_id=user.id,
        email_address=prefs["notification_email"] or user.email,
        subject=title,
        html_content=html_content,
        text_content=text_content,
        scheduled_send_at=scheduled,
    )
    db.add(item)
    return item


# =============================================================================
# Notification CRUD
# =============================================================================

def create_notification(
    db: Session,
    user_id: UUID,
    type: NotificationType,
    title: str,
    body: str | None = None,
    link: str | None = None,
) -> Notification:
    """Create an in-app notification and queue its email copy."""
    notification = Notification(
        user_id=user_id,
        type=type.value,
        title=title,
        body=body,
        link=link,
    )
    db.add(notification)

    user = db.query(User).filter(User.id == user_id).first()
    if user:
        queue_email_for_notification(db, user, type.value, title, body, link)

    db.commit()
    db.refresh(notification)
    return notification


def notify(
    db: Session,
    user_id: UUID,
    type: NotificationType,
    title: str,
    body: str | None = None,
    link: str | None = None,
) -> Notification | None:
    """
    Best-effort create_notification.

    Callers have already committed their own change; a failure here is
    logged and never surfaces to the request.
    """
    try:
        return create_notification(db, user_id, type, title, body, link)
    except Exception:
        logger.exception("Failed to create %s notification for user %s", type.value, user_id)
        db.rollback()
        return None


def get_notifications(
    db: Session,
    user_id: UUID,
    unread_only: bool = False,
    limit: int = 20,
    offset: int = 0,
) -> list[Notification]:
    """Get notifications for user, newest first."""
    query = db.query(Notification).filter(Notification.user_id == user_id)
    if unread_only:
        query = query.filter(Notification.read_at.is_(None))
    return (
        query.order_by(Notification.created_at.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


def get_unread_count(db: Session, user_id: UUID) -> int:
    return (
        db.query(func.count(Notification.id))
        .filter(Notification.user_id == user_id, Notification.read_at.is_(None))
        .scalar()
        or 0
    )


def mark_read(db: Session, notification_id: UUID, user_id: UUID) -> Notification | None:
    """Mark single notification as read. Returns None if not found/not owned."""
    notification = db.query(Notification).filter(
        Notification.id == notification_id,
        Notification.user_id == user_id,
    ).first()
    if not notification:
        return None

    if not notification.read_at:
        notification.read_at = datetime.now(timezone.utc)
        db.commit()
        db.refresh(notification)
    return notification


def mark_all_read(db: Session, user_id: UUID) -> int:
    """Mark all notifications as read. Returns count updated."""
    count = (
        db.query(Notification)
        .filter(Notification.user_id == user_id, Notification.read_at.is_(None))
        .update({Notification.read_at: datetime.now(timezone.utc)}, synchronize_session=False)
    )
    db.commit()
    return count


# =============================================================================
# Weekly Summary
# =============================================================================

def _type_enabled(prefs: NotificationSettings, notification_type: str) -> bool:
    toggle = EMAIL_TOGGLES.get(notification_type)
    return toggle is None or bool(getattr(prefs, toggle))


def _render_weekly_summary(notifications: list[Notification]) -> tuple[str, str]:
    items = []
    lines = []
    for n in notifications:
        line = f"{n.title}: {n.body}" if n.body else n.title
        items.append(f"<li>{html.escape(line)}</li>")
        lines.append(f"- {line}")
    url = f"{settings.FRONTEND_URL.rstrip('/')}/notifications"
    html_content = "\n".join([
        "<h2>Your week on CareerBridge</h2>",
        f"<ul>{''.join(items)}</ul>",
        f'<p><a href="{html.escape(url)}">Open CareerBridge</a></p>',
    ])
    text_content = "\n".join(["Your week on CareerBridge", "", *lines, "", url])
    return html_content, text_content


def queue_weekly_summaries(db: Session, now: datetime | None = None) -> int:
    """
    Queue one digest email per weekly_summary user with notifications from
    the past week. Returns the number queued.

    Per-type toggles still apply. Users with a digest queued in the last
    WEEKLY_SUMMARY_MIN_GAP are skipped.
    """
    now = now or datetime.now(timezone.utc)
    since = now - timedelta(days=WEEKLY_SUMMARY_DAYS)
    rows = (
        db.query(NotificationSettings, User)
        .join(User, User.id == NotificationSettings.user_id)
        .filter(
            NotificationSettings.notification_frequency == NotificationFrequency.WEEKLY_SUMMARY.value,
            NotificationSettings.email_notifications_enabled.is_(True),
        )
        .all()
    )

    queued = 0
    for prefs, user in rows:
        already_queued = (
            db.query(EmailQueueItem.id)
            .filter(
                EmailQueueItem.user_id == user.id,
                EmailQueueItem.subject == WEEKLY_SUMMARY_SUBJECT,
                EmailQueueItem.scheduled_send_at > now - WEEKLY_SUMMARY_MIN_GAP,
            )
            .first()
        )
        if already_queued:
            continue

        recent = (
            db.query(Notification)
            .filter(Notification.user_id == user.id, Notification.created_at >= since)
            .order_by(Notification.created_at.asc())
            .all()
        )
        notifications = [n for n in recent if _type_enabled(prefs, n.type)]
        if not notifications:
            continue

        html_content, text_content = _render_weekly_summary(notifications)
        db.add(EmailQueueItem(
            user_id=user.id,
            email_address=prefs.notification_email or user.email,
            subject=WEEKLY_SUMMARY_SUBJECT,
            html_content=html_content,
            text_content=text_content,
            scheduled_send_at=now,
        ))
        queued += 1

    db.commit()
    logger.info("Queued %s weekly summary emails (%s opted-in users)", queued, len(rows))
    return queued


# =============================================================================
# Email Queue Processing
# =============================================================================

@dataclass
class QueueRunResult:
    processed: int = 0
    sent: int = 0
    failed: int = 0


def get_due_emails(db: Session, now: datetime, limit: int = EMAIL_BATCH_SIZE) -> list[EmailQueueItem]:
    return (
        db.query(EmailQueueItem)
        .filter(
            EmailQueueItem.sent_at.is_(None),
            EmailQueueItem.scheduled_send_at <= now,
            EmailQueueItem.attempts < MAX_EMAIL_ATTEMPTS,
        )
        .order_by(EmailQueueItem.scheduled_send_at)
        .limit(limit)
        .all()
    )


async def process_email_queue(
    db: Session,
    sender: EmailSender,
    now: datetime | None = None,
) -> QueueRunResult:
    """Send due emails; failures bump attempts and keep the item queued."""
    now = now or datetime.now(timezone.utc)
    result = QueueRunResult()

    for item in get_due_emails(db, now):
        result.processed += 1
        try:
            await sender.send(
                to=item.email_address,
                subject=item.subject,
                html=item.html_content,
                text=item.text_content or None,
            )
        except Exception as exc:
            item.attempts += 1
            item.last_error = str(exc)[:500]
            result.failed += 1
            logger.warning("Queued email %s failed (attempt %s): %s", item.id, item.attempts, exc)
        else:
            item.attempts += 1
            item.sent_at = datetime.now(timezone.utc)
            item.last_error = None
            result.sent += 1
        db.commit()

    if result.processed:
        logger.info(
            "Email queue run: processed=%s sent=%s failed=%s",
            result.processed,
            result.sent,
            result.failed,
        )
    return result
