"""Moderation service - strikes and bans."""

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from careerbridge.core.errors import NotFoundError, ValidationError
from careerbridge.db.enums import NotificationType, UserRole
from careerbridge.db.models import User
from careerbridge.services import notification_service

logger = logging.getLogger(__name__)

MAX_STRIKES = 2


def _get_user_or_404(db: Session, user_id: UUID) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("User not found")
    return user


def apply_strike(
    db: Session,
    admin: User,
    user_id: UUID,
    action: str,
    reason: str | None = None,
) -> User:
    """
    Add or remove a strike on a student.

    Reaching MAX_STRIKES bans the user. Removing a strike never lifts a ban.
    """
    user = _get_user_or_404(db, user_id)
    if user.role != UserRole.STUDENT.value:
        raise ValidationError("Strikes can only be applied to students")

    if action == "add":
        user.strikes = min(user.strikes + 1, MAX_STRIKES)
        if user.strikes >= MAX_STRIKES:
            user.is_banned = True
    elif action == "remove":
        user.strikes = max(user.strikes - 1, 0)
    else:
        raise ValidationError("action must be 'add' or 'remove'")

    db.commit()
    db.refresh(user)
    logger.info(
        "Strike %s on user %s by admin %s (strikes=%s banned=%s)",
        action, user.id, admin.id, user.strikes, user.is_banned,
    )

    if action == "add":
        body = f"You have received a strike ({user.strikes}/{MAX_STRIKES})."
        if reason:
            body += f" Reason: {reason}"
        if user.is_banned:
            body += " Your account has been suspended."
        notification_service.notify(
            db, user.id, NotificationType.SYSTEM, "Account Warning", body=body,
        )
    return user


def set_ban(
    db: Session,
    admin: User,
    user_id: UUID,
    action: str,
    reason: str | None = None,
) -> User:
    """Ban or unban a user. Unbanning also clears strikes."""
    user = _get_user_or_404(db, user_id)
    if user.id == admin.id:
        raise ValidationError("Admins cannot ban themselves")

    if action == "ban":
        user.is_banned = True
    elif action == "unban":
        user.is_banned = False
        user.strikes = 0
    else:
        raise ValidationError("action must be 'ban' or 'unban'")

    db.commit()
    db.refresh(user)
    logger.info("User %s %sned by admin %s (reason=%s)", user.id, action, admin.id, reason or "-")
    return user
