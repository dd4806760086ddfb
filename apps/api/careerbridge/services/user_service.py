"""User service - lookups and atomic credit balance changes."""

from uuid import UUID

from sqlalchemy import update
from sqlalchemy.orm import Session

from careerbridge.db.enums import CreditReason
from careerbridge.db.models import CreditTransaction, User


def get_user(db: Session, user_id: UUID) -> User | None:
    """Get user by ID."""
    return db.query(User).filter(User.id == user_id).first()


def list_users(db: Session, role: str | None = None) -> list[User]:
    query = db.query(User)
    if role:
        query = query.filter(User.role == role)
    return query.order_by(User.created_at.desc()).all()


def deduct_credits_if_sufficient(db: Session, user_id: UUID, amount: int) -> bool:
    """
    Conditionally deduct credits in a single UPDATE.

    Returns False (and changes nothing) when the balance is below amount.
    Two concurrent sends can never both pass the check. Does not commit.
    """
    result = db.execute(
        update(User)
        .where(User.id == user_id, User.credits >= amount)
        .values(credits=User.credits - amount)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def add_credits(db: Session, user_id: UUID, amount: int) -> bool:
    """Atomically increment the balance. Returns False for unknown users. Does not commit."""
    result = db.execute(
        update(User)
        .where(User.id == user_id)
        .values(credits=User.credits + amount)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def record_credit_transaction(
    db: Session,
    user_id: UUID,
    delta: int,
    reason: CreditReason,
    reference: str | None = None,
) -> CreditTransaction:
    """Append a ledger row. Does not commit."""
    transaction = CreditTransaction(
        user_id=user_id,
        delta=delta,
        reason=reason.value,
        reference=reference,
    )
    db.add(transaction)
    return transaction
