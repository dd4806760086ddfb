"""FastAPI dependencies for authentication, authorization, database and clients."""

from typing import Generator
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from careerbridge.core.config import settings
from careerbridge.core.security import decode_session_token
from careerbridge.db.enums import UserRole
from careerbridge.db.models import User
from careerbridge.db.session import SessionLocal


# Cookie and header names
COOKIE_NAME = "cb_session"
CSRF_HEADER = "X-Requested-With"
CSRF_HEADER_VALUE = "XMLHttpRequest"


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _read_token(request: Request) -> str | None:
    token = request.cookies.get(COOKIE_NAME)
    if token:
        return token
    auth_header = request.headers.get("Authorization", "")
    scheme, _, credentials = auth_header.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials.strip()
    return None


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """
    Get authenticated user from the session cookie or bearer token.

    The role is always taken from the database, never from the token.

    Raises:
        HTTPException 401: Authentication failed
    """
    token = _read_token(request)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    try:
        payload = decode_session_token(token)
        user_id = UUID(str(payload.get("sub")))
    except (jwt.InvalidTokenError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid session")

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=401, detail="User not found")

    if not UserRole.has_value(user.role):
        raise HTTPException(status_code=403, detail=f"Unknown role '{user.role}'. Contact administrator.")

    request.state.user_id = str(user.id)
    return user


def require_roles(allowed_roles: list[UserRole]):
    """
    Dependency factory for role-based authorization.

    Usage:
        @router.get("/admin/users", dependencies=[Depends(require_roles([UserRole.ADMIN]))])
    """
    allowed = {role.value for role in allowed_roles}

    def dependency(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            raise HTTPException(
                status_code=403,
                detail=f"Role '{user.role}' not authorized for this action",
            )
        return user
    return dependency


require_admin = require_roles([UserRole.ADMIN])


def require_csrf_header(request: Request) -> None:
    """
    Verify CSRF header on cookie-authenticated mutations.

    Bearer-token requests are not subject to CSRF and skip the check.

    Raises:
        HTTPException 403: Missing or invalid CSRF header
    """
    if COOKIE_NAME not in request.cookies:
        return
    if request.headers.get(CSRF_HEADER) != CSRF_HEADER_VALUE:
        raise HTTPException(
            status_code=403,
            detail=f"Missing CSRF header. Include '{CSRF_HEADER}: {CSRF_HEADER_VALUE}'",
        )


def verify_internal_secret(request: Request) -> None:
    """Guard for cron-driven /internal endpoints (X-Internal-Secret header)."""
    expected = settings.INTERNAL_SECRET
    if not expected:
        raise HTTPException(status_code=501, detail="INTERNAL_SECRET not configured")
    if request.headers.get("X-Internal-Secret") != expected:
        raise HTTPException(status_code=403, detail="Invalid internal secret")


# =============================================================================
# External clients (constructed once in the app lifespan)
# =============================================================================

def get_payment_client(request: Request):
    return getattr(request.app.state, "payment_client", None)


def get_translation_client(request: Request):
    return getattr(request.app.state, "translation_client", None)


def get_storage_client(request: Request):
    return getattr(request.app.state, "storage_client", None)


def get_email_sender(request: Request):
    return getattr(request.app.state, "email_sender", None)
