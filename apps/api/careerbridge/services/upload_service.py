"""Upload service - validates files and stores them under {kind}/{user_id}/."""

import logging
import uuid
from uuid import UUID

from careerbridge.core.config import settings
from careerbridge.core.errors import ValidationError
from careerbridge.db.enums import UploadKind

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = {
    "application/pdf": ".pdf",
    "image/png": ".png",
    "image/jpeg": ".jpg",
}


def build_object_key(kind: UploadKind, user_id: UUID, content_type: str) -> str:
    return f"{kind.value}/{user_id}/{uuid.uuid4()}{ALLOWED_CONTENT_TYPES[content_type]}"


def store_upload(
    storage,
    user_id: UUID,
    kind: str,
    content_type: str | None,
    data: bytes,
) -> str:
    """Validate and upload; returns the public URL."""
    if not UploadKind.__members__.get(kind.upper()):
        raise ValidationError("kind must be one of: resume, compliance, logo")
    upload_kind = UploadKind(kind)

    content_type = (content_type or "").split(";")[0].strip().lower()
    if content_type not in ALLOWED_CONTENT_TYPES:
        raise ValidationError("Only PDF, PNG and JPEG files are allowed")
    if not data:
        raise ValidationError("File is empty")
    if len(data) > settings.UPLOAD_MAX_BYTES:
        raise ValidationError(
            f"File too large (max {settings.UPLOAD_MAX_BYTES // (1024 * 1024)} MB)"
        )

    key = build_object_key(upload_kind, user_id, content_type)
    url = storage.upload(key, data, content_type)
    logger.info("Stored %s upload for user %s (%s bytes)", upload_kind.value, user_id, len(data))
    return url
