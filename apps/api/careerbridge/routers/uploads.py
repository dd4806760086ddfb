"""Uploads Router - resumes, compliance documents and logos."""

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from pydantic import BaseModel

from careerbridge.core.config import settings
from careerbridge.core.deps import get_current_user, get_storage_client, require_csrf_header
from careerbridge.core.rate_limit import limiter
from careerbridge.db.models import User
from careerbridge.schemas.common import ApiResponse
from careerbridge.services import upload_service

router = APIRouter(tags=["uploads"])


class UploadResponse(BaseModel):
    url: str


@router.post(
    "/upload",
    status_code=201,
    response_model=ApiResponse[UploadResponse],
    dependencies=[Depends(require_csrf_header)],
)
@limiter.limit("20/minute")
def upload_file(
    request: Request,
    file: UploadFile = File(...),
    kind: str = Form(...),
    user: User = Depends(get_current_user),
    storage=Depends(get_storage_client),
):
    """Store a PDF/PNG/JPEG (max UPLOAD_MAX_BYTES) and return its URL."""
    # Read one byte past the limit so oversize files are rejected without buffering them whole
    data = file.file.read(settings.UPLOAD_MAX_BYTES + 1)
    url = upload_service.store_upload(storage, user.id, kind, file.content_type, data)
    return ApiResponse(data=UploadResponse(url=url))
