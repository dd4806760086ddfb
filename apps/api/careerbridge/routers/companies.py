"""
Companies Router - /api/companies.

Any signed-in user can list companies; only admins create them.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from careerbridge.core.deps import get_current_user, get_db, require_admin, require_csrf_header
from careerbridge.db.models import User
from careerbridge.schemas.common import ApiResponse
from careerbridge.schemas.company import CompanyCreate, CompanyRead
from careerbridge.services import company_service

router = APIRouter(prefix="/companies", tags=["companies"])


def _company_read(company, ob_count: int = 0) -> CompanyRead:
    read = CompanyRead.model_validate(company)
    read.ob_count = ob_count
    return read


@router.get("", response_model=ApiResponse[list[CompanyRead]])
def list_companies(
    _: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    rows = company_service.list_companies(db)
    return ApiResponse(data=[_company_read(row["company"], row["ob_count"]) for row in rows])


@router.post(
    "",
    status_code=201,
    response_model=ApiResponse[CompanyRead],
    dependencies=[Depends(require_csrf_header)],
)
def create_company(
    body: CompanyCreate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    company = company_service.create_company(
        db, admin, body.name, body.industry, body.website, body.logo_url
    )
    return ApiResponse(data=_company_read(company))
